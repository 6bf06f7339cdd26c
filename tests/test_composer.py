from __future__ import annotations

from fakes import FakeRenderer, make_event, make_user

from subwatch.core.composer import MessageComposer, replace_tokens, wrap_body
from subwatch.core.config import NotifyConfig, SiteConfig
from subwatch.core.messages import MessageCatalog
from subwatch.core.models import PageAction, PagePath, UserProfile

SITE = SiteConfig(name="TestWiki", server="https://wiki.example.org")
EDITOR = make_user(1, "Editor", real_name="Ed Itor")
WATCHER = make_user(2, "Watcher", real_name="Wat Cher")
WATCHED = PagePath(4, "Project/Sub")


def _composer(config: NotifyConfig = NotifyConfig(), renderer: FakeRenderer = None) -> MessageComposer:
    return MessageComposer(config, SITE, renderer or FakeRenderer(), MessageCatalog(SITE.name))


def _flat(text: str) -> str:
    return " ".join(text.split())


def test_compose_is_idempotent() -> None:
    composer = _composer()
    event = make_event("Project/Sub/Page", EDITOR)
    first = composer.compose(event, WATCHER, EDITOR, WATCHED)
    second = composer.compose(event, WATCHER, EDITOR, WATCHED)
    assert first == second


def test_subject_and_body_for_edit() -> None:
    message = _composer().compose(make_event("Project/Sub/Page", EDITOR), WATCHER, EDITOR, WATCHED)
    assert message.subject == "TestWiki page Project:Project/Sub/Page has been changed by Editor"

    body = _flat(message.body)
    assert body.startswith("Dear Watcher,")
    assert "changed on May 1, 2024 at 12:00 by Editor" in body
    assert "you watch Project:Project/Sub (https://wiki.example.org/wiki/Project:Project/Sub)" in body
    assert "title=Project:Project/Sub/Page&diff=next&oldid=41" in body
    assert "title=Project:Project/Sub/Page&diff=0&oldid=41" in body
    assert "title=Project:Project/Sub&action=unwatch" in body
    assert "Editor's summary: fix typo" in body
    assert "mail: https://wiki.example.org/wiki/Special:EmailUser/Editor" in body
    assert "wiki: https://wiki.example.org/wiki/User:Editor" in body
    assert "minor edit" not in body
    assert "$" not in message.body


def test_action_selects_subject_and_intro() -> None:
    event = make_event("Project/Sub/Page", EDITOR, action=PageAction.CREATED, last_revision_id=None)
    message = _composer().compose(event, WATCHER, EDITOR, WATCHED)
    assert message.subject.endswith("has been created by Editor")
    assert "has been created on" in _flat(message.body)
    assert "oldid" not in message.body


def test_minor_edit_block_only_for_minor_edits() -> None:
    event = make_event("Project/Sub/Page", EDITOR, minor=True)
    message = _composer().compose(event, WATCHER, EDITOR, WATCHED)
    assert "This is a minor edit." in message.body


def test_empty_summary_becomes_dash() -> None:
    event = make_event("Project/Sub/Page", EDITOR, summary="")
    message = _composer().compose(event, WATCHER, EDITOR, WATCHED)
    assert "Editor's summary: -" in message.body


def test_real_names_used_when_enabled() -> None:
    composer = _composer(NotifyConfig(use_real_name=True))
    message = composer.compose(make_event("Project/Sub/Page", EDITOR), WATCHER, EDITOR, WATCHED)
    assert message.subject.endswith("by Ed Itor")
    assert message.body.startswith("Dear Wat Cher,")


def test_anonymous_editor() -> None:
    anon = UserProfile(user_id=0, name="192.0.2.1")
    message = _composer().compose(make_event("Project/Sub/Page", anon), WATCHER, anon, WATCHED)
    assert message.subject.endswith("by anonymous user 192.0.2.1")
    assert "mail: No email address" in message.body


def test_recipient_timezone_and_date_format() -> None:
    target = make_user(2, "Watcher", options={"timezone": "Europe/Berlin", "date": "ISO 8601"})
    message = _composer().compose(make_event("Project/Sub/Page", EDITOR), target, EDITOR, WATCHED)
    assert "changed on 2024-05-01 at 14:00 by" in _flat(message.body)


def test_renderer_runs_once_and_never_sees_recipient_values() -> None:
    renderer = FakeRenderer()
    composer = _composer(renderer=renderer)
    event = make_event("Project/Sub/Page", EDITOR, summary="{{SITENAME}} summary")
    prepared = composer.prepare(event, EDITOR, WATCHED)
    first = composer.personalise(prepared, WATCHER)
    composer.personalise(prepared, make_user(3, "Other"))

    assert len(renderer.calls) == 1
    rendered_input, page = renderer.calls[0]
    assert page == PagePath(4, "Project/Sub/Page")
    assert "$WATCHINGUSERNAME" in rendered_input
    assert "$PAGESUMMARY" in rendered_input
    assert "Watcher" not in rendered_input
    # The summary is inserted after rendering, so it is not expanded.
    assert "{{SITENAME}} summary" in first.body


def test_summary_tokens_are_not_substituted() -> None:
    event = make_event("Project/Sub/Page", EDITOR, summary="hi $WATCHINGUSERNAME")
    message = _composer().compose(event, WATCHER, EDITOR, WATCHED)
    assert "hi $WATCHINGUSERNAME" in message.body


def test_body_wrapped_at_72_columns() -> None:
    event = make_event("Project/Sub/Page", EDITOR, summary="word " * 40)
    message = _composer().compose(event, WATCHER, EDITOR, WATCHED)
    for line in message.body.split("\n"):
        assert len(line) <= 72 or " " not in line.strip()


def test_replace_tokens_prefers_longest_and_does_not_rescan() -> None:
    text = "$PAGETITLE_URL | $PAGETITLE"
    result = replace_tokens(text, {"$PAGETITLE": "T $PAGETITLE_URL", "$PAGETITLE_URL": "U"})
    assert result == "U | T $PAGETITLE_URL"


def test_wrap_body_keeps_line_breaks_and_long_words() -> None:
    url = "https://example.org/" + "x" * 80
    text = "short\n\n" + url + "\n" + "a " * 50
    wrapped = wrap_body(text)
    lines = wrapped.split("\n")
    assert lines[:3] == ["short", "", url]
    assert all(len(line) <= 72 for line in lines[3:])
