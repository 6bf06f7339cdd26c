from __future__ import annotations

from dataclasses import replace

import pytest

from fakes import make_event, make_user

from subwatch.core.config import NotifyConfig
from subwatch.core.policy import NO_MINOR_NOTICE_RIGHT, should_notify, skip_reason

EDITOR = make_user(1, "Editor")
CONFIG = NotifyConfig(minor_edit_notices=True, block_disables_login=True)


def test_all_checks_pass() -> None:
    target = make_user(2, "Watcher")
    assert should_notify(target, EDITOR, make_event("A/B", EDITOR), CONFIG)


def test_minor_edit_allowed_when_every_condition_holds() -> None:
    target = make_user(2, "Watcher", options={"enotifminoredits": "1"})
    assert should_notify(target, EDITOR, make_event("A/B", EDITOR, minor=True), CONFIG)


@pytest.mark.parametrize(
    "config, editor, options",
    [
        (NotifyConfig(minor_edit_notices=False), EDITOR, {"enotifminoredits": "1"}),
        (CONFIG, make_user(1, "Editor", rights=frozenset({NO_MINOR_NOTICE_RIGHT})), {"enotifminoredits": "1"}),
        (CONFIG, EDITOR, {"enotifminoredits": "0"}),
    ],
)
def test_minor_edit_gate(config: NotifyConfig, editor, options) -> None:
    target = make_user(2, "Watcher", options=options)
    event = make_event("A/B", editor, minor=True)
    assert skip_reason(target, editor, event, config) == "minor edit"


def test_blocked_user_skipped_only_when_blocks_disable_login() -> None:
    target = make_user(2, "Watcher", blocked=True)
    event = make_event("A/B", EDITOR)
    assert skip_reason(target, EDITOR, event, CONFIG) == "blocked"
    assert should_notify(target, EDITOR, event, NotifyConfig(block_disables_login=False))


def test_unconfirmed_email_skipped() -> None:
    target = make_user(2, "Watcher", email_confirmed=False)
    assert skip_reason(target, EDITOR, make_event("A/B", EDITOR), CONFIG) == "email not confirmed"


def test_not_opted_in_skipped() -> None:
    target = make_user(2, "Watcher", options={"enotifwatchlistsubpages": "0"})
    assert skip_reason(target, EDITOR, make_event("A/B", EDITOR), CONFIG) == "not opted in"


def test_opt_in_defaults_to_off() -> None:
    target = make_user(2, "Watcher")
    target = replace(target, options={})
    assert not should_notify(target, EDITOR, make_event("A/B", EDITOR), CONFIG)


def test_excluded_username_skipped() -> None:
    target = make_user(2, "Bot")
    config = NotifyConfig(always_excluded_usernames=frozenset({"Bot"}))
    assert skip_reason(target, EDITOR, make_event("A/B", EDITOR), config) == "excluded user"


def test_no_self_notification() -> None:
    assert skip_reason(EDITOR, EDITOR, make_event("A/B", EDITOR), CONFIG) == "own edit"


def test_checks_run_in_order() -> None:
    target = make_user(1, "Editor", email_confirmed=False, blocked=True)
    event = make_event("A/B", EDITOR, minor=True)
    assert skip_reason(target, EDITOR, event, CONFIG) == "minor edit"
    assert skip_reason(target, EDITOR, make_event("A/B", EDITOR), CONFIG) == "blocked"
