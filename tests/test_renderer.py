from __future__ import annotations

from subwatch.adapters.wikitext_renderer import WikitextRenderer
from subwatch.core.config import SiteConfig
from subwatch.core.models import PagePath

SITE = SiteConfig(name="TestWiki", server="https://wiki.example.org")
PAGE = PagePath(4, "Team_notes/Sub_page/Minutes")


def _render(text: str, page: PagePath = PAGE) -> str:
    return WikitextRenderer(SITE).render(text, page)


def test_page_scoped_magic_words() -> None:
    assert _render("{{SITENAME}}") == "TestWiki"
    assert _render("{{ FULLPAGENAME }}") == "Project:Team notes/Sub page/Minutes"
    assert _render("{{PAGENAME}}") == "Team notes/Sub page/Minutes"
    assert _render("{{BASEPAGENAME}}") == "Team notes/Sub page"
    assert _render("{{SUBPAGENAME}}") == "Minutes"
    assert _render("{{NAMESPACE}}") == "Project"


def test_top_level_page_is_its_own_base() -> None:
    assert _render("{{BASEPAGENAME}}|{{SUBPAGENAME}}", PagePath(0, "Top")) == "Top|Top"


def test_url_functions() -> None:
    assert _render("{{canonicalurl:Special:Preferences}}") == "https://wiki.example.org/wiki/Special:Preferences"
    assert _render("{{fullurl:Help:Contents}}") == "https://wiki.example.org/wiki/Help:Contents"
    assert _render("{{canonicalurl:}}") == "https://wiki.example.org/wiki/Project:Team_notes/Sub_page/Minutes"


def test_nowiki_content_is_left_alone() -> None:
    assert _render("<nowiki>{{SITENAME}}</nowiki> {{SITENAME}}") == "{{SITENAME}} TestWiki"


def test_unknown_constructs_are_kept() -> None:
    text = "{{UNKNOWN}} and {{#if:x|y}} and $WATCHINGUSERNAME"
    assert _render(text) == text
