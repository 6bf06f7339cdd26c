"""Magic word expansion for notification bodies.

Only the parts of wikitext that make sense in a plain text mail are handled:
page-scoped magic words, ``canonicalurl``/``fullurl`` and ``<nowiki>``.
Unknown ``{{...}}`` constructs are left in place.
"""

from __future__ import annotations

import re

from subwatch.core.config import SiteConfig
from subwatch.core.models import PagePath
from subwatch.core.paths import display_title, parse_title
from subwatch.core.urls import page_url

_MAGIC_RE = re.compile(r"\{\{\s*([^{}|]+?)\s*\}\}")
_NOWIKI_RE = re.compile(r"<nowiki>(.*?)</nowiki>", re.DOTALL)


def _title_parts(page: PagePath, site: SiteConfig) -> dict[str, str]:
    text = page.key.replace("_", " ")
    base, _, sub = text.rpartition("/")
    return {
        "SITENAME": site.name,
        "SERVER": site.server,
        "FULLPAGENAME": display_title(page, site),
        "PAGENAME": text,
        "BASEPAGENAME": base or text,
        "SUBPAGENAME": sub or text,
        "NAMESPACE": site.namespaces.get(page.namespace, ""),
    }


class WikitextRenderer:
    """Renderer port implementation for plain text mails."""

    def __init__(self, site: SiteConfig) -> None:
        self._site = site

    def render(self, text: str, page: PagePath) -> str:
        variables = _title_parts(page, self._site)
        stash: list[str] = []

        def _stash_nowiki(match: re.Match) -> str:
            stash.append(match.group(1))
            return f"\x7fNOWIKI{len(stash) - 1}\x7f"

        def _expand(match: re.Match) -> str:
            name = match.group(1)
            if name in variables:
                return variables[name]
            func, sep, arg = name.partition(":")
            if sep and func.strip().lower() in {"canonicalurl", "fullurl"}:
                target = arg.strip() or variables["FULLPAGENAME"]
                return page_url(parse_title(target, self._site), self._site)
            return match.group(0)

        text = _NOWIKI_RE.sub(_stash_nowiki, text)
        text = _MAGIC_RE.sub(_expand, text)
        for index, value in enumerate(stash):
            text = text.replace(f"\x7fNOWIKI{index}\x7f", value)
        return text
