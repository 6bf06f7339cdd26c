"""Canonical URL building for pages referenced in notifications."""

from __future__ import annotations

from typing import Mapping, Optional, Union
from urllib.parse import quote, urlencode, urlsplit

from subwatch.core.config import NS_SPECIAL, SiteConfig
from subwatch.core.models import PagePath
from subwatch.core.paths import parse_title, prefixed_db_key, to_db_key

# Characters left readable in page URLs, matching what wikis emit.
_SAFE_TITLE_CHARS = ";:@$!*(),/~"


def page_url(
    page: PagePath,
    site: SiteConfig,
    query: Optional[Union[str, Mapping[str, object]]] = None,
) -> str:
    """Return the canonical URL for a page, optionally with a query string."""

    title = quote(prefixed_db_key(page, site), safe=_SAFE_TITLE_CHARS)
    if not query:
        return site.server + site.article_path.replace("$1", title)
    if not isinstance(query, str):
        query = urlencode({name: str(value) for name, value in query.items()})
    return f"{site.server}{site.script_path}/index.php?title={title}&{query}"


def email_user_url(user_name: str, site: SiteConfig) -> str:
    return page_url(PagePath(NS_SPECIAL, f"EmailUser/{to_db_key(user_name)}"), site)


def help_page_url(site: SiteConfig) -> str:
    """Resolve the configured help page, which may be a URL or a page title."""

    target = site.help_page.strip()
    if target.startswith("//"):
        scheme = urlsplit(site.server).scheme or "https"
        return f"{scheme}:{target}"
    if "://" in target:
        return target
    return page_url(parse_title(target, site), site)
