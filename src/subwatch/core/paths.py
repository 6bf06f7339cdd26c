"""Page path helpers (core domain).

Keys are stored in db-key form (underscores instead of spaces), the same
form the watch store uses, so ancestor keys can be compared directly.
"""

from __future__ import annotations

from typing import Tuple

from subwatch.core.config import NS_MAIN, NS_USER, NS_USER_TALK, SiteConfig
from subwatch.core.models import PagePath

AncestorChain = Tuple[PagePath, ...]


def decompose(path: PagePath) -> AncestorChain:
    """Return the base pages of ``path``, shallowest first.

    ``Docs/Setup/Linux`` yields ``Docs`` and ``Docs/Setup``. A key without a
    slash is not a subpage and yields an empty chain. Empty segments from
    stray slashes are ignored. Subpage support of the namespace is never
    consulted.
    """

    parts = [part for part in path.key.split("/") if part]
    if len(parts) <= 1:
        return ()

    chain = []
    prefix = ""
    for part in parts[:-1]:
        prefix = f"{prefix}/{part}" if prefix else part
        chain.append(PagePath(path.namespace, prefix))
    return tuple(chain)


def to_db_key(text: str) -> str:
    """Normalize display text into a db key."""

    key = "_".join(text.replace("_", " ").split())
    key = key.strip("/")
    if key:
        key = key[0].upper() + key[1:]
    return key


def parse_title(text: str, site: SiteConfig) -> PagePath:
    """Parse ``Ns:Some page/Sub`` into a PagePath.

    An unknown prefix before the colon is kept as part of a main namespace key.
    """

    prefix, sep, rest = text.strip().partition(":")
    if sep:
        wanted = prefix.replace("_", " ").strip().lower()
        for ns_id, ns_name in site.namespaces.items():
            if ns_name and ns_name.lower() == wanted:
                return PagePath(ns_id, to_db_key(rest))
    return PagePath(NS_MAIN, to_db_key(text))


def prefixed_db_key(page: PagePath, site: SiteConfig) -> str:
    ns_name = site.namespaces.get(page.namespace, "")
    if not ns_name:
        return page.key
    return f"{ns_name.replace(' ', '_')}:{page.key}"


def display_title(page: PagePath, site: SiteConfig) -> str:
    """Human readable title, e.g. ``User talk:Some user/Archive``."""

    return prefixed_db_key(page, site).replace("_", " ")


def user_page(user_name: str) -> PagePath:
    return PagePath(NS_USER, to_db_key(user_name))


def user_talk_page(user_name: str) -> PagePath:
    return PagePath(NS_USER_TALK, to_db_key(user_name))
