"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

NS_MAIN = 0
NS_USER = 2
NS_USER_TALK = 3
NS_SPECIAL = -1

DEFAULT_NAMESPACES: dict[int, str] = {
    NS_SPECIAL: "Special",
    NS_MAIN: "",
    1: "Talk",
    NS_USER: "User",
    NS_USER_TALK: "User talk",
    4: "Project",
    5: "Project talk",
    10: "Template",
    12: "Help",
}


@dataclass(frozen=True)
class NotifyConfig:
    """Notification switches consulted by the policy, composer and dispatcher."""

    minor_edit_notices: bool = False
    block_disables_login: bool = False
    use_real_name: bool = False
    reveal_editor_address: bool = False
    from_editor: bool = False
    sender_address: str = "apache@localhost"
    sender_name: str = "Wiki mail"
    no_reply_address: str = "reply@example.com"
    always_excluded_usernames: frozenset[str] = frozenset()
    hierarchical_notices_enabled: bool = True


@dataclass(frozen=True)
class SiteConfig:
    """Site identity used to build titles, URLs and dates in messages."""

    name: str = "Wiki"
    server: str = "http://localhost"
    script_path: str = "/w"
    article_path: str = "/wiki/$1"
    help_page: str = "https://www.mediawiki.org/wiki/Special:MyLanguage/Help:Contents"
    timezone: str = "UTC"
    namespaces: Mapping[int, str] = field(default_factory=lambda: dict(DEFAULT_NAMESPACES))
