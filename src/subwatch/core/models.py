"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any storage or mail specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from email.utils import formataddr
from enum import Enum
from typing import Mapping, Optional

# Option values are stored as strings, the way user preference tables keep them.
DEFAULT_OPTIONS: dict[str, str] = {
    "enotifminoredits": "0",
    "enotifwatchlistsubpages": "0",
    "enotifrevealaddr": "0",
    "watchlisthidesubpages": "0",
    "timezone": "",
    "date": "mdy",
}

_FALSE_VALUES = {"", "0", "false", "no", "off"}


class PageAction(str, Enum):
    """What happened to the edited page."""

    CREATED = "created"
    EDITED = "edited"
    DELETED = "deleted"
    MOVED = "moved"
    RESTORED = "restored"


@dataclass(frozen=True, order=True)
class PagePath:
    """A page identified by namespace id and db key (``Some_page/Sub``)."""

    namespace: int
    key: str


@dataclass(frozen=True)
class UserProfile:
    """Read-only snapshot of an account, as seen by the notification core."""

    user_id: int
    name: str
    real_name: str = ""
    email: str = ""
    email_confirmed: bool = False
    blocked: bool = False
    rights: frozenset[str] = frozenset()
    options: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_registered(self) -> bool:
        return self.user_id > 0

    def is_allowed(self, right: str) -> bool:
        return right in self.rights

    def get_option(self, name: str) -> str:
        if name in self.options:
            return self.options[name]
        return DEFAULT_OPTIONS.get(name, "")

    def get_bool_option(self, name: str) -> bool:
        return self.get_option(name).strip().lower() not in _FALSE_VALUES


@dataclass(frozen=True)
class NotificationEvent:
    """One committed change to a page, as delivered by the edit trigger."""

    namespace: int
    page_key: str
    editor: UserProfile
    timestamp: datetime
    summary: str = ""
    last_revision_id: Optional[int] = None
    minor: bool = False
    action: PageAction = PageAction.EDITED

    @property
    def page(self) -> PagePath:
        return PagePath(self.namespace, self.page_key)


@dataclass(frozen=True, order=True)
class Candidate:
    """A watcher and the nearest base page they watch for one event."""

    user_id: int
    page_key: str


@dataclass(frozen=True)
class ComposedMessage:
    """Final subject and body for one recipient."""

    subject: str
    body: str


@dataclass(frozen=True)
class WatchMarker:
    """One watchlist row as stored, including its notification state."""

    user_id: int
    namespace: int
    page_key: str
    pending_since: Optional[datetime] = None
    expiry: Optional[datetime] = None


@dataclass(frozen=True)
class RecentChange:
    """A row of the recent changes feed, as shown on a watchlist."""

    rc_id: int
    namespace: int
    page_key: str
    timestamp: datetime
    user_text: str
    comment: str
    minor: bool
    revision_id: int
    last_revision_id: Optional[int]


@dataclass(frozen=True)
class MailAddress:
    """Email address with an optional display name."""

    address: str
    name: str = ""

    def __str__(self) -> str:
        return formataddr((self.name, self.address)) if self.name else self.address


@dataclass
class DispatchReport:
    """Outcome of one dispatch, mostly for logging and the CLI."""

    page: PagePath
    candidates: list[Candidate] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    sent: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    reset: dict[str, list[int]] = field(default_factory=dict)
    reset_timestamp: Optional[datetime] = None

    @property
    def attempted(self) -> int:
        return len(self.sent) + len(self.failed)
