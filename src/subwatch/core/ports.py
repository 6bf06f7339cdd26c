"""Ports (interfaces) used by the core notification pipeline.

Ports define the minimal contracts for the watch store, the user directory,
markup rendering, mail delivery and deferred execution so that the core can
be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable, Iterable, Optional, Protocol, Sequence

from subwatch.core.models import Candidate, MailAddress, PagePath, UserProfile


class WatchStore(Protocol):
    """Watchlist operations required by the core pipeline."""

    def find_watchers_of_ancestors(
        self,
        namespace: int,
        ancestor_keys: Sequence[str],
        exclude_exact_key: str,
        now: datetime,
    ) -> set[Candidate]:
        ...

    def clear_pending(self, user_id: int, namespace: int, page_key: str) -> None:
        ...

    def set_pending(
        self,
        user_ids: Iterable[int],
        namespace: int,
        page_key: str,
        timestamp: datetime,
    ) -> None:
        ...


class UserDirectory(Protocol):
    """Read-only account lookups."""

    def get_users(self, user_ids: Iterable[int]) -> dict[int, UserProfile]:
        ...

    def get_user_by_name(self, name: str) -> Optional[UserProfile]:
        ...


class Renderer(Protocol):
    """Expands markup in a message body in the context of a page."""

    def render(self, text: str, page: PagePath) -> str:
        ...


class Transport(Protocol):
    """Mail delivery. Implementations raise on failure."""

    async def send(
        self,
        to: MailAddress,
        sender: MailAddress,
        reply_to: Optional[MailAddress],
        subject: str,
        body: str,
    ) -> None:
        ...


class DeferredRunner(Protocol):
    """Runs work after the triggering request, off its critical path."""

    def add(self, name: str, work: Callable[[], Awaitable[object]]) -> None:
        ...
