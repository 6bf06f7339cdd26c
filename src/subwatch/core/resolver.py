"""Watcher resolution (core domain)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable

from subwatch.core.models import Candidate, NotificationEvent
from subwatch.core.paths import decompose
from subwatch.core.ports import WatchStore

LOGGER = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def nearest_per_user(rows: Iterable[Candidate]) -> set[Candidate]:
    """Collapse rows to one candidate per user, keeping the smallest key."""

    nearest: dict[int, str] = {}
    for row in rows:
        current = nearest.get(row.user_id)
        if current is None or row.page_key < current:
            nearest[row.user_id] = row.page_key
    return {Candidate(user_id, page_key) for user_id, page_key in nearest.items()}


class WatcherResolver:
    """Finds who watches a base page of an edited subpage.

    A watch qualifies when it is not expired, its pending marker is empty, and
    the same user does not also watch the edited page itself (those users are
    notified by the regular watchlist path). Users watching several base
    pages get a single candidate for the lexicographically smallest key, so
    one edit never produces more than one mail per user.
    """

    def __init__(self, store: WatchStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    def resolve_candidates(self, event: NotificationEvent) -> set[Candidate]:
        chain = decompose(event.page)
        if not chain:
            return set()

        rows = self._store.find_watchers_of_ancestors(
            event.namespace,
            [ancestor.key for ancestor in chain],
            event.page_key,
            self._clock(),
        )
        candidates = nearest_per_user(rows)
        LOGGER.debug(
            "Resolved %s candidate(s) for %s base page(s) of %s",
            len(candidates),
            len(chain),
            event.page_key,
        )
        return candidates
