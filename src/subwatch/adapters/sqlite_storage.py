"""SQLite storage adapters.

Implements the core WatchStore and UserDirectory ports on a single SQLite
database laid out like a wiki's watchlist, user and recent changes tables.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from subwatch.core.models import Candidate, NotificationEvent, RecentChange, UserProfile, WatchMarker

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

EXACT_TITLE_JOIN = "wl_title = rc_title"
SUBPAGE_TITLE_JOIN = (
    "(wl_title = rc_title"
    " OR wl_title || '/' = SUBSTR(rc_title, 1, LENGTH(wl_title) + 1))"
)


class QueryShapeError(RuntimeError):
    """Raised when a watchlist query does not have the join we know how to widen."""


def to_db_timestamp(value: datetime) -> str:
    """Return a 14 digit UTC timestamp, which sorts and compares as text."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def widen_watchlist_join(conditions: Sequence[str]) -> list[str]:
    """Let a watchlist join also match subpages of watched pages.

    Expects the title condition in second position. Anything else means the
    query was built differently than assumed, and guessing could list
    changes twice or miss them, so it raises instead.
    """

    if len(conditions) < 2 or conditions[1] != EXACT_TITLE_JOIN:
        raise QueryShapeError(f"Could not understand watchlist query: {list(conditions)!r}")
    widened = list(conditions)
    widened[1] = SUBPAGE_TITLE_JOIN
    return widened


class _SQLiteDatabase:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn


class SQLiteWatchStore(_SQLiteDatabase):
    """Thin SQLite wrapper that satisfies the WatchStore contract."""

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - watchlist: one row per (user, page) watch, with the pending marker
        - watchlist_expiry: expiry for temporary watches
        - recentchanges: append-only log of edits, read by the watchlist view
        """

        with self._connect() as conn:
            # wl_notificationtimestamp is NULL when nothing is pending. It is
            # set when a mail went out and cleared when the user visits.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS watchlist (
                    wl_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    wl_user INTEGER NOT NULL,
                    wl_namespace INTEGER NOT NULL,
                    wl_title TEXT NOT NULL,
                    wl_notificationtimestamp TEXT,
                    UNIQUE (wl_user, wl_namespace, wl_title)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS watchlist_expiry (
                    we_item INTEGER PRIMARY KEY,
                    we_expiry TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS recentchanges (
                    rc_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    rc_namespace INTEGER NOT NULL,
                    rc_title TEXT NOT NULL,
                    rc_timestamp TEXT NOT NULL,
                    rc_user_text TEXT NOT NULL,
                    rc_comment TEXT NOT NULL DEFAULT '',
                    rc_minor INTEGER NOT NULL DEFAULT 0,
                    rc_this_oldid INTEGER NOT NULL,
                    rc_last_oldid INTEGER
                )
                """
            )

    def add_watch(
        self,
        user_id: int,
        namespace: int,
        page_key: str,
        expiry: Optional[datetime] = None,
    ) -> None:
        """Watch a page. Re-watching replaces any previous expiry."""

        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO watchlist (wl_user, wl_namespace, wl_title)
                VALUES (?, ?, ?)
                """,
                (user_id, namespace, page_key),
            )
            row = conn.execute(
                "SELECT wl_id FROM watchlist WHERE wl_user = ? AND wl_namespace = ? AND wl_title = ?",
                (user_id, namespace, page_key),
            ).fetchone()
            if expiry is None:
                conn.execute("DELETE FROM watchlist_expiry WHERE we_item = ?", (row["wl_id"],))
            else:
                conn.execute(
                    """
                    INSERT INTO watchlist_expiry (we_item, we_expiry) VALUES (?, ?)
                    ON CONFLICT(we_item) DO UPDATE SET we_expiry = excluded.we_expiry
                    """,
                    (row["wl_id"], to_db_timestamp(expiry)),
                )

    def remove_watch(self, user_id: int, namespace: int, page_key: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT wl_id FROM watchlist WHERE wl_user = ? AND wl_namespace = ? AND wl_title = ?",
                (user_id, namespace, page_key),
            ).fetchone()
            if row is None:
                return False
            conn.execute("DELETE FROM watchlist_expiry WHERE we_item = ?", (row["wl_id"],))
            conn.execute("DELETE FROM watchlist WHERE wl_id = ?", (row["wl_id"],))
        return True

    def get_marker(self, user_id: int, namespace: int, page_key: str) -> Optional[WatchMarker]:
        """Return the watch row for (user, page), if the user watches it."""

        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT wl_notificationtimestamp, we_expiry
                FROM watchlist
                LEFT JOIN watchlist_expiry ON wl_id = we_item
                WHERE wl_user = ? AND wl_namespace = ? AND wl_title = ?
                """,
                (user_id, namespace, page_key),
            ).fetchone()
        if row is None:
            return None
        return WatchMarker(
            user_id=user_id,
            namespace=namespace,
            page_key=page_key,
            pending_since=from_db_timestamp(row["wl_notificationtimestamp"]),
            expiry=from_db_timestamp(row["we_expiry"]),
        )

    def find_watchers_of_ancestors(
        self,
        namespace: int,
        ancestor_keys: Sequence[str],
        exclude_exact_key: str,
        now: datetime,
    ) -> set[Candidate]:
        """Return one (user, smallest watched key) pair per eligible watcher.

        w2 finds users who also watch the edited page itself; the expiry join
        only matches expired watches. Both must come back empty.
        """

        if not ancestor_keys:
            return set()

        placeholders = ", ".join("?" for _ in ancestor_keys)
        query = f"""
            SELECT w1.wl_user AS user_id, MIN(w1.wl_title) AS page
            FROM watchlist AS w1
            LEFT JOIN watchlist AS w2
                ON w1.wl_user = w2.wl_user
                AND w2.wl_namespace = ?
                AND w2.wl_title = ?
            LEFT JOIN watchlist_expiry
                ON w1.wl_id = we_item
                AND we_expiry <= ?
            WHERE w1.wl_namespace = ?
                AND w1.wl_title IN ({placeholders})
                AND w2.wl_user IS NULL
                AND we_item IS NULL
                AND w1.wl_notificationtimestamp IS NULL
            GROUP BY w1.wl_user
        """
        params = [namespace, exclude_exact_key, to_db_timestamp(now), namespace, *ancestor_keys]
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return {Candidate(int(row["user_id"]), row["page"]) for row in rows}

    def clear_pending(self, user_id: int, namespace: int, page_key: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE watchlist SET wl_notificationtimestamp = NULL
                WHERE wl_user = ? AND wl_namespace = ? AND wl_title = ?
                """,
                (user_id, namespace, page_key),
            )

    def set_pending(
        self,
        user_ids: Iterable[int],
        namespace: int,
        page_key: str,
        timestamp: datetime,
    ) -> None:
        """Mark a base page as pending for several users in one statement."""

        ids = list(user_ids)
        if not ids:
            return
        placeholders = ", ".join("?" for _ in ids)
        with self._connect() as conn:
            conn.execute(
                f"""
                UPDATE watchlist SET wl_notificationtimestamp = ?
                WHERE wl_namespace = ? AND wl_title = ? AND wl_user IN ({placeholders})
                """,
                (to_db_timestamp(timestamp), namespace, page_key, *ids),
            )

    def last_revision_id(self, namespace: int, page_key: str) -> Optional[int]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT MAX(rc_this_oldid) AS rev FROM recentchanges WHERE rc_namespace = ? AND rc_title = ?",
                (namespace, page_key),
            ).fetchone()
        return int(row["rev"]) if row and row["rev"] is not None else None

    def record_change(self, event: NotificationEvent) -> int:
        """Append an edit to recentchanges and return its new revision id."""

        with self._connect() as conn:
            row = conn.execute("SELECT COALESCE(MAX(rc_this_oldid), 0) + 1 AS rev FROM recentchanges").fetchone()
            revision_id = int(row["rev"])
            conn.execute(
                """
                INSERT INTO recentchanges (
                    rc_namespace,
                    rc_title,
                    rc_timestamp,
                    rc_user_text,
                    rc_comment,
                    rc_minor,
                    rc_this_oldid,
                    rc_last_oldid
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.namespace,
                    event.page_key,
                    to_db_timestamp(event.timestamp),
                    event.editor.name,
                    event.summary,
                    int(event.minor),
                    revision_id,
                    event.last_revision_id,
                ),
            )
        return revision_id

    def list_watchlist_changes(
        self,
        user_id: int,
        hide_subpages: bool,
        limit: int = 50,
    ) -> list[RecentChange]:
        """Return recent changes to pages the user watches, newest first.

        Unless ``hide_subpages`` is set, changes to subpages of watched pages
        are listed too. A change matching several watched base pages is
        listed once.
        """

        conditions = ["wl_namespace = rc_namespace", EXACT_TITLE_JOIN, "wl_user = ?"]
        if not hide_subpages:
            conditions = widen_watchlist_join(conditions)

        query = f"""
            SELECT DISTINCT
                rc_id,
                rc_namespace,
                rc_title,
                rc_timestamp,
                rc_user_text,
                rc_comment,
                rc_minor,
                rc_this_oldid,
                rc_last_oldid
            FROM recentchanges
            JOIN watchlist ON {" AND ".join(conditions)}
            ORDER BY rc_timestamp DESC, rc_id DESC
            LIMIT ?
        """
        with self._connect() as conn:
            rows = conn.execute(query, (user_id, limit)).fetchall()
        return [
            RecentChange(
                rc_id=int(row["rc_id"]),
                namespace=int(row["rc_namespace"]),
                page_key=row["rc_title"],
                timestamp=from_db_timestamp(row["rc_timestamp"]),
                user_text=row["rc_user_text"],
                comment=row["rc_comment"],
                minor=bool(row["rc_minor"]),
                revision_id=int(row["rc_this_oldid"]),
                last_revision_id=row["rc_last_oldid"],
            )
            for row in rows
        ]


class SQLiteUserDirectory(_SQLiteDatabase):
    """Account lookups satisfying the UserDirectory contract."""

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - user: account identity, address and block state
        - user_properties: string-valued preferences, defaults are not stored
        - user_rights: rights granted directly to an account
        """

        with self._connect() as conn:
            # user_email_authenticated holds the confirmation timestamp, NULL
            # until the address has been confirmed.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user (
                    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_name TEXT NOT NULL UNIQUE,
                    user_real_name TEXT NOT NULL DEFAULT '',
                    user_email TEXT NOT NULL DEFAULT '',
                    user_email_authenticated TEXT,
                    user_blocked INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_properties (
                    up_user INTEGER NOT NULL,
                    up_property TEXT NOT NULL,
                    up_value TEXT,
                    PRIMARY KEY (up_user, up_property)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_rights (
                    ur_user INTEGER NOT NULL,
                    ur_right TEXT NOT NULL,
                    PRIMARY KEY (ur_user, ur_right)
                )
                """
            )

    def add_user(
        self,
        name: str,
        email: str = "",
        real_name: str = "",
        email_confirmed: bool = False,
    ) -> int:
        """Create an account and return its id."""

        confirmed_at = to_db_timestamp(datetime.now(timezone.utc)) if email_confirmed else None
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO user (user_name, user_real_name, user_email, user_email_authenticated)
                VALUES (?, ?, ?, ?)
                """,
                (name, real_name, email, confirmed_at),
            )
            return int(cur.lastrowid)

    def set_option(self, user_id: int, name: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_properties (up_user, up_property, up_value) VALUES (?, ?, ?)
                ON CONFLICT(up_user, up_property) DO UPDATE SET up_value = excluded.up_value
                """,
                (user_id, name, value),
            )

    def grant_right(self, user_id: int, right: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO user_rights (ur_user, ur_right) VALUES (?, ?)",
                (user_id, right),
            )

    def set_blocked(self, user_id: int, blocked: bool) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE user SET user_blocked = ? WHERE user_id = ?", (int(blocked), user_id))

    def _load(self, conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> dict[int, UserProfile]:
        profiles: dict[int, UserProfile] = {}
        for row in rows:
            user_id = int(row["user_id"])
            options = {
                prop["up_property"]: prop["up_value"] or ""
                for prop in conn.execute(
                    "SELECT up_property, up_value FROM user_properties WHERE up_user = ?",
                    (user_id,),
                )
            }
            rights = frozenset(
                right["ur_right"]
                for right in conn.execute("SELECT ur_right FROM user_rights WHERE ur_user = ?", (user_id,))
            )
            profiles[user_id] = UserProfile(
                user_id=user_id,
                name=row["user_name"],
                real_name=row["user_real_name"],
                email=row["user_email"],
                email_confirmed=bool(row["user_email"]) and row["user_email_authenticated"] is not None,
                blocked=bool(row["user_blocked"]),
                rights=rights,
                options=options,
            )
        return profiles

    def get_users(self, user_ids: Iterable[int]) -> dict[int, UserProfile]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        with self._connect() as conn:
            rows = conn.execute(f"SELECT * FROM user WHERE user_id IN ({placeholders})", ids).fetchall()
            return self._load(conn, rows)

    def get_user_by_name(self, name: str) -> Optional[UserProfile]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM user WHERE user_name = ?", (name,)).fetchall()
            profiles = self._load(conn, rows)
        return next(iter(profiles.values()), None)
