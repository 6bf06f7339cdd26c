"""Command line entry point for subwatch."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from rich.console import Console
from rich.table import Table

from subwatch import settings
from subwatch.adapters.console_transport import ConsoleTransport
from subwatch.adapters.deferred import DeferredUpdates
from subwatch.adapters.smtp_transport import SECRET_ENV_VARS, SMTPTransport
from subwatch.adapters.sqlite_storage import SQLiteUserDirectory, SQLiteWatchStore
from subwatch.adapters.wikitext_renderer import WikitextRenderer
from subwatch.core.composer import MessageComposer
from subwatch.core.dispatcher import NotificationDispatcher
from subwatch.core.hooks import SubpageWatchlistHooks
from subwatch.core.messages import MessageCatalog
from subwatch.core.models import DispatchReport, NotificationEvent, PageAction, PagePath, UserProfile
from subwatch.core.paths import display_title, parse_title
from subwatch.core.resolver import WatcherResolver
from subwatch.core.suppression import ViewSuppressionHandler

NAME = "SUBWATCH"
FONT = "tarty-1"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

CONSOLE = Console()


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _SecretMaskingFormatter(logging.Formatter):
    """Masks SMTP credentials, which relay errors tend to echo back."""

    def __init__(self, secrets: list[str]) -> None:
        super().__init__(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
        self._secrets = secrets

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        for secret in self._secrets:
            text = text.replace(secret, "***")
        return text


def _secret_values(redact_cfg: dict) -> list[str]:
    """Current values of the transport credentials plus any extra variables.

    Longest first, so a secret containing another is masked whole.
    """

    if not redact_cfg.get("enabled", True):
        return []
    names = set(SECRET_ENV_VARS) | set(redact_cfg.get("patterns", []))
    values = {os.getenv(name) for name in names}
    return sorted((value for value in values if value), key=len, reverse=True)


def _rotating_log_file(file_cfg: dict) -> RotatingFileHandler:
    path = file_cfg.get("path", "logs/subwatch.log")
    if not os.path.isabs(path):
        path = os.path.join(settings.PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging(config: dict) -> None:
    if not config.get("enabled", False):
        return

    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        handlers.append(_rotating_log_file(file_cfg))
    if not handlers:
        return

    formatter = _SecretMaskingFormatter(_secret_values(config.get("redact", {})))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)


class _RecordingDispatcher:
    """Wrap a dispatcher to keep its reports for display."""

    def __init__(self, wrapped: NotificationDispatcher) -> None:
        self._wrapped = wrapped
        self.reports: list[DispatchReport] = []

    async def dispatch(self, event: NotificationEvent) -> DispatchReport:
        report = await self._wrapped.dispatch(event)
        self.reports.append(report)
        return report


class _Runtime:
    """Object graph shared by the commands."""

    def __init__(self, dry_run: bool = False) -> None:
        self.store = SQLiteWatchStore(settings.DB_PATH)
        self.users = SQLiteUserDirectory(settings.DB_PATH)
        self.store.init_db()
        self.users.init_db()

        # Select the transport based on configuration to keep the core
        # dispatcher independent from delivery details.
        if dry_run or settings.TRANSPORT == "console":
            transport = ConsoleTransport(CONSOLE)
        elif settings.TRANSPORT == "smtp":
            transport = SMTPTransport.from_env()
        else:
            raise RuntimeError("transport.method must be 'smtp' or 'console'")
        logging.getLogger(__name__).info("Selected transport - %s", type(transport).__name__)

        composer = MessageComposer(
            settings.NOTIFY,
            settings.SITE,
            WikitextRenderer(settings.SITE),
            MessageCatalog(settings.SITE.name, settings.MESSAGES),
        )
        self.dispatcher = _RecordingDispatcher(
            NotificationDispatcher(
                resolver=WatcherResolver(self.store),
                users=self.users,
                composer=composer,
                transport=transport,
                store=self.store,
                config=settings.NOTIFY,
            )
        )
        self.deferred = DeferredUpdates()
        self.hooks = SubpageWatchlistHooks(
            self.dispatcher,
            ViewSuppressionHandler(self.store, settings.NOTIFY),
            self.deferred,
        )

    def require_user(self, name: str) -> UserProfile:
        user = self.users.get_user_by_name(name)
        if user is None:
            raise SystemExit(f"Unknown user: {name}")
        return user


def _print_report(runtime: _Runtime, report: DispatchReport) -> None:
    title = display_title(report.page, settings.SITE)
    if not report.candidates:
        CONSOLE.print(f"No watchers of base pages of {title}.")
        return

    names = {uid: user.name for uid, user in runtime.users.get_users(c.user_id for c in report.candidates).items()}
    outcomes = {uid: "sent" for uid in report.sent}
    outcomes.update({uid: "failed" for uid in report.failed})
    outcomes.update({uid: "skipped" for uid in report.skipped})

    table = Table(
        title=f"Subpage notices for {title}",
        caption=f"{report.attempted} of {len(report.candidates)} watchers mailed, {len(report.failed)} failed",
    )
    table.add_column("Watcher")
    table.add_column("Base page")
    table.add_column("Outcome")
    for candidate in report.candidates:
        table.add_row(
            names.get(candidate.user_id, str(candidate.user_id)),
            candidate.page_key.replace("_", " "),
            outcomes.get(candidate.user_id, "-"),
        )
    CONSOLE.print(table)


def _init(args: argparse.Namespace) -> None:
    _Runtime(dry_run=True)
    CONSOLE.print(f"Database ready at {settings.DB_PATH}")


def _add_user(args: argparse.Namespace) -> None:
    runtime = _Runtime(dry_run=True)
    user_id = runtime.users.add_user(
        args.name,
        email=args.email or "",
        real_name=args.real_name or "",
        email_confirmed=args.confirmed,
    )
    for option in args.option or []:
        name, _, value = option.partition("=")
        runtime.users.set_option(user_id, name.strip(), value.strip())
    for right in args.right or []:
        runtime.users.grant_right(user_id, right)
    CONSOLE.print(f"Created user {args.name} (id {user_id})")


def _watch(args: argparse.Namespace) -> None:
    runtime = _Runtime(dry_run=True)
    user = runtime.require_user(args.user)
    page = parse_title(args.title, settings.SITE)
    expiry = None
    if args.expires_in_days is not None:
        expiry = datetime.now(timezone.utc) + timedelta(days=args.expires_in_days)
    runtime.store.add_watch(user.user_id, page.namespace, page.key, expiry)
    CONSOLE.print(f"{user.name} now watches {display_title(page, settings.SITE)}")


def _unwatch(args: argparse.Namespace) -> None:
    runtime = _Runtime(dry_run=True)
    user = runtime.require_user(args.user)
    page = parse_title(args.title, settings.SITE)
    if runtime.store.remove_watch(user.user_id, page.namespace, page.key):
        CONSOLE.print(f"{user.name} no longer watches {display_title(page, settings.SITE)}")
    else:
        CONSOLE.print(f"{user.name} was not watching {display_title(page, settings.SITE)}")


def _edit(args: argparse.Namespace) -> None:
    runtime = _Runtime(dry_run=args.dry_run)
    # Editors without an account are recorded under their address.
    editor = runtime.users.get_user_by_name(args.user) or UserProfile(user_id=0, name=args.user)
    page = parse_title(args.title, settings.SITE)
    last_revision_id = runtime.store.last_revision_id(page.namespace, page.key)
    if args.action:
        action = PageAction(args.action)
    else:
        action = PageAction.EDITED if last_revision_id else PageAction.CREATED

    event = NotificationEvent(
        namespace=page.namespace,
        page_key=page.key,
        editor=editor,
        timestamp=datetime.now(timezone.utc),
        summary=args.summary or "",
        last_revision_id=last_revision_id,
        minor=args.minor,
        action=action,
    )
    revision_id = runtime.store.record_change(event)
    logging.getLogger(__name__).info("Recorded revision %s of %s", revision_id, page.key)

    async def _run() -> None:
        runtime.hooks.on_page_changed(event)
        await runtime.deferred.drain()

    asyncio.run(_run())
    for report in runtime.dispatcher.reports:
        _print_report(runtime, report)
    if runtime.deferred.failed:
        CONSOLE.print("Notifying watchers failed, see the log for details.")
    elif not runtime.dispatcher.reports:
        CONSOLE.print(f"{display_title(page, settings.SITE)} is not a subpage; nothing to do.")


def _view(args: argparse.Namespace) -> None:
    runtime = _Runtime(dry_run=True)
    viewer = runtime.require_user(args.user)
    page = parse_title(args.title, settings.SITE)

    async def _run() -> None:
        runtime.hooks.on_page_viewed(page, viewer)
        await runtime.deferred.drain()

    asyncio.run(_run())
    CONSOLE.print(f"{viewer.name} viewed {display_title(page, settings.SITE)}")


def _changes(args: argparse.Namespace) -> None:
    runtime = _Runtime(dry_run=True)
    user = runtime.require_user(args.user)
    hide_subpages = user.get_bool_option("watchlisthidesubpages") if args.hide_subpages is None else args.hide_subpages
    changes = runtime.store.list_watchlist_changes(user.user_id, hide_subpages, limit=args.limit)

    table = Table(title=f"Watchlist of {user.name}" + (" (subpages hidden)" if hide_subpages else ""))
    table.add_column("When")
    table.add_column("Page")
    table.add_column("By")
    table.add_column("Summary")
    for change in changes:
        page = display_title(PagePath(change.namespace, change.page_key), settings.SITE)
        table.add_row(
            change.timestamp.strftime("%Y-%m-%d %H:%M"),
            page + (" (m)" if change.minor else ""),
            change.user_text,
            change.comment or "-",
        )
    CONSOLE.print(table)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="subwatch")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the database tables").set_defaults(func=_init)

    add_user = subparsers.add_parser("add-user", help="Create an account")
    add_user.add_argument("name")
    add_user.add_argument("--email")
    add_user.add_argument("--real-name")
    add_user.add_argument("--confirmed", action="store_true", help="Mark the address as confirmed")
    add_user.add_argument("--option", action="append", help="Preference as name=value")
    add_user.add_argument("--right", action="append", help="Grant a right, e.g. nominornewtalk")
    add_user.set_defaults(func=_add_user)

    watch = subparsers.add_parser("watch", help="Watch a page and its subpages")
    watch.add_argument("user")
    watch.add_argument("title")
    watch.add_argument("--expires-in-days", type=int)
    watch.set_defaults(func=_watch)

    unwatch = subparsers.add_parser("unwatch", help="Stop watching a page")
    unwatch.add_argument("user")
    unwatch.add_argument("title")
    unwatch.set_defaults(func=_unwatch)

    edit = subparsers.add_parser("edit", help="Record an edit and notify base page watchers")
    edit.add_argument("user")
    edit.add_argument("title")
    edit.add_argument("--summary")
    edit.add_argument("--minor", action="store_true")
    edit.add_argument("--action", choices=[action.value for action in PageAction])
    edit.add_argument("--dry-run", action="store_true", help="Print mails instead of sending them")
    edit.set_defaults(func=_edit)

    view = subparsers.add_parser("view", help="Record a page view")
    view.add_argument("user")
    view.add_argument("title")
    view.set_defaults(func=_view)

    changes = subparsers.add_parser("changes", help="Show a user's watchlist")
    changes.add_argument("user")
    changes.add_argument("--limit", type=int, default=50)
    toggle = changes.add_mutually_exclusive_group()
    toggle.add_argument("--hide-subpages", dest="hide_subpages", action="store_true", default=None)
    toggle.add_argument("--show-subpages", dest="hide_subpages", action="store_false")
    changes.set_defaults(func=_changes)

    args = parser.parse_args(argv)
    _print_banner()
    _configure_logging(settings.LOGGING or {})
    args.func(args)


if __name__ == "__main__":
    main()
