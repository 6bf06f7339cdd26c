"""Subpage change notification dispatch.

This module is integration-agnostic. It only relies on ports for the watch
store, user lookups, rendering and mail delivery.

Dispatch order for one event:
1) Resolve one candidate per watcher of a base page
2) Drop candidates failing the eligibility policy
3) Render the shared message part once per watched base page
4) Personalise and send, isolating failures per recipient
5) Mark every attempted (base page, user) pair as pending with one timestamp
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from subwatch.core.composer import MessageComposer, PreparedMessage
from subwatch.core.config import NotifyConfig
from subwatch.core.models import (
    Candidate,
    DispatchReport,
    MailAddress,
    NotificationEvent,
    PagePath,
    UserProfile,
)
from subwatch.core.policy import skip_reason
from subwatch.core.ports import Transport, UserDirectory, WatchStore
from subwatch.core.resolver import WatcherResolver, utc_now

LOGGER = logging.getLogger(__name__)


def user_address(user: UserProfile, config: NotifyConfig) -> MailAddress:
    name = user.real_name if config.use_real_name and user.real_name else user.name
    return MailAddress(user.email, name)


def sender_addresses(
    editor: UserProfile,
    config: NotifyConfig,
) -> tuple[MailAddress, Optional[MailAddress]]:
    """Return (from, reply-to) for mails about an edit by ``editor``.

    The editor's address is only revealed when the site allows it and the
    editor has an address and has not opted out.
    """

    system = MailAddress(config.sender_address, config.sender_name)
    if (
        config.reveal_editor_address
        and editor.email
        and editor.get_bool_option("enotifrevealaddr")
    ):
        editor_address = user_address(editor, config)
        if config.from_editor:
            return editor_address, None
        return system, editor_address
    return system, MailAddress(config.no_reply_address)


class NotificationDispatcher:
    """Orchestrates resolution, policy, composition, delivery and marker resets."""

    def __init__(
        self,
        resolver: WatcherResolver,
        users: UserDirectory,
        composer: MessageComposer,
        transport: Transport,
        store: WatchStore,
        config: NotifyConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._resolver = resolver
        self._users = users
        self._composer = composer
        self._transport = transport
        self._store = store
        self._config = config
        self._clock = clock

    def _eligible(
        self,
        event: NotificationEvent,
        candidates: list[Candidate],
        report: DispatchReport,
    ) -> list[tuple[Candidate, UserProfile]]:
        profiles = self._users.get_users(candidate.user_id for candidate in candidates)
        eligible: list[tuple[Candidate, UserProfile]] = []
        for candidate in candidates:
            target = profiles.get(candidate.user_id)
            if target is None:
                LOGGER.warning("Watcher %s has no account, skipping", candidate.user_id)
                report.skipped.append(candidate.user_id)
                continue
            reason = skip_reason(target, event.editor, event, self._config)
            if reason:
                LOGGER.debug("Not notifying %s about %s: %s", target.name, event.page_key, reason)
                report.skipped.append(candidate.user_id)
                continue
            eligible.append((candidate, target))
        return eligible

    async def dispatch(self, event: NotificationEvent) -> DispatchReport:
        """Notify watchers of the base pages of the edited page.

        Store, directory and renderer failures propagate and abort the whole
        event. Mail failures are logged and never abort the batch.
        """

        report = DispatchReport(page=event.page)
        if not self._config.hierarchical_notices_enabled:
            return report

        candidates = sorted(
            self._resolver.resolve_candidates(event),
            key=lambda candidate: (candidate.page_key, candidate.user_id),
        )
        report.candidates = candidates
        if not candidates:
            return report

        recipients = self._eligible(event, candidates, report)
        if not recipients:
            return report

        # Everything shared is rendered before the first mail goes out.
        prepared: dict[str, PreparedMessage] = {}
        for candidate, _ in recipients:
            if candidate.page_key not in prepared:
                watched = PagePath(event.namespace, candidate.page_key)
                prepared[candidate.page_key] = self._composer.prepare(event, event.editor, watched)

        sender, reply_to = sender_addresses(event.editor, self._config)
        to_reset: dict[str, list[int]] = {}
        for candidate, target in recipients:
            message = self._composer.personalise(prepared[candidate.page_key], target)
            to_reset.setdefault(candidate.page_key, []).append(target.user_id)
            try:
                await self._transport.send(
                    user_address(target, self._config),
                    sender,
                    reply_to,
                    message.subject,
                    message.body,
                )
            except Exception as exc:
                LOGGER.error("Could not send watch email to %s due to %s", target.name, exc)
                report.failed.append(target.user_id)
                continue
            report.sent.append(target.user_id)

        # One timestamp for the whole batch, taken after the last send.
        timestamp = self._clock()
        for page_key, user_ids in to_reset.items():
            self._store.set_pending(user_ids, event.namespace, page_key, timestamp)
        report.reset = to_reset
        report.reset_timestamp = timestamp

        LOGGER.info(
            "Subpage notices for %s: candidates=%s, sent=%s, failed=%s, skipped=%s",
            event.page_key,
            len(candidates),
            len(report.sent),
            len(report.failed),
            len(report.skipped),
        )
        return report
