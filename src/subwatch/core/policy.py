"""Per-recipient eligibility checks (core domain)."""

from __future__ import annotations

from typing import Optional

from subwatch.core.config import NotifyConfig
from subwatch.core.models import NotificationEvent, UserProfile

# Right that lets an editor make minor edits without triggering notices.
NO_MINOR_NOTICE_RIGHT = "nominornewtalk"


def skip_reason(
    target: UserProfile,
    editor: UserProfile,
    event: NotificationEvent,
    config: NotifyConfig,
) -> Optional[str]:
    """Return why ``target`` must not be mailed, or None if they should be.

    Checks run in a fixed order and stop at the first failure:
    - minor edits need the site switch, an editor without the no-notice
      right, and a recipient who asked for minor edit mails
    - blocked recipients are skipped when blocks disable login
    - the recipient's address must be confirmed
    - the recipient must have opted in to subpage mails
    - recipients notified on all changes are skipped
    - nobody is told about their own edit
    """

    if event.minor and (
        not config.minor_edit_notices
        or editor.is_allowed(NO_MINOR_NOTICE_RIGHT)
        or not target.get_bool_option("enotifminoredits")
    ):
        return "minor edit"
    if config.block_disables_login and target.blocked:
        return "blocked"
    if not target.email_confirmed:
        return "email not confirmed"
    if not target.get_bool_option("enotifwatchlistsubpages"):
        return "not opted in"
    if target.name in config.always_excluded_usernames:
        return "excluded user"
    if target.user_id == editor.user_id:
        return "own edit"
    return None


def should_notify(
    target: UserProfile,
    editor: UserProfile,
    event: NotificationEvent,
    config: NotifyConfig,
) -> bool:
    return skip_reason(target, editor, event, config) is None
