"""Notification message composition (core domain).

Composition runs in two stages so the markup renderer sees each message only
once per event, never once per recipient:

1) ``prepare``: fill structural placeholders (titles, URLs, editor, intro),
   then render the body in the context of the edited page
2) ``personalise``: fill the edit summary and the recipient-specific
   placeholders (name, local date and time), then wrap at 72 columns

Nothing locale or recipient dependent may reach the renderer.
"""

from __future__ import annotations

import re
import textwrap
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from subwatch.core.config import NotifyConfig, SiteConfig
from subwatch.core.dates import user_date, user_time
from subwatch.core.messages import MessageCatalog
from subwatch.core.models import ComposedMessage, NotificationEvent, PageAction, PagePath, UserProfile
from subwatch.core.paths import display_title, user_page
from subwatch.core.ports import Renderer
from subwatch.core.urls import email_user_url, help_page_url, page_url

WRAP_WIDTH = 72

# Message key suffix per page action.
ACTION_MESSAGES: dict[PageAction, str] = {
    PageAction.CREATED: "created",
    PageAction.EDITED: "changed",
    PageAction.DELETED: "deleted",
    PageAction.MOVED: "moved",
    PageAction.RESTORED: "restored",
}


def replace_tokens(text: str, replacements: Mapping[str, str]) -> str:
    """Replace all tokens in one pass, longest token first.

    Inserted values are never scanned again, so a value that happens to
    contain a token stays as written, and ``$PAGETITLE`` never eats the start
    of ``$PAGETITLE_URL``.
    """

    if not replacements:
        return text
    tokens = sorted(replacements, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(token) for token in tokens))
    return pattern.sub(lambda match: replacements[match.group(0)], text)


def wrap_body(text: str, width: int = WRAP_WIDTH) -> str:
    """Wrap long lines at word boundaries, keeping existing line breaks.

    Words longer than ``width`` (URLs mostly) are left intact.
    """

    lines: list[str] = []
    for line in text.split("\n"):
        if len(line) <= width:
            lines.append(line)
            continue
        wrapped = textwrap.wrap(
            line,
            width=width,
            break_long_words=False,
            break_on_hyphens=False,
        )
        lines.extend(wrapped or [""])
    return "\n".join(lines)


@dataclass(frozen=True)
class PreparedMessage:
    """Rendered, recipient-independent part of a notification."""

    subject: str
    body: str
    summary: str
    timestamp: datetime


class MessageComposer:
    """Builds (subject, body) pairs for subpage change notifications."""

    def __init__(
        self,
        config: NotifyConfig,
        site: SiteConfig,
        renderer: Renderer,
        messages: MessageCatalog,
    ) -> None:
        self._config = config
        self._site = site
        self._renderer = renderer
        self._messages = messages

    def display_name(self, user: UserProfile) -> str:
        if self._config.use_real_name and user.real_name:
            return user.real_name
        return user.name

    def _editor_keys(self, editor: UserProfile) -> dict[str, str]:
        if not editor.is_registered:
            return {
                "$PAGEEDITOR": self._messages.text("enotif_anon_editor", editor.name),
                "$PAGEEDITOR_EMAIL": self._messages.text("noemailtitle"),
            }
        return {
            "$PAGEEDITOR": self.display_name(editor),
            "$PAGEEDITOR_EMAIL": email_user_url(editor.name, self._site),
        }

    def _structural_keys(
        self,
        event: NotificationEvent,
        editor: UserProfile,
        watched: PagePath,
    ) -> dict[str, str]:
        site = self._site
        edited = event.page
        keys: dict[str, str] = {}

        oldid = event.last_revision_id
        if oldid:
            keys["$NEWPAGE"] = (
                "\n\n"
                + self._messages.text("enotif_lastdiff", page_url(edited, site, {"diff": "next", "oldid": oldid}))
                + "\n\n"
                + self._messages.text("enotif_lastvisited", page_url(edited, site, {"diff": "0", "oldid": oldid}))
            )
            keys["$OLDID"] = str(oldid)
        else:
            keys["$NEWPAGE"] = ""
            keys["$OLDID"] = ""

        keys["$PAGETITLE"] = display_title(edited, site)
        keys["$PAGETITLE_URL"] = page_url(edited, site)
        keys["$PAGETITLEWATCHED"] = display_title(watched, site)
        keys["$PAGETITLEWATCHED_URL"] = page_url(watched, site)
        keys["$PAGEMINOREDIT"] = "\n\n" + self._messages.text("enotif_minoredit") if event.minor else ""
        keys["$UNWATCHURL"] = page_url(watched, site, "action=unwatch")
        keys.update(self._editor_keys(editor))
        keys["$PAGEEDITOR_WIKI"] = page_url(user_page(editor.name), site)
        keys["$HELPPAGE"] = help_page_url(site)
        return keys

    def prepare(
        self,
        event: NotificationEvent,
        editor: UserProfile,
        watched: PagePath,
    ) -> PreparedMessage:
        """Fill structural placeholders and render the body once."""

        keys = self._structural_keys(event, editor, watched)
        action = ACTION_MESSAGES[event.action]
        subject = self._messages.text(
            f"enotif_subject_{action}",
            keys["$PAGETITLE"],
            keys["$PAGEEDITOR"],
        )
        keys["$PAGEINTRO"] = self._messages.text(
            f"enotif_body_intro_{action}",
            keys["$PAGETITLE"],
            keys["$PAGEEDITOR"],
            keys["$PAGETITLE_URL"],
        )

        body = replace_tokens(self._messages.plain("subpagewatchlist-enotif-body"), keys)
        body = self._renderer.render(body, event.page)
        return PreparedMessage(
            subject=subject,
            body=body,
            summary=event.summary or "-",
            timestamp=event.timestamp,
        )

    def personalise(self, prepared: PreparedMessage, target: UserProfile) -> ComposedMessage:
        """Fill the summary and recipient placeholders, then wrap."""

        body = replace_tokens(
            prepared.body,
            {
                "$PAGESUMMARY": prepared.summary,
                "$WATCHINGUSERNAME": self.display_name(target),
                "$PAGEEDITDATE": user_date(prepared.timestamp, target, self._site),
                "$PAGEEDITTIME": user_time(prepared.timestamp, target, self._site),
            },
        )
        return ComposedMessage(subject=prepared.subject, body=wrap_body(body))

    def compose(
        self,
        event: NotificationEvent,
        target: UserProfile,
        editor: UserProfile,
        watched: PagePath,
    ) -> ComposedMessage:
        return self.personalise(self.prepare(event, editor, watched), target)
