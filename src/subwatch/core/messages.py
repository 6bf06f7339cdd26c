"""Message texts used to build notification mails.

Texts use ``$1``-style parameters and may contain ``{{SITENAME}}``. Any key can
be overridden from the ``messages`` section of config.json.
"""

from __future__ import annotations

import re
from typing import Mapping, Optional

_PARAM_RE = re.compile(r"\$(\d+)")

DEFAULT_MESSAGES: dict[str, str] = {
    "enotif_subject_created": "{{SITENAME}} page $1 has been created by $2",
    "enotif_subject_changed": "{{SITENAME}} page $1 has been changed by $2",
    "enotif_subject_deleted": "{{SITENAME}} page $1 has been deleted by $2",
    "enotif_subject_moved": "{{SITENAME}} page $1 has been moved by $2",
    "enotif_subject_restored": "{{SITENAME}} page $1 has been restored by $2",
    "enotif_body_intro_created": (
        "The {{SITENAME}} page $1 has been created on $PAGEEDITDATE at $PAGEEDITTIME by $2, "
        "see $3 for the current revision."
    ),
    "enotif_body_intro_changed": (
        "The {{SITENAME}} page $1 has been changed on $PAGEEDITDATE at $PAGEEDITTIME by $2, "
        "see $3 for the current revision."
    ),
    "enotif_body_intro_deleted": (
        "The {{SITENAME}} page $1 has been deleted on $PAGEEDITDATE at $PAGEEDITTIME by $2, see $3."
    ),
    "enotif_body_intro_moved": (
        "The {{SITENAME}} page $1 has been moved on $PAGEEDITDATE at $PAGEEDITTIME by $2, see $3 "
        "for the current revision."
    ),
    "enotif_body_intro_restored": (
        "The {{SITENAME}} page $1 has been restored on $PAGEEDITDATE at $PAGEEDITTIME by $2, "
        "see $3 for the current revision."
    ),
    "enotif_lastdiff": "See $1 to view this change.",
    "enotif_lastvisited": "See $1 for all changes since your last visit.",
    "enotif_minoredit": "This is a minor edit.",
    "enotif_anon_editor": "anonymous user $1",
    "noemailtitle": "No email address",
    "subpagewatchlist-enotif-body": (
        "Dear $WATCHINGUSERNAME,\n"
        "\n"
        "$PAGEINTRO $NEWPAGE\n"
        "\n"
        "You are receiving this because you watch $PAGETITLEWATCHED "
        "($PAGETITLEWATCHED_URL), a base page of $PAGETITLE.\n"
        "\n"
        "Editor's summary: $PAGESUMMARY $PAGEMINOREDIT\n"
        "\n"
        "Contact the editor:\n"
        "mail: $PAGEEDITOR_EMAIL\n"
        "wiki: $PAGEEDITOR_WIKI\n"
        "\n"
        "There will be no other notifications in case of further activity "
        "below $PAGETITLEWATCHED unless you visit it while logged in.\n"
        "\n"
        "Your friendly {{SITENAME}} notification system\n"
        "\n"
        "--\n"
        "To change your email notification settings, visit\n"
        "{{canonicalurl:Special:Preferences}}\n"
        "\n"
        "To stop watching $PAGETITLEWATCHED and its subpages, visit\n"
        "$UNWATCHURL\n"
        "\n"
        "Feedback and further assistance:\n"
        "$HELPPAGE"
    ),
}


class MessageCatalog:
    """Lookup of message texts with parameter expansion."""

    def __init__(self, site_name: str, overrides: Optional[Mapping[str, str]] = None) -> None:
        self._site_name = site_name
        self._messages = dict(DEFAULT_MESSAGES)
        if overrides:
            self._messages.update(overrides)

    def plain(self, key: str) -> str:
        """Return the raw text, unexpanded."""

        try:
            return self._messages[key]
        except KeyError:
            raise KeyError(f"Unknown message key: {key}") from None

    def text(self, key: str, *params: object) -> str:
        """Return the text with ``$n`` parameters and the site name filled in."""

        def _param(match: re.Match) -> str:
            index = int(match.group(1)) - 1
            if 0 <= index < len(params):
                return str(params[index])
            return match.group(0)

        value = _PARAM_RE.sub(_param, self.plain(key))
        return value.replace("{{SITENAME}}", self._site_name)
