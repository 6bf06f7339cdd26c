"""Static configuration for subwatch.

All user-editable settings (site, notification switches, transport, logging)
live in a single JSON file for quick edits without touching Python. SMTP
credentials stay in the environment (.env).
"""

import json
import os

from dotenv import load_dotenv

from subwatch.core.config import DEFAULT_NAMESPACES, NotifyConfig, SiteConfig

load_dotenv()

# config.json is looked up in the working directory unless SUBWATCH_CONFIG
# points elsewhere.
CONFIG_PATH = os.path.abspath(os.getenv("SUBWATCH_CONFIG", "config.json"))
PROJECT_ROOT = os.path.dirname(CONFIG_PATH)


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _build_site(raw: dict) -> SiteConfig:
    namespaces = dict(DEFAULT_NAMESPACES)
    # JSON object keys are strings; namespace ids are ints.
    namespaces.update({int(ns_id): name for ns_id, name in raw.get("namespaces", {}).items()})
    defaults = SiteConfig()
    return SiteConfig(
        name=raw.get("name", defaults.name),
        server=raw.get("server", defaults.server).rstrip("/"),
        script_path=raw.get("script_path", defaults.script_path),
        article_path=raw.get("article_path", defaults.article_path),
        help_page=raw.get("help_page", defaults.help_page),
        timezone=raw.get("timezone", defaults.timezone),
        namespaces=namespaces,
    )


def _build_notify(raw: dict) -> NotifyConfig:
    defaults = NotifyConfig()
    return NotifyConfig(
        minor_edit_notices=bool(raw.get("minor_edit_notices", defaults.minor_edit_notices)),
        block_disables_login=bool(raw.get("block_disables_login", defaults.block_disables_login)),
        use_real_name=bool(raw.get("use_real_name", defaults.use_real_name)),
        reveal_editor_address=bool(raw.get("reveal_editor_address", defaults.reveal_editor_address)),
        from_editor=bool(raw.get("from_editor", defaults.from_editor)),
        sender_address=raw.get("sender_address", defaults.sender_address),
        sender_name=raw.get("sender_name", defaults.sender_name),
        no_reply_address=raw.get("no_reply_address", defaults.no_reply_address),
        always_excluded_usernames=frozenset(raw.get("always_excluded_usernames", [])),
        hierarchical_notices_enabled=bool(
            raw.get("hierarchical_notices_enabled", defaults.hierarchical_notices_enabled)
        ),
    )


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

SITE = _build_site(_CONFIG.get("site", {}))
NOTIFY = _build_notify(_CONFIG.get("notifications", {}))

# Message text overrides, keyed like the defaults in core.messages.
MESSAGES = _CONFIG.get("messages", {})

# Where to store the SQLite database; relative paths sit next to config.json.
DB_PATH = _CONFIG.get("database", {}).get("path", "subwatch.db")
if not os.path.isabs(DB_PATH):
    DB_PATH = os.path.join(PROJECT_ROOT, DB_PATH)

# Transport switches adapters without changing core logic: "smtp" or "console".
TRANSPORT = _CONFIG.get("transport", {}).get("method", "console")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
