"""Recipient-local date and time formatting."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from subwatch.core.config import SiteConfig
from subwatch.core.models import UserProfile

LOGGER = logging.getLogger(__name__)

_DATE_FORMATS = {
    "dmy": "{day} {month} {year}",
    "mdy": "{month} {day}, {year}",
    "ymd": "{year} {month} {day}",
    "ISO 8601": "{year:04d}-{month_num:02d}-{day:02d}",
}

_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def _zone(name: str) -> tzinfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        LOGGER.debug("Unknown timezone %r, falling back", name)
        return None


def user_zone(user: UserProfile, site: SiteConfig) -> tzinfo:
    """The recipient's timezone, then the site's, then UTC."""

    return _zone(user.get_option("timezone")) or _zone(site.timezone) or timezone.utc


def _localize(timestamp: datetime, user: UserProfile, site: SiteConfig) -> datetime:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(user_zone(user, site))


def user_date(timestamp: datetime, user: UserProfile, site: SiteConfig) -> str:
    local = _localize(timestamp, user, site)
    pattern = _DATE_FORMATS.get(user.get_option("date"), _DATE_FORMATS["mdy"])
    return pattern.format(
        day=local.day,
        month=_MONTHS[local.month - 1],
        month_num=local.month,
        year=local.year,
    )


def user_time(timestamp: datetime, user: UserProfile, site: SiteConfig) -> str:
    return _localize(timestamp, user, site).strftime("%H:%M")
