"""Utility helpers for the Newslettar service."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DATE_LABEL_FORMAT = "%A, %B {day}, %Y"
ISO_DATE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ].*)?$")


def format_long_date(value: date | datetime) -> str:
    """Return e.g. ``Monday, January 2, 2006`` without zero padding."""

    return value.strftime(DATE_LABEL_FORMAT).format(day=value.day)


def format_date_with_day(date_str: str) -> str:
    """Format a ``YYYY-MM-DD`` string for display.

    Empty input yields ``Date TBA``; unparseable input is returned unchanged.
    """

    if not date_str:
        return "Date TBA"
    try:
        parsed = datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        return date_str
    return format_long_date(parsed)


def normalize_date(value: Any) -> str:
    """Reduce an API date or timestamp to ``YYYY-MM-DD``.

    Non-string values become empty; strings without a leading ISO date are
    passed through so they can still be displayed.
    """

    if not isinstance(value, str):
        return ""
    text = value.strip()
    match = ISO_DATE_RE.match(text)
    if match:
        return match.group(1)
    return text


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""

    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_int(value: Any, *, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def coerce_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def resolve_timezone(name: str | None) -> tzinfo:
    """Return the IANA zone for ``name``, falling back to UTC."""

    zone_name = (name or "").strip() or "UTC"
    try:
        return ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning("Invalid timezone '%s', using UTC", zone_name)
        return timezone.utc
