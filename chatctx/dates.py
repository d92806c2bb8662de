"""ISO-8601 helpers shared by the persisted record formats."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_date(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_date_or_none(value: Any) -> datetime | None:
    """Parse an ISO string, datetime or epoch-milliseconds number into aware UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            if not math.isfinite(value):
                return None
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # Offsets that push the instant outside year 1..9999.
        return None


def parse_date(value: Any, warnings: list[str] | None = None, *, where: str = "date") -> datetime:
    """Parse *value*, substituting the current time when missing or invalid."""
    parsed = parse_date_or_none(value)
    if parsed is not None:
        return parsed
    if warnings is not None:
        reason = "missing" if value is None or value == "" else "unparseable"
        warnings.append(f"{where}: {reason} date replaced with current time")
    return utcnow()


def is_valid_iso_string(value: Any) -> bool:
    """True when *value* is exactly the canonical form written by :func:`format_date`."""
    if not isinstance(value, str):
        return False
    parsed = parse_date_or_none(value)
    return parsed is not None and format_date(parsed) == value
