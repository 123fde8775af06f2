"""
Date/time parsing and conversion utilities, framework-agnostic.

Every timestamp that reaches the store goes through ``truncate_to_millis``
because BSON dates carry millisecond precision; rendering goes through
``to_iso`` so cursors and record timestamps share one format.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Current UTC time truncated to milliseconds."""
    return truncate_to_millis(datetime.now(timezone.utc))


def truncate_to_millis(dt: datetime) -> datetime:
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def parse_datetime(value: Any, *, epoch_millis: bool = False) -> Optional[datetime]:
    """Parse a date/time value into a timezone-aware UTC datetime.

    Accepts:
    - ``None`` → ``None``
    - ``datetime`` → normalised to UTC
    - ``int`` / ``float`` → Unix epoch seconds, or milliseconds when
      *epoch_millis* is set (JavaScript ``Date.now()`` values)
    - ``str`` ending in ``"Z"`` → converted to ``+00:00`` before parsing
    - Any ISO 8601 string (``datetime.fromisoformat``)

    Naive datetimes (no ``tzinfo``) are assumed to be UTC.

    Returns:
        A timezone-aware ``datetime`` in UTC, or ``None`` if *value* is ``None``
        or cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, (int, float)):
            if epoch_millis:
                return _EPOCH + timedelta(milliseconds=value)
            return datetime.fromtimestamp(value, tz=timezone.utc)
        else:
            raw = str(value).strip()
            if not raw:
                return None
            if raw.endswith("Z"):
                raw = raw[:-1] + "+00:00"
            dt = datetime.fromisoformat(raw)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, OSError, OverflowError):
        return None


def to_iso(value: Any) -> Optional[str]:
    """Render a timestamp as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Strings are parsed first so already-rendered values normalise to the
    same shape. Returns ``None`` for ``None`` or unparseable input.
    """
    dt = parse_datetime(value)
    if dt is None:
        return None
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
