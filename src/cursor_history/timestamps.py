"""Coercion of heterogeneous timestamp values into ISO-8601 instants.

Cursor records timestamps as Unix seconds, Unix milliseconds, ISO strings or
not at all, depending on the generation of the record. Everything is
normalized to a UTC string such as ``2025-03-15T10:20:30.000Z``.

ISO strings without an offset, e.g. ``2025-03-15T10:20:30``, are read as
UTC, not as local time.
"""

import math
from datetime import datetime, timezone

from cursor_history.logging import get_logger

logger = get_logger("timestamps")

# Numbers at or above this magnitude are milliseconds, below it seconds.
# The boundary itself is milliseconds, unlike a strict greater-than test.
MILLISECONDS_THRESHOLD = 100_000_000_000


def _now() -> datetime:
    return datetime.now(timezone.utc)


def format_instant(dt: datetime) -> str:
    """Render an aware or naive (taken as UTC) datetime as an ISO instant."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
        f"T{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}.{dt.microsecond // 1000:03d}Z"
    )


def _parse_iso(value: str) -> datetime | None:
    text = value.strip()
    if not text:
        return None
    # Handle ISO 8601 with Z suffix
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _from_number(value: int | float) -> datetime:
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"non-finite timestamp: {value}")
    seconds = value / 1000 if abs(value) >= MILLISECONDS_THRESHOLD else value
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def normalize_timestamp(value: object) -> str:
    """Coerce a raw timestamp into an ISO-8601 instant string.

    Args:
        value: None, a datetime, an ISO date string, or a Unix timestamp in
            seconds or milliseconds (told apart by magnitude)

    Returns:
        ISO-8601 UTC instant; the current time when the value is missing
        or cannot be interpreted
    """
    if value is None:
        return format_instant(_now())

    try:
        if isinstance(value, datetime):
            return format_instant(value)

        if isinstance(value, str):
            parsed = _parse_iso(value)
            if parsed is not None:
                return format_instant(parsed)
            logger.debug("Unparseable timestamp string: value=%r", value)
            return format_instant(_now())

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return format_instant(_from_number(value))
    except (ValueError, OverflowError, OSError):
        logger.warning("Error parsing timestamp, using current time: value=%r", value, exc_info=True)
        return format_instant(_now())

    logger.debug("Unrecognized timestamp shape: type=%s", type(value).__name__)
    return format_instant(_now())


def parse_instant(value: str) -> datetime:
    """Parse a normalized instant string back into an aware datetime."""
    parsed = _parse_iso(value)
    if parsed is None:
        raise ValueError(f"Not an ISO-8601 instant: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
