"""Timestamp helpers for epoch-millisecond bookkeeping."""

import time
from datetime import UTC, datetime

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60_000
MS_PER_HOUR = 60 * MS_PER_MINUTE


def now_ms() -> int:
    """Return the current wall-clock time in Unix epoch milliseconds."""
    return int(time.time() * MS_PER_SECOND)


def parse_iso_ms(value: str | None) -> int | None:
    """Parse an ISO 8601 timestamp into Unix epoch milliseconds.

    Accept the ``Z`` suffix used by the Gamma API and treat naive values
    as UTC.

    Args:
        value: ISO 8601 string such as ``2025-03-01T12:00:00Z``.

    Returns:
        Epoch milliseconds, or ``None`` if the value is empty or unparseable.

    """
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp() * MS_PER_SECOND)


def format_ms(value: int) -> str:
    """Render epoch milliseconds as an ISO 8601 UTC string."""
    return datetime.fromtimestamp(value / MS_PER_SECOND, tz=UTC).isoformat(timespec="seconds")
