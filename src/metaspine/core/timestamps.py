"""
UTC timestamp utilities (stdlib-only).

Audit stamps carry epoch milliseconds and the storage layer keeps them as
integers; callers want aware datetimes. These helpers convert between them.

Tags:
    timestamps, utc, datetime, epoch, metaspine, stdlib-only
"""

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def now_millis() -> int:
    """Current time as epoch milliseconds."""
    return time.time_ns() // 1_000_000


def millis_to_datetime(millis: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(millis / 1000, tz=UTC)

