"""Time helpers."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Return current timestamp in milliseconds."""
    return int(time.time() * 1000)


def ms_to_datetime(value: int | None) -> datetime | None:
    """Convert stored epoch milliseconds to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
