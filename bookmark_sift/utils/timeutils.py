"""
Time helpers.

Timestamps throughout the project are integer epoch milliseconds, the unit
used by browser bookmark and history data.
"""

import time
from datetime import datetime, timezone
from typing import Optional

DAY_MS = 24 * 60 * 60 * 1000

# Microseconds between 1601-01-01 (WebKit/Chromium epoch) and 1970-01-01
WEBKIT_EPOCH_OFFSET_US = 11644473600 * 1_000_000


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def webkit_to_ms(value) -> Optional[int]:
    """
    Convert a Chromium timestamp (microseconds since 1601) to epoch ms.

    Chromium stores these as strings in the Bookmarks file and as integers
    in the History database. Zero and unparsable values return None.
    """
    try:
        micros = int(value)
    except (TypeError, ValueError):
        return None
    if micros <= 0:
        return None
    return (micros - WEBKIT_EPOCH_OFFSET_US) // 1000


def ms_to_webkit(value: Optional[int]) -> str:
    """Convert epoch ms back to a Chromium timestamp string."""
    if not value:
        return "0"
    return str(int(value) * 1000 + WEBKIT_EPOCH_OFFSET_US)


def ms_to_datetime(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
