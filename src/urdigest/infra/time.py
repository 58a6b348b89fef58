"""Clocks: wall time for stored timestamps, monotonic time for durations."""

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware UTC now, for columns like last_post_received_at."""
    return datetime.now(timezone.utc)


def monotonic() -> float:
    return time.monotonic()
