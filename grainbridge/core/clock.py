"""Wall-clock helpers shared by stores that carry expiry timestamps."""
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], float]
"""Returns seconds since the epoch; injectable so tests can move time."""

system_clock: Clock = time.time


def iso_timestamp(epoch_seconds: float) -> str:
    """Render epoch seconds as ISO-8601 UTC with a ``Z`` suffix."""
    stamp = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
