"""
Capped, append-only event log.

Once the log holds more than ``capacity`` events the oldest are dropped,
which can open a gap for a subscriber replaying from an old ``afterSeq``.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterator

from grainbridge.events.envelope import BridgeEvent, build_gap_event

logger = logging.getLogger(__name__)


class EventLog:
    """Retains the most recent ``capacity`` events in ``seq`` order."""

    def __init__(self, capacity: int = 2000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._events: deque[BridgeEvent] = deque()
        self._trimmed = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def first_seq(self) -> int | None:
        return self._events[0].seq if self._events else None

    @property
    def last_seq(self) -> int | None:
        return self._events[-1].seq if self._events else None

    @property
    def trimmed_count(self) -> int:
        """Total events dropped since creation."""
        return self._trimmed

    def append(self, event: BridgeEvent) -> None:
        last = self.last_seq
        if last is not None and event.seq <= last:
            raise ValueError(f"seq {event.seq} does not follow {last}")
        self._events.append(event)
        while len(self._events) > self._capacity:
            self._events.popleft()
            self._trimmed += 1

    def has_gap_after(self, after_seq: int) -> bool:
        """True when events with ``seq > after_seq`` were already trimmed."""
        first = self.first_seq
        return first is not None and after_seq < first - 1

    def after(self, after_seq: int) -> list[BridgeEvent]:
        return [event for event in self._events if event.seq > after_seq]

    def replay(self, after_seq: int, ts: str, state_version: int) -> list[BridgeEvent]:
        """Events a subscriber that last saw *after_seq* must receive.

        Starts with an ``events.gap_detected`` notice when the log was
        trimmed past *after_seq*.
        """
        replay: list[BridgeEvent] = []
        first = self.first_seq
        if first is not None and self.has_gap_after(after_seq):
            logger.info(f"Replay gap: afterSeq={after_seq}, first retained={first}")
            replay.append(build_gap_event(after_seq, first, ts, state_version))
        replay.extend(self.after(after_seq))
        return replay

    def clear(self) -> None:
        self._events.clear()

    def __iter__(self) -> Iterator[BridgeEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)
