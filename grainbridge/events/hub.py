"""
Event hub: owns the global state version and the event sequence.

Every accepted mutation goes through ``record_mutation``, which bumps the
state version exactly once, emits the mutation's domain events and then a
``state.changed`` event listing the changed paths.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from grainbridge.core.clock import Clock, iso_timestamp, system_clock
from grainbridge.events.broadcaster import EventBroadcaster
from grainbridge.events.envelope import STATE_CHANGED, BridgeEvent, SequenceCounter
from grainbridge.events.log import EventLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    """An event to emit, before it is numbered."""

    type: str
    payload: dict[str, object] = field(default_factory=dict)


class EventHub:
    """Single writer for ``stateVersion``, ``seq``, the log and the broadcaster."""

    def __init__(
        self,
        log: EventLog,
        broadcaster: EventBroadcaster,
        clock: Clock = system_clock,
    ) -> None:
        self.log = log
        self.broadcaster = broadcaster
        self._clock = clock
        self._sequence = SequenceCounter()
        self._state_version = 1

    @property
    def state_version(self) -> int:
        return self._state_version

    @property
    def last_seq(self) -> int:
        return self._sequence.current

    def now_iso(self) -> str:
        return iso_timestamp(self._clock())

    def emit(self, event_type: str, payload: dict[str, object], session_id: str | None = None) -> BridgeEvent:
        """Number, log and broadcast one event."""
        seq = self._sequence.next()
        event = BridgeEvent(
            event_id=f"evt_{seq}",
            seq=seq,
            type=event_type,
            ts=self.now_iso(),
            state_version=self._state_version,
            payload=payload,
            session_id=session_id,
        )
        self.log.append(event)
        self.broadcaster.publish(event)
        logger.debug(f"Emitted {event_type} seq={seq} v={self._state_version}")
        return event

    def record_mutation(
        self,
        changed_paths: list[str],
        events: list[DomainEvent],
        session_id: str | None = None,
    ) -> int:
        """Bump the state version once and emit *events* then ``state.changed``."""
        self._state_version += 1
        for domain_event in events:
            self.emit(domain_event.type, domain_event.payload, session_id)
        self.emit(
            STATE_CHANGED,
            {"changedPaths": list(changed_paths), "stateVersion": self._state_version},
            session_id,
        )
        return self._state_version

    def replay(self, after_seq: int) -> list[BridgeEvent]:
        return self.log.replay(after_seq, self.now_iso(), self._state_version)
