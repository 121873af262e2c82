"""
Event envelope for everything the control plane emits.

Envelope fields:
    eventId       "evt_<seq>"
    seq           strictly increasing, global
    type          dotted event name, e.g. ``recording.started``
    ts            ISO-8601 UTC
    sessionId     originating session or null
    stateVersion  global state version at emission time
    payload       event-specific JSON
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

GAP_DETECTED = "events.gap_detected"
STATE_CHANGED = "state.changed"
RESYNC_HINT = "Call GET /v1/state to resync"


@dataclass(frozen=True)
class BridgeEvent:
    """Immutable event as stored in the log and pushed to subscribers."""

    event_id: str
    seq: int
    type: str
    ts: str
    state_version: int
    payload: dict[str, object] = field(default_factory=dict)
    session_id: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON transport (camelCase keys)."""
        return {
            "eventId": self.event_id,
            "seq": self.seq,
            "type": self.type,
            "ts": self.ts,
            "sessionId": self.session_id,
            "stateVersion": self.state_version,
            "payload": self.payload,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class SequenceCounter:
    """
    Monotonic sequence counter for the global event stream.

    The first ``next()`` returns 1.
    """

    def __init__(self) -> None:
        self._value: int = 0

    @property
    def current(self) -> int:
        """Last-issued value; ``0`` before the first ``next()`` call."""
        return self._value

    def next(self) -> int:
        self._value += 1
        return self._value

    def reset(self) -> None:
        """Reset counter (only for testing)."""
        self._value = 0


def build_gap_event(after_seq: int, first_retained_seq: int, ts: str, state_version: int) -> BridgeEvent:
    """Synthetic notice that events after *after_seq* were trimmed.

    It is numbered just below the first retained event so that a
    subscriber still observes strictly increasing ``seq`` values.
    """
    return BridgeEvent(
        event_id=f"evt_gap_{first_retained_seq}",
        seq=first_retained_seq - 1,
        type=GAP_DETECTED,
        ts=ts,
        state_version=state_version,
        payload={
            "expectedSeq": after_seq + 1,
            "actualSeq": first_retained_seq,
            "recoveryHint": RESYNC_HINT,
        },
    )
