"""
Scheduled bundle registry.

Tracks every bundle accepted by ``/v1/actions/schedule`` for the life of
the process.  Status changes go through ``assert_transition`` so a
canceled bundle can never be started and a finished one never rewritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from grainbridge.actions.state_machine import (
    BundleStatus,
    assert_transition,
    can_cancel,
)

logger = logging.getLogger(__name__)


@dataclass
class ScheduledBundleState:
    bundle_id: str
    intent_id: str | None
    scheduled_bar: int
    scheduled_beat: float
    state_version: int
    created_at: float
    status: BundleStatus = BundleStatus.SCHEDULED
    error_codes: list[str] = field(default_factory=list)

    def transition(self, to_state: BundleStatus) -> None:
        assert_transition(self.status, to_state)
        logger.debug(f"Bundle {self.bundle_id}: {self.status.value} → {to_state.value}")
        self.status = to_state

    def to_dict(self) -> dict[str, object]:
        return {
            "bundleId": self.bundle_id,
            "intentId": self.intent_id,
            "status": self.status.value,
            "scheduledAtTransport": {"bar": self.scheduled_bar, "beat": self.scheduled_beat},
            "stateVersion": self.state_version,
            "errors": list(self.error_codes),
        }


class BundleRegistry:
    """bundleId -> ``ScheduledBundleState``."""

    def __init__(self) -> None:
        self._bundles: dict[str, ScheduledBundleState] = {}

    def add(self, state: ScheduledBundleState) -> None:
        """Register *state*; re-scheduling an id replaces the earlier entry."""
        self._bundles[state.bundle_id] = state

    def get(self, bundle_id: str) -> ScheduledBundleState | None:
        return self._bundles.get(bundle_id)

    def list(self) -> list[ScheduledBundleState]:
        """All bundles in creation order."""
        return sorted(self._bundles.values(), key=lambda b: b.created_at)

    def cancel(self, bundle_id: str) -> bool:
        """Mark *bundle_id* canceled; False when it is no longer cancelable."""
        state = self._bundles[bundle_id]
        if not can_cancel(state.status):
            return False
        state.transition(BundleStatus.CANCELED)
        return True

    def clear(self) -> None:
        self._bundles.clear()

    def __len__(self) -> int:
        return len(self._bundles)
