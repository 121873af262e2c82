"""
Scheduled bundle state machine.

Explicit state transitions for a scheduled action bundle.
Never mutate bundle status directly; always go through assert_transition().

States:
    SCHEDULED          Accepted by /v1/actions/schedule; deferred work armed
    IN_PROGRESS        Deferred work fired; actions are being applied
    APPLIED            Every action applied
    PARTIALLY_APPLIED  Best effort: some actions failed, the rest applied
    REJECTED           Nothing more will be applied (atomic dry run or first failure)
    CANCELED           Canceled before the deferred work fired

Invariants:
    1. Deferred work checks for CANCELED before doing anything.
    2. Cancel is only possible from SCHEDULED.
    3. Terminal states (APPLIED/PARTIALLY_APPLIED/REJECTED/CANCELED) are final.

Validation happens before a bundle is scheduled and is tracked separately
as a ``ValidationRecord``.
"""

from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class BundleStatus(str, Enum):
    """Scheduled bundle lifecycle states."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    APPLIED = "applied"
    PARTIALLY_APPLIED = "partially_applied"
    REJECTED = "rejected"
    CANCELED = "canceled"


# Terminal states: no further transitions allowed.
TERMINAL_STATES: frozenset[BundleStatus] = frozenset({
    BundleStatus.APPLIED,
    BundleStatus.PARTIALLY_APPLIED,
    BundleStatus.REJECTED,
    BundleStatus.CANCELED,
})

# Allowed transitions: from_state -> set of valid to_states.
_TRANSITIONS: dict[BundleStatus, frozenset[BundleStatus]] = {
    BundleStatus.SCHEDULED: frozenset({
        BundleStatus.IN_PROGRESS,
        BundleStatus.CANCELED,
    }),
    BundleStatus.IN_PROGRESS: frozenset({
        BundleStatus.APPLIED,
        BundleStatus.PARTIALLY_APPLIED,
        BundleStatus.REJECTED,
    }),
    BundleStatus.APPLIED: frozenset(),
    BundleStatus.PARTIALLY_APPLIED: frozenset(),
    BundleStatus.REJECTED: frozenset(),
    BundleStatus.CANCELED: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised when a state transition violates the state machine."""

    def __init__(self, from_state: BundleStatus, to_state: BundleStatus):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid transition: {from_state.value} → {to_state.value}"
        )


def assert_transition(
    from_state: BundleStatus,
    to_state: BundleStatus,
) -> None:
    """
    Validate that a state transition is allowed.

    Raises InvalidTransitionError if the transition violates the state machine.
    """
    allowed = _TRANSITIONS.get(from_state, frozenset())
    if to_state not in allowed:
        raise InvalidTransitionError(from_state, to_state)


def is_terminal(status: BundleStatus) -> bool:
    """Check if a status is terminal (no further transitions)."""
    return status in TERMINAL_STATES


def can_cancel(status: BundleStatus) -> bool:
    return status == BundleStatus.SCHEDULED
