"""
Risk classification.

Per normalized action type:
    startRecording, stopRecording, setRecordingMode   high
    setRecordingFeedback                              medium
    anything else                                     low

A bundle's risk is the maximum over its actions.  High risk always
requires confirmation.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

HIGH_RISK_TYPES: frozenset[str] = frozenset({"startRecording", "stopRecording", "setRecordingMode"})
MEDIUM_RISK_TYPES: frozenset[str] = frozenset({"setRecordingFeedback"})


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, text: str | None) -> RiskLevel:
        """Unknown or missing names rank as low."""
        try:
            return cls((text or "").strip().lower())
        except ValueError:
            return cls.LOW


_RANKS: dict[RiskLevel, int] = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


def risk_for_action_type(action_type: str) -> RiskLevel:
    if action_type in HIGH_RISK_TYPES:
        return RiskLevel.HIGH
    if action_type in MEDIUM_RISK_TYPES:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def aggregate_risk(action_types: Iterable[str]) -> RiskLevel:
    risk = RiskLevel.LOW
    for action_type in action_types:
        candidate = risk_for_action_type(action_type)
        if candidate.rank > risk.rank:
            risk = candidate
    return risk


def exceeds(risk: RiskLevel, max_risk: str | None) -> bool:
    """True when a policy ``maxRisk`` is set and *risk* ranks above it."""
    if max_risk is None:
        return False
    return risk.rank > RiskLevel.parse(max_risk).rank
