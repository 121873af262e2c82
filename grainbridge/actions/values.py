"""
Value extraction from an ``Action``.

Actions carry loosely typed values; each rule asks for the shape it needs:

    numeric  ``to``, else ``from``, else a numeric ``value``, else a numeric string
    text     ``value`` when it is a string
    bool     a bool, a non-zero number, or true/1/on and false/0/off
"""

from __future__ import annotations

import math

from grainbridge.models.requests import Action

RECORDING_ACTION_TYPES: frozenset[str] = frozenset({
    "startRecording",
    "stopRecording",
    "setRecordingFeedback",
    "setRecordingMode",
})

_TRUE_WORDS = frozenset({"true", "1", "on"})
_FALSE_WORDS = frozenset({"false", "0", "off"})


def normalize_action_type(action_type: str, target: str | None) -> str:
    """Fold ``set``/``ramp`` on recording feedback or mode into the recording types."""
    if action_type in ("set", "ramp") and target:
        if target.endswith(".recording.feedback"):
            return "setRecordingFeedback"
        if target.endswith(".recording.mode"):
            return "setRecordingMode"
    return action_type


def is_recording_type(action_type: str) -> bool:
    return action_type in RECORDING_ACTION_TYPES


def _finite(raw: object) -> float | None:
    try:
        number = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def numeric_value(action: Action) -> float | None:
    """Non-finite numbers (inf, nan, overflowing ints) count as no number."""
    if action.to is not None:
        return _finite(action.to)
    if action.from_ is not None:
        return _finite(action.from_)
    value = action.value
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return _finite(value)
    return _finite(value.strip())


def text_value(action: Action) -> str | None:
    return action.value if isinstance(action.value, str) else None


def bool_value(action: Action) -> bool | None:
    value = action.value
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return None


def desired_bool(action: Action, current: bool) -> bool | None:
    """``toggle`` inverts *current*; otherwise the action's bool value."""
    if action.type == "toggle":
        return not current
    return bool_value(action)
