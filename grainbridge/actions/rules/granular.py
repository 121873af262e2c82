"""Granular voice parameters (``granular.voiceA|voiceB.<prop>``)."""

from __future__ import annotations

from grainbridge.actions.rules.base import (
    RuleContext,
    RuleResult,
    bad_value,
    clamp01,
    in_unit_range,
    out_of_range,
    single,
    unknown_path,
)
from grainbridge.actions.targets import GranularTarget
from grainbridge.actions.values import desired_bool, numeric_value, text_value
from grainbridge.daw import commands
from grainbridge.daw.catalog import GRANULAR_ENVELOPE_NAMES, envelope_index_from_text, envelope_name
from grainbridge.models.requests import Action

MAX_GRAIN_SIZE_MS = 2500.0
_UNIT_PARAMS = ("filterCutoff", "filterResonance", "morph")


def granular_parameter_key(voice_id: str, prop: str) -> str:
    return f"{voice_id}.{prop}"


# Engine stores 0..1; these convert between caller units and the stored value.

def speed_to_normalized(ratio: float) -> float:
    return clamp01(0.5 + ratio / 4.0)


def speed_from_normalized(raw: float) -> float:
    return (raw - 0.5) * 4.0


def size_to_normalized(ms: float) -> float:
    return clamp01(ms / MAX_GRAIN_SIZE_MS)


def size_from_normalized(raw: float) -> float:
    return raw * MAX_GRAIN_SIZE_MS


def pitch_to_normalized(semitones: float) -> float:
    return clamp01((semitones + 24.0) / 48.0)


def pitch_from_normalized(raw: float) -> float:
    return (raw - 0.5) * 48.0


def _envelope_index(action: Action) -> int | None:
    number = numeric_value(action)
    if number is not None:
        index = int(round(number))
        if 0 <= index < len(GRANULAR_ENVELOPE_NAMES):
            return index
    text = text_value(action)
    return envelope_index_from_text(text) if text is not None else None


def plan_granular(action: Action, target: GranularTarget, ctx: RuleContext) -> RuleResult:
    voice = target.voice
    path = target.path
    prop = target.prop

    def changed(value: object, *cmds: commands.Command) -> RuleResult:
        payload = {"voiceId": voice.voice_id, "path": path, "value": value}
        return single(path, "granular.param_changed", payload, *cmds)

    def write(normalized: float) -> commands.Command:
        return commands.engine("set_parameter", granular_parameter_key(voice.voice_id, prop), normalized)

    if prop == "playing":
        desired = desired_bool(action, ctx.instrument.granular_playing(voice.reel_index))
        if desired is None:
            return bad_value(action, "granular playing requires boolean value")
        return changed(desired, commands.engine("set_granular_playing", voice.reel_index, desired))

    if prop == "envelope":
        index = _envelope_index(action)
        if index is None:
            return bad_value(action, "Unsupported granular envelope")
        normalized = index / 7.0
        return changed(envelope_name(normalized), write(normalized))

    if prop not in ("speedRatio", "sizeMs", "pitchSemitones") + _UNIT_PARAMS:
        return unknown_path(action, "Unsupported granular target")

    value = numeric_value(action)
    if prop == "speedRatio":
        if value is None or value < 0.0:
            return bad_value(action, "granular speedRatio requires non-negative number")
        return changed(value, write(speed_to_normalized(value)))
    if prop == "sizeMs":
        if value is None or not 0.0 < value <= MAX_GRAIN_SIZE_MS:
            return bad_value(action, "granular sizeMs must be > 0 and <= 2500")
        return changed(value, write(size_to_normalized(value)))
    if prop == "pitchSemitones":
        if value is None or not -24.0 <= value <= 24.0:
            return out_of_range(action, "granular pitchSemitones must be within [-24, 24]")
        return changed(value, write(pitch_to_normalized(value)))

    if not in_unit_range(value):
        return out_of_range(action, f"granular {prop} must be within [0, 1]")
    return changed(value, write(value))
