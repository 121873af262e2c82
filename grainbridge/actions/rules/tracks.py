"""
Step sequencer track rules.

Track and step numbers are 1-based in paths and events; the sequencer
port is addressed 0-based.  Note names resolve to scale slots against the
sequencer's current root and scale.
"""

from __future__ import annotations

from grainbridge.actions.rules.base import (
    RuleContext,
    RuleResult,
    bad_value,
    out_of_range,
    single,
    unknown_path,
)
from grainbridge.actions.targets import TrackStepTarget, TrackTarget
from grainbridge.actions.values import desired_bool, numeric_value, text_value
from grainbridge.daw import commands
from grainbridge.daw.catalog import (
    DEFAULT_INTERVALS,
    SEQUENCER_STAGE_COUNT,
    division_for_multiplier,
    division_from_text,
    gate_mode_from_text,
    note_slot_for_pitch_class,
    parse_pitch_class,
    step_type_from_text,
    track_output_from_text,
)
from grainbridge.daw.instrument import Instrument
from grainbridge.models.requests import Action

STEP_GROUPS: dict[str, range] = {
    "stepGroupA.note": range(0, 4),
    "stepGroupB.note": range(4, 8),
}


def current_intervals(instrument: Instrument) -> tuple[int, ...]:
    scales = instrument.scale_options()
    index = instrument.scale_index()
    if 0 <= index < len(scales):
        return scales[index].intervals
    return DEFAULT_INTERVALS


def note_slot_for_text(text: str | None, instrument: Instrument) -> int | None:
    if text is None:
        return None
    pitch_class = parse_pitch_class(text)
    if pitch_class is None:
        return None
    return note_slot_for_pitch_class(pitch_class, instrument.root_note(), current_intervals(instrument))


def _stage(track: int, stage: int, field: str, value: object) -> commands.Command:
    return commands.sequencer("set_stage_field", track - 1, stage, field, value)


def plan_track_step(action: Action, target: TrackStepTarget, ctx: RuleContext) -> RuleResult:
    stage = target.step - 1
    field = target.field

    def updated(value: object, snapshot_field: str, stored: object) -> RuleResult:
        return single(
            target.path,
            "sequencer.step_updated",
            {"track": target.track, "step": target.step, "field": field, "value": value},
            _stage(target.track, stage, snapshot_field, stored),
        )

    if field == "note":
        text = text_value(action)
        slot = note_slot_for_text(text, ctx.instrument)
        if slot is None:
            return bad_value(action, "Invalid step note")
        return updated(text, "note_slot", slot)

    if field == "probability":
        value = numeric_value(action)
        if value is None or not 0.0 <= value <= 1.0:
            return out_of_range(action, "Step probability must be within [0.0, 1.0]")
        return updated(value, "probability", value)

    if field == "ratchets":
        value = numeric_value(action)
        if value is None:
            return bad_value(action, "Step ratchets requires numeric value")
        rounded = int(round(value))
        if not 1 <= rounded <= 8:
            return out_of_range(action, "Step ratchets must be within [1, 8]")
        return updated(rounded, "ratchets", rounded)

    if field == "gateMode":
        text = text_value(action)
        mode = gate_mode_from_text(text) if text is not None else None
        if mode is None:
            return bad_value(action, "Unsupported step gateMode")
        return updated(mode, "gate_mode", mode)

    if field == "gateLength":
        value = numeric_value(action)
        if value is None or not 0.01 <= value <= 1.0:
            return out_of_range(action, "Step gateLength must be within [0.01, 1.0]")
        return updated(value, "gate_length", value)

    if field == "stepType":
        text = text_value(action)
        step_type = step_type_from_text(text) if text is not None else None
        if step_type is None:
            return bad_value(action, "Unsupported step stepType")
        return updated(step_type, "step_type", step_type)

    return unknown_path(action, "Unsupported step target field")


def plan_track(action: Action, target: TrackTarget, ctx: RuleContext) -> RuleResult:
    index = target.track - 1
    prefix = target.prefix
    prop = target.prop

    def updated(field: str, value: object, *cmds: commands.Command, extra: tuple[str, ...] = ()) -> RuleResult:
        return single(
            f"{prefix}.{prop}",
            "sequencer.track_updated",
            {"track": target.track, "field": field, "value": value},
            *cmds,
            extra_paths=extra,
        )

    if prop == "enabled":
        snapshot = ctx.instrument.track(index)
        current = not snapshot.muted if snapshot is not None else True
        desired = desired_bool(action, current)
        if desired is None:
            return bad_value(action, "track enabled requires boolean value")
        return updated("enabled", desired, commands.sequencer("set_track_muted", index, not desired))

    if prop == "pattern":
        text = text_value(action)
        if text is None or text.strip().lower() != "ascending":
            return bad_value(action, "Only 'ascending' pattern is currently supported")
        writes = [_stage(target.track, stage, "note_slot", stage) for stage in range(SEQUENCER_STAGE_COUNT)]
        writes.append(commands.sequencer("set_track_direction", index, "forward"))
        return updated("pattern", "ascending", *writes)

    if prop == "rateMultiplier":
        multiplier = numeric_value(action)
        division = division_for_multiplier(multiplier) if multiplier is not None else None
        if division is None:
            return bad_value(action, "Unsupported rateMultiplier")
        return updated(
            "clockDivision",
            division,
            commands.sequencer("set_track_division", index, division),
            extra=(f"{prefix}.clockDivision",),
        )

    if prop == "clockDivision":
        text = text_value(action)
        division = division_from_text(text) if text is not None else None
        if division is None:
            return bad_value(action, "Unsupported clockDivision")
        return updated("clockDivision", division, commands.sequencer("set_track_division", index, division))

    if prop == "output":
        text = text_value(action)
        output = track_output_from_text(text) if text is not None else None
        if output is None:
            return bad_value(action, "Unsupported track output")
        return updated("output", output, commands.sequencer("set_track_output", index, output))

    if prop in STEP_GROUPS:
        text = text_value(action)
        slot = note_slot_for_text(text, ctx.instrument)
        group = prop.split(".", 1)[0]
        if slot is None:
            return bad_value(action, f"Invalid note for {group}")
        writes = [_stage(target.track, stage, "note_slot", slot) for stage in STEP_GROUPS[prop]]
        return updated(prop, text, *writes)

    return unknown_path(action, "Unsupported sequencer target")
