"""Drum sequencer rules (``drums.*``)."""

from __future__ import annotations

from grainbridge.actions.rules.base import (
    RuleContext,
    RuleResult,
    bad_value,
    in_unit_range,
    out_of_range,
    single,
    unknown_path,
)
from grainbridge.actions.targets import DrumTarget
from grainbridge.actions.values import desired_bool, numeric_value, text_value
from grainbridge.daw import commands
from grainbridge.daw.catalog import (
    DRUM_LANE_PARAMS,
    DRUM_NOTE_RANGE,
    DRUM_STEP_COUNT,
    division_from_text,
    drum_pattern_steps,
)
from grainbridge.daw.ports import DrumLaneSnapshot, DrumSequencerSnapshot, DrumStepSnapshot
from grainbridge.models.requests import Action


def plan_drums(action: Action, target: DrumTarget, ctx: RuleContext) -> RuleResult:
    snapshot = ctx.instrument.drum_snapshot()
    if target.lane is None:
        return _plan_sequencer(action, target, snapshot)
    lane = _lane(snapshot, target.lane - 1)
    if target.step is None:
        return _plan_lane(action, target, lane)
    return _plan_step(action, target, lane)


def _lane(snapshot: DrumSequencerSnapshot | None, index: int) -> DrumLaneSnapshot | None:
    if snapshot is None or index >= len(snapshot.lanes):
        return None
    return snapshot.lanes[index]


def _plan_sequencer(action: Action, target: DrumTarget, snapshot: DrumSequencerSnapshot | None) -> RuleResult:
    prop = target.prop
    if prop == "playing":
        desired = desired_bool(action, snapshot.playing if snapshot is not None else False)
        if desired is None:
            return bad_value(action, "drums.playing requires a boolean value")
        return single(
            target.path, "drums.playing_changed", {"playing": desired},
            commands.drums("set_playing", desired),
        )

    if prop == "syncToTransport":
        desired = desired_bool(action, snapshot.sync_to_transport if snapshot is not None else False)
        if desired is None:
            return bad_value(action, "drums.syncToTransport requires a boolean value")
        return single(
            target.path, "drums.param_changed", {"param": prop, "value": desired},
            commands.drums("set_sync_to_transport", desired),
        )

    if prop == "clockDivision":
        text = text_value(action)
        division = division_from_text(text) if text is not None else None
        if division is None:
            return bad_value(action, "Unsupported drums clockDivision")
        return single(
            target.path, "drums.param_changed", {"param": prop, "value": division},
            commands.drums("set_division", division),
        )

    return unknown_path(action, "Unsupported drum sequencer target")


def _plan_lane(action: Action, target: DrumTarget, lane: DrumLaneSnapshot | None) -> RuleResult:
    index = target.lane - 1
    prop = target.prop

    def changed(value: object, *cmds: commands.Command) -> RuleResult:
        return single(target.path, "drums.lane_changed", {"lane": target.lane, "param": prop, "value": value}, *cmds)

    if prop == "enabled":
        desired = desired_bool(action, not lane.muted if lane is not None else False)
        if desired is None:
            return bad_value(action, "drums lane enabled requires boolean value")
        return changed(desired, commands.drums("set_lane_field", index, "muted", not desired))

    if prop in DRUM_LANE_PARAMS:
        value = numeric_value(action)
        if not in_unit_range(value):
            return out_of_range(action, f"drums lane {prop} must be within [0.0, 1.0]")
        return changed(value, commands.drums("set_lane_field", index, prop, value))

    if prop == "note":
        value = numeric_value(action)
        low, high = DRUM_NOTE_RANGE
        if value is None or not low <= round(value) <= high:
            return out_of_range(action, "drums lane note must be MIDI note 24-96")
        note = int(round(value))
        return changed(note, commands.drums("set_lane_field", index, "note", note))

    # pattern
    text = text_value(action)
    active_steps = drum_pattern_steps(text) if text is not None else None
    if active_steps is None:
        return bad_value(
            action,
            "Unsupported drum pattern. Use: fourOnTheFloor, backbeat, straight16ths, straight8ths, offbeats, clear",
        )
    steps = lane.steps if lane is not None else tuple(DrumStepSnapshot() for _ in range(DRUM_STEP_COUNT))
    writes = [
        commands.drums("set_step", index, step, step in active_steps, current.velocity)
        for step, current in enumerate(steps)
    ]
    return single(
        target.path,
        "drums.pattern_changed",
        {"lane": target.lane, "pattern": text.lower()},
        *writes,
    )


def _plan_step(action: Action, target: DrumTarget, lane: DrumLaneSnapshot | None) -> RuleResult:
    lane_index = target.lane - 1
    step_index = target.step - 1
    current = lane.steps[step_index] if lane is not None and step_index < len(lane.steps) else DrumStepSnapshot()

    def changed(value: object, active: bool, velocity: float) -> RuleResult:
        return single(
            target.path,
            "drums.step_changed",
            {"lane": target.lane, "step": target.step, "field": target.prop, "value": value},
            commands.drums("set_step", lane_index, step_index, active, velocity),
        )

    if target.prop == "active":
        desired = desired_bool(action, current.active)
        if desired is None:
            return bad_value(action, "drums step active requires boolean value")
        return changed(desired, desired, current.velocity)

    value = numeric_value(action)
    if not in_unit_range(value):
        return out_of_range(action, "drums step velocity must be within [0.0, 1.0]")
    return changed(value, current.active, value)
