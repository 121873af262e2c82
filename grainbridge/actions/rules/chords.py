"""Chord sequencer rules (``sequencer.chords.*``)."""

from __future__ import annotations

from grainbridge.actions.rules.base import (
    RuleContext,
    RuleResult,
    bad_value,
    single,
    unknown_path,
)
from grainbridge.actions.targets import ChordTarget
from grainbridge.actions.values import desired_bool, text_value
from grainbridge.daw import commands
from grainbridge.daw.catalog import (
    CHORD_DEGREES,
    CHORD_PRESETS,
    CHORD_QUALITIES,
    DEGREES_BY_ID,
    QUALITIES_BY_ID,
    division_from_text,
    find_chord_preset,
)
from grainbridge.daw.ports import ChordStepSnapshot
from grainbridge.models.requests import Action

DEFAULT_QUALITY = "maj"


def _current_step(ctx: RuleContext, index: int) -> ChordStepSnapshot:
    snapshot = ctx.instrument.chord_snapshot()
    if snapshot is None or index >= len(snapshot.steps):
        return ChordStepSnapshot()
    return snapshot.steps[index]


def plan_chords(action: Action, target: ChordTarget, ctx: RuleContext) -> RuleResult:
    if target.step is None:
        return _plan_top_level(action, target.prop, ctx)
    return _plan_step(action, target.step, target.prop, ctx)


def _plan_top_level(action: Action, prop: str, ctx: RuleContext) -> RuleResult:
    if prop == "enabled":
        snapshot = ctx.instrument.chord_snapshot()
        current = snapshot.enabled if snapshot is not None else True
        desired = desired_bool(action, current)
        if desired is None:
            return bad_value(action, "chords.enabled requires boolean value")
        return single(
            "sequencer.chords.enabled",
            "chords.updated",
            {"field": "enabled", "value": desired},
            commands.chords("set_enabled", desired),
        )

    if prop == "clockDivision":
        text = text_value(action)
        division = division_from_text(text) if text is not None else None
        if division is None:
            return bad_value(action, "Invalid clock division")
        return single(
            "sequencer.chords.clockDivision",
            "chords.updated",
            {"field": "clockDivision", "value": division},
            commands.chords("set_division", division),
        )

    # preset
    text = text_value(action)
    if text is None:
        return bad_value(action, "preset requires text value")
    preset = find_chord_preset(text)
    if preset is None:
        available = ", ".join(p.preset_id for p in CHORD_PRESETS)
        return unknown_path(action, f"Unknown preset '{text}'. Available: {available}")
    writes = [
        commands.chords("set_step", index, *(slot if slot is not None else (None, None)), slot is not None)
        for index, slot in enumerate(preset.steps)
    ]
    return single(
        "sequencer.chords",
        "chords.preset_loaded",
        {"preset": preset.preset_id, "name": preset.name},
        *writes,
    )


def _plan_step(action: Action, step: int, field: str, ctx: RuleContext) -> RuleResult:
    index = step - 1
    current = _current_step(ctx, index)
    path = f"sequencer.chords.step{step}.{field}"

    def updated(value: object, degree: str | None, quality: str | None, active: bool) -> RuleResult:
        return single(
            path,
            "chords.step_updated",
            {"step": step, "field": field, "value": value},
            commands.chords("set_step", index, degree, quality, active),
        )

    if field == "degree":
        text = text_value(action)
        if text is None:
            return bad_value(action, "degree requires text value")
        if text not in DEGREES_BY_ID:
            available = ", ".join(d.degree_id for d in CHORD_DEGREES)
            return unknown_path(action, f"Unknown degree '{text}'. Available: {available}")
        return updated(text, text, current.quality_id or DEFAULT_QUALITY, current.active)

    if field == "quality":
        text = text_value(action)
        if text is None:
            return bad_value(action, "quality requires text value")
        if text not in QUALITIES_BY_ID:
            available = ", ".join(q.quality_id for q in CHORD_QUALITIES)
            return unknown_path(action, f"Unknown quality '{text}'. Available: {available}")
        return updated(text, current.degree_id, text, current.active)

    if field == "active":
        desired = desired_bool(action, current.active)
        if desired is None:
            return bad_value(action, "active requires boolean value")
        return updated(desired, current.degree_id, current.quality_id, desired)

    if field == "clear":
        return single(
            f"sequencer.chords.step{step}",
            "chords.step_cleared",
            {"step": step},
            commands.chords("set_step", index, None, None, True),
        )

    return unknown_path(action, f"Unknown chord step field: {field}")
