"""Transport and session-wide targets."""

from __future__ import annotations

from grainbridge.actions.rules.base import (
    RuleContext,
    RuleResult,
    bad_value,
    out_of_range,
    single,
    unknown_path,
)
from grainbridge.actions.targets import SessionTarget, TransportTarget
from grainbridge.actions.values import desired_bool, numeric_value, text_value
from grainbridge.daw import commands
from grainbridge.daw.catalog import SCALES, find_scale_index, parse_pitch_class
from grainbridge.daw.instrument import Instrument
from grainbridge.models.requests import Action

TEMPO_RANGE = (20.0, 300.0)


def parse_session_key(text: str, instrument: Instrument) -> tuple[int, int] | None:
    """``"F minor pentatonic"`` -> ``(root pitch class, scale index)``.

    A bare root keeps the current scale.
    """
    tokens = text.split()
    if not tokens:
        return None
    root = parse_pitch_class(tokens[0])
    if root is None:
        return None
    scale_text = " ".join(tokens[1:])
    if not scale_text:
        return root, instrument.scale_index()
    scale_index = find_scale_index(scale_text, instrument.scale_options() or SCALES)
    if scale_index is None:
        return None
    return root, scale_index


def plan_transport(action: Action, target: TransportTarget, ctx: RuleContext) -> RuleResult:
    desired = desired_bool(action, ctx.instrument.transport_running())
    if desired is None:
        return bad_value(action, "transport.playing requires a boolean value")
    return single(
        "transport.playing",
        "transport.playing_changed",
        {"playing": desired},
        commands.sequencer("start" if desired else "stop"),
    )


def plan_session(action: Action, target: SessionTarget, ctx: RuleContext) -> RuleResult:
    if target.prop == "key":
        text = text_value(action)
        parsed = parse_session_key(text, ctx.instrument) if text is not None else None
        if parsed is None:
            return bad_value(action, "session.key requires value like 'F minor pentatonic'")
        root, scale_index = parsed
        return single(
            "session.key",
            "session.key_changed",
            {"rootNote": root, "scaleIndex": scale_index},
            commands.sequencer("set_root_note", root),
            commands.sequencer("set_scale_index", scale_index),
        )

    if target.prop == "tempoBpm":
        bpm = numeric_value(action)
        low, high = TEMPO_RANGE
        if bpm is None or not low <= bpm <= high:
            return out_of_range(action, "session.tempoBpm must be a number between 20 and 300")
        return single(
            "session.tempoBpm",
            "session.tempoBpm_changed",
            {"tempoBpm": bpm},
            commands.engine("set_bpm", bpm),
        )

    return unknown_path(action, "Unsupported session target")
