"""
Per-target action rules.

``plan_action`` is the single entry point: it normalizes the action type,
routes recording types to the recording rule and everything else through
``parse_target`` to the rule for that target family.
"""

from __future__ import annotations

from grainbridge.actions.rules.base import (
    ActionFailure,
    Mutation,
    RecordingSimulation,
    RuleContext,
    RuleResult,
    VoiceRecordingState,
    bad_value,
    fail,
)
from grainbridge.actions.rules.chords import plan_chords
from grainbridge.actions.rules.drums import plan_drums
from grainbridge.actions.rules.granular import plan_granular
from grainbridge.actions.rules.recording import UNKNOWN_TARGET, plan_recording
from grainbridge.actions.rules.session import plan_session, plan_transport
from grainbridge.actions.rules.synth import plan_synth_mode, plan_synth_param
from grainbridge.actions.rules.tracks import plan_track, plan_track_step
from grainbridge.actions.targets import (
    ChordTarget,
    DrumTarget,
    GranularTarget,
    InvalidTarget,
    SessionTarget,
    SynthModeTarget,
    SynthParamTarget,
    TrackStepTarget,
    TrackTarget,
    TransportTarget,
    parse_target,
)
from grainbridge.actions.values import is_recording_type, normalize_action_type
from grainbridge.errors import ErrorCode
from grainbridge.models.requests import Action

__all__ = [
    "ActionFailure",
    "Mutation",
    "RecordingSimulation",
    "RuleContext",
    "RuleResult",
    "VoiceRecordingState",
    "plan_action",
]

_RULES = (
    (GranularTarget, plan_granular),
    (TransportTarget, plan_transport),
    (SessionTarget, plan_session),
    (SynthModeTarget, plan_synth_mode),
    (SynthParamTarget, plan_synth_param),
    (TrackStepTarget, plan_track_step),
    (TrackTarget, plan_track),
    (ChordTarget, plan_chords),
    (DrumTarget, plan_drums),
)


def plan_action(action: Action, ctx: RuleContext) -> RuleResult:
    """Check *action* against *ctx* and describe what applying it would do."""
    action_type = normalize_action_type(action.type, action.target)
    if is_recording_type(action_type):
        return plan_recording(action, action_type, ctx)

    if not action.target:
        return bad_value(action, UNKNOWN_TARGET)
    if action.type not in ("set", "toggle"):
        return fail(action, ErrorCode.ACTION_TYPE_UNSUPPORTED, "Only set/toggle are supported for this target")

    target = parse_target(action.target)
    if target is None:
        return bad_value(action, UNKNOWN_TARGET)
    if isinstance(target, InvalidTarget):
        return fail(action, target.code, target.message)
    for target_type, rule in _RULES:
        if isinstance(target, target_type):
            return rule(action, target, ctx)
    return bad_value(action, UNKNOWN_TARGET)
