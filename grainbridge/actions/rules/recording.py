"""
Recording control rules.

Checks run against ``RecordingSimulation`` so a bundle is judged as a
sequence: starting a voice and then setting its feedback sees the voice
as recording even though nothing has been started yet.

    startRecording        voice must be idle; optional mode text must map
    stopRecording         voice must be recording
    setRecordingFeedback  number in [0, 1]; voice must be in live-loop mode
    setRecordingMode      mode text must map; no-op when unchanged
"""

from __future__ import annotations

from grainbridge.actions.rules.base import (
    ActionFailure,
    Mutation,
    RuleContext,
    RuleResult,
    VoiceRecordingState,
    bad_value,
    fail,
)
from grainbridge.actions.targets import parse_recording_target
from grainbridge.actions.values import numeric_value, text_value
from grainbridge.daw import commands
from grainbridge.daw.catalog import RecordingMode, recording_mode_from_text
from grainbridge.errors import ErrorCode
from grainbridge.events.hub import DomainEvent
from grainbridge.models.requests import Action

UNKNOWN_TARGET = "Unknown or missing action target"


def plan_recording(action: Action, action_type: str, ctx: RuleContext) -> RuleResult:
    target = parse_recording_target(action.target)
    if target is None:
        return bad_value(action, UNKNOWN_TARGET)
    if not ctx.allow_recording:
        return bad_value(action, "Recording actions are not allowed by policy")

    voice = target.voice
    current = ctx.recording.state(voice)
    voice_id = voice.voice_id

    if action_type == "startRecording":
        if current.active:
            return fail(action, ErrorCode.RECORDING_ALREADY_ACTIVE, "Voice is already recording")
        mode_text = text_value(action)
        mode = current.mode
        if mode_text is not None:
            mapped = recording_mode_from_text(mode_text)
            if mapped is None:
                return _unsupported_mode(action)
            mode = mapped
        started = VoiceRecordingState(True, mode, current.feedback)
        return Mutation(
            commands=(commands.engine(
                "start_recording", voice.reel_index, mode.value, "external", 0, current.feedback
            ),),
            changed_paths=(
                f"{voice_id}.recording.active",
                f"{voice_id}.recording.mode",
                f"{voice_id}.recording.feedback",
            ),
            events=(DomainEvent("recording.started", {
                "voiceId": voice_id,
                "mode": mode.api_name,
                "feedback": current.feedback,
            }),),
            recording=(voice_id, started),
        )

    if action_type == "stopRecording":
        if not current.active:
            return fail(action, ErrorCode.RECORDING_NOT_ACTIVE, "Voice is not recording")
        return Mutation(
            commands=(commands.engine("stop_recording", voice.reel_index),),
            changed_paths=(f"{voice_id}.recording.active",),
            events=(DomainEvent("recording.stopped", {"voiceId": voice_id, "recordedDurationMs": None}),),
            recording=(voice_id, VoiceRecordingState(False, current.mode, current.feedback)),
        )

    if action_type == "setRecordingFeedback":
        value = numeric_value(action)
        if value is None:
            return bad_value(action, "Missing feedback value")
        if not 0.0 <= value <= 1.0:
            return fail(action, ErrorCode.ACTION_OUT_OF_RANGE, "Feedback must be within [0.0, 1.0]")
        if current.mode is not RecordingMode.LIVE_LOOP:
            return fail(
                action,
                ErrorCode.RECORDING_FEEDBACK_UNSUPPORTED,
                "Feedback is only supported in overdub/live modes",
            )
        previous = ctx.instrument.recording_feedback(voice)
        return Mutation(
            commands=(commands.engine("set_recording_feedback", voice.reel_index, value),),
            changed_paths=(f"{voice_id}.recording.feedback",),
            events=(DomainEvent("recording.feedback_changed", {
                "voiceId": voice_id,
                "previous": previous,
                "current": value,
            }),),
            recording=(voice_id, VoiceRecordingState(current.active, current.mode, value)),
        )

    if action_type == "setRecordingMode":
        mode_text = text_value(action)
        mode = recording_mode_from_text(mode_text)
        if mode is None:
            return _unsupported_mode(action)
        updated = (voice_id, VoiceRecordingState(current.active, mode, current.feedback))
        if mode is current.mode:
            return Mutation(recording=updated)
        return Mutation(
            commands=(commands.engine("set_recording_mode", voice.reel_index, mode.value),),
            changed_paths=(f"{voice_id}.recording.mode",),
            events=(DomainEvent("recording.mode_changed", {
                "voiceId": voice_id,
                "previous": current.mode.api_name,
                "current": mode.api_name,
            }),),
            recording=updated,
        )

    return fail(action, ErrorCode.ACTION_TYPE_UNSUPPORTED, "Action type is not implemented")


def _unsupported_mode(action: Action) -> ActionFailure:
    return fail(action, ErrorCode.RECORDING_MODE_UNSUPPORTED, "Unsupported recording mode")
