"""
Recording control endpoints: ``POST /v1/recording/voices/{voiceId}/<op>``.

Each route checks the live voice, arms a ``RecordingCommand`` for the
resolved musical time and answers 202.  A repeated idempotency key
replays the stored 202 verbatim.
"""

from __future__ import annotations

from http import HTTPStatus

from grainbridge.actions.recording import RecordingCommand, RecordingOp
from grainbridge.api.dependencies import idempotent_replay, remember
from grainbridge.api.router import RequestContext, Router
from grainbridge.core.timing import ScheduledTime
from grainbridge.daw.catalog import (
    VOICES_BY_ID,
    RecordingMode,
    VoiceSpec,
    recording_mode_from_text,
    resolve_recording_source,
)
from grainbridge.errors import ErrorCode, not_found, unprocessable
from grainbridge.models.requests import (
    RecordingFeedbackRequest,
    RecordingModeRequest,
    RecordingStartRequest,
    RecordingStopRequest,
)
from grainbridge.transport.http import HTTPResponse

router = Router()

# 0..10 are voice and drum buses; 11 is the sampler bus.
MAX_SOURCE_CHANNEL = 11


def _voice(ctx: RequestContext) -> VoiceSpec:
    voice = VOICES_BY_ID.get(ctx.params["voice_id"])
    if voice is None:
        raise not_found("Unknown voice id")
    return voice


def _mode(text: str) -> RecordingMode:
    mode = recording_mode_from_text(text)
    if mode is None:
        raise unprocessable(ErrorCode.RECORDING_MODE_UNSUPPORTED, "Unsupported recording mode")
    return mode


def _accepted(
    ctx: RequestContext,
    key: str,
    command: RecordingCommand,
    when: ScheduledTime,
    target: str | None = None,
) -> HTTPResponse:
    ctx.bridge.schedule_recording(command, when, ctx.session_id)
    payload: dict[str, object] = {"voiceId": command.voice.voice_id, "status": "scheduled"}
    if target is not None:
        payload["target"] = target
    payload["scheduledAtTransport"] = when.transport_dict()
    return remember(ctx, key, HTTPResponse.json(HTTPStatus.ACCEPTED, payload))


def _replayed(ctx: RequestContext, key: str) -> HTTPResponse | None:
    record = idempotent_replay(ctx, key)
    if record is None:
        return None
    return HTTPResponse.json(record.status_code, record.body)


@router.post("/v1/recording/voices/{voice_id}/start")
def start_recording(ctx: RequestContext) -> HTTPResponse:
    voice = _voice(ctx)
    body = ctx.parse(RecordingStartRequest, "Invalid recording start payload")
    replay = _replayed(ctx, body.idempotency_key)
    if replay is not None:
        return replay

    mode = _mode(body.mode)
    source = resolve_recording_source(body.source_type)
    if source is None:
        raise unprocessable(ErrorCode.DEPENDENCY_VIOLATION, "Unsupported recording sourceType")
    source_type, forced_channel = source
    channel = forced_channel if forced_channel is not None else (body.source_channel or 0)
    if not 0 <= channel <= MAX_SOURCE_CHANNEL:
        raise unprocessable(
            ErrorCode.ACTION_OUT_OF_RANGE, f"sourceChannel must be within [0, {MAX_SOURCE_CHANNEL}]"
        )
    if ctx.bridge.instrument.is_recording(voice):
        raise unprocessable(ErrorCode.RECORDING_ALREADY_ACTIVE, "Voice is already recording")

    command = RecordingCommand(
        RecordingOp.START,
        voice,
        mode=mode,
        feedback=body.feedback,
        source_type=source_type,
        source_channel=channel,
    )
    return _accepted(ctx, body.idempotency_key, command, ctx.bridge.resolve_time(body.time))


@router.post("/v1/recording/voices/{voice_id}/stop")
def stop_recording(ctx: RequestContext) -> HTTPResponse:
    voice = _voice(ctx)
    body = ctx.parse(RecordingStopRequest, "Invalid recording stop payload")
    replay = _replayed(ctx, body.idempotency_key)
    if replay is not None:
        return replay

    if not ctx.bridge.instrument.is_recording(voice):
        raise unprocessable(ErrorCode.RECORDING_NOT_ACTIVE, "Voice is not recording")
    command = RecordingCommand(RecordingOp.STOP, voice)
    return _accepted(ctx, body.idempotency_key, command, ctx.bridge.resolve_time(body.time))


@router.post("/v1/recording/voices/{voice_id}/feedback")
def set_recording_feedback(ctx: RequestContext) -> HTTPResponse:
    voice = _voice(ctx)
    body = ctx.parse(RecordingFeedbackRequest, "Invalid recording feedback payload")
    replay = _replayed(ctx, body.idempotency_key)
    if replay is not None:
        return replay

    if not 0.0 <= body.value <= 1.0:
        raise unprocessable(ErrorCode.ACTION_OUT_OF_RANGE, "Feedback must be within [0.0, 1.0]")
    if ctx.bridge.instrument.recording_mode(voice) is not RecordingMode.LIVE_LOOP:
        raise unprocessable(
            ErrorCode.RECORDING_FEEDBACK_UNSUPPORTED,
            "Feedback is only supported in overdub/live modes",
        )
    command = RecordingCommand(RecordingOp.FEEDBACK, voice, feedback=body.value)
    return _accepted(
        ctx,
        body.idempotency_key,
        command,
        ctx.bridge.resolve_time(body.time),
        target=f"{voice.voice_id}.recording.feedback",
    )


@router.post("/v1/recording/voices/{voice_id}/mode")
def set_recording_mode(ctx: RequestContext) -> HTTPResponse:
    voice = _voice(ctx)
    body = ctx.parse(RecordingModeRequest, "Invalid recording mode payload")
    replay = _replayed(ctx, body.idempotency_key)
    if replay is not None:
        return replay

    command = RecordingCommand(RecordingOp.MODE, voice, mode=_mode(body.mode))
    return _accepted(
        ctx,
        body.idempotency_key,
        command,
        ctx.bridge.resolve_time(body.time),
        target=f"{voice.voice_id}.recording.mode",
    )
