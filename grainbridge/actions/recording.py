"""
Deferred recording commands.

The ``/v1/recording/voices/{voiceId}/*`` routes check the live voice when
the request arrives, then arm a ``RecordingCommand``.  When it fires the
command looks at the voice again and does nothing if the world moved on
(the voice started or stopped in between, or the mode already changed).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from grainbridge.actions.rules.base import Mutation
from grainbridge.daw import commands
from grainbridge.daw.catalog import SOURCE_EXTERNAL, RecordingMode, VoiceSpec
from grainbridge.daw.instrument import Instrument
from grainbridge.events.hub import DomainEvent

logger = logging.getLogger(__name__)


class RecordingOp(str, Enum):
    START = "start"
    STOP = "stop"
    FEEDBACK = "feedback"
    MODE = "mode"


@dataclass(frozen=True)
class RecordingCommand:
    """One recording change, captured at request time."""

    op: RecordingOp
    voice: VoiceSpec
    mode: RecordingMode | None = None
    feedback: float | None = None
    source_type: str = SOURCE_EXTERNAL
    source_channel: int = 0

    def plan(self, instrument: Instrument) -> Mutation | None:
        """What to commit now, or ``None`` when the command no longer applies."""
        voice = self.voice
        voice_id = voice.voice_id

        if self.op is RecordingOp.START:
            if instrument.is_recording(voice):
                return None
            mode = self.mode or voice.default_mode
            return Mutation(
                commands=(commands.engine(
                    "start_recording",
                    voice.reel_index,
                    mode.value,
                    self.source_type,
                    self.source_channel,
                    self.feedback,
                ),),
                changed_paths=(
                    f"{voice_id}.recording.active",
                    f"{voice_id}.recording.mode",
                    f"{voice_id}.recording.feedback",
                ),
                events=(DomainEvent("recording.started", {
                    "voiceId": voice_id,
                    "mode": mode.api_name,
                    "feedback": self.feedback if self.feedback is not None else voice.default_feedback,
                }),),
            )

        if self.op is RecordingOp.STOP:
            if not instrument.is_recording(voice):
                return None
            return Mutation(
                commands=(commands.engine("stop_recording", voice.reel_index),),
                changed_paths=(f"{voice_id}.recording.active",),
                events=(DomainEvent("recording.stopped", {"voiceId": voice_id, "recordedDurationMs": None}),),
            )

        if self.op is RecordingOp.FEEDBACK:
            if instrument.recording_mode(voice) is not RecordingMode.LIVE_LOOP or self.feedback is None:
                return None
            previous = instrument.recording_feedback(voice)
            return Mutation(
                commands=(commands.engine("set_recording_feedback", voice.reel_index, self.feedback),),
                changed_paths=(f"{voice_id}.recording.feedback",),
                events=(DomainEvent("recording.feedback_changed", {
                    "voiceId": voice_id,
                    "previous": previous,
                    "current": self.feedback,
                }),),
            )

        before = instrument.recording_mode(voice)
        if self.mode is None or before is self.mode:
            return None
        return Mutation(
            commands=(commands.engine("set_recording_mode", voice.reel_index, self.mode.value),),
            changed_paths=(f"{voice_id}.recording.mode",),
            events=(DomainEvent("recording.mode_changed", {
                "voiceId": voice_id,
                "previous": before.api_name,
                "current": self.mode.api_name,
            }),),
        )
