"""
Shared rule vocabulary.

A rule looks at one action and the live (or simulated) instrument state
and returns either an ``ActionFailure`` or a ``Mutation``.  A mutation is
pure data: the collaborator commands to run, the state paths they change
and the domain events to announce.  Validation discards it; execution
commits it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from grainbridge.daw.catalog import RecordingMode, VoiceSpec
from grainbridge.daw.commands import Command
from grainbridge.daw.instrument import Instrument
from grainbridge.errors import ErrorCode
from grainbridge.events.hub import DomainEvent
from grainbridge.models.requests import Action


@dataclass(frozen=True)
class ActionFailure:
    """A collected, per-action failure."""

    action_id: str | None
    code: ErrorCode
    message: str

    def to_dict(self) -> dict[str, object]:
        return {"actionId": self.action_id, "code": self.code.value, "message": self.message}


@dataclass
class VoiceRecordingState:
    active: bool
    mode: RecordingMode
    feedback: float


@dataclass(frozen=True)
class Mutation:
    """Side effects of one accepted action, described as data."""

    commands: tuple[Command, ...] = ()
    changed_paths: tuple[str, ...] = ()
    events: tuple[DomainEvent, ...] = ()
    recording: tuple[str, VoiceRecordingState] | None = None

    @property
    def changes_state(self) -> bool:
        return bool(self.changed_paths)


class RecordingSimulation:
    """Per-voice recording state, seeded lazily from live reads.

    Lets a bundle that starts the same voice twice fail on the second
    action without anything being started.
    """

    def __init__(self, instrument: Instrument) -> None:
        self._instrument = instrument
        self._states: dict[str, VoiceRecordingState] = {}

    def state(self, voice: VoiceSpec) -> VoiceRecordingState:
        if voice.voice_id not in self._states:
            self._states[voice.voice_id] = VoiceRecordingState(
                active=self._instrument.is_recording(voice),
                mode=self._instrument.recording_mode(voice),
                feedback=self._instrument.recording_feedback(voice),
            )
        current = self._states[voice.voice_id]
        return VoiceRecordingState(current.active, current.mode, current.feedback)

    def apply(self, voice_id: str, state: VoiceRecordingState) -> None:
        self._states[voice_id] = state


@dataclass
class RuleContext:
    instrument: Instrument
    recording: RecordingSimulation
    allow_recording: bool = True


def fail(action: Action, code: ErrorCode, message: str) -> ActionFailure:
    return ActionFailure(action.action_id, code, message)


def bad_value(action: Action, message: str) -> ActionFailure:
    return fail(action, ErrorCode.DEPENDENCY_VIOLATION, message)


def out_of_range(action: Action, message: str) -> ActionFailure:
    return fail(action, ErrorCode.ACTION_OUT_OF_RANGE, message)


def unknown_path(action: Action, message: str) -> ActionFailure:
    return fail(action, ErrorCode.ACTION_PATH_UNKNOWN, message)


def single(
    path: str,
    event_type: str,
    payload: dict[str, object],
    *commands: Command,
    extra_paths: tuple[str, ...] = (),
) -> Mutation:
    """A mutation changing *path* (plus *extra_paths*) with one event."""
    return Mutation(
        commands=tuple(commands),
        changed_paths=(path, *extra_paths),
        events=(DomainEvent(event_type, payload),),
    )


def in_unit_range(value: float | None) -> bool:
    return value is not None and 0.0 <= value <= 1.0


def clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


RuleResult = Union[ActionFailure, Mutation]
