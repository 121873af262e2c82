"""
Target path parsing.

Dotted target strings are parsed exactly once into a tagged structure;
rules then dispatch on the variant type instead of prefix-matching
strings.

Recognised shapes:

    <voiceId>[.<anything>]                  RecordingTarget   (recording action types)
    granular.voiceA|voiceB.<prop>           GranularTarget
    transport.playing                       TransportTarget
    session.key | session.tempoBpm          SessionTarget
    synth.<synth>.mode                      SynthModeTarget
    synth.<synth>.<param>                   SynthParamTarget
    sequencer.track<n>.<prop>               TrackTarget
    sequencer.track<n>.step<1-8>.<field>    TrackStepTarget
    sequencer.chords.<prop>                 ChordTarget
    sequencer.chords.step<1-8>.<field>      ChordTarget (with step)
    drums.<prop>                            DrumTarget
    drums.lane<1-4>.<prop>                  DrumTarget (with lane)
    drums.lane<1-4>.step<1-16>.<field>      DrumTarget (with lane and step)

Anything else parses to ``None``.  Targets inside a known domain that are
structurally broken (``sequencer.track3.enabled``, ``sequencer.chords.step9.degree``)
parse to ``InvalidTarget`` carrying the failure to report.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from grainbridge.daw.catalog import (
    CHORD_STEP_COUNT,
    DRUM_LANE_COUNT,
    DRUM_STEP_COUNT,
    SEQUENCER_STAGE_COUNT,
    SEQUENCER_TRACK_COUNT,
    SYNTH_ALIASES,
    SYNTH_PARAMS,
    VOICES,
    VoiceSpec,
    voice_for_prefix,
)
from grainbridge.errors import ErrorCode


@dataclass(frozen=True)
class RecordingTarget:
    voice: VoiceSpec


@dataclass(frozen=True)
class GranularTarget:
    voice: VoiceSpec
    prop: str

    @property
    def path(self) -> str:
        return f"{self.voice.voice_id}.{self.prop}"


@dataclass(frozen=True)
class TransportTarget:
    prop: str


@dataclass(frozen=True)
class SessionTarget:
    prop: str


@dataclass(frozen=True)
class SynthModeTarget:
    synth: str


@dataclass(frozen=True)
class SynthParamTarget:
    synth: str
    param: str
    path: str


@dataclass(frozen=True)
class TrackTarget:
    """``track`` is 1-based, as in the path."""

    track: int
    prop: str

    @property
    def prefix(self) -> str:
        return f"sequencer.track{self.track}"


@dataclass(frozen=True)
class TrackStepTarget:
    track: int
    step: int
    field: str

    @property
    def path(self) -> str:
        return f"sequencer.track{self.track}.step{self.step}.{self.field}"


@dataclass(frozen=True)
class ChordTarget:
    prop: str
    step: int | None = None


@dataclass(frozen=True)
class DrumTarget:
    prop: str
    lane: int | None = None
    step: int | None = None

    @property
    def path(self) -> str:
        if self.lane is None:
            return f"drums.{self.prop}"
        if self.step is None:
            return f"drums.lane{self.lane}.{self.prop}"
        return f"drums.lane{self.lane}.step{self.step}.{self.prop}"


@dataclass(frozen=True)
class InvalidTarget:
    code: ErrorCode
    message: str


Target = Union[
    GranularTarget,
    TransportTarget,
    SessionTarget,
    SynthModeTarget,
    SynthParamTarget,
    TrackTarget,
    TrackStepTarget,
    ChordTarget,
    DrumTarget,
    InvalidTarget,
]

_STEP_RE = re.compile(r"^step(\d+)\.(.+)$")
_TRACK_RE = re.compile(r"^sequencer\.track(\d+)\.(.+)$")
_DRUM_LANE_RE = re.compile(r"^lane(\d+)\.(.+)$")
_DRUM_STEP_RE = re.compile(r"^step(\d+)\.(active|velocity)$")

_CHORD_PREFIX = "sequencer.chords"
_CHORD_TOP_LEVEL = frozenset({"enabled", "clockDivision", "preset"})
_DRUM_TOP_LEVEL = frozenset({"playing", "syncToTransport", "clockDivision", "currentStep"})
_DRUM_LANE_PROPS = frozenset({"enabled", "level", "harmonics", "timbre", "morph", "note", "pattern"})
_GRANULAR_VOICES = tuple(voice for voice in VOICES if voice.module == "granular")


def parse_recording_target(target: str | None) -> RecordingTarget | None:
    if not target:
        return None
    voice = voice_for_prefix(target)
    return RecordingTarget(voice) if voice is not None else None


def parse_target(target: str | None) -> Target | None:
    """Parse a non-recording target path."""
    if not target:
        return None
    for voice in _GRANULAR_VOICES:
        prefix = voice.voice_id + "."
        if target.startswith(prefix) and len(target) > len(prefix):
            return GranularTarget(voice, target[len(prefix):])
    if target == "transport.playing":
        return TransportTarget("playing")
    if target in ("session.key", "session.tempoBpm"):
        return SessionTarget(target.split(".", 1)[1])
    if target.startswith("synth."):
        return _parse_synth(target)
    if target.startswith(_CHORD_PREFIX):
        return _parse_chords(target)
    if target.startswith("drums."):
        return _parse_drums(target[len("drums."):])
    return _parse_track(target)


def _parse_synth(target: str) -> Target | None:
    parts = target.split(".")
    if len(parts) != 3:
        return None
    synth = SYNTH_ALIASES.get(parts[1])
    if synth is None:
        return None
    if parts[2] == "mode":
        return SynthModeTarget(synth)
    if parts[2] in SYNTH_PARAMS[synth]:
        return SynthParamTarget(synth, parts[2], target)
    return None


def _parse_track(target: str) -> Target | None:
    match = _TRACK_RE.match(target)
    if match is None or int(match.group(1)) < 1:
        return None
    track = int(match.group(1))
    if track > SEQUENCER_TRACK_COUNT:
        return InvalidTarget(ErrorCode.DEPENDENCY_VIOLATION, "Track index out of range")
    prop = match.group(2)
    step = _STEP_RE.match(prop)
    if step is not None and 1 <= int(step.group(1)) <= SEQUENCER_STAGE_COUNT:
        return TrackStepTarget(track, int(step.group(1)), step.group(2))
    return TrackTarget(track, prop)


def _parse_chords(target: str) -> Target:
    suffix = target[len(_CHORD_PREFIX) + 1:] if target.startswith(_CHORD_PREFIX + ".") else target
    if suffix in _CHORD_TOP_LEVEL:
        return ChordTarget(suffix)
    if not suffix.startswith("step"):
        return InvalidTarget(ErrorCode.ACTION_PATH_UNKNOWN, f"Unknown chord sequencer target: {target}")
    tail = suffix[len("step"):]
    digits = re.match(r"\d*", tail).group(0)
    if not digits or not 1 <= int(digits) <= CHORD_STEP_COUNT:
        return InvalidTarget(ErrorCode.DEPENDENCY_VIOLATION, "Invalid step number")
    remainder = tail[len(digits):]
    if not remainder.startswith("."):
        return InvalidTarget(ErrorCode.DEPENDENCY_VIOLATION, "Missing field after step number")
    return ChordTarget(remainder[1:], int(digits))


def _parse_drums(remainder: str) -> DrumTarget | None:
    if remainder in _DRUM_TOP_LEVEL:
        return DrumTarget(remainder)
    lane_match = _DRUM_LANE_RE.match(remainder)
    if lane_match is None or not 1 <= int(lane_match.group(1)) <= DRUM_LANE_COUNT:
        return None
    lane = int(lane_match.group(1))
    prop = lane_match.group(2)
    if prop in _DRUM_LANE_PROPS:
        return DrumTarget(prop, lane)
    step_match = _DRUM_STEP_RE.match(prop)
    if step_match is None or not 1 <= int(step_match.group(1)) <= DRUM_STEP_COUNT:
        return None
    return DrumTarget(step_match.group(2), lane, int(step_match.group(1)))
