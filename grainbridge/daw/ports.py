"""Collaborator ports: the only instrument interfaces the control plane may depend on.

Concrete collaborators (the in-memory ones in ``grainbridge.daw.memory``
or a binding to a live audio engine) implement these protocols.  Control
plane code never talks to them directly; it goes through
``grainbridge.daw.instrument.Instrument``, which degrades every read to a
default when a collaborator is absent or fails.

Engine parameter keys are dotted strings holding normalized 0..1 values,
e.g. ``granular.voiceA.speedRatio`` or ``macro_osc.timbre``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from grainbridge.daw.catalog import Scale


@dataclass(frozen=True)
class SamplerInfo:
    """Read-only sampler status.

    Attributes:
        mode: ``soundfont``, ``sfz`` or ``wavsampler``.
        loaded: Whether a SoundFont is loaded.
        preset: Current SoundFont preset index.
        preset_name: Name of that preset, empty when unloaded.
        wav_sampler_loaded: Whether a WAV instrument is loaded.
        wav_instrument_name: Name of that instrument.
    """

    mode: str = "soundfont"
    loaded: bool = False
    preset: int = 0
    preset_name: str = ""
    wav_sampler_loaded: bool = False
    wav_instrument_name: str = ""


@dataclass(frozen=True)
class StageSnapshot:
    """One stage (step) of a sequencer track."""

    note_slot: int = 0
    probability: float = 1.0
    ratchets: int = 1
    gate_mode: str = "EVERY"
    gate_length: float = 0.5
    step_type: str = "PLAY"


@dataclass(frozen=True)
class TrackSnapshot:
    """A sequencer track and its stages."""

    muted: bool = False
    division: str = "x1"
    output: str = "PLAITS"
    direction: str = "forward"
    stages: tuple[StageSnapshot, ...] = ()


@dataclass(frozen=True)
class ChordStepSnapshot:
    degree_id: str | None = None
    quality_id: str | None = None
    active: bool = True

    @property
    def is_empty(self) -> bool:
        return self.degree_id is None or self.quality_id is None


@dataclass(frozen=True)
class ChordSequencerSnapshot:
    enabled: bool = True
    division: str = "/4"
    steps: tuple[ChordStepSnapshot, ...] = ()


@dataclass(frozen=True)
class DrumStepSnapshot:
    active: bool = False
    velocity: float = 0.8


@dataclass(frozen=True)
class DrumLaneSnapshot:
    name: str
    short_name: str
    muted: bool = False
    level: float = 0.7
    harmonics: float = 0.5
    timbre: float = 0.5
    morph: float = 0.5
    note: int = 36
    steps: tuple[DrumStepSnapshot, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DrumSequencerSnapshot:
    playing: bool = False
    sync_to_transport: bool = True
    division: str = "x4"
    current_step: int = 0
    lanes: tuple[DrumLaneSnapshot, ...] = ()


@runtime_checkable
class AudioEngine(Protocol):
    """Port onto the audio engine.

    Reads are expected to be cheap atomic reads of cached scalars; the
    control plane calls them synchronously from its event loop.
    """

    def sample_time(self) -> int:
        """Current engine sample counter."""
        ...

    def clock_running(self) -> bool:
        ...

    def clock_start_sample(self) -> int:
        """Sample counter at which the master clock last started."""
        ...

    def sample_rate(self) -> float:
        ...

    def bpm(self) -> float:
        ...

    def set_bpm(self, bpm: float) -> None:
        ...

    def time_signature(self) -> tuple[int, int]:
        """``(numerator, denominator)`` of the master clock."""
        ...

    def quarter_notes_per_bar(self) -> float:
        ...

    def is_recording(self, reel: int) -> bool:
        ...

    def recording_mode(self, reel: int) -> str:
        """``oneShot`` or ``liveLoop``."""
        ...

    def recording_feedback(self, reel: int) -> float:
        ...

    def start_recording(
        self,
        reel: int,
        mode: str,
        source_type: str,
        source_channel: int,
        feedback: float | None,
    ) -> None:
        ...

    def stop_recording(self, reel: int) -> None:
        ...

    def set_recording_feedback(self, reel: int, feedback: float) -> None:
        ...

    def set_recording_mode(self, reel: int, mode: str) -> None:
        ...

    def get_parameter(self, key: str) -> float:
        """Normalized value of the engine parameter *key*."""
        ...

    def set_parameter(self, key: str, value: float) -> None:
        ...

    def is_granular_playing(self, voice: int) -> bool:
        ...

    def set_granular_playing(self, voice: int, playing: bool) -> None:
        ...

    def sampler_info(self) -> SamplerInfo:
        ...

    def set_sampler_mode(self, mode: str) -> None:
        ...


@runtime_checkable
class StepSequencer(Protocol):
    """Port onto the two-track step sequencer and the shared transport.

    Track and stage indices are zero-based.
    """

    def is_playing(self) -> bool:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def root_note(self) -> int:
        ...

    def set_root_note(self, pitch_class: int) -> None:
        ...

    def scale_index(self) -> int:
        ...

    def set_scale_index(self, index: int) -> None:
        ...

    def scale_options(self) -> tuple[Scale, ...]:
        ...

    def track(self, track: int) -> TrackSnapshot:
        ...

    def set_track_muted(self, track: int, muted: bool) -> None:
        ...

    def set_track_division(self, track: int, division: str) -> None:
        ...

    def set_track_output(self, track: int, output: str) -> None:
        ...

    def set_track_direction(self, track: int, direction: str) -> None:
        ...

    def set_stage_field(self, track: int, stage: int, field: str, value: object) -> None:
        """Write one ``StageSnapshot`` field (by attribute name) of a stage."""
        ...


@runtime_checkable
class ChordSequencer(Protocol):
    """Port onto the eight-step chord progression sequencer."""

    def snapshot(self) -> ChordSequencerSnapshot:
        ...

    def set_enabled(self, enabled: bool) -> None:
        ...

    def set_division(self, division: str) -> None:
        ...

    def set_step(self, step: int, degree_id: str | None, quality_id: str | None, active: bool) -> None:
        """Replace step *step* (zero-based) wholesale."""
        ...


@runtime_checkable
class DrumSequencer(Protocol):
    """Port onto the four-lane, sixteen-step drum sequencer."""

    def snapshot(self) -> DrumSequencerSnapshot:
        ...

    def set_playing(self, playing: bool) -> None:
        ...

    def set_sync_to_transport(self, sync: bool) -> None:
        ...

    def set_division(self, division: str) -> None:
        ...

    def set_lane_field(self, lane: int, field: str, value: object) -> None:
        """Write one ``DrumLaneSnapshot`` field (by attribute name) of a lane."""
        ...

    def set_step(self, lane: int, step: int, active: bool, velocity: float) -> None:
        ...
