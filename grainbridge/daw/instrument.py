"""
Instrument facade over the optional collaborators.

Every read degrades to a documented default when its collaborator is
absent or raises; the control plane stays usable for introspection while
the audio engine is still starting.  Writes arrive as data-only
``Command`` values and are no-ops for absent collaborators.

Read defaults:
    bpm                 120.0
    clock running       False
    sample time         0
    sample rate         the configured fallback rate
    quarter notes/bar   4
    time signature      "4/4"
    recording           not recording; mode and feedback from the voice defaults
    parameters          0.0
    sampler             SamplerInfo() (mode "soundfont")
    sequencers          None (callers render empty state)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, TypeVar

from grainbridge.config import DEFAULT_TEMPO
from grainbridge.core.timing import TransportSnapshot, transport_from_samples
from grainbridge.daw.catalog import RecordingMode, Scale, VoiceSpec
from grainbridge.daw.commands import Command, Port
from grainbridge.daw.ports import (
    AudioEngine,
    ChordSequencer,
    ChordSequencerSnapshot,
    DrumSequencer,
    DrumSequencerSnapshot,
    SamplerInfo,
    StepSequencer,
    TrackSnapshot,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = TypeVar("P")


@dataclass(frozen=True)
class TransportState:
    """Live transport as reported on ``/v1/state``."""

    playing: bool
    bar: int
    beat: float


class Instrument:
    """Single entry point for collaborator reads and writes."""

    def __init__(
        self,
        engine: AudioEngine | None = None,
        sequencer: StepSequencer | None = None,
        chords: ChordSequencer | None = None,
        drums: DrumSequencer | None = None,
        fallback_sample_rate: float = 48000.0,
    ) -> None:
        self.engine = engine
        self.sequencer = sequencer
        self.chords = chords
        self.drums = drums
        self._fallback_sample_rate = fallback_sample_rate

    # ── Degrading reads ──

    def _read(self, port: P | None, read: Callable[[P], T], default: T, what: str) -> T:
        if port is None:
            return default
        try:
            return read(port)
        except Exception as exc:
            logger.warning(f"Collaborator read '{what}' failed, using default: {exc}")
            return default

    @property
    def has_engine(self) -> bool:
        return self.engine is not None

    def bpm(self) -> float:
        return float(self._read(self.engine, lambda e: e.bpm(), DEFAULT_TEMPO, "bpm"))

    def clock_running(self) -> bool:
        return bool(self._read(self.engine, lambda e: e.clock_running(), False, "clock_running"))

    def sample_time(self) -> int:
        return int(self._read(self.engine, lambda e: e.sample_time(), 0, "sample_time"))

    def clock_start_sample(self) -> int:
        return int(self._read(self.engine, lambda e: e.clock_start_sample(), 0, "clock_start_sample"))

    def sample_rate(self) -> float:
        rate = self._read(self.engine, lambda e: e.sample_rate(), self._fallback_sample_rate, "sample_rate")
        return float(rate) if rate > 0 else self._fallback_sample_rate

    def quarter_notes_per_bar(self) -> float:
        qn = self._read(self.engine, lambda e: e.quarter_notes_per_bar(), 4.0, "quarter_notes_per_bar")
        return max(1.0, float(qn))

    def time_signature_text(self) -> str:
        numerator, denominator = self._read(
            self.engine, lambda e: e.time_signature(), (4, 4), "time_signature"
        )
        return f"{numerator}/{denominator}"

    def is_recording(self, voice: VoiceSpec) -> bool:
        return bool(self._read(self.engine, lambda e: e.is_recording(voice.reel_index), False, "is_recording"))

    def recording_mode(self, voice: VoiceSpec) -> RecordingMode:
        raw = self._read(self.engine, lambda e: e.recording_mode(voice.reel_index), None, "recording_mode")
        try:
            return RecordingMode(raw)
        except ValueError:
            return voice.default_mode

    def recording_feedback(self, voice: VoiceSpec) -> float:
        value = self._read(
            self.engine,
            lambda e: e.recording_feedback(voice.reel_index),
            voice.default_feedback,
            "recording_feedback",
        )
        return float(value)

    def parameter(self, key: str) -> float:
        return float(self._read(self.engine, lambda e: e.get_parameter(key), 0.0, f"parameter {key}"))

    def granular_playing(self, voice_index: int) -> bool:
        return bool(self._read(
            self.engine, lambda e: e.is_granular_playing(voice_index), False, "granular_playing"
        ))

    def sampler_info(self) -> SamplerInfo:
        return self._read(self.engine, lambda e: e.sampler_info(), SamplerInfo(), "sampler_info")

    def transport_running(self) -> bool:
        """Sequencer transport, falling back to the engine clock."""
        if self.sequencer is not None:
            return bool(self._read(self.sequencer, lambda s: s.is_playing(), False, "is_playing"))
        return self.clock_running()

    def root_note(self) -> int:
        return int(self._read(self.sequencer, lambda s: s.root_note(), 0, "root_note"))

    def scale_index(self) -> int:
        return int(self._read(self.sequencer, lambda s: s.scale_index(), 0, "scale_index"))

    def scale_options(self) -> tuple[Scale, ...]:
        return tuple(self._read(self.sequencer, lambda s: s.scale_options(), (), "scale_options"))

    def track(self, track: int) -> TrackSnapshot | None:
        return self._read(self.sequencer, lambda s: s.track(track), None, f"track {track}")

    def chord_snapshot(self) -> ChordSequencerSnapshot | None:
        return self._read(self.chords, lambda c: c.snapshot(), None, "chord snapshot")

    def drum_snapshot(self) -> DrumSequencerSnapshot | None:
        return self._read(self.drums, lambda d: d.snapshot(), None, "drum snapshot")

    # ── Transport ──

    def transport_state(self) -> TransportState:
        bar, beat = transport_from_samples(
            self.sample_time(),
            self.clock_start_sample(),
            self.sample_rate(),
            self.bpm(),
            self.quarter_notes_per_bar(),
        )
        return TransportState(playing=self.clock_running(), bar=bar, beat=beat)

    def transport_snapshot(self) -> TransportSnapshot:
        """Snapshot used to resolve a ``TimeSpec``."""
        state = self.transport_state()
        return TransportSnapshot(
            bar=state.bar,
            beat=state.beat,
            bpm=max(1.0, self.bpm()),
            quarter_notes_per_bar=self.quarter_notes_per_bar(),
        )

    # ── Writes ──

    def _port(self, port: Port) -> object | None:
        if port is Port.ENGINE:
            return self.engine
        if port is Port.SEQUENCER:
            return self.sequencer
        if port is Port.CHORDS:
            return self.chords
        return self.drums

    def execute(self, commands: Iterable[Command]) -> None:
        """Run *commands* in order against their collaborators."""
        for command in commands:
            target = self._port(command.port)
            if target is None:
                logger.debug(f"No {command.port.value} collaborator; skipped {command.describe()}")
                continue
            try:
                getattr(target, command.op)(*command.args)
            except Exception as exc:
                logger.warning(f"Collaborator write {command.describe()} failed: {exc}")
