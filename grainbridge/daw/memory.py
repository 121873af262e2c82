"""
In-memory collaborators.

Complete stand-ins for the audio engine and the three sequencers, used by
``python -m grainbridge`` in simulate mode and by the test suite.  They
keep plain Python state and honour the protocols in
``grainbridge.daw.ports``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable

from grainbridge.config import DEFAULT_TEMPO
from grainbridge.daw.catalog import (
    CHORD_STEP_COUNT,
    DRUM_LANES,
    DRUM_STEP_COUNT,
    SCALES,
    SEQUENCER_STAGE_COUNT,
    SEQUENCER_TRACK_COUNT,
    VOICES,
    RecordingMode,
    Scale,
)
from grainbridge.daw.instrument import Instrument
from grainbridge.daw.ports import (
    ChordSequencerSnapshot,
    ChordStepSnapshot,
    DrumLaneSnapshot,
    DrumSequencerSnapshot,
    DrumStepSnapshot,
    SamplerInfo,
    StageSnapshot,
    TrackSnapshot,
)

logger = logging.getLogger(__name__)

_DEFAULT_PARAMETERS: dict[str, float] = {
    "granular.voiceA.speedRatio": 0.75,
    "granular.voiceB.speedRatio": 0.75,
    "granular.voiceA.sizeMs": 0.04,
    "granular.voiceB.sizeMs": 0.04,
    "granular.voiceA.pitchSemitones": 0.5,
    "granular.voiceB.pitchSemitones": 0.5,
    "granular.voiceA.filterCutoff": 1.0,
    "granular.voiceB.filterCutoff": 1.0,
    "macro_osc.harmonics": 0.5,
    "macro_osc.timbre": 0.5,
    "macro_osc.morph": 0.5,
    "macro_osc.level": 0.8,
    "resonator.structure": 0.5,
    "resonator.brightness": 0.5,
    "resonator.damping": 0.5,
    "resonator.position": 0.5,
    "resonator.level": 0.8,
    "sampler.tuning": 0.5,
    "sampler.level": 0.8,
}


@dataclass
class _ReelState:
    active: bool
    mode: RecordingMode
    feedback: float


class InMemoryAudioEngine:
    """Audio engine whose sample counter follows a wall clock."""

    def __init__(
        self,
        sample_rate: float = 48000.0,
        bpm: float = DEFAULT_TEMPO,
        time_signature: tuple[int, int] = (4, 4),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sample_rate = sample_rate
        self._bpm = bpm
        self._time_signature = time_signature
        self._clock = clock
        self._origin = clock()
        self._running = False
        self._start_sample = 0
        self._reels: dict[int, _ReelState] = {
            voice.reel_index: _ReelState(False, voice.default_mode, voice.default_feedback)
            for voice in VOICES
        }
        self._parameters: dict[str, float] = dict(_DEFAULT_PARAMETERS)
        self._granular_playing: dict[int, bool] = {}
        self._sampler = SamplerInfo()
        self.recording_sources: dict[int, tuple[str, int]] = {}

    # clock

    def sample_time(self) -> int:
        return int((self._clock() - self._origin) * self._sample_rate)

    def clock_running(self) -> bool:
        return self._running

    def clock_start_sample(self) -> int:
        return self._start_sample

    def start_clock(self) -> None:
        if not self._running:
            self._running = True
            self._start_sample = self.sample_time()

    def stop_clock(self) -> None:
        self._running = False

    def sample_rate(self) -> float:
        return self._sample_rate

    def bpm(self) -> float:
        return self._bpm

    def set_bpm(self, bpm: float) -> None:
        self._bpm = bpm

    def time_signature(self) -> tuple[int, int]:
        return self._time_signature

    def quarter_notes_per_bar(self) -> float:
        numerator, denominator = self._time_signature
        return max(1.0, numerator * 4 / denominator)

    # recording

    def _reel(self, reel: int) -> _ReelState:
        if reel not in self._reels:
            self._reels[reel] = _ReelState(False, RecordingMode.ONE_SHOT, 0.0)
        return self._reels[reel]

    def is_recording(self, reel: int) -> bool:
        return self._reel(reel).active

    def recording_mode(self, reel: int) -> str:
        return self._reel(reel).mode.value

    def recording_feedback(self, reel: int) -> float:
        return self._reel(reel).feedback

    def start_recording(
        self,
        reel: int,
        mode: str,
        source_type: str,
        source_channel: int,
        feedback: float | None,
    ) -> None:
        state = self._reel(reel)
        state.active = True
        state.mode = RecordingMode(mode)
        if feedback is not None:
            state.feedback = feedback
        self.recording_sources[reel] = (source_type, source_channel)
        logger.debug(f"Reel {reel} recording ({mode}, {source_type}:{source_channel})")

    def stop_recording(self, reel: int) -> None:
        self._reel(reel).active = False

    def set_recording_feedback(self, reel: int, feedback: float) -> None:
        self._reel(reel).feedback = feedback

    def set_recording_mode(self, reel: int, mode: str) -> None:
        self._reel(reel).mode = RecordingMode(mode)

    # parameters

    def get_parameter(self, key: str) -> float:
        return self._parameters.get(key, 0.0)

    def set_parameter(self, key: str, value: float) -> None:
        self._parameters[key] = value

    def is_granular_playing(self, voice: int) -> bool:
        return self._granular_playing.get(voice, False)

    def set_granular_playing(self, voice: int, playing: bool) -> None:
        self._granular_playing[voice] = playing

    def sampler_info(self) -> SamplerInfo:
        return self._sampler

    def set_sampler_mode(self, mode: str) -> None:
        self._sampler = replace(self._sampler, mode=mode)


class InMemoryStepSequencer:
    """Two eight-stage tracks plus key and transport.

    Starting or stopping the transport also runs the engine clock when an
    engine is attached.
    """

    def __init__(self, engine: InMemoryAudioEngine | None = None) -> None:
        self._engine = engine
        self._playing = False
        self._root_note = 0
        self._scale_index = 0
        stages = tuple(StageSnapshot(note_slot=index) for index in range(SEQUENCER_STAGE_COUNT))
        self._tracks: list[TrackSnapshot] = [
            TrackSnapshot(output="PLAITS" if index == 0 else "RINGS", stages=stages)
            for index in range(SEQUENCER_TRACK_COUNT)
        ]

    def is_playing(self) -> bool:
        return self._playing

    def start(self) -> None:
        self._playing = True
        if self._engine is not None:
            self._engine.start_clock()

    def stop(self) -> None:
        self._playing = False
        if self._engine is not None:
            self._engine.stop_clock()

    def root_note(self) -> int:
        return self._root_note

    def set_root_note(self, pitch_class: int) -> None:
        self._root_note = pitch_class % 12

    def scale_index(self) -> int:
        return self._scale_index

    def set_scale_index(self, index: int) -> None:
        self._scale_index = index

    def scale_options(self) -> tuple[Scale, ...]:
        return SCALES

    def track(self, track: int) -> TrackSnapshot:
        return self._tracks[track]

    def set_track_muted(self, track: int, muted: bool) -> None:
        self._tracks[track] = replace(self._tracks[track], muted=muted)

    def set_track_division(self, track: int, division: str) -> None:
        self._tracks[track] = replace(self._tracks[track], division=division)

    def set_track_output(self, track: int, output: str) -> None:
        self._tracks[track] = replace(self._tracks[track], output=output)

    def set_track_direction(self, track: int, direction: str) -> None:
        self._tracks[track] = replace(self._tracks[track], direction=direction)

    def set_stage_field(self, track: int, stage: int, field: str, value: object) -> None:
        current = self._tracks[track]
        stages = list(current.stages)
        stages[stage] = replace(stages[stage], **{field: value})
        self._tracks[track] = replace(current, stages=tuple(stages))


class InMemoryChordSequencer:
    def __init__(self) -> None:
        self._enabled = True
        self._division = "/4"
        self._steps: list[ChordStepSnapshot] = [ChordStepSnapshot() for _ in range(CHORD_STEP_COUNT)]

    def snapshot(self) -> ChordSequencerSnapshot:
        return ChordSequencerSnapshot(enabled=self._enabled, division=self._division, steps=tuple(self._steps))

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def set_division(self, division: str) -> None:
        self._division = division

    def set_step(self, step: int, degree_id: str | None, quality_id: str | None, active: bool) -> None:
        self._steps[step] = ChordStepSnapshot(degree_id=degree_id, quality_id=quality_id, active=active)


class InMemoryDrumSequencer:
    def __init__(self) -> None:
        self._playing = False
        self._sync = True
        self._division = "x4"
        empty = tuple(DrumStepSnapshot() for _ in range(DRUM_STEP_COUNT))
        self._lanes: list[DrumLaneSnapshot] = [
            DrumLaneSnapshot(
                name=spec.name,
                short_name=spec.short_name,
                level=spec.level,
                harmonics=spec.harmonics,
                timbre=spec.timbre,
                morph=spec.morph,
                note=spec.note,
                steps=empty,
            )
            for spec in DRUM_LANES
        ]

    def snapshot(self) -> DrumSequencerSnapshot:
        return DrumSequencerSnapshot(
            playing=self._playing,
            sync_to_transport=self._sync,
            division=self._division,
            current_step=0,
            lanes=tuple(self._lanes),
        )

    def set_playing(self, playing: bool) -> None:
        self._playing = playing

    def set_sync_to_transport(self, sync: bool) -> None:
        self._sync = sync

    def set_division(self, division: str) -> None:
        self._division = division

    def set_lane_field(self, lane: int, field: str, value: object) -> None:
        self._lanes[lane] = replace(self._lanes[lane], **{field: value})

    def set_step(self, lane: int, step: int, active: bool, velocity: float) -> None:
        current = self._lanes[lane]
        steps = list(current.steps)
        steps[step] = DrumStepSnapshot(active=active, velocity=velocity)
        self._lanes[lane] = replace(current, steps=tuple(steps))


def simulated_instrument(
    sample_rate: float = 48000.0,
    clock: Callable[[], float] = time.monotonic,
) -> Instrument:
    """An ``Instrument`` wired to a full set of in-memory collaborators."""
    engine = InMemoryAudioEngine(sample_rate=sample_rate, clock=clock)
    return Instrument(
        engine=engine,
        sequencer=InMemoryStepSequencer(engine),
        chords=InMemoryChordSequencer(),
        drums=InMemoryDrumSequencer(),
        fallback_sample_rate=sample_rate,
    )
