"""
Musical time resolution.

Converts a symbolic ``TimeSpec`` (anchor + quantization) and a transport
snapshot into a concrete target bar/beat and wall-clock delay.  Every
function here is pure.

Positions are handled as a single scalar, ``total_beats``:

    total_beats = (bar - 1) * quarter_notes_per_bar + (beat - 1)

Anchors:
    now / at_transport_position   unchanged
    next_beat                     floor(total) + 1
    next_bar                      start of the following bar

Quantization rounds the anchored position *up* to the next grid line:
    1/16 -> 0.25 beats, 1/8 -> 0.5, 1/4 -> 1.0, 1_bar -> one bar, off -> none
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from grainbridge.config import DEFAULT_TEMPO
from grainbridge.models.requests import TimeSpec

ANCHOR_NOW = "now"
ANCHOR_NEXT_BEAT = "next_beat"
ANCHOR_NEXT_BAR = "next_bar"
ANCHOR_AT_POSITION = "at_transport_position"


@dataclass(frozen=True)
class TransportSnapshot:
    """Live transport position at the moment of resolution."""

    bar: int
    beat: float
    bpm: float = DEFAULT_TEMPO
    quarter_notes_per_bar: float = 4.0


@dataclass(frozen=True)
class TransportPosition:
    """A resolved musical position and its distance from the snapshot."""

    bar: int
    beat: float
    beats_delta: float


@dataclass(frozen=True)
class ScheduledTime:
    """A resolved position plus its wall-clock deadline."""

    execute_at: float
    bar: int
    beat: float
    delay_seconds: float

    def transport_dict(self) -> dict[str, object]:
        return {"bar": self.bar, "beat": self.beat}


def quantization_step_beats(quantization: str | None, quarter_notes_per_bar: float) -> float | None:
    """Grid size in beats, or ``None`` when quantization is off or unknown."""
    if quantization is None:
        return None
    q = quantization.strip().lower()
    if q == "1/16":
        return 0.25
    if q == "1/8":
        return 0.5
    if q == "1/4":
        return 1.0
    if q in ("1_bar", "1 bar"):
        return float(quarter_notes_per_bar)
    return None


def resolve_target_transport(snapshot: TransportSnapshot, spec: TimeSpec | None) -> TransportPosition:
    """Resolve *spec* against *snapshot* into a target bar/beat."""
    qn = max(1.0, float(snapshot.quarter_notes_per_bar))
    total = (max(1, snapshot.bar) - 1) * qn + (snapshot.beat - 1.0)

    anchor = (spec.anchor if spec and spec.anchor else ANCHOR_NOW).strip().lower()
    target = total
    if anchor == ANCHOR_NEXT_BEAT:
        target = math.floor(total) + 1.0
    elif anchor == ANCHOR_NEXT_BAR:
        target = math.floor(total / qn) * qn + qn

    step = quantization_step_beats(spec.quantization if spec else None, qn)
    if step is not None and step > 0:
        target = math.ceil(target / step) * step

    delta = max(0.0, target - total)
    bar = max(1, int(math.floor(target / qn)) + 1)
    beat = math.fmod(target, qn) + 1.0
    return TransportPosition(bar=bar, beat=beat, beats_delta=delta)


def beats_to_seconds(beats: float, bpm: float) -> float:
    return beats * 60.0 / max(1.0, bpm)


def resolve_scheduled_time(
    snapshot: TransportSnapshot,
    spec: TimeSpec | None,
    now: float,
) -> ScheduledTime:
    """Resolve *spec* into a deadline ``now + delay`` and a target bar/beat."""
    position = resolve_target_transport(snapshot, spec)
    delay = beats_to_seconds(position.beats_delta, snapshot.bpm)
    return ScheduledTime(
        execute_at=now + delay,
        bar=position.bar,
        beat=position.beat,
        delay_seconds=delay,
    )


def transport_from_samples(
    sample_time: int,
    start_sample: int,
    sample_rate: float,
    bpm: float,
    quarter_notes_per_bar: float,
) -> tuple[int, float]:
    """Derive ``(bar, beat)`` from elapsed engine samples."""
    qn = max(1.0, float(quarter_notes_per_bar))
    elapsed = max(0, sample_time - start_sample)
    samples_per_beat = sample_rate * 60.0 / max(1.0, bpm)
    total_beats = elapsed / samples_per_beat if samples_per_beat > 0 else 0.0
    bar = max(1, int(total_beats / qn) + 1)
    beat = math.fmod(total_beats, qn) + 1.0
    return bar, beat
