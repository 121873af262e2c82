"""
Canonical state tree and batch state queries.

``canonical_state`` renders the whole instrument for ``GET /v1/state``;
``query_value`` resolves one dotted path for ``POST /v1/state/query``.
Both read through the ``Instrument`` facade, so an absent collaborator
renders as its documented default (or an empty block) rather than failing.
Unknown paths resolve to ``None``.
"""

from __future__ import annotations

from typing import Callable

from grainbridge.actions.rules.granular import (
    granular_parameter_key,
    pitch_from_normalized,
    size_from_normalized,
    speed_from_normalized,
)
from grainbridge.actions.rules.tracks import current_intervals
from grainbridge.actions.targets import (
    DrumTarget,
    SynthModeTarget,
    SynthParamTarget,
    TrackStepTarget,
    TrackTarget,
    parse_target,
)
from grainbridge.config import SCHEMA_VERSION
from grainbridge.daw.catalog import (
    DAISYDRUM_MODELS,
    DIVISION_MULTIPLIERS,
    MACRO_OSC_MODELS,
    RESONATOR_MODELS,
    SEQUENCER_STAGE_COUNT,
    SYNTH_PARAMS,
    VOICES,
    chord_display_name,
    envelope_name,
    model_name,
    note_name_for_slot,
    pitch_class_name,
    voice_for_prefix,
)
from grainbridge.daw.instrument import Instrument
from grainbridge.daw.ports import ChordSequencerSnapshot, DrumLaneSnapshot, StageSnapshot, TrackSnapshot

_SYNTH_MODELS: dict[str, tuple[str, ...]] = {
    "macro_osc": MACRO_OSC_MODELS,
    "resonator": RESONATOR_MODELS,
    "daisydrum": DAISYDRUM_MODELS,
}

_TRACK_NAMES = ("track1", "track2")


# ── Session ──


def session_key_text(instrument: Instrument) -> str:
    """``"<root> <scale name>"``, e.g. ``"F Minor Pentatonic"``."""
    root = pitch_class_name(instrument.root_note())
    scales = instrument.scale_options()
    if not scales:
        return f"{root} major"
    index = min(max(instrument.scale_index(), 0), len(scales) - 1)
    return f"{root} {scales[index].name}"


def transport_payload(instrument: Instrument) -> dict[str, object]:
    state = instrument.transport_state()
    return {"playing": state.playing, "bar": state.bar, "beat": state.beat}


# ── Synths ──


def synth_mode_name(instrument: Instrument, synth: str) -> str:
    if synth == "sampler":
        return instrument.sampler_info().mode
    return model_name(_SYNTH_MODELS[synth], instrument.parameter(f"{synth}.mode"))


def sampler_instrument_name(instrument: Instrument) -> str:
    info = instrument.sampler_info()
    if info.mode == "wavsampler":
        return info.wav_instrument_name
    if info.mode == "soundfont" and info.loaded:
        return info.preset_name
    return ""


def sampler_payload(instrument: Instrument) -> dict[str, object]:
    info = instrument.sampler_info()
    payload: dict[str, object] = {
        "mode": info.mode,
        "loaded": info.loaded,
        "presetName": info.preset_name,
        "wavSamplerLoaded": info.wav_sampler_loaded,
        "wavInstrumentName": info.wav_instrument_name,
    }
    for param in SYNTH_PARAMS["sampler"]:
        payload[param] = instrument.parameter(f"sampler.{param}")
    return payload


def synth_payload(instrument: Instrument) -> dict[str, object]:
    payload: dict[str, object] = {}
    for synth in ("macro_osc", "resonator", "daisydrum"):
        block: dict[str, object] = {"mode": synth_mode_name(instrument, synth)}
        for param in SYNTH_PARAMS[synth]:
            block[param] = instrument.parameter(f"{synth}.{param}")
        payload[synth] = block
    payload["sampler"] = sampler_payload(instrument)
    return payload


# ── Step sequencer ──


def _stage_note(instrument: Instrument, stage: StageSnapshot) -> str:
    return note_name_for_slot(stage.note_slot, instrument.root_note(), current_intervals(instrument))


def track_pattern_name(track: TrackSnapshot) -> str:
    """``ascending`` when the track plays slots 0..7 forward in order."""
    if track.direction != "forward" or len(track.stages) < SEQUENCER_STAGE_COUNT:
        return "custom"
    for index in range(SEQUENCER_STAGE_COUNT):
        if track.stages[index].note_slot != index:
            return "custom"
    return "ascending"


def _stage_payload(instrument: Instrument, index: int, stage: StageSnapshot) -> dict[str, object]:
    return {
        "index": index + 1,
        "note": _stage_note(instrument, stage),
        "probability": stage.probability,
        "ratchets": stage.ratchets,
        "gateMode": stage.gate_mode.lower(),
        "gateLength": stage.gate_length,
        "stepType": stage.step_type.lower(),
    }


def _stage_group_note(instrument: Instrument, track: TrackSnapshot, stage: int) -> str | None:
    if stage >= len(track.stages):
        return None
    return _stage_note(instrument, track.stages[stage])


def track_payload(instrument: Instrument, track: TrackSnapshot | None) -> dict[str, object]:
    if track is None:
        return {}
    return {
        "enabled": not track.muted,
        "pattern": track_pattern_name(track),
        "rateMultiplier": DIVISION_MULTIPLIERS.get(track.division, 1.0),
        "clockDivision": track.division,
        "output": track.output.lower(),
        "stepGroupA": {"note": _stage_group_note(instrument, track, 0)},
        "stepGroupB": {"note": _stage_group_note(instrument, track, 4)},
        "steps": [_stage_payload(instrument, i, stage) for i, stage in enumerate(track.stages)],
    }


def chords_payload(snapshot: ChordSequencerSnapshot | None) -> dict[str, object]:
    if snapshot is None:
        return {"enabled": False, "steps": []}
    steps: list[dict[str, object]] = []
    for index, step in enumerate(snapshot.steps):
        entry: dict[str, object] = {"index": index + 1, "active": step.active}
        if step.degree_id is not None:
            entry["degree"] = step.degree_id
        if step.quality_id is not None:
            entry["quality"] = step.quality_id
        if not step.is_empty:
            entry["chord"] = chord_display_name(step.degree_id, step.quality_id)
        steps.append(entry)
    return {"enabled": snapshot.enabled, "clockDivision": snapshot.division, "steps": steps}


# ── Drums ──


def _lane_payload(lane: DrumLaneSnapshot) -> dict[str, object]:
    return {
        "name": lane.name,
        "shortName": lane.short_name,
        "enabled": not lane.muted,
        "level": lane.level,
        "harmonics": lane.harmonics,
        "timbre": lane.timbre,
        "morph": lane.morph,
        "note": int(lane.note),
        "steps": [
            {"index": i + 1, "active": step.active, "velocity": step.velocity}
            for i, step in enumerate(lane.steps)
        ],
    }


def drums_payload(instrument: Instrument) -> dict[str, object]:
    snapshot = instrument.drum_snapshot()
    if snapshot is None:
        return {}
    return {
        "playing": snapshot.playing,
        "currentStep": snapshot.current_step + 1,
        "syncToTransport": snapshot.sync_to_transport,
        "clockDivision": snapshot.division,
        "lanes": [_lane_payload(lane) for lane in snapshot.lanes],
    }


# ── Recording ──


def recording_payload(instrument: Instrument, module: str) -> dict[str, object]:
    return {
        voice.voice_id: {
            "active": instrument.is_recording(voice),
            "mode": instrument.recording_mode(voice).api_name,
            "feedback": instrument.recording_feedback(voice),
        }
        for voice in VOICES
        if voice.module == module
    }


def recording_voices(instrument: Instrument) -> list[dict[str, object]]:
    """Rows for ``GET /v1/recording/voices``."""
    return [
        {
            "voiceId": voice.voice_id,
            "module": voice.module,
            "isRecording": instrument.is_recording(voice),
            "mode": instrument.recording_mode(voice).api_name,
            "feedback": instrument.recording_feedback(voice),
            "inputLevel": None,
            "recordedDurationMs": None,
        }
        for voice in VOICES
    ]


def canonical_state(instrument: Instrument, state_version: int) -> dict[str, object]:
    """The full ``GET /v1/state`` document."""
    return {
        "stateVersion": state_version,
        "schemaVersion": SCHEMA_VERSION,
        "session": {
            "tempoBpm": instrument.bpm(),
            "timeSignature": instrument.time_signature_text(),
            "key": session_key_text(instrument),
        },
        "transport": transport_payload(instrument),
        "sequencer": {
            name: track_payload(instrument, instrument.track(index))
            for index, name in enumerate(_TRACK_NAMES)
        } | {"chords": chords_payload(instrument.chord_snapshot())},
        "synth": synth_payload(instrument),
        "granular": {"recording": recording_payload(instrument, "granular")},
        "loop": {"recording": recording_payload(instrument, "loop")},
        "drums": drums_payload(instrument),
        "fx": {},
        "files": {},
        "scenes": [],
    }


# ── Path queries ──


def _track_value(instrument: Instrument, target: TrackTarget) -> object:
    track = instrument.track(target.track - 1)
    if track is None:
        return None
    if target.prop == "stepGroupA.note":
        return _stage_group_note(instrument, track, 0)
    if target.prop == "stepGroupB.note":
        return _stage_group_note(instrument, track, 4)
    payload = track_payload(instrument, track)
    if target.prop in ("enabled", "pattern", "rateMultiplier", "clockDivision", "output"):
        return payload[target.prop]
    return None


def _track_step_value(instrument: Instrument, target: TrackStepTarget) -> object:
    track = instrument.track(target.track - 1)
    if track is None or target.step > len(track.stages):
        return None
    stage = _stage_payload(instrument, target.step - 1, track.stages[target.step - 1])
    if target.field == "index":
        return None
    return stage.get(target.field)


def _drum_value(instrument: Instrument, target: DrumTarget) -> object:
    snapshot = instrument.drum_snapshot()
    if snapshot is None:
        return None
    if target.lane is None:
        top = drums_payload(instrument)
        return top.get(target.prop)
    if target.lane > len(snapshot.lanes):
        return None
    lane = snapshot.lanes[target.lane - 1]
    if target.step is not None:
        if target.step > len(lane.steps):
            return None
        step = lane.steps[target.step - 1]
        return step.active if target.prop == "active" else step.velocity
    if target.prop == "pattern":
        return None
    return _lane_payload(lane).get(target.prop)


def _granular_value(instrument: Instrument, path: str) -> object:
    voice = voice_for_prefix(path)
    if voice is None or voice.module != "granular":
        return None
    prop = path[len(voice.voice_id) + 1:]
    raw = instrument.parameter(granular_parameter_key(voice.voice_id, prop))
    if prop == "speedRatio":
        return speed_from_normalized(raw)
    if prop == "sizeMs":
        return size_from_normalized(raw)
    if prop == "pitchSemitones":
        return pitch_from_normalized(raw)
    if prop == "envelope":
        return envelope_name(raw)
    if prop == "playing":
        return instrument.granular_playing(voice.reel_index)
    if prop in ("filterCutoff", "filterResonance", "morph"):
        return raw
    return None


def _recording_value(instrument: Instrument, path: str) -> object:
    voice = voice_for_prefix(path)
    if voice is None:
        return None
    field = path.rsplit(".", 1)[1]
    if field == "active":
        return instrument.is_recording(voice)
    if field == "mode":
        return instrument.recording_mode(voice).api_name
    return instrument.recording_feedback(voice)


_FIXED_PATHS: dict[str, Callable[[Instrument], object]] = {
    "transport": transport_payload,
    "transport.playing": lambda i: i.transport_state().playing,
    "transport.bar": lambda i: i.transport_state().bar,
    "transport.beat": lambda i: i.transport_state().beat,
    "session.tempoBpm": lambda i: i.bpm(),
    "session.key": session_key_text,
    "session.timeSignature": lambda i: i.time_signature_text(),
    "synth.sampler": sampler_payload,
    "synth.sampler.instrumentName": sampler_instrument_name,
    "sequencer.chords.enabled": lambda i: chords_payload(i.chord_snapshot())["enabled"],
    "sequencer.chords.clockDivision": lambda i: chords_payload(i.chord_snapshot()).get("clockDivision"),
}


def query_value(instrument: Instrument, path: str) -> object:
    """Resolve one dotted state path; ``None`` when it names nothing."""
    fixed = _FIXED_PATHS.get(path)
    if fixed is not None:
        return fixed(instrument)

    if path.endswith((".recording.active", ".recording.mode", ".recording.feedback")):
        return _recording_value(instrument, path)

    target = parse_target(path)
    if isinstance(target, SynthModeTarget):
        return synth_mode_name(instrument, target.synth)
    if isinstance(target, SynthParamTarget):
        return instrument.parameter(f"{target.synth}.{target.param}")
    if isinstance(target, TrackStepTarget):
        return _track_step_value(instrument, target)
    if isinstance(target, TrackTarget):
        return _track_value(instrument, target)
    if isinstance(target, DrumTarget):
        return _drum_value(instrument, target)
    if path.startswith("granular."):
        return _granular_value(instrument, path)
    return None
