"""
Capability and parameter descriptors.

Static discovery payloads for ``GET /v1/capabilities``,
``GET /v1/parameters`` and the ``capabilities`` block returned when a
session is created.  Recording actions are only advertised to sessions
holding the ``recording:write`` scope.
"""

from __future__ import annotations

from typing import Iterable

from grainbridge.daw.catalog import DRUM_LANES, RECORDING_SOURCES, SYNTH_PARAMS

RECORDING_SCOPE = "recording:write"

_BASE_VOICE_ACTIONS = ["set", "ramp", "toggle", "loadFile"]
_RECORDING_ACTIONS = ["startRecording", "stopRecording", "setRecordingFeedback", "setRecordingMode"]

_GRANULAR_PATHS = [
    "granular.density",
    "granular.size",
    "granular.position",
    *(
        f"granular.{voice}.{prop}"
        for voice in ("voiceA", "voiceB")
        for prop in ("playing", "speedRatio", "sizeMs", "pitchSemitones", "envelope")
    ),
    "granular.<voiceId>.filterCutoff",
    "granular.<voiceId>.filterResonance",
    "granular.<voiceId>.morph",
    "granular.<voiceId>.recording.active",
    "granular.<voiceId>.recording.mode",
    "granular.<voiceId>.recording.feedback",
]

_LOOP_PATHS = [
    "loop.rate",
    "loop.reverse",
    "loop.<voiceId>.recording.active",
    "loop.<voiceId>.recording.mode",
    "loop.<voiceId>.recording.feedback",
]

_SEQUENCER_PATHS = [
    "session.key",
    *(
        f"sequencer.track{track}.{prop}"
        for track in (1, 2)
        for prop in ("enabled", "pattern", "rateMultiplier", "clockDivision", "output")
    ),
    "sequencer.track2.stepGroupA.note",
    "sequencer.track2.stepGroupB.note",
    *(
        f"sequencer.track<1|2>.step<1-8>.{field}"
        for field in ("note", "probability", "ratchets", "gateMode", "gateLength", "stepType")
    ),
]

_CHORD_PATHS = [
    "sequencer.chords.enabled",
    "sequencer.chords.clockDivision",
    "sequencer.chords.preset",
    *(f"sequencer.chords.step<1-8>.{field}" for field in ("degree", "quality", "active", "clear")),
]

_DRUM_PATHS = [
    "drums.playing",
    "drums.syncToTransport",
    "drums.clockDivision",
    *(
        f"drums.lane<1-4>.{prop}"
        for prop in ("enabled", "level", "harmonics", "timbre", "morph", "note")
    ),
    "drums.lane<1-4>.step<1-16>.active",
    "drums.lane<1-4>.step<1-16>.velocity",
    "drums.lane<1-4>.pattern",
]

_RHYTHM_HINTS = [
    "Steps are 16th notes at x4 division (default). 16 steps = 1 bar at 4/4.",
    "Common kick patterns: steps 1,5,9,13 (four-on-the-floor), steps 1,9 (half-time).",
    "Common snare patterns: steps 5,13 (backbeat).",
    "Common hi-hat patterns: all 16 steps (straight 16ths), odd steps (8th notes).",
    "Use lane pattern 'fourOnTheFloor', 'backbeat', 'straight16ths', 'straight8ths', or 'offbeats' for presets.",
]


def _synth_paths() -> list[str]:
    paths: list[str] = []
    for synth, params in SYNTH_PARAMS.items():
        paths.append(f"synth.{synth}.mode")
        paths.extend(f"synth.{synth}.{param}" for param in params)
    return paths


def can_record(scopes: Iterable[str] | None) -> bool:
    """Unscoped callers see everything."""
    return scopes is None or RECORDING_SCOPE in set(scopes)


def capabilities_payload(scopes: Iterable[str] | None = None) -> list[dict[str, object]]:
    voice_actions = list(_BASE_VOICE_ACTIONS)
    if can_record(scopes):
        voice_actions.extend(_RECORDING_ACTIONS)
    sources = [dict(source) for source in RECORDING_SOURCES]

    return [
        {
            "module": "granular",
            "actions": list(voice_actions),
            "paths": list(_GRANULAR_PATHS),
            "recordingSources": sources,
        },
        {
            "module": "loop",
            "actions": list(voice_actions),
            "paths": list(_LOOP_PATHS),
            "recordingSources": sources,
        },
        {
            "module": "transport",
            "actions": ["set", "toggle"],
            "paths": ["transport.playing", "transport.bar", "transport.beat", "session.tempoBpm"],
        },
        {
            "module": "sequencer",
            "actions": ["set", "toggle"],
            "paths": list(_SEQUENCER_PATHS),
        },
        {
            "module": "chords",
            "description": "8-step chord progression sequencer feeding intervals into the step sequencer scale system",
            "actions": ["set", "toggle"],
            "paths": list(_CHORD_PATHS),
        },
        {
            "module": "synth",
            "actions": ["set"],
            "paths": _synth_paths(),
        },
        {
            "module": "drums",
            "description": "4-lane x 16-step drum trigger sequencer (Analog Kick, Synth Kick, Analog Snare, Hi-Hat)",
            "actions": ["set", "toggle"],
            "paths": list(_DRUM_PATHS),
            "laneNames": [lane.key for lane in DRUM_LANES],
            "rhythmHints": list(_RHYTHM_HINTS),
        },
    ]


def _feedback_descriptor(module: str) -> dict[str, object]:
    return {
        "path": f"{module}.<voiceId>.recording.feedback",
        "type": "float",
        "min": 0.0,
        "max": 1.0,
        "default": 0.5,
        "unit": "ratio",
        "safeUpdateMode": "smoothed",
        "smoothingMinMs": 30,
        "quantizable": True,
        "riskClass": "medium",
        "musicalTags": ["recording", "blend", "continuity"],
    }


def parameters_payload(module: str | None = None) -> list[dict[str, object]]:
    """Tunable parameter descriptors, optionally narrowed to one module."""
    if module is not None and module not in ("granular", "loop"):
        return []
    descriptors = [_feedback_descriptor("granular"), _feedback_descriptor("loop")]
    if module is None:
        return descriptors
    return [d for d in descriptors if str(d["path"]).startswith(module + ".")]
