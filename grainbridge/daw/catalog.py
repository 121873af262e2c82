"""
Static musical tables for the instrument.

Voices, scales, clock divisions, synth models, chord vocabulary, drum
lanes and patterns, and named recording sources.  Lookups that accept
free text from callers live next to the table they search.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


# ── Recording voices ──────────────────────────────────────────────────────────


class RecordingMode(str, Enum):
    """Engine recording modes."""

    ONE_SHOT = "oneShot"
    LIVE_LOOP = "liveLoop"

    @property
    def api_name(self) -> str:
        """Name reported on the wire."""
        return "replace" if self is RecordingMode.ONE_SHOT else "live_overdub"


_RECORDING_MODE_ALIASES: dict[str, RecordingMode] = {
    "replace": RecordingMode.ONE_SHOT,
    "append": RecordingMode.ONE_SHOT,
    "overdub": RecordingMode.LIVE_LOOP,
    "live_overdub": RecordingMode.LIVE_LOOP,
}


def recording_mode_from_text(text: str | None) -> RecordingMode | None:
    if text is None:
        return None
    return _RECORDING_MODE_ALIASES.get(text.strip().lower())


@dataclass(frozen=True)
class VoiceSpec:
    """A recordable voice and the engine reel backing it."""

    voice_id: str
    module: str
    reel_index: int
    default_feedback: float
    default_mode: RecordingMode


VOICES: tuple[VoiceSpec, ...] = (
    VoiceSpec("granular.voiceA", "granular", 0, 0.0, RecordingMode.ONE_SHOT),
    VoiceSpec("loop.voiceA", "loop", 1, 0.5, RecordingMode.LIVE_LOOP),
    VoiceSpec("loop.voiceB", "loop", 2, 0.5, RecordingMode.LIVE_LOOP),
    VoiceSpec("granular.voiceB", "granular", 3, 0.0, RecordingMode.ONE_SHOT),
)

VOICES_BY_ID: dict[str, VoiceSpec] = {voice.voice_id: voice for voice in VOICES}


def voice_for_prefix(path: str) -> VoiceSpec | None:
    """Voice whose id is *path* or a dotted prefix of it."""
    for voice in VOICES:
        if path == voice.voice_id or path.startswith(voice.voice_id + "."):
            return voice
    return None


# ── Recording sources ─────────────────────────────────────────────────────────

SOURCE_EXTERNAL = "external"
SOURCE_INTERNAL = "internal"

RECORDING_SOURCES: tuple[dict[str, object], ...] = (
    {"name": "external", "aliases": ["mic", "line"], "sourceType": "external"},
    {"name": "macro_osc", "aliases": ["plaits"], "channel": 0, "sourceType": "internal"},
    {"name": "resonator", "aliases": ["rings"], "channel": 1, "sourceType": "internal"},
    {"name": "granular1", "channel": 2, "sourceType": "internal"},
    {"name": "looper1", "channel": 3, "sourceType": "internal"},
    {"name": "looper2", "channel": 4, "sourceType": "internal"},
    {"name": "granular4", "channel": 5, "sourceType": "internal"},
    {"name": "drums", "aliases": ["drum", "drum_bus"], "channel": 6, "sourceType": "internal",
     "description": "All drum lanes mixed"},
    {"name": "kick", "aliases": ["analog_kick"], "channel": 7, "sourceType": "internal",
     "description": "Analog Kick lane only"},
    {"name": "synth_kick", "channel": 8, "sourceType": "internal",
     "description": "Synth Kick lane only"},
    {"name": "snare", "aliases": ["analog_snare"], "channel": 9, "sourceType": "internal",
     "description": "Analog Snare lane only"},
    {"name": "hihat", "aliases": ["hi_hat", "hi-hat"], "channel": 10, "sourceType": "internal",
     "description": "Hi-Hat lane only"},
    {"name": "sampler", "aliases": ["sample", "sf2", "soundfont"], "channel": 11, "sourceType": "internal",
     "description": "Sampler output (SF2 or WAV)"},
)

_NAMED_INTERNAL_SOURCES: dict[str, int] = {
    **dict.fromkeys(("drums", "drum", "drum_bus", "drumbus"), 6),
    **dict.fromkeys(("kick", "analog_kick", "analogkick"), 7),
    **dict.fromkeys(("synth_kick", "synthkick", "synth_kick_drum"), 8),
    **dict.fromkeys(("snare", "analog_snare", "analogsnare"), 9),
    **dict.fromkeys(("hihat", "hi_hat", "hi-hat", "hat"), 10),
    **dict.fromkeys(("sampler", "sample", "sf2", "wav_sampler", "soundfont"), 11),
}


def resolve_recording_source(source_type: str | None) -> tuple[str, int | None] | None:
    """Map a caller's ``sourceType`` to ``(kind, forced_channel)``.

    Named internal buses force their own channel.  Returns ``None`` for
    an unsupported source.
    """
    if source_type is None:
        return SOURCE_EXTERNAL, None
    text = source_type.strip().lower()
    if text in _NAMED_INTERNAL_SOURCES:
        return SOURCE_INTERNAL, _NAMED_INTERNAL_SOURCES[text]
    if text in ("external", "mic", "line"):
        return SOURCE_EXTERNAL, None
    if text in ("internal", "internal_voice", "internalvoice"):
        return SOURCE_INTERNAL, None
    return None


# ── Granular ──────────────────────────────────────────────────────────────────

GRANULAR_ENVELOPE_NAMES: tuple[str, ...] = (
    "hann", "gaussian", "trap", "tri", "tukey", "pluck", "soft", "decay",
)

_ENVELOPE_ALIASES: dict[str, int] = {
    "hann": 0,
    "gauss": 1,
    "gaussian": 1,
    "trap": 2,
    "trapezoid": 2,
    "tri": 3,
    "triangle": 3,
    "tukey": 4,
    "pluck": 5,
    "soft": 6,
    "decay": 7,
}


def envelope_index_from_text(text: str) -> int | None:
    return _ENVELOPE_ALIASES.get(text.strip().lower())


def envelope_name(normalized: float) -> str:
    index = min(max(int(round(normalized * 7.0)), 0), len(GRANULAR_ENVELOPE_NAMES) - 1)
    return GRANULAR_ENVELOPE_NAMES[index]


# ── Pitch and scales ──────────────────────────────────────────────────────────

PITCH_CLASS_NAMES: tuple[str, ...] = (
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B",
)

_PITCH_CLASSES: dict[str, int] = {
    "C": 0, "B#": 0,
    "C#": 1, "DB": 1,
    "D": 2,
    "D#": 3, "EB": 3,
    "E": 4, "FB": 4,
    "F": 5, "E#": 5,
    "F#": 6, "GB": 6,
    "G": 7,
    "G#": 8, "AB": 8,
    "A": 9,
    "A#": 10, "BB": 10,
    "B": 11, "CB": 11,
}


def parse_pitch_class(text: str) -> int | None:
    """``"F#3"`` -> 6, ``"Eb"`` -> 3; octave digits are ignored."""
    token = text.strip().upper().replace("♯", "#").replace("♭", "B")
    token = token.rstrip("0123456789")
    return _PITCH_CLASSES.get(token)


def pitch_class_name(pitch_class: int) -> str:
    return PITCH_CLASS_NAMES[pitch_class % 12]


@dataclass(frozen=True)
class Scale:
    scale_id: int
    name: str
    intervals: tuple[int, ...]


SCALES: tuple[Scale, ...] = tuple(
    Scale(index, name, intervals)
    for index, (name, intervals) in enumerate((
        ("Major", (0, 2, 4, 5, 7, 9, 11)),
        ("Natural Minor", (0, 2, 3, 5, 7, 8, 10)),
        ("Harmonic Minor", (0, 2, 3, 5, 7, 8, 11)),
        ("Melodic Minor", (0, 2, 3, 5, 7, 9, 11)),
        ("Dorian", (0, 2, 3, 5, 7, 9, 10)),
        ("Phrygian", (0, 1, 3, 5, 7, 8, 10)),
        ("Lydian", (0, 2, 4, 6, 7, 9, 11)),
        ("Mixolydian", (0, 2, 4, 5, 7, 9, 10)),
        ("Locrian", (0, 1, 3, 5, 6, 8, 10)),
        ("Whole Tone", (0, 2, 4, 6, 8, 10)),
        ("Major Pentatonic", (0, 2, 4, 7, 9)),
        ("Minor Pentatonic", (0, 3, 5, 7, 10)),
        ("Major Bebop", (0, 2, 4, 5, 7, 8, 9, 11)),
        ("Altered Scale", (0, 1, 3, 4, 6, 8, 10)),
        ("Dorian Bebop", (0, 2, 3, 4, 5, 7, 9, 10)),
        ("Mixolydian Bebop", (0, 2, 4, 5, 7, 9, 10, 11)),
        ("Blues Scale", (0, 3, 5, 6, 7, 10)),
        ("Diminished Whole Half", (0, 2, 3, 5, 6, 8, 9, 11)),
        ("Diminished Half Whole", (0, 1, 3, 4, 6, 7, 9, 10)),
        ("Neapolitan Major", (0, 1, 3, 5, 7, 9, 11)),
        ("Hungarian Major", (0, 3, 4, 6, 7, 9, 10)),
        ("Harmonic Major", (0, 2, 4, 5, 7, 8, 11)),
        ("Hungarian Minor", (0, 2, 3, 6, 7, 8, 11)),
        ("Lydian Minor", (0, 2, 4, 6, 7, 8, 10)),
        ("Neapolitan Minor", (0, 1, 3, 5, 7, 8, 11)),
        ("Major Locrian", (0, 2, 4, 5, 6, 8, 10)),
        ("Leading Whole Tone", (0, 2, 4, 6, 8, 10, 11)),
        ("Six Tone Symmetrical", (0, 1, 4, 5, 8, 9)),
        ("Balinese", (0, 1, 3, 7, 8)),
        ("Persian", (0, 1, 4, 5, 6, 8, 11)),
        ("East Indian Purvi", (0, 1, 4, 6, 7, 8, 11)),
        ("Oriental", (0, 1, 4, 5, 6, 9, 10)),
        ("Double Harmonic", (0, 1, 4, 5, 7, 8, 11)),
        ("Enigmatic", (0, 1, 4, 6, 8, 10, 11)),
        ("Overtone", (0, 2, 4, 6, 7, 9, 10)),
        ("Eight Tone Spanish", (0, 1, 3, 4, 5, 6, 8, 10)),
        ("Prometheus", (0, 2, 4, 6, 9, 10)),
        ("Gagaku Rittsu Sen Pou", (0, 2, 5, 7, 9)),
        ("In Sen Pou", (0, 1, 5, 7, 10)),
        ("Okinawa", (0, 4, 5, 7, 11)),
        ("Chromatic", tuple(range(12))),
        ("Chord Sequencer", (0, 4, 7)),
    ))
)

DEFAULT_INTERVALS: tuple[int, ...] = SCALES[0].intervals


def _normalize_name(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.lower())


def find_scale_index(text: str, scales: tuple[Scale, ...] | list[Scale]) -> int | None:
    """Exact match on letters and digits first, then containment either way."""
    needle = _normalize_name(text)
    if not needle:
        return None
    for scale in scales:
        if _normalize_name(scale.name) == needle:
            return scale.scale_id
    for scale in scales:
        name = _normalize_name(scale.name)
        if needle in name or name in needle:
            return scale.scale_id
    return None


def note_slot_for_pitch_class(pitch_class: int, root_note: int, intervals: tuple[int, ...]) -> int | None:
    """Scale degree whose pitch is *pitch_class*, or the nearest one."""
    if not intervals:
        return None
    delta = (pitch_class - root_note) % 12
    if delta in intervals:
        return intervals.index(delta)
    best_index, best_distance = 0, 12
    for index, interval in enumerate(intervals):
        distance = min((interval - delta) % 12, (delta - interval) % 12)
        if distance < best_distance:
            best_index, best_distance = index, distance
    return best_index


def note_name_for_slot(slot: int, root_note: int, intervals: tuple[int, ...]) -> str:
    if not intervals:
        return pitch_class_name(root_note)
    interval = intervals[max(slot, 0) % len(intervals)]
    return pitch_class_name(root_note + interval)


# ── Clock divisions ───────────────────────────────────────────────────────────

CLOCK_DIVISIONS: tuple[tuple[str, float], ...] = (
    ("/16", 1 / 16), ("/12", 1 / 12), ("/8", 1 / 8), ("/6", 1 / 6),
    ("/4", 1 / 4), ("/3", 1 / 3), ("/2", 1 / 2),
    ("2/3x", 2 / 3), ("3/4x", 3 / 4),
    ("x1", 1.0), ("x4/3", 4 / 3), ("x3/2", 3 / 2),
    ("x2", 2.0), ("x3", 3.0), ("x4", 4.0), ("x6", 6.0),
    ("x8", 8.0), ("x12", 12.0), ("x16", 16.0),
)

DIVISION_MULTIPLIERS: dict[str, float] = dict(CLOCK_DIVISIONS)

_DIVISION_ALIASES: dict[str, str] = {raw: raw for raw, _ in CLOCK_DIVISIONS}
for _n in (16, 12, 8, 6, 4, 3, 2):
    _DIVISION_ALIASES[f"1/{_n}"] = f"/{_n}"
for _n in (1, 2, 3, 4, 6, 8, 12, 16):
    _DIVISION_ALIASES[f"{_n}x"] = f"x{_n}"
_DIVISION_ALIASES["4/3x"] = "x4/3"
_DIVISION_ALIASES["3/2x"] = "x3/2"


def division_from_text(text: str) -> str | None:
    return _DIVISION_ALIASES.get(text.strip().lower().replace(" ", ""))


def division_for_multiplier(multiplier: float) -> str | None:
    for raw, value in CLOCK_DIVISIONS:
        if abs(value - multiplier) < 0.0001:
            return raw
    return None


# ── Sequencer tracks ──────────────────────────────────────────────────────────

SEQUENCER_TRACK_COUNT = 2
SEQUENCER_STAGE_COUNT = 8

GATE_MODES: tuple[str, ...] = ("EVERY", "FIRST", "LAST", "TIE", "REST")
STEP_TYPES: tuple[str, ...] = ("PLAY", "SKIP", "ELIDE", "REST", "TIE")

_TRACK_OUTPUTS: dict[str, str] = {
    **dict.fromkeys(("macro_osc", "macro osc", "plaits"), "PLAITS"),
    **dict.fromkeys(("resonator", "rings"), "RINGS"),
    "both": "BOTH",
    **dict.fromkeys(("drums", "daisydrum", "drum"), "DAISYDRUM"),
    **dict.fromkeys(("sampler", "soundfont", "sf2"), "SAMPLER"),
}


def track_output_from_text(text: str) -> str | None:
    return _TRACK_OUTPUTS.get(text.strip().lower())


def gate_mode_from_text(text: str) -> str | None:
    value = text.strip().upper()
    return value if value in GATE_MODES else None


def step_type_from_text(text: str) -> str | None:
    value = text.strip().upper()
    return value if value in STEP_TYPES else None


# ── Synth voices ──────────────────────────────────────────────────────────────

MACRO_OSC_MODELS: tuple[str, ...] = (
    "va vcf", "phase distortion", "six op fm a", "six op fm b", "six op fm c",
    "wave terrain", "string machine", "chiptune", "virtual analog", "waveshaping",
    "two op fm", "granular formant", "harmonic", "wavetable", "chords", "speech",
    "granular cloud", "filtered noise", "particle noise", "string", "modal",
    "bass drum", "snare drum", "hi hat",
)

_MACRO_OSC_EXACT: dict[str, int] = {
    "va vcf": 0, "virtual analog vcf": 0,
    "phase dist": 1, "phase distortion": 1,
    "six op fm a": 2, "six-op fm a": 2, "dx7 a": 2,
    "six op fm b": 3, "six-op fm b": 3, "dx7 b": 3,
    "six op fm c": 4, "six-op fm c": 4, "dx7 c": 4,
    "wave terrain": 5,
    "string machine": 6,
    "chiptune": 7,
    "virtual analog": 8,
    "waveshaper": 9, "waveshaping": 9,
    "two op fm": 10, "two-op fm": 10,
    "granular formant": 11,
    "harmonic": 12,
    "wavetable": 13,
    "chords": 14,
    "speech": 15, "vowel speech": 15,
    "granular cloud": 16, "swarm": 16,
    "filtered noise": 17, "noise": 17,
    "particle noise": 18, "particle": 18,
    "string": 19,
    "modal": 20,
    "bass drum": 21, "kick": 21,
    "snare drum": 22, "snare": 22,
    "hi hat": 23, "hihat": 23,
    "six op fm": 2, "six-op fm": 2, "sixop fm": 2, "6 op fm": 2, "dx7": 2,
}

# Keyword fallbacks, checked in order after an exact match fails.
_MACRO_OSC_KEYWORDS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("phase",), 1),
    (("terrain",), 5),
    (("string machine",), 6),
    (("chiptune",), 7),
    (("virtual analog", "vcf"), 0),
    (("virtual analog",), 8),
    (("wave", "shape"), 9),
    (("granular", "formant"), 11),
    (("granular",), 16),
    (("swarm",), 16),
    (("particle",), 18),
    (("noise",), 17),
    (("string",), 19),
    (("modal",), 20),
    (("bass",), 21),
    (("kick",), 21),
    (("snare",), 22),
    (("hat",), 23),
    (("six op",), 2),
    (("6op",), 2),
    (("dx7",), 2),
)

RESONATOR_MODELS: tuple[str, ...] = (
    "modal", "sympathetic", "string", "fm voice", "quantized string", "string+rev",
    "strsyn formant", "strsyn chorus", "strsyn reverb", "strsyn form2",
    "strsyn ensemble", "strsyn rev2",
)

_RESONATOR_EXACT: dict[str, int] = {
    "modal": 0,
    "sympathetic": 1,
    "string": 2,
    "fm voice": 3,
    "symp quant": 4, "quantized string": 4,
    "string+rev": 5, "string rev": 5, "string reverb": 5,
    "strsyn formant": 6, "string synth formant": 6,
    "strsyn chorus": 7, "string synth chorus": 7,
    "strsyn reverb": 8, "string synth reverb": 8,
    "strsyn form2": 9, "string synth formant 2": 9,
    "strsyn ensemble": 10, "string synth ensemble": 10,
    "strsyn rev2": 11, "string synth reverb 2": 11,
}

DAISYDRUM_MODELS: tuple[str, ...] = (
    "analog kick", "synthetic kick", "analog snare", "synthetic snare", "hi hat",
)

_DAISYDRUM_EXACT: dict[str, int] = {
    "analog kick": 0, "synth kick": 1, "synthetic kick": 1,
    "analog snare": 2, "synth snare": 3, "synthetic snare": 3,
    "hi hat": 4, "hihat": 4,
}

SAMPLER_MODES: tuple[str, ...] = ("soundfont", "sfz", "wavsampler")


def _mode_text(text: str) -> str:
    return text.strip().lower().replace("_", " ")


def macro_osc_model_normalized(text: str) -> float | None:
    key = _mode_text(text)
    if key in _MACRO_OSC_EXACT:
        return _MACRO_OSC_EXACT[key] / 23.0
    for keywords, index in _MACRO_OSC_KEYWORDS:
        if all(word in key for word in keywords):
            return index / 23.0
    return None


def resonator_model_normalized(text: str) -> float | None:
    index = _RESONATOR_EXACT.get(_mode_text(text))
    return None if index is None else index / 11.0


def daisydrum_model_normalized(text: str) -> float | None:
    key = _mode_text(text)
    if key in _DAISYDRUM_EXACT:
        return _DAISYDRUM_EXACT[key] / 4.0
    if "kick" in key:
        return 0.0
    if "snare" in key:
        return 0.5
    if "hat" in key:
        return 1.0
    return None


def model_name(models: tuple[str, ...], normalized: float) -> str:
    """Model name for a normalized 0..1 selector value."""
    top = len(models) - 1
    clamped = min(max(normalized, 0.0), 1.0)
    return models[min(max(int(round(clamped * top)), 0), top)]


# Canonical synth name -> continuous parameters accepted on it.
SYNTH_PARAMS: dict[str, tuple[str, ...]] = {
    "macro_osc": ("harmonics", "timbre", "morph", "level", "lpgColor", "lpgDecay", "lpgAttack", "lpgBypass"),
    "resonator": ("structure", "brightness", "damping", "position", "level"),
    "daisydrum": ("harmonics", "timbre", "morph"),
    "sampler": ("preset", "attack", "decay", "sustain", "release", "filterCutoff", "filterResonance", "tuning", "level"),
}

SYNTH_ALIASES: dict[str, str] = {
    "macro_osc": "macro_osc",
    "plaits": "macro_osc",
    "resonator": "resonator",
    "rings": "resonator",
    "daisydrum": "daisydrum",
    "sampler": "sampler",
}

SYNTH_DISPLAY: dict[str, str] = {
    "macro_osc": "Macro Osc",
    "resonator": "Resonator",
    "daisydrum": "DaisyDrum",
    "sampler": "Sampler",
}


def synth_param_key(synth: str, param: str) -> str:
    """Engine parameter key for a synth parameter, e.g. ``macro_osc.timbre``."""
    return f"{synth}.{param}"


# ── Chord sequencer ───────────────────────────────────────────────────────────

CHORD_STEP_COUNT = 8


@dataclass(frozen=True)
class ChordDegree:
    degree_id: str
    label: str
    semitone: int


@dataclass(frozen=True)
class ChordQuality:
    quality_id: str
    label: str
    suffix: str


CHORD_DEGREES: tuple[ChordDegree, ...] = (
    ChordDegree("I", "I", 0),
    ChordDegree("bII", "♭II", 1),
    ChordDegree("ii", "ii", 2),
    ChordDegree("bIII", "♭III", 3),
    ChordDegree("iii", "iii", 4),
    ChordDegree("IV", "IV", 5),
    ChordDegree("bV", "♭V", 6),
    ChordDegree("V", "V", 7),
    ChordDegree("bVI", "♭VI", 8),
    ChordDegree("vi", "vi", 9),
    ChordDegree("bVII", "♭VII", 10),
    ChordDegree("vii", "vii", 11),
)

CHORD_QUALITIES: tuple[ChordQuality, ...] = (
    ChordQuality("maj", "Major", ""),
    ChordQuality("min", "Minor", "m"),
    ChordQuality("dim", "Diminished", "°"),
    ChordQuality("aug", "Augmented", "+"),
    ChordQuality("sus2", "Sus2", "sus2"),
    ChordQuality("sus4", "Sus4", "sus4"),
    ChordQuality("pow", "Power", "5"),
    ChordQuality("maj7", "Maj 7th", "maj7"),
    ChordQuality("min7", "Min 7th", "m7"),
    ChordQuality("dom7", "Dom 7th", "7"),
    ChordQuality("hdim7", "Half-dim", "ø7"),
    ChordQuality("fdim7", "Full-dim", "°7"),
    ChordQuality("dom9", "Dom 9th", "9"),
    ChordQuality("maj9", "Maj 9th", "maj9"),
    ChordQuality("min9", "Min 9th", "m9"),
    ChordQuality("dom11", "Dom 11th", "11"),
    ChordQuality("dom13", "Dom 13th", "13"),
)

DEGREES_BY_ID: dict[str, ChordDegree] = {d.degree_id: d for d in CHORD_DEGREES}
QUALITIES_BY_ID: dict[str, ChordQuality] = {q.quality_id: q for q in CHORD_QUALITIES}


def chord_display_name(degree_id: str | None, quality_id: str | None) -> str | None:
    degree = DEGREES_BY_ID.get(degree_id or "")
    quality = QUALITIES_BY_ID.get(quality_id or "")
    if degree is None or quality is None:
        return None
    return f"{degree.label}{quality.suffix}"


ChordSlot = tuple[str, str] | None


@dataclass(frozen=True)
class ChordPreset:
    preset_id: str
    name: str
    category: str
    steps: tuple[ChordSlot, ...]


def _four(a: ChordSlot, b: ChordSlot, c: ChordSlot, d: ChordSlot) -> tuple[ChordSlot, ...]:
    return (a, b, c, d, a, b, c, d)


CHORD_PRESETS: tuple[ChordPreset, ...] = (
    ChordPreset("pop", "I-V-vi-IV", "Pop/Rock", _four(("I", "maj"), ("V", "maj"), ("vi", "min"), ("IV", "maj"))),
    ChordPreset("emotional", "vi-IV-I-V", "Pop/Rock", _four(("vi", "min"), ("IV", "maj"), ("I", "maj"), ("V", "maj"))),
    ChordPreset("pop2", "I-IV-vi-V", "Pop/Rock", _four(("I", "maj"), ("IV", "maj"), ("vi", "min"), ("V", "maj"))),
    ChordPreset("doowop", "I-vi-IV-V", "Pop/Rock", _four(("I", "maj"), ("vi", "min"), ("IV", "maj"), ("V", "maj"))),
    ChordPreset("rock", "I-IV-V-IV", "Pop/Rock", _four(("I", "maj"), ("IV", "maj"), ("V", "maj"), ("IV", "maj"))),
    ChordPreset("jazz", "ii-V-I", "Jazz", _four(("ii", "min7"), ("V", "dom7"), ("I", "maj7"), None)),
    ChordPreset("turnaround", "I-vi-ii-V", "Jazz", _four(("I", "maj7"), ("vi", "min7"), ("ii", "min7"), ("V", "dom7"))),
    ChordPreset("circle4", "iii-vi-ii-V", "Jazz", _four(("iii", "min7"), ("vi", "min7"), ("ii", "min7"), ("V", "dom7"))),
    ChordPreset("bossa", "I△7-IV△7-iii-vi", "Jazz", _four(("I", "maj7"), ("IV", "maj7"), ("iii", "min7"), ("vi", "min7"))),
    ChordPreset("jazzta", "ii7-V7-I△7-VI7", "Jazz", _four(("ii", "min7"), ("V", "dom7"), ("I", "maj7"), ("vi", "dom7"))),
    ChordPreset("blues", "I-IV-V-I", "Blues/Soul", (
        ("I", "dom7"), ("I", "dom7"), ("IV", "dom7"), ("IV", "dom7"),
        ("V", "dom7"), ("IV", "dom7"), ("I", "dom7"), ("V", "dom7"),
    )),
    ChordPreset("blues8", "I7-IV7-I7-V7", "Blues/Soul", (
        ("I", "dom7"), ("I", "dom7"), ("IV", "dom7"), ("IV", "dom7"),
        ("I", "dom7"), ("V", "dom7"), ("I", "dom7"), ("V", "dom7"),
    )),
    ChordPreset("minblues", "i-iv-i-V", "Blues/Soul", (
        ("I", "min"), ("I", "min"), ("IV", "min"), ("IV", "min"),
        ("I", "min"), ("V", "dom7"), ("I", "min"), ("V", "dom7"),
    )),
    ChordPreset("soul", "i7-iv7-i7-V7", "Blues/Soul", (
        ("I", "min7"), ("I", "min7"), ("IV", "min7"), ("IV", "min7"),
        ("I", "min7"), ("V", "dom7"), ("I", "min7"), ("V", "dom7"),
    )),
    ChordPreset("folk1", "I-IV-V-V", "Folk/Country", _four(("I", "maj"), ("IV", "maj"), ("V", "maj"), ("V", "maj"))),
    ChordPreset("folk2", "I-V-IV-V", "Folk/Country", _four(("I", "maj"), ("V", "maj"), ("IV", "maj"), ("V", "maj"))),
    ChordPreset("folk3", "I-ii-V-I", "Folk/Country", _four(("I", "maj"), ("ii", "min"), ("V", "maj"), ("I", "maj"))),
    ChordPreset("country", "I-IV-I-V", "Folk/Country", _four(("I", "maj"), ("IV", "maj"), ("I", "maj"), ("V", "maj"))),
    ChordPreset("andalusian", "i-♭VII-♭VI-V", "Minor/Dark", _four(("I", "min"), ("bVII", "maj"), ("bVI", "maj"), ("V", "maj"))),
    ChordPreset("epic", "i-♭VI-♭III-♭VII", "Minor/Dark", _four(("I", "min"), ("bVI", "maj"), ("bIII", "maj"), ("bVII", "maj"))),
    ChordPreset("darkmin", "i-iv-v-i", "Minor/Dark", _four(("I", "min"), ("IV", "min"), ("V", "min"), ("I", "min"))),
    ChordPreset("darkrock", "i-♭VII-♭VI-♭VII", "Minor/Dark", _four(("I", "min"), ("bVII", "maj"), ("bVI", "maj"), ("bVII", "maj"))),
    ChordPreset("mixolydian", "I-♭VII-IV-I", "Modal/Ambient", _four(("I", "maj"), ("bVII", "maj"), ("IV", "maj"), ("I", "maj"))),
    ChordPreset("dorian", "i-♭III-♭VII-IV", "Modal/Ambient", _four(("I", "min"), ("bIII", "maj"), ("bVII", "maj"), ("IV", "maj"))),
    ChordPreset("lydian", "I-II-IV-I", "Modal/Ambient", _four(("I", "maj"), ("ii", "maj"), ("IV", "maj"), ("I", "maj"))),
    ChordPreset("phrygian", "i-♭II-i-♭VII", "Modal/Ambient", _four(("I", "min"), ("bII", "maj"), ("I", "min"), ("bVII", "maj"))),
)


def find_chord_preset(text: str) -> ChordPreset | None:
    """Preset by id or display name, case-insensitive."""
    needle = text.strip().lower()
    for preset in CHORD_PRESETS:
        if preset.preset_id.lower() == needle or preset.name.lower() == needle:
            return preset
    return None


# ── Drum sequencer ────────────────────────────────────────────────────────────

DRUM_LANE_COUNT = 4
DRUM_STEP_COUNT = 16
DRUM_NOTE_RANGE = (24, 96)


@dataclass(frozen=True)
class DrumLaneSpec:
    key: str
    name: str
    short_name: str
    harmonics: float
    timbre: float
    morph: float
    level: float
    note: int


DRUM_LANES: tuple[DrumLaneSpec, ...] = (
    DrumLaneSpec("analogKick", "Analog Kick", "A.KCK", 0.55, 0.27, 0.50, 0.70, 36),
    DrumLaneSpec("synthKick", "Synth Kick", "S.KCK", 0.50, 0.50, 0.50, 0.71, 36),
    DrumLaneSpec("analogSnare", "Analog Snare", "A.SNR", 0.26, 0.48, 0.35, 0.71, 52),
    DrumLaneSpec("hiHat", "Hi-Hat", "HHAT", 0.63, 0.45, 0.69, 0.71, 69),
)

DRUM_LANE_PARAMS: tuple[str, ...] = ("level", "harmonics", "timbre", "morph")

_DRUM_PATTERNS: dict[str, tuple[int, ...]] = {
    "fouronthefloor": (0, 4, 8, 12),
    "backbeat": (4, 12),
    "straight16ths": tuple(range(16)),
    "straight8ths": tuple(range(0, 16, 2)),
    "offbeats": (2, 6, 10, 14),
    "halftime": (0, 8),
    "clear": (),
}

_DRUM_PATTERN_ALIASES: dict[str, str] = {
    "four on the floor": "fouronthefloor",
    "4otf": "fouronthefloor",
    "back beat": "backbeat",
    "straight 16ths": "straight16ths",
    "16ths": "straight16ths",
    "sixteenths": "straight16ths",
    "straight 8ths": "straight8ths",
    "8ths": "straight8ths",
    "eighths": "straight8ths",
    "off beats": "offbeats",
    "offbeat": "offbeats",
    "half time": "halftime",
    "empty": "clear",
    "none": "clear",
}


def drum_pattern_steps(text: str) -> tuple[int, ...] | None:
    """Active step indices (0-based) for a named lane pattern."""
    key = text.strip().lower()
    key = _DRUM_PATTERN_ALIASES.get(key, key)
    return _DRUM_PATTERNS.get(key)
