"""
Tests for target parsing and the per-target action rules.

Rules are exercised directly through ``plan_action`` against a simulated
instrument: a failure comes back as an ``ActionFailure`` and an accepted
action as a ``Mutation`` describing its commands, paths and events.
"""
from __future__ import annotations

import pytest

from grainbridge.actions.rules import ActionFailure, Mutation, RecordingSimulation, RuleContext, plan_action
from grainbridge.actions.targets import (
    ChordTarget,
    DrumTarget,
    GranularTarget,
    InvalidTarget,
    SynthModeTarget,
    SynthParamTarget,
    TrackStepTarget,
    TrackTarget,
    parse_target,
)
from grainbridge.actions.values import bool_value, normalize_action_type, numeric_value
from grainbridge.daw import commands
from grainbridge.daw.instrument import Instrument
from grainbridge.daw.memory import simulated_instrument
from grainbridge.errors import ErrorCode
from grainbridge.models.requests import Action


def _ctx(instrument: Instrument, allow_recording: bool = True) -> RuleContext:
    return RuleContext(instrument, RecordingSimulation(instrument), allow_recording)


def _plan(
    target: str | None,
    value: object = None,
    action_type: str = "set",
    instrument: Instrument | None = None,
    **extra: object,
) -> ActionFailure | Mutation:
    instrument = instrument or simulated_instrument()
    action = Action(action_id="a1", type=action_type, target=target, value=value, **extra)
    return plan_action(action, _ctx(instrument))


def _failure(result: ActionFailure | Mutation) -> ActionFailure:
    assert isinstance(result, ActionFailure), result
    return result


def _mutation(result: ActionFailure | Mutation) -> Mutation:
    assert isinstance(result, Mutation), result
    return result


class TestParseTarget:
    """Dotted paths become tagged structures."""

    def test_granular(self) -> None:
        """granular.voiceB.<prop> names the voice and prop."""
        target = parse_target("granular.voiceB.pitchSemitones")
        assert isinstance(target, GranularTarget)
        assert target.voice.voice_id == "granular.voiceB"
        assert target.prop == "pitchSemitones"

    def test_synth_aliases(self) -> None:
        """Legacy synth names resolve to canonical ones."""
        mode = parse_target("synth.plaits.mode")
        assert isinstance(mode, SynthModeTarget) and mode.synth == "macro_osc"
        param = parse_target("synth.rings.brightness")
        assert isinstance(param, SynthParamTarget) and param.synth == "resonator"
        assert parse_target("synth.rings.harmonics") is None

    def test_tracks_and_steps(self) -> None:
        """Track props and 1-based step fields."""
        track = parse_target("sequencer.track2.clockDivision")
        assert track == TrackTarget(2, "clockDivision")
        step = parse_target("sequencer.track1.step8.gateMode")
        assert step == TrackStepTarget(1, 8, "gateMode")

    def test_track_out_of_range(self) -> None:
        """Track 3 parses to an InvalidTarget."""
        target = parse_target("sequencer.track3.enabled")
        assert isinstance(target, InvalidTarget)
        assert target.code is ErrorCode.DEPENDENCY_VIOLATION

    def test_chord_steps(self) -> None:
        """Chord steps 1..8; anything else is invalid."""
        assert parse_target("sequencer.chords.step3.degree") == ChordTarget("degree", 3)
        assert parse_target("sequencer.chords.preset") == ChordTarget("preset")
        bad_step = parse_target("sequencer.chords.step9.degree")
        assert isinstance(bad_step, InvalidTarget) and bad_step.message == "Invalid step number"
        no_field = parse_target("sequencer.chords.step2")
        assert isinstance(no_field, InvalidTarget)
        unknown = parse_target("sequencer.chords.volume")
        assert isinstance(unknown, InvalidTarget) and unknown.code is ErrorCode.ACTION_PATH_UNKNOWN

    def test_drums(self) -> None:
        """Top-level, lane and lane-step drum targets."""
        assert parse_target("drums.playing") == DrumTarget("playing")
        assert parse_target("drums.lane2.pattern") == DrumTarget("pattern", 2)
        assert parse_target("drums.lane4.step16.velocity") == DrumTarget("velocity", 4, 16)
        assert parse_target("drums.lane5.level") is None
        assert parse_target("drums.lane1.step17.active") is None

    def test_unknown(self) -> None:
        """Unrecognised paths parse to None."""
        assert parse_target("mixer.master.level") is None
        assert parse_target("") is None


class TestValues:
    """Loose value extraction."""

    def test_numeric_precedence(self) -> None:
        """to wins over from, which wins over value."""
        assert numeric_value(Action(type="ramp", to=0.3, from_=0.1, value=0.9)) == 0.3
        assert numeric_value(Action(type="ramp", from_=0.1, value=0.9)) == 0.1
        assert numeric_value(Action(type="set", value=" 0.25 ")) == 0.25
        assert numeric_value(Action(type="set", value=True)) is None
        assert numeric_value(Action(type="set", value="loud")) is None

    @pytest.mark.parametrize("raw", ["inf", "-Infinity", "nan", float("inf"), float("nan"), 1e308 * 10])
    def test_non_finite_is_not_a_number(self, raw: object) -> None:
        """inf and nan, as text or as floats, read as no number."""
        assert numeric_value(Action(type="set", value=raw)) is None
        assert numeric_value(Action(type="ramp", to=float("inf"))) is None

    def test_bool_words(self) -> None:
        """Strings, numbers and bools all coerce."""
        assert bool_value(Action(type="set", value="On")) is True
        assert bool_value(Action(type="set", value="0")) is False
        assert bool_value(Action(type="set", value=2)) is True
        assert bool_value(Action(type="set", value="maybe")) is None

    def test_recording_type_normalization(self) -> None:
        """set/ramp on recording feedback or mode become recording types."""
        assert normalize_action_type("ramp", "loop.voiceA.recording.feedback") == "setRecordingFeedback"
        assert normalize_action_type("set", "granular.voiceA.recording.mode") == "setRecordingMode"
        assert normalize_action_type("set", "granular.voiceA.sizeMs") == "set"


class TestNonFiniteValues:
    """Non-finite numbers fail like any other bad value."""

    @pytest.mark.parametrize(
        ("target", "code"),
        [
            ("sequencer.track1.step1.ratchets", ErrorCode.DEPENDENCY_VIOLATION),
            ("drums.lane1.note", ErrorCode.ACTION_OUT_OF_RANGE),
            ("granular.voiceA.envelope", ErrorCode.DEPENDENCY_VIOLATION),
            ("session.tempoBpm", ErrorCode.ACTION_OUT_OF_RANGE),
        ],
    )
    @pytest.mark.parametrize("raw", ["inf", "nan", float("inf")])
    def test_rejected(self, target: str, code: ErrorCode, raw: object) -> None:
        """The rule returns a failure instead of raising."""
        assert _failure(_plan(target, raw)).code is code


class TestDispatch:
    """Checks common to every target."""

    def test_missing_target(self) -> None:
        """No target is a DEPENDENCY_VIOLATION."""
        failure = _failure(_plan(None, 1.0))
        assert failure.code is ErrorCode.DEPENDENCY_VIOLATION
        assert failure.action_id == "a1"

    def test_unknown_target(self) -> None:
        """Unparseable targets report the unknown-target message."""
        failure = _failure(_plan("mixer.master.level", 1.0))
        assert failure.message == "Unknown or missing action target"

    def test_unsupported_type(self) -> None:
        """Only set and toggle reach the target rules."""
        failure = _failure(_plan("granular.voiceA.sizeMs", 100.0, action_type="ramp"))
        assert failure.code is ErrorCode.ACTION_TYPE_UNSUPPORTED


class TestGranularRules:
    """granular.voiceA|voiceB.*"""

    def test_speed_ratio_is_normalized(self) -> None:
        """speedRatio 1.0 is stored as 0.75."""
        mutation = _mutation(_plan("granular.voiceA.speedRatio", 1.0))
        assert mutation.commands == (commands.engine("set_parameter", "granular.voiceA.speedRatio", 0.75),)
        assert mutation.changed_paths == ("granular.voiceA.speedRatio",)
        assert mutation.events[0].type == "granular.param_changed"

    def test_size_bounds(self) -> None:
        """sizeMs must be in (0, 2500]."""
        assert _failure(_plan("granular.voiceA.sizeMs", 0.0)).code is ErrorCode.DEPENDENCY_VIOLATION
        assert _failure(_plan("granular.voiceA.sizeMs", 2600.0)).code is ErrorCode.DEPENDENCY_VIOLATION
        _mutation(_plan("granular.voiceA.sizeMs", 2500.0))

    def test_pitch_out_of_range(self) -> None:
        """pitchSemitones beyond ±24 is out of range."""
        assert _failure(_plan("granular.voiceB.pitchSemitones", 30.0)).code is ErrorCode.ACTION_OUT_OF_RANGE

    def test_envelope_by_name_or_index(self) -> None:
        """Envelope accepts aliases and indices."""
        by_name = _mutation(_plan("granular.voiceA.envelope", "triangle"))
        assert by_name.events[0].payload["value"] == "tri"
        by_index = _mutation(_plan("granular.voiceA.envelope", 1.0))
        assert by_index.events[0].payload["value"] == "gaussian"
        assert _failure(_plan("granular.voiceA.envelope", "square")).message == "Unsupported granular envelope"

    def test_playing_toggle_reads_live_state(self) -> None:
        """toggle inverts the engine's current playing flag."""
        instrument = simulated_instrument()
        instrument.engine.set_granular_playing(0, True)
        mutation = _mutation(_plan("granular.voiceA.playing", action_type="toggle", instrument=instrument))
        assert mutation.commands == (commands.engine("set_granular_playing", 0, False),)

    def test_unknown_prop(self) -> None:
        """Unsupported props are ACTION_PATH_UNKNOWN."""
        assert _failure(_plan("granular.voiceA.density", 0.5)).code is ErrorCode.ACTION_PATH_UNKNOWN


class TestSessionRules:
    """transport.playing and session.*"""

    def test_tempo_range(self) -> None:
        """Tempo is limited to 20..300 bpm."""
        assert _failure(_plan("session.tempoBpm", 10.0)).code is ErrorCode.ACTION_OUT_OF_RANGE
        mutation = _mutation(_plan("session.tempoBpm", 140.0))
        assert mutation.commands == (commands.engine("set_bpm", 140.0),)

    def test_key_with_scale(self) -> None:
        """Root plus scale name resolve against the scale table."""
        mutation = _mutation(_plan("session.key", "F minor pentatonic"))
        assert mutation.events[0].payload == {"rootNote": 5, "scaleIndex": 11}

    def test_bare_root_keeps_scale(self) -> None:
        """A root alone keeps the current scale index."""
        instrument = simulated_instrument()
        instrument.sequencer.set_scale_index(4)
        mutation = _mutation(_plan("session.key", "Eb", instrument=instrument))
        assert mutation.events[0].payload == {"rootNote": 3, "scaleIndex": 4}

    def test_bad_key(self) -> None:
        """Unparseable keys are DEPENDENCY_VIOLATION."""
        assert _failure(_plan("session.key", "H dorian")).code is ErrorCode.DEPENDENCY_VIOLATION

    def test_transport_toggle(self) -> None:
        """toggle on a stopped transport starts it."""
        mutation = _mutation(_plan("transport.playing", action_type="toggle"))
        assert mutation.commands == (commands.sequencer("start"),)
        assert mutation.events[0].payload == {"playing": True}


class TestSynthRules:
    """synth.<synth>.mode and parameters."""

    def test_sampler_mode(self) -> None:
        """Sampler modes are a closed set."""
        _mutation(_plan("synth.sampler.mode", "sfz"))
        assert _failure(_plan("synth.sampler.mode", "mp3")).code is ErrorCode.ACTION_OUT_OF_RANGE

    def test_macro_osc_mode(self) -> None:
        """Model names map to a normalized selector."""
        mutation = _mutation(_plan("synth.plaits.mode", "va vcf"))
        assert mutation.commands == (commands.engine("set_parameter", "macro_osc.mode", 0.0),)
        assert _failure(_plan("synth.macro_osc.mode", "theremin")).code is ErrorCode.DEPENDENCY_VIOLATION

    def test_param_range(self) -> None:
        """Continuous parameters must be in [0, 1]."""
        failure = _failure(_plan("synth.macro_osc.timbre", 1.5))
        assert failure.code is ErrorCode.ACTION_OUT_OF_RANGE
        assert failure.message == "Macro Osc timbre must be within [0.0, 1.0]"
        mutation = _mutation(_plan("synth.resonator.damping", 0.2))
        assert mutation.events[0].payload == {"synth": "resonator", "param": "damping", "value": 0.2}


class TestTrackRules:
    """sequencer.track<n>.*"""

    def test_track_index_out_of_range(self) -> None:
        """Only two tracks exist."""
        failure = _failure(_plan("sequencer.track3.enabled", True))
        assert failure.message == "Track index out of range"

    def test_rate_multiplier_maps_to_division(self) -> None:
        """rateMultiplier 2 becomes clock division x2 and touches both paths."""
        mutation = _mutation(_plan("sequencer.track1.rateMultiplier", 2.0))
        assert mutation.commands == (commands.sequencer("set_track_division", 0, "x2"),)
        assert mutation.changed_paths == ("sequencer.track1.rateMultiplier", "sequencer.track1.clockDivision")

    def test_pattern(self) -> None:
        """Only the ascending pattern exists."""
        mutation = _mutation(_plan("sequencer.track2.pattern", "Ascending"))
        assert len(mutation.commands) == 9
        assert _failure(_plan("sequencer.track2.pattern", "random")).code is ErrorCode.DEPENDENCY_VIOLATION

    def test_enabled_toggle(self) -> None:
        """Toggling an unmuted track mutes it."""
        mutation = _mutation(_plan("sequencer.track1.enabled", action_type="toggle"))
        assert mutation.commands == (commands.sequencer("set_track_muted", 0, True),)

    def test_step_fields(self) -> None:
        """Step probability, ratchets and gate mode."""
        _mutation(_plan("sequencer.track1.step2.probability", 0.5))
        assert _failure(_plan("sequencer.track1.step2.ratchets", 9.0)).code is ErrorCode.ACTION_OUT_OF_RANGE
        gate = _mutation(_plan("sequencer.track1.step2.gateMode", "tie"))
        assert gate.commands == (commands.sequencer("set_stage_field", 0, 1, "gate_mode", "TIE"),)
        assert _failure(_plan("sequencer.track1.step2.gateLength", 0.0)).code is ErrorCode.ACTION_OUT_OF_RANGE

    def test_step_note_resolves_to_scale_slot(self) -> None:
        """In C major, E is the third slot."""
        mutation = _mutation(_plan("sequencer.track1.step1.note", "E4"))
        assert mutation.commands == (commands.sequencer("set_stage_field", 0, 0, "note_slot", 2),)

    def test_step_group_note(self) -> None:
        """stepGroupB writes stages 5..8."""
        mutation = _mutation(_plan("sequencer.track2.stepGroupB.note", "G"))
        assert [cmd.args[1] for cmd in mutation.commands] == [4, 5, 6, 7]


class TestChordRules:
    """sequencer.chords.*"""

    def test_preset(self) -> None:
        """Known presets write all eight steps."""
        mutation = _mutation(_plan("sequencer.chords.preset", "jazz"))
        assert len(mutation.commands) == 8
        assert mutation.events[0].payload == {"preset": "jazz", "name": "ii-V-I"}

    def test_unknown_preset(self) -> None:
        """Unknown presets list what is available."""
        failure = _failure(_plan("sequencer.chords.preset", "polka"))
        assert failure.code is ErrorCode.ACTION_PATH_UNKNOWN
        assert failure.message.startswith("Unknown preset 'polka'. Available: pop, emotional")

    def test_step_degree_defaults_quality(self) -> None:
        """Setting a degree on an empty step uses a major quality."""
        mutation = _mutation(_plan("sequencer.chords.step2.degree", "IV"))
        assert mutation.commands == (commands.chords("set_step", 1, "IV", "maj", True),)

    def test_step_bad_values(self) -> None:
        """Unknown degree or quality ids are ACTION_PATH_UNKNOWN."""
        assert _failure(_plan("sequencer.chords.step1.degree", "VIII")).code is ErrorCode.ACTION_PATH_UNKNOWN
        assert _failure(_plan("sequencer.chords.step1.quality", "weird")).code is ErrorCode.ACTION_PATH_UNKNOWN

    def test_invalid_step_number(self) -> None:
        """step9 is reported as an invalid step."""
        failure = _failure(_plan("sequencer.chords.step9.degree", "I"))
        assert failure.message == "Invalid step number"

    def test_clock_division(self) -> None:
        """Division aliases normalise."""
        mutation = _mutation(_plan("sequencer.chords.clockDivision", "1/8"))
        assert mutation.commands == (commands.chords("set_division", "/8"),)


class TestDrumRules:
    """drums.*"""

    def test_pattern(self) -> None:
        """fourOnTheFloor activates steps 1, 5, 9 and 13."""
        mutation = _mutation(_plan("drums.lane1.pattern", "fourOnTheFloor"))
        active = [cmd.args[1] for cmd in mutation.commands if cmd.args[2]]
        assert active == [0, 4, 8, 12]
        assert len(mutation.commands) == 16

    def test_note_range(self) -> None:
        """Lane notes are limited to MIDI 24..96."""
        assert _failure(_plan("drums.lane1.note", 100.0)).code is ErrorCode.ACTION_OUT_OF_RANGE
        mutation = _mutation(_plan("drums.lane1.note", 40.0))
        assert mutation.commands == (commands.drums("set_lane_field", 0, "note", 40),)

    def test_step_velocity(self) -> None:
        """Velocity keeps the step's active flag."""
        mutation = _mutation(_plan("drums.lane3.step5.velocity", 0.4))
        assert mutation.commands == (commands.drums("set_step", 2, 4, False, 0.4),)

    def test_lane_level_range(self) -> None:
        """Lane levels are unit range."""
        assert _failure(_plan("drums.lane2.level", -0.1)).code is ErrorCode.ACTION_OUT_OF_RANGE

    def test_current_step_is_read_only(self) -> None:
        """drums.currentStep cannot be set."""
        assert _failure(_plan("drums.currentStep", 3.0)).code is ErrorCode.ACTION_PATH_UNKNOWN


class TestRecordingRules:
    """Recording action types checked against simulated state."""

    def test_start_then_start_again_fails(self) -> None:
        """The simulation sees a voice started earlier in the bundle."""
        instrument = simulated_instrument()
        ctx = _ctx(instrument)
        first = _mutation(plan_action(Action(type="startRecording", target="loop.voiceA"), ctx))
        ctx.recording.apply(*first.recording)
        second = _failure(plan_action(Action(type="startRecording", target="loop.voiceA"), ctx))
        assert second.code is ErrorCode.RECORDING_ALREADY_ACTIVE
        assert not instrument.engine.is_recording(1)

    def test_stop_idle_voice(self) -> None:
        """Stopping a voice that is not recording fails."""
        failure = _failure(_plan("granular.voiceA", action_type="stopRecording"))
        assert failure.code is ErrorCode.RECORDING_NOT_ACTIVE

    def test_feedback_requires_live_loop(self) -> None:
        """Granular voices default to one-shot mode."""
        failure = _failure(_plan("granular.voiceA.recording.feedback", 0.5))
        assert failure.code is ErrorCode.RECORDING_FEEDBACK_UNSUPPORTED
        mutation = _mutation(_plan("loop.voiceB.recording.feedback", 0.3))
        assert mutation.events[0].payload == {"voiceId": "loop.voiceB", "previous": 0.5, "current": 0.3}

    def test_feedback_range(self) -> None:
        """Feedback outside [0, 1] is out of range."""
        failure = _failure(_plan("loop.voiceA.recording.feedback", 1.5))
        assert failure.code is ErrorCode.ACTION_OUT_OF_RANGE

    def test_mode_unchanged_is_a_no_op(self) -> None:
        """Setting the current mode changes no state."""
        mutation = _mutation(_plan("loop.voiceA.recording.mode", "overdub"))
        assert not mutation.changes_state
        assert _failure(_plan("loop.voiceA.recording.mode", "bounce")).code is ErrorCode.RECORDING_MODE_UNSUPPORTED

    def test_policy_can_forbid_recording(self) -> None:
        """allowRecording=false rejects recording actions."""
        instrument = simulated_instrument()
        failure = _failure(plan_action(
            Action(type="startRecording", target="loop.voiceA"), _ctx(instrument, allow_recording=False)
        ))
        assert failure.message == "Recording actions are not allowed by policy"

    def test_unknown_voice(self) -> None:
        """Recording types need a known voice prefix."""
        assert _failure(_plan("loop.voiceZ", action_type="startRecording")).code is ErrorCode.DEPENDENCY_VIOLATION
