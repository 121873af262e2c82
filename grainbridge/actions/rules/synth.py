"""Synth voice targets: model selection and continuous parameters."""

from __future__ import annotations

from typing import Callable

from grainbridge.actions.rules.base import (
    RuleContext,
    RuleResult,
    bad_value,
    in_unit_range,
    out_of_range,
    single,
)
from grainbridge.actions.targets import SynthModeTarget, SynthParamTarget
from grainbridge.actions.values import numeric_value, text_value
from grainbridge.daw import commands
from grainbridge.daw.catalog import (
    SAMPLER_MODES,
    SYNTH_DISPLAY,
    daisydrum_model_normalized,
    macro_osc_model_normalized,
    resonator_model_normalized,
    synth_param_key,
)
from grainbridge.models.requests import Action

_MODEL_LOOKUPS: dict[str, Callable[[str], float | None]] = {
    "macro_osc": macro_osc_model_normalized,
    "resonator": resonator_model_normalized,
    "daisydrum": daisydrum_model_normalized,
}


def plan_synth_mode(action: Action, target: SynthModeTarget, ctx: RuleContext) -> RuleResult:
    synth = target.synth
    mode = text_value(action)

    if synth == "sampler":
        if mode not in SAMPLER_MODES:
            return out_of_range(action, 'Sampler mode must be "soundfont", "sfz", or "wavsampler"')
        return single(
            "synth.sampler.mode",
            "synth.sampler_mode_changed",
            {"mode": mode},
            commands.engine("set_sampler_mode", mode),
        )

    normalized = _MODEL_LOOKUPS[synth](mode) if mode is not None else None
    if normalized is None:
        return bad_value(action, f"Unsupported {synth} mode")
    return single(
        f"synth.{synth}.mode",
        "synth.mode_changed",
        {"synth": synth, "mode": mode},
        commands.engine("set_parameter", synth_param_key(synth, "mode"), normalized),
    )


def _range_message(synth: str, param: str) -> str:
    if synth != "sampler":
        return f"{SYNTH_DISPLAY[synth]} {param} must be within [0.0, 1.0]"
    if param == "preset":
        return "Sampler preset must be within [0.0, 1.0] (normalized)"
    if param == "tuning":
        return "Sampler tuning must be within [0.0, 1.0] (0.5 = center)"
    return "Sampler parameter must be within [0.0, 1.0]"


def plan_synth_param(action: Action, target: SynthParamTarget, ctx: RuleContext) -> RuleResult:
    value = numeric_value(action)
    if not in_unit_range(value):
        return out_of_range(action, _range_message(target.synth, target.param))
    return single(
        target.path,
        "synth.param_changed",
        {"synth": target.synth, "param": target.param, "value": value},
        commands.engine("set_parameter", synth_param_key(target.synth, target.param), value),
    )
