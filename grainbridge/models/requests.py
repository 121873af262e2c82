"""Request bodies accepted by the control plane.

Every body is parsed through one of these models before any state is
touched; a ``pydantic.ValidationError`` becomes a 400 envelope.
"""
from __future__ import annotations

from typing import Union

from pydantic import Field

from grainbridge.models.base import CamelModel

JSONScalar = Union[bool, float, str, None]
"""Loosely typed action value: a flag, a number, a symbolic name, or null."""


class ClientDescriptor(CamelModel):
    name: str
    version: str


class CreateSessionRequest(CamelModel):
    """Body of ``POST /v1/sessions``."""

    client: ClientDescriptor
    requested_scopes: list[str]
    user_label: str | None = None


class TimeSpec(CamelModel):
    """Symbolic musical time: an anchor plus an optional quantization grid."""

    anchor: str | None = None
    quantization: str | None = None
    duration_ms: float | None = None
    duration_beats: float | None = None
    duration_bars: float | None = None


class Action(CamelModel):
    """One typed action inside a bundle."""

    action_id: str | None = None
    type: str
    target: str | None = None
    value: JSONScalar = None
    from_: float | None = Field(default=None, alias="from")
    to: float | None = None
    curve: str | None = None
    time: TimeSpec | None = None
    reason: str | None = None


class ActionBundle(CamelModel):
    """An ordered set of actions submitted and scheduled as one unit."""

    bundle_id: str
    intent_id: str | None = None
    validation_id: str | None = None
    precondition_state_version: int | None = None
    atomic: bool = False
    require_confirmation: bool | None = None
    actions: list[Action]

    def first_time_spec(self) -> TimeSpec | None:
        """The ``time`` of the first action that carries one."""
        for action in self.actions:
            if action.time is not None:
                return action.time
        return None


class Policy(CamelModel):
    """Caller-supplied limits applied during validation."""

    max_risk: str | None = None
    lock_modules: list[str] | None = None
    allow_file_loads: bool | None = None
    allow_recording: bool | None = None
    require_diff_for_risk_at_least: str | None = None


class ValidateActionsRequest(CamelModel):
    """Body of ``POST /v1/actions/validate``."""

    bundle: ActionBundle
    policy: Policy | None = None


class ScheduleActionsRequest(CamelModel):
    """Body of ``POST /v1/actions/schedule``."""

    bundle: ActionBundle
    apply_mode: str
    confirmation_token: str | None = None
    idempotency_key: str


class StateQueryRequest(CamelModel):
    paths: list[str]


class RecordingStartRequest(CamelModel):
    mode: str
    feedback: float | None = None
    source_type: str | None = None
    source_channel: int | None = None
    time: TimeSpec | None = None
    idempotency_key: str


class RecordingStopRequest(CamelModel):
    time: TimeSpec | None = None
    idempotency_key: str


class RecordingFeedbackRequest(CamelModel):
    value: float
    time: TimeSpec | None = None
    idempotency_key: str


class RecordingModeRequest(CamelModel):
    mode: str
    time: TimeSpec | None = None
    idempotency_key: str
