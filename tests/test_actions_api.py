"""
Integration tests for the action bundle endpoints.

The instrument's sample clock is frozen at zero so the transport sits at
bar 1 beat 1: bundles with no time spec fire on the next loop turn and
``next_bar`` bundles stay pending for two seconds at 120 bpm.
"""
from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

from grainbridge.actions.state_machine import BundleStatus
from grainbridge.bridge import ControlBridge
from grainbridge.daw.instrument import Instrument
from grainbridge.daw.memory import simulated_instrument


@pytest.fixture
def instrument() -> Instrument:
    return simulated_instrument(clock=lambda: 0.0)


def _bundle(bundle_id: str, *actions: dict[str, Any], **extra: Any) -> dict[str, Any]:
    return {"bundleId": bundle_id, "actions": list(actions), **extra}


def _tempo(bpm: float, action_id: str = "tempo", **extra: Any) -> dict[str, Any]:
    return {"actionId": action_id, "type": "set", "target": "session.tempoBpm", "value": bpm, **extra}


def _size(ms: float, action_id: str = "size") -> dict[str, Any]:
    return {"actionId": action_id, "type": "set", "target": "granular.voiceA.sizeMs", "value": ms}


def _start_recording(voice_id: str = "loop.voiceA") -> dict[str, Any]:
    return {"actionId": "rec", "type": "startRecording", "target": voice_id}


def _schedule_body(bundle: dict[str, Any], key: str, apply_mode: str = "immediate", **extra: Any) -> dict[str, Any]:
    return {"bundle": bundle, "applyMode": apply_mode, "idempotencyKey": key, **extra}


def _status_is(bridge: ControlBridge, bundle_id: str, status: BundleStatus) -> Any:
    def check() -> bool:
        state = bridge.registry.get(bundle_id)
        return state is not None and state.status is status
    return check


class TestValidate:
    """POST /v1/actions/validate"""

    async def test_valid_low_risk(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """A clean bundle validates without a confirmation token."""
        response = await client.post(
            "/v1/actions/validate",
            json={"bundle": _bundle("b1", _tempo(96.0))},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["validationId"].startswith("val_")
        assert data["risk"] == "low"
        assert data["requiresConfirmation"] is False
        assert data["confirmationToken"] is None
        assert data["confirmationTokenExpiresAt"] is None
        assert data["normalizedBundle"]["bundleId"] == "b1"
        assert data["musicalDiff"]["changes"] == [{"path": "session.tempoBpm", "before": None, "after": 96.0}]
        assert data["errors"] == []

    async def test_high_risk_issues_token(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """Recording starts require confirmation."""
        response = await client.post(
            "/v1/actions/validate",
            json={"bundle": _bundle("b1", _start_recording())},
            headers=auth_headers,
        )
        data = response.json()
        assert data["risk"] == "high"
        assert data["requiresConfirmation"] is True
        assert len(data["confirmationToken"]) == 32
        assert data["confirmationTokenExpiresAt"].endswith("Z")

    async def test_errors_are_listed(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """Failures come back as actionId/code/message triples."""
        response = await client.post(
            "/v1/actions/validate",
            json={"bundle": _bundle("b1", _tempo(10.0, "slow")), "policy": {"maxRisk": "low"}},
            headers=auth_headers,
        )
        data = response.json()
        assert data["valid"] is False
        assert data["errors"] == [{
            "actionId": "slow",
            "code": "ACTION_OUT_OF_RANGE",
            "message": "session.tempoBpm must be a number between 20 and 300",
        }]

    async def test_validation_has_no_side_effects(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge
    ) -> None:
        """Validating never bumps the state version."""
        await client.post(
            "/v1/actions/validate", json={"bundle": _bundle("b1", _tempo(96.0))}, headers=auth_headers
        )
        assert bridge.state_version == 1
        assert bridge.instrument.bpm() == 120.0

    async def test_bad_body(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """A body without a bundle is a 400."""
        response = await client.post("/v1/actions/validate", json={"policy": {}}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid validate actions payload"


class TestSchedule:
    """POST /v1/actions/schedule"""

    async def test_schedule_and_apply(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
        session: dict[str, Any],
        bridge: ControlBridge,
        wait_until: Any,
    ) -> None:
        """202 now; the bundle applies on the next loop turn."""
        response = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(_bundle("b1", _tempo(132.0)), "key-1"),
            headers=auth_headers,
        )
        assert response.status_code == 202
        data = response.json()
        assert data == {
            "bundleId": "b1",
            "status": "scheduled",
            "idempotentReplay": False,
            "scheduledAtTransport": {"bar": 1, "beat": 1.0},
            "stateVersion": 1,
            "resultStatus": "scheduled",
            "errors": [],
        }
        await wait_until(_status_is(bridge, "b1", BundleStatus.APPLIED))
        assert bridge.instrument.bpm() == 132.0
        assert bridge.state_version == 2

        types = [event.type for event in bridge.hub.log]
        assert types == [
            "actions.bundle_scheduled",
            "actions.bundle_started",
            "session.tempoBpm_changed",
            "state.changed",
            "actions.bundle_applied",
        ]
        assert {event.session_id for event in bridge.hub.log} == {session["sessionId"]}

    async def test_next_bar_anchor(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """next_bar from bar 1 beat 1 targets bar 2."""
        bundle = _bundle("b1", _tempo(100.0, time={"anchor": "next_bar"}))
        response = await client.post(
            "/v1/actions/schedule", json=_schedule_body(bundle, "key-1"), headers=auth_headers
        )
        assert response.json()["scheduledAtTransport"] == {"bar": 2, "beat": 1.0}

    async def test_idempotent_replay(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge
    ) -> None:
        """The same key and body replays the first response with 200."""
        body = _schedule_body(_bundle("b1", _tempo(100.0, time={"anchor": "next_bar"})), "key-1")
        first = await client.post("/v1/actions/schedule", json=body, headers=auth_headers)
        second = await client.post("/v1/actions/schedule", json=body, headers=auth_headers)
        assert first.status_code == 202
        assert second.status_code == 200
        assert second.json() == {**first.json(), "idempotentReplay": True}
        assert len(bridge.registry) == 1

    async def test_idempotency_conflict(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """Reusing a key for a different bundle is a 409."""
        await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(_bundle("b1", _tempo(100.0)), "key-1"),
            headers=auth_headers,
        )
        response = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(_bundle("b2", _tempo(110.0)), "key-1"),
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "IDEMPOTENCY_KEY_CONFLICT"

    async def test_stale_state_version(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """A mismatched preconditionStateVersion is a 409 with details."""
        bundle = _bundle("b1", _tempo(100.0), preconditionStateVersion=99)
        response = await client.post(
            "/v1/actions/schedule", json=_schedule_body(bundle, "key-1"), headers=auth_headers
        )
        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "STALE_STATE_VERSION"
        assert error["details"] == {"provided": 99, "current": 1}

    async def test_matching_state_version(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """The current version is accepted."""
        bundle = _bundle("b1", _tempo(100.0), preconditionStateVersion=1)
        response = await client.post(
            "/v1/actions/schedule", json=_schedule_body(bundle, "key-1"), headers=auth_headers
        )
        assert response.status_code == 202

    async def test_bad_body(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """idempotencyKey is required."""
        response = await client.post(
            "/v1/actions/schedule",
            json={"bundle": _bundle("b1", _tempo(100.0)), "applyMode": "immediate"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid schedule actions payload"


class TestValidatedOnly:
    """applyMode=validated_only redeems a ValidationRecord."""

    async def _validate(self, client: AsyncClient, headers: dict[str, str], bundle: dict[str, Any]) -> dict[str, Any]:
        response = await client.post("/v1/actions/validate", json={"bundle": bundle}, headers=headers)
        assert response.status_code == 200
        return response.json()

    async def test_requires_validation_id(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """A bundle with no validationId is a 422."""
        response = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(_bundle("b1", _tempo(100.0)), "key-1", "validated_only"),
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "validationId is required for validated_only applyMode"

    async def test_low_risk_redeems(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """A validated low-risk bundle needs no token."""
        bundle = _bundle("b1", _tempo(100.0))
        validation = await self._validate(client, auth_headers, bundle)
        bundle["validationId"] = validation["validationId"]
        response = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(bundle, "key-1", "validated_only"),
            headers=auth_headers,
        )
        assert response.status_code == 202
        await wait_until(_status_is(bridge, "b1", BundleStatus.APPLIED))

    async def test_modified_bundle_is_refused(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """The bundle must match what was validated."""
        validation = await self._validate(client, auth_headers, _bundle("b1", _tempo(100.0)))
        tampered = _bundle("b1", _tempo(250.0), validationId=validation["validationId"])
        response = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(tampered, "key-1", "validated_only"),
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Validation record does not match bundle payload"

    async def test_invalid_bundle_must_be_revalidated(
        self, client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """An invalid validation cannot be redeemed."""
        bundle = _bundle("b1", _tempo(5.0))
        validation = await self._validate(client, auth_headers, bundle)
        bundle["validationId"] = validation["validationId"]
        response = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(bundle, "key-1", "validated_only"),
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Bundle must be revalidated after validation errors"

    async def test_confirmation_gating(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """High risk needs the matching token; with it the recording starts."""
        bundle = _bundle("b1", _start_recording("loop.voiceB"))
        validation = await self._validate(client, auth_headers, bundle)
        bundle["validationId"] = validation["validationId"]

        missing = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(bundle, "key-1", "validated_only"),
            headers=auth_headers,
        )
        assert missing.status_code == 422
        assert missing.json()["error"]["code"] == "CONFIRMATION_TOKEN_EXPIRED"

        wrong = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(bundle, "key-2", "validated_only", confirmationToken="0" * 32),
            headers=auth_headers,
        )
        assert wrong.status_code == 422

        accepted = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(
                bundle, "key-3", "validated_only", confirmationToken=validation["confirmationToken"]
            ),
            headers=auth_headers,
        )
        assert accepted.status_code == 202
        await wait_until(_status_is(bridge, "b1", BundleStatus.APPLIED))
        assert bridge.instrument.engine.is_recording(2)

    async def test_expired_validation(
        self, client: AsyncClient, auth_headers: dict[str, str], clock: Any
    ) -> None:
        """Records lapse after the validation TTL."""
        bundle = _bundle("b1", _tempo(100.0))
        validation = await self._validate(client, auth_headers, bundle)
        bundle["validationId"] = validation["validationId"]
        clock.advance(301)
        response = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(bundle, "key-1", "validated_only"),
            headers=auth_headers,
        )
        assert response.status_code == 422

    async def test_other_modes_skip_validation(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """Without validated_only a high-risk bundle schedules directly."""
        response = await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(_bundle("b1", _start_recording()), "key-1"),
            headers=auth_headers,
        )
        assert response.status_code == 202
        await wait_until(_status_is(bridge, "b1", BundleStatus.APPLIED))


class TestExecutionModes:
    """best_effort, atomic and the default abort."""

    async def test_best_effort(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """One bad action out of three leaves two applied."""
        bundle = _bundle("b1", _tempo(140.0), _size(0.0, "bad"), _size(500.0))
        await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(bundle, "key-1", "best_effort"),
            headers=auth_headers,
        )
        await wait_until(_status_is(bridge, "b1", BundleStatus.PARTIALLY_APPLIED))
        assert bridge.instrument.bpm() == 140.0
        assert bridge.instrument.parameter("granular.voiceA.sizeMs") == pytest.approx(0.2)

        listed = await client.get("/v1/actions/scheduled", headers=auth_headers)
        assert listed.json() == [{
            "bundleId": "b1",
            "intentId": None,
            "status": "partially_applied",
            "scheduledAtTransport": {"bar": 1, "beat": 1.0},
            "stateVersion": 3,
            "errors": ["DEPENDENCY_VIOLATION"],
        }]
        applied = [event for event in bridge.hub.log if event.type == "actions.bundle_applied"]
        assert applied[0].payload["errors"][0]["actionId"] == "bad"

    async def test_atomic_rejects_with_no_side_effects(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """An atomic bundle with one bad action changes nothing."""
        bundle = _bundle("b1", _tempo(140.0), _size(0.0, "bad"), atomic=True)
        await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(bundle, "key-1", "best_effort"),
            headers=auth_headers,
        )
        await wait_until(_status_is(bridge, "b1", BundleStatus.REJECTED))
        assert bridge.instrument.bpm() == 120.0
        assert bridge.state_version == 1
        assert "state.changed" not in [event.type for event in bridge.hub.log]
        assert list(bridge.hub.log)[-1].type == "actions.bundle_rejected"

    async def test_default_mode_aborts(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """Without best_effort the first failure stops the bundle."""
        bundle = _bundle("b1", _tempo(140.0), _size(0.0, "bad"), _tempo(90.0, "later"))
        await client.post("/v1/actions/schedule", json=_schedule_body(bundle, "key-1"), headers=auth_headers)
        await wait_until(_status_is(bridge, "b1", BundleStatus.REJECTED))
        assert bridge.instrument.bpm() == 140.0


class TestCancel:
    """POST /v1/actions/{bundleId}/cancel"""

    async def test_cancel_pending_bundle(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge
    ) -> None:
        """A scheduled bundle cancels and never runs."""
        bundle = _bundle("b1", _tempo(100.0, time={"anchor": "next_bar"}))
        await client.post("/v1/actions/schedule", json=_schedule_body(bundle, "key-1"), headers=auth_headers)
        response = await client.post("/v1/actions/b1/cancel", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"bundleId": "b1", "status": "canceled"}
        assert bridge.scheduler.pending_count == 0
        assert list(bridge.hub.log)[-1].type == "actions.bundle_canceled"

    async def test_cancel_twice(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge
    ) -> None:
        """A second cancel reports the status and emits nothing."""
        bundle = _bundle("b1", _tempo(100.0, time={"anchor": "next_bar"}))
        await client.post("/v1/actions/schedule", json=_schedule_body(bundle, "key-1"), headers=auth_headers)
        await client.post("/v1/actions/b1/cancel", headers=auth_headers)
        seq = bridge.hub.last_seq
        response = await client.post("/v1/actions/b1/cancel", headers=auth_headers)
        assert response.json()["status"] == "canceled"
        assert bridge.hub.last_seq == seq

    async def test_cancel_applied_bundle(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """Finished bundles keep their terminal status."""
        await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(_bundle("b1", _tempo(100.0)), "key-1"),
            headers=auth_headers,
        )
        await wait_until(_status_is(bridge, "b1", BundleStatus.APPLIED))
        response = await client.post("/v1/actions/b1/cancel", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"bundleId": "b1", "status": "applied"}

    async def test_cancel_unknown(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """Unknown bundle ids are 404."""
        response = await client.post("/v1/actions/missing/cancel", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Bundle not found"

    async def test_scheduled_list_is_empty_initially(
        self, client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """GET /v1/actions/scheduled starts as an empty list."""
        response = await client.get("/v1/actions/scheduled", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == []


class TestNonFiniteValues:
    """inf and nan values fail per action instead of breaking the request."""

    def _ratchets(self, raw: str) -> dict[str, Any]:
        return {"actionId": "ratchets", "type": "set", "target": "sequencer.track1.step1.ratchets", "value": raw}

    async def test_validate_lists_the_failure(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """The bad action shows up in errors with a 200."""
        response = await client.post(
            "/v1/actions/validate",
            json={"bundle": _bundle("b1", _tempo(99.0), self._ratchets("inf"))},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert [(e["actionId"], e["code"]) for e in data["errors"]] == [("ratchets", "DEPENDENCY_VIOLATION")]

    async def test_best_effort_reaches_a_terminal_status(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """The finite action applies and the bundle finishes."""
        bundle = _bundle("b1", _tempo(99.0), self._ratchets("nan"))
        await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(bundle, "key-1", "best_effort"),
            headers=auth_headers,
        )
        await wait_until(_status_is(bridge, "b1", BundleStatus.PARTIALLY_APPLIED))
        assert bridge.instrument.bpm() == 99.0
        assert list(bridge.hub.log)[-1].type == "actions.bundle_applied"


class TestExecutionFailure:
    """An unexpected error while executing still ends the bundle."""

    async def test_bundle_is_rejected(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
        bridge: ControlBridge,
        wait_until: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """The bundle moves to rejected with INTERNAL_ERROR and an event."""

        def explode(*args: Any, **kwargs: Any) -> None:
            raise RuntimeError("engine fault")

        monkeypatch.setattr(bridge.engine, "execute", explode)
        await client.post(
            "/v1/actions/schedule",
            json=_schedule_body(_bundle("b1", _tempo(99.0)), "key-1"),
            headers=auth_headers,
        )
        await wait_until(_status_is(bridge, "b1", BundleStatus.REJECTED))
        assert bridge.registry.get("b1").error_codes == ["INTERNAL_ERROR"]

        rejected = list(bridge.hub.log)[-1]
        assert rejected.type == "actions.bundle_rejected"
        assert rejected.payload["errors"][0]["code"] == "INTERNAL_ERROR"
        assert rejected.payload["risk"] == "low"

        listed = await client.get("/v1/actions/scheduled", headers=auth_headers)
        assert listed.json()[0]["status"] == "rejected"
