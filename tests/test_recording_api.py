"""Integration tests for ``/v1/recording/voices/{voiceId}/*``."""
from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

from grainbridge.bridge import ControlBridge
from grainbridge.daw.instrument import Instrument
from grainbridge.daw.memory import simulated_instrument


@pytest.fixture
def instrument() -> Instrument:
    return simulated_instrument(clock=lambda: 0.0)


def _recording(bridge: ControlBridge, reel: int) -> Any:
    return lambda: bridge.instrument.engine.is_recording(reel)


def _idle(bridge: ControlBridge, reel: int) -> Any:
    return lambda: not bridge.instrument.engine.is_recording(reel)


class TestStart:
    """POST .../start"""

    async def test_start_now(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """202 then the voice starts recording on the next loop turn."""
        response = await client.post(
            "/v1/recording/voices/loop.voiceA/start",
            json={"mode": "overdub", "feedback": 0.4, "idempotencyKey": "rec-1"},
            headers=auth_headers,
        )
        assert response.status_code == 202
        assert response.json() == {
            "voiceId": "loop.voiceA",
            "status": "scheduled",
            "scheduledAtTransport": {"bar": 1, "beat": 1.0},
        }
        await wait_until(_recording(bridge, 1))
        assert bridge.instrument.engine.recording_feedback(1) == 0.4

        started = [event for event in bridge.hub.log if event.type == "recording.started"]
        assert started[0].payload == {"voiceId": "loop.voiceA", "mode": "live_overdub", "feedback": 0.4}

    async def test_named_source_forces_channel(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """sourceType=drums records the drum bus on channel 6."""
        await client.post(
            "/v1/recording/voices/granular.voiceA/start",
            json={"mode": "replace", "sourceType": "drums", "sourceChannel": 2, "idempotencyKey": "rec-1"},
            headers=auth_headers,
        )
        await wait_until(_recording(bridge, 0))
        assert bridge.instrument.engine.recording_sources[0] == ("internal", 6)

    async def test_unknown_voice(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """Unknown voice ids are 404."""
        response = await client.post(
            "/v1/recording/voices/loop.voiceZ/start",
            json={"mode": "replace", "idempotencyKey": "rec-1"},
            headers=auth_headers,
        )
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Unknown voice id"

    @pytest.mark.parametrize(
        ("body", "code"),
        [
            ({"mode": "bounce"}, "RECORDING_MODE_UNSUPPORTED"),
            ({"mode": "replace", "sourceType": "radio"}, "DEPENDENCY_VIOLATION"),
            ({"mode": "replace", "sourceType": "internal", "sourceChannel": 12}, "ACTION_OUT_OF_RANGE"),
        ],
    )
    async def test_rejected_requests(
        self, client: AsyncClient, auth_headers: dict[str, str], body: dict[str, Any], code: str
    ) -> None:
        """Bad mode, source or channel are 422s."""
        response = await client.post(
            "/v1/recording/voices/loop.voiceA/start",
            json={**body, "idempotencyKey": "rec-1"},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == code

    async def test_already_recording(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """A second start on a live voice is RECORDING_ALREADY_ACTIVE."""
        await client.post(
            "/v1/recording/voices/loop.voiceA/start",
            json={"mode": "replace", "idempotencyKey": "rec-1"},
            headers=auth_headers,
        )
        await wait_until(_recording(bridge, 1))
        response = await client.post(
            "/v1/recording/voices/loop.voiceA/start",
            json={"mode": "replace", "idempotencyKey": "rec-2"},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "RECORDING_ALREADY_ACTIVE"

    async def test_idempotent_replay(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """A repeated key replays the stored 202 even once the voice is live."""
        body = {"mode": "replace", "idempotencyKey": "rec-1"}
        first = await client.post("/v1/recording/voices/loop.voiceA/start", json=body, headers=auth_headers)
        await wait_until(_recording(bridge, 1))
        second = await client.post("/v1/recording/voices/loop.voiceA/start", json=body, headers=auth_headers)
        assert second.status_code == 202
        assert second.json() == first.json()


class TestStop:
    """POST .../stop"""

    async def test_not_recording(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """Stopping an idle voice is RECORDING_NOT_ACTIVE."""
        response = await client.post(
            "/v1/recording/voices/loop.voiceB/stop",
            json={"idempotencyKey": "stop-1"},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "RECORDING_NOT_ACTIVE"

    async def test_start_then_stop(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """A live voice stops and a recording.stopped event follows."""
        await client.post(
            "/v1/recording/voices/loop.voiceB/start",
            json={"mode": "overdub", "idempotencyKey": "rec-1"},
            headers=auth_headers,
        )
        await wait_until(_recording(bridge, 2))
        response = await client.post(
            "/v1/recording/voices/loop.voiceB/stop",
            json={"idempotencyKey": "stop-1"},
            headers=auth_headers,
        )
        assert response.status_code == 202
        await wait_until(_idle(bridge, 2))
        assert "recording.stopped" in [event.type for event in bridge.hub.log]


class TestFeedbackAndMode:
    """POST .../feedback and .../mode"""

    async def test_feedback_on_live_loop(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """Loop voices accept feedback; the response names the target path."""
        response = await client.post(
            "/v1/recording/voices/loop.voiceA/feedback",
            json={"value": 0.8, "idempotencyKey": "fb-1"},
            headers=auth_headers,
        )
        assert response.status_code == 202
        assert response.json()["target"] == "loop.voiceA.recording.feedback"
        await wait_until(lambda: bridge.instrument.engine.recording_feedback(1) == 0.8)

    async def test_feedback_out_of_range(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """Values above 1 are ACTION_OUT_OF_RANGE."""
        response = await client.post(
            "/v1/recording/voices/loop.voiceA/feedback",
            json={"value": 1.2, "idempotencyKey": "fb-1"},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "ACTION_OUT_OF_RANGE"

    async def test_feedback_on_one_shot_voice(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        """Granular voices default to one-shot and refuse feedback."""
        response = await client.post(
            "/v1/recording/voices/granular.voiceB/feedback",
            json={"value": 0.2, "idempotencyKey": "fb-1"},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "RECORDING_FEEDBACK_UNSUPPORTED"

    async def test_mode_change(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge, wait_until: Any
    ) -> None:
        """replace switches a loop voice to one-shot."""
        response = await client.post(
            "/v1/recording/voices/loop.voiceA/mode",
            json={"mode": "replace", "idempotencyKey": "mode-1"},
            headers=auth_headers,
        )
        assert response.status_code == 202
        assert response.json()["target"] == "loop.voiceA.recording.mode"
        await wait_until(lambda: bridge.instrument.engine.recording_mode(1) == "oneShot")
        changed = [event for event in bridge.hub.log if event.type == "recording.mode_changed"]
        assert changed[0].payload == {"voiceId": "loop.voiceA", "previous": "live_overdub", "current": "replace"}

    async def test_unchanged_mode_emits_nothing(
        self, client: AsyncClient, auth_headers: dict[str, str], bridge: ControlBridge
    ) -> None:
        """Setting the current mode is accepted and then has no effect."""
        response = await client.post(
            "/v1/recording/voices/loop.voiceA/mode",
            json={"mode": "live_overdub", "idempotencyKey": "mode-1"},
            headers=auth_headers,
        )
        assert response.status_code == 202
        await client.get("/v1/state", headers=auth_headers)
        assert bridge.state_version == 1
        assert bridge.hub.last_seq == 0
