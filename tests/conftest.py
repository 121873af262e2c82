"""Pytest configuration and fixtures."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import AsyncClient

from grainbridge.bridge import ControlBridge
from grainbridge.config import Settings
from grainbridge.daw.instrument import Instrument
from grainbridge.daw.memory import simulated_instrument
from grainbridge.transport.server import BridgeServer


def pytest_configure(config: pytest.Config) -> None:
    """Ensure asyncio_mode is auto so async fixtures work when pyproject is not in cwd."""
    if hasattr(config.option, "asyncio_mode") and config.option.asyncio_mode is None:
        config.option.asyncio_mode = "auto"
    logging.getLogger("httpcore").setLevel(logging.CRITICAL)


ALL_SCOPES = ["state:read", "actions:write", "recording:write"]


class FakeClock:
    """Epoch clock that only moves when a test says so."""

    def __init__(self, start: float = 1_760_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings bound to an ephemeral port."""
    return Settings(port=0, debug=True)


@pytest.fixture
def instrument() -> Instrument:
    return simulated_instrument()


@pytest.fixture
def bridge(instrument: Instrument, test_settings: Settings, clock: FakeClock) -> ControlBridge:
    return ControlBridge(instrument, test_settings, clock)


@pytest_asyncio.fixture
async def server(bridge: ControlBridge) -> AsyncGenerator[BridgeServer, None]:
    """A real server on 127.0.0.1:<ephemeral>."""
    async with BridgeServer(bridge, host="127.0.0.1", port=0) as running:
        yield running


@pytest_asyncio.fixture
async def client(server: BridgeServer) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(base_url=f"http://127.0.0.1:{server.port}", timeout=5.0) as ac:
        yield ac


@pytest_asyncio.fixture
async def session(client: AsyncClient) -> dict[str, object]:
    """A session holding every scope."""
    response = await client.post("/v1/sessions", json={
        "client": {"name": "pytest", "version": "1.0"},
        "requestedScopes": ALL_SCOPES,
    })
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def auth_headers(session: dict[str, object]) -> dict[str, str]:
    """Bearer header for ``session``."""
    return {"Authorization": f"Bearer {session['token']}"}


@pytest.fixture
def wait_until() -> Callable[[Callable[[], bool]], Awaitable[None]]:
    """Poll a predicate on the event loop until it holds (or fail after a timeout)."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not reached before timeout")
            await asyncio.sleep(0.01)

    return _wait
