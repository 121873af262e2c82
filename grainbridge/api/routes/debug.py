"""Unauthenticated diagnostics."""

from __future__ import annotations

from http import HTTPStatus

from grainbridge.api.router import RequestContext, Router
from grainbridge.transport.http import HTTPResponse

router = Router()


@router.get("/v1/debug/sampletime", public=True)
def sample_time(ctx: RequestContext) -> HTTPResponse:
    """Raw engine clock, straight from the audio engine."""
    instrument = ctx.bridge.instrument
    present = instrument.has_engine
    return HTTPResponse.json(HTTPStatus.OK, {
        "sampleTime": instrument.sample_time(),
        "clockRunning": instrument.clock_running(),
        "bpm": instrument.bpm() if present else 0.0,
        "handlePresent": present,
    })
