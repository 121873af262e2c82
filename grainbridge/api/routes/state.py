"""
Read endpoints: capabilities, parameters, canonical state, state queries,
the activity feed and the recording voice list.
"""

from __future__ import annotations

from http import HTTPStatus

from grainbridge.api.router import RequestContext, Router
from grainbridge.models.requests import StateQueryRequest
from grainbridge.services.capabilities import capabilities_payload, parameters_payload
from grainbridge.services.history import HistoryFilters, history_page
from grainbridge.services.state import canonical_state, query_value, recording_voices
from grainbridge.transport.http import HTTPResponse

router = Router()


@router.get("/v1/capabilities")
def get_capabilities(ctx: RequestContext) -> HTTPResponse:
    return HTTPResponse.json(HTTPStatus.OK, capabilities_payload())


@router.get("/v1/parameters")
def get_parameters(ctx: RequestContext) -> HTTPResponse:
    module = ctx.request.query.get("module") or None
    return HTTPResponse.json(HTTPStatus.OK, parameters_payload(module))


@router.get("/v1/state")
def get_state(ctx: RequestContext) -> HTTPResponse:
    bridge = ctx.bridge
    return HTTPResponse.json(HTTPStatus.OK, canonical_state(bridge.instrument, bridge.state_version))


@router.post("/v1/state/query")
def query_state(ctx: RequestContext) -> HTTPResponse:
    """Resolve a batch of dotted paths; unknown paths map to null."""
    body = ctx.parse(StateQueryRequest, "Invalid state query payload")
    instrument = ctx.bridge.instrument
    values = {path: query_value(instrument, path) for path in body.paths}
    return HTTPResponse.json(HTTPStatus.OK, {"values": values, "stateVersion": ctx.bridge.state_version})


@router.get("/v1/history")
def get_history(ctx: RequestContext) -> HTTPResponse:
    bridge = ctx.bridge
    filters = HistoryFilters.from_query(
        ctx.request.query,
        default_limit=bridge.settings.history_default_limit,
        max_limit=bridge.settings.history_max_limit,
    )
    page = history_page(bridge.hub.log, filters, ctx.session.session_id, bridge.state_version)
    return HTTPResponse.json(HTTPStatus.OK, page)


@router.get("/v1/recording/voices")
def list_recording_voices(ctx: RequestContext) -> HTTPResponse:
    return HTTPResponse.json(HTTPStatus.OK, recording_voices(ctx.bridge.instrument))
