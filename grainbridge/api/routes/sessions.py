"""
Session endpoints.

``POST /v1/sessions`` is the only way to obtain a bearer token and needs
no authorization itself.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from grainbridge.api.router import RequestContext, Router
from grainbridge.errors import not_found
from grainbridge.models.requests import CreateSessionRequest
from grainbridge.services.capabilities import capabilities_payload
from grainbridge.transport.http import HTTPResponse

logger = logging.getLogger(__name__)

router = Router()


@router.post("/v1/sessions", public=True)
def create_session(ctx: RequestContext) -> HTTPResponse:
    """Mint a session and bearer token for a client."""
    body = ctx.parse(CreateSessionRequest, "Invalid session request payload")
    session = ctx.bridge.sessions.create(
        body.requested_scopes,
        client_name=body.client.name,
        client_version=body.client.version,
        user_label=body.user_label,
    )
    return HTTPResponse.json(HTTPStatus.CREATED, {
        "sessionId": session.session_id,
        "token": session.token,
        "expiresAt": session.expires_at_iso,
        "capabilities": capabilities_payload(session.scopes),
    })


@router.delete("/v1/sessions/{session_id}")
def delete_session(ctx: RequestContext) -> HTTPResponse:
    if not ctx.bridge.sessions.delete(ctx.params["session_id"]):
        raise not_found("Session not found")
    return HTTPResponse.empty(HTTPStatus.NO_CONTENT)
