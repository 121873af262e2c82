"""Helpers shared by mutating routes: idempotent replay and recording."""

from __future__ import annotations

from grainbridge.api.router import RequestContext
from grainbridge.core.hashing import request_signature
from grainbridge.core.idempotency import IdempotencyRecord
from grainbridge.transport.http import HTTPResponse


def _signature(ctx: RequestContext) -> str:
    request = ctx.request
    return request_signature(request.method, request.path, request.body)


def idempotent_replay(ctx: RequestContext, key: str) -> IdempotencyRecord | None:
    """Stored record for *key*, ``None`` on a first use.

    Raises:
        BridgeError: 409 when *key* was used with a different request.
    """
    return ctx.bridge.idempotency.lookup(key, _signature(ctx))


def remember(ctx: RequestContext, key: str, response: HTTPResponse) -> HTTPResponse:
    """Store *response* under *key* and hand it back."""
    body = response.payload()
    ctx.bridge.idempotency.store(
        key,
        _signature(ctx),
        response.status_code,
        body if isinstance(body, dict) else {},
    )
    return response
