"""HTTP API: routing table and route handlers."""
from __future__ import annotations

from grainbridge.api.router import Router


def build_router() -> Router:
    """The full route table, public routes included."""
    from grainbridge.api.routes import actions, debug, recording, sessions, state

    router = Router()
    for module in (sessions, debug, state, actions, recording):
        router.include(module.router)
    return router
