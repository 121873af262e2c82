"""API route modules."""
from __future__ import annotations

from grainbridge.api.routes import actions, debug, recording, sessions, state

__all__ = ["actions", "debug", "recording", "sessions", "state"]
