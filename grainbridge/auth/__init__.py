"""Bearer-token sessions."""
from grainbridge.auth.sessions import Session, SessionStore, parse_bearer

__all__ = ["Session", "SessionStore", "parse_bearer"]
