"""
In-memory bearer-token sessions.

Every route except session creation and the sample-time diagnostic needs
``Authorization: Bearer <token>``.  Sessions expire a fixed TTL after
creation; an expired session is evicted from both indices the first time
its token is presented, and tokens are never handed out twice.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field

from grainbridge.core.clock import Clock, iso_timestamp, system_clock

logger = logging.getLogger(__name__)


@dataclass
class Session:
    session_id: str
    token: str
    expires_at: float
    scopes: frozenset[str] = field(default_factory=frozenset)
    client_name: str = ""
    client_version: str = ""
    user_label: str | None = None

    @property
    def expires_at_iso(self) -> str:
        return iso_timestamp(self.expires_at)

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def parse_bearer(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


class SessionStore:
    """Token -> session and id -> session indices with lazy expiry."""

    def __init__(self, ttl_seconds: float = 3600.0, clock: Clock = system_clock) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._by_token: dict[str, Session] = {}
        self._by_id: dict[str, Session] = {}
        self._issued_tokens: set[str] = set()

    def create(
        self,
        scopes: list[str] | set[str],
        client_name: str = "",
        client_version: str = "",
        user_label: str | None = None,
    ) -> Session:
        session_id = f"sess_{secrets.token_hex(4)}"
        while session_id in self._by_id:
            session_id = f"sess_{secrets.token_hex(4)}"
        token = secrets.token_hex(16)
        while token in self._issued_tokens:
            token = secrets.token_hex(16)
        self._issued_tokens.add(token)

        session = Session(
            session_id=session_id,
            token=token,
            expires_at=self._clock() + self._ttl,
            scopes=frozenset(scopes),
            client_name=client_name,
            client_version=client_version,
            user_label=user_label,
        )
        self._by_token[token] = session
        self._by_id[session_id] = session
        logger.info(f"Session {session_id} created for {client_name or 'unknown client'}")
        return session

    def authenticate(self, authorization: str | None) -> Session | None:
        """Resolve an ``Authorization`` header to a live session."""
        token = parse_bearer(authorization)
        if token is None:
            return None
        session = self._by_token.get(token)
        if session is None:
            return None
        if session.is_expired(self._clock()):
            self._evict(session)
            logger.info(f"Session {session.session_id} expired")
            return None
        return session

    def delete(self, session_id: str) -> bool:
        session = self._by_id.get(session_id)
        if session is None:
            return False
        self._evict(session)
        logger.info(f"Session {session_id} deleted")
        return True

    def _evict(self, session: Session) -> None:
        self._by_token.pop(session.token, None)
        self._by_id.pop(session.session_id, None)

    def clear(self) -> None:
        self._by_token.clear()
        self._by_id.clear()

    def __len__(self) -> int:
        return len(self._by_id)
