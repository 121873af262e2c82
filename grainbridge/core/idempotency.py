"""
In-memory idempotency cache.

Maps a client-supplied idempotency key to the response produced the first
time the key was used, together with a signature of the request that
produced it.  All access happens on the event loop, so the
check-then-store sequence needs no lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus

from grainbridge.errors import BridgeError, ErrorCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdempotencyRecord:
    """A stored response for one idempotency key."""

    signature: str
    status_code: int
    body: dict[str, object]


class IdempotencyCache:
    """Key -> ``IdempotencyRecord`` for the life of the process."""

    def __init__(self) -> None:
        self._records: dict[str, IdempotencyRecord] = {}

    def lookup(self, key: str, signature: str) -> IdempotencyRecord | None:
        """Return the stored record for a replay, ``None`` on a miss.

        Raises:
            BridgeError: 409 when *key* was used with a different signature.
        """
        record = self._records.get(key)
        if record is None:
            return None
        if record.signature != signature:
            logger.info(f"Idempotency conflict for key {key[:16]}")
            raise BridgeError(
                HTTPStatus.CONFLICT,
                ErrorCode.IDEMPOTENCY_KEY_CONFLICT,
                "Idempotency key was already used with a different payload",
            )
        logger.debug(f"Idempotent replay for key {key[:16]}")
        return record

    def store(self, key: str, signature: str, status_code: int, body: dict[str, object]) -> None:
        self._records[key] = IdempotencyRecord(
            signature=signature,
            status_code=int(status_code),
            body=dict(body),
        )

    def clear(self) -> None:
        """Clear all state (on shutdown / for testing)."""
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
