"""Deterministic request and bundle hashing.

Rules:
  - Serialization is canonical: sorted keys, no whitespace, json.dumps.
  - Hash is SHA-256 hex.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """Serialize with sorted keys and compact separators."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def request_signature(method: str, path: str, body: bytes) -> str:
    """Signature of a mutating request used by the idempotency cache."""
    return sha256_hex(method.upper().encode("utf-8") + b"|" + path.encode("utf-8") + b"|" + body)


def bundle_signature(bundle_dict: dict[str, Any]) -> str:
    """Signature of a bundle, ignoring its own ``validationId``.

    A bundle redeemed against a validation record must hash identically
    to the bundle that was validated.
    """
    canonical = dict(bundle_dict)
    canonical["validationId"] = None
    return sha256_hex(canonical_json(canonical).encode("utf-8"))
