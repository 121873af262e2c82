"""Tests for the idempotency cache and request/bundle signatures."""
from __future__ import annotations

import pytest

from grainbridge.core.hashing import bundle_signature, canonical_json, request_signature
from grainbridge.core.idempotency import IdempotencyCache
from grainbridge.errors import BridgeError, ErrorCode


class TestSignatures:
    """Deterministic hashing."""

    def test_canonical_json_sorts_keys(self) -> None:
        """Key order and whitespace never change the serialization."""
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_request_signature_covers_method_path_and_body(self) -> None:
        """Changing any component changes the signature."""
        base = request_signature("POST", "/v1/actions/schedule", b"{}")
        assert base == request_signature("post", "/v1/actions/schedule", b"{}")
        assert base != request_signature("POST", "/v1/actions/validate", b"{}")
        assert base != request_signature("POST", "/v1/actions/schedule", b"{ }")

    def test_bundle_signature_ignores_validation_id(self) -> None:
        """A redeemed bundle hashes like the one that was validated."""
        bundle = {"bundleId": "b1", "actions": [], "validationId": None}
        assert bundle_signature(bundle) == bundle_signature({**bundle, "validationId": "val_1"})
        assert bundle_signature(bundle) != bundle_signature({**bundle, "bundleId": "b2"})


class TestIdempotencyCache:
    """Replay and conflict semantics."""

    def test_miss_then_replay(self) -> None:
        """The first lookup misses; after store the record replays."""
        cache = IdempotencyCache()
        assert cache.lookup("key-1", "sig") is None
        cache.store("key-1", "sig", 202, {"bundleId": "b1"})
        record = cache.lookup("key-1", "sig")
        assert record is not None
        assert record.status_code == 202
        assert record.body == {"bundleId": "b1"}
        assert len(cache) == 1

    def test_conflicting_signature(self) -> None:
        """Reusing a key with another payload is a 409."""
        cache = IdempotencyCache()
        cache.store("key-1", "sig-a", 202, {})
        with pytest.raises(BridgeError) as exc_info:
            cache.lookup("key-1", "sig-b")
        assert exc_info.value.status_code == 409
        assert exc_info.value.code is ErrorCode.IDEMPOTENCY_KEY_CONFLICT

    def test_stored_body_is_a_copy(self) -> None:
        """Mutating the caller's dict does not alter the record."""
        cache = IdempotencyCache()
        body: dict[str, object] = {"status": "scheduled"}
        cache.store("k", "s", 202, body)
        body["status"] = "changed"
        record = cache.lookup("k", "s")
        assert record is not None
        assert record.body == {"status": "scheduled"}

    def test_clear(self) -> None:
        """clear() forgets every key."""
        cache = IdempotencyCache()
        cache.store("k", "s", 200, {})
        cache.clear()
        assert cache.lookup("k", "other") is None
