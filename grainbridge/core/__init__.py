"""Core control-plane primitives: timing, idempotency, deferred work, hashing."""
