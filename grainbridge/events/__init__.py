"""Sequenced event log, WebSocket fan-out, and the state-version hub."""
