"""
Activity feed for ``GET /v1/history``.

Reads the retained event log newest first, hides events that belong to
other sessions and attaches a one-line human summary to each entry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from grainbridge.errors import bad_request
from grainbridge.events.envelope import STATE_CHANGED, BridgeEvent

_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "0", "no", "off"})


def bool_from_query(text: str | None) -> bool | None:
    if text is None:
        return None
    word = text.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def int_from_query(text: str | None) -> int | None:
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class HistoryFilters:
    limit: int
    after_seq: int | None = None
    before_seq: int | None = None
    include_state_changed: bool = True
    types: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_query(
        cls,
        query: dict[str, str],
        default_limit: int = 100,
        max_limit: int = 500,
    ) -> HistoryFilters:
        """Parse ``/v1/history`` query parameters.

        Raises:
            BridgeError: 400 when ``afterSeq >= beforeSeq``.
        """
        requested = int_from_query(query.get("limit"))
        limit = min(max(requested if requested is not None else default_limit, 1), max_limit)
        after_seq = int_from_query(query.get("afterSeq"))
        before_seq = int_from_query(query.get("beforeSeq"))
        if after_seq is not None and before_seq is not None and after_seq >= before_seq:
            raise bad_request("afterSeq must be less than beforeSeq")
        include = bool_from_query(query.get("includeStateChanged"))
        types = frozenset(
            part.strip() for part in query.get("types", "").split(",") if part.strip()
        )
        return cls(
            limit=limit,
            after_seq=after_seq,
            before_seq=before_seq,
            include_state_changed=True if include is None else include,
            types=types,
        )

    def admits(self, event: BridgeEvent, session_id: str) -> bool:
        if self.after_seq is not None and event.seq <= self.after_seq:
            return False
        if self.before_seq is not None and event.seq >= self.before_seq:
            return False
        if not self.include_state_changed and event.type == STATE_CHANGED:
            return False
        if self.types and event.type not in self.types:
            return False
        return event.session_id is None or event.session_id == session_id

    def to_dict(self) -> dict[str, object]:
        return {
            "afterSeq": self.after_seq,
            "beforeSeq": self.before_seq,
            "types": sorted(self.types),
            "includeStateChanged": self.include_state_changed,
        }


def _bundle(verb: str) -> Callable[[dict[str, object]], str]:
    return lambda payload: f"{verb} {payload.get('bundleId', 'bundle')}"


def _recording(what: str) -> Callable[[dict[str, object]], str]:
    return lambda payload: f"{what} on {payload.get('voiceId', 'voice')}"


def _state_changed(payload: dict[str, object]) -> str:
    paths = payload.get("changedPaths")
    if isinstance(paths, list) and paths:
        return f"State updated ({len(paths)} path{'' if len(paths) == 1 else 's'})"
    return "State updated"


_SUMMARIES: dict[str, Callable[[dict[str, object]], str]] = {
    "actions.bundle_scheduled": _bundle("Scheduled"),
    "actions.bundle_started": _bundle("Started"),
    "actions.bundle_applied": _bundle("Applied"),
    "actions.bundle_rejected": _bundle("Rejected"),
    "actions.bundle_canceled": _bundle("Canceled"),
    "recording.started": _recording("Recording started"),
    "recording.stopped": _recording("Recording stopped"),
    "recording.mode_changed": _recording("Recording mode changed"),
    "recording.feedback_changed": _recording("Recording feedback changed"),
    "session.key_changed": lambda payload: "Session key changed",
    "session.tempoBpm_changed": lambda payload: f"Tempo set to {payload.get('tempoBpm')} BPM",
    "sequencer.track_updated": lambda payload: (
        f"Track {payload.get('track', 0)} {payload.get('field', 'field')} updated"
    ),
    "sequencer.step_updated": lambda payload: (
        f"Track {payload.get('track', 0)} step {payload.get('step', 0)} "
        f"{payload.get('field', 'field')} updated"
    ),
    "synth.mode_changed": lambda payload: f"{payload.get('synth', 'synth')} mode changed",
    "granular.param_changed": lambda payload: f"{payload.get('path', 'param')} updated",
    "transport.playing_changed": lambda payload: (
        "Transport started" if payload.get("playing") else "Transport stopped"
    ),
    STATE_CHANGED: _state_changed,
}


def summarize(event_type: str, payload: dict[str, object]) -> str:
    summary = _SUMMARIES.get(event_type)
    return summary(payload) if summary is not None else event_type


def activity(event: BridgeEvent) -> dict[str, object]:
    entry = event.to_dict()
    entry["scope"] = "global" if event.session_id is None else "session"
    entry["summary"] = summarize(event.type, event.payload)
    return entry


def history_page(
    events: Iterable[BridgeEvent],
    filters: HistoryFilters,
    session_id: str,
    state_version: int,
) -> dict[str, object]:
    """Build the ``GET /v1/history`` response body."""
    matched = sorted(
        (event for event in events if filters.admits(event, session_id)),
        key=lambda event: event.seq,
        reverse=True,
    )
    has_more = len(matched) > filters.limit
    page = matched[: filters.limit]
    newest = page[0].seq if page else None
    oldest = page[-1].seq if page else None
    return {
        "sessionId": session_id,
        "stateVersion": state_version,
        "activities": [activity(event) for event in page],
        "paging": {
            "limit": filters.limit,
            "returned": len(page),
            "hasMore": has_more,
            "nextBeforeSeq": oldest if has_more else None,
            "newestSeq": newest,
            "oldestSeq": oldest,
        },
        "filters": filters.to_dict(),
    }
