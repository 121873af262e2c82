"""
WebSocket broadcaster for the global event stream.

Architecture:
    EventHub.emit(event) -> EventLog.append -> EventBroadcaster.publish -> sockets

Subscribers get no private buffering beyond the shared log: an event is
written to every connected socket as soon as it is appended.  A
reconnecting client catches up through ``EventLog.replay``.
"""

from __future__ import annotations

import logging
from typing import Protocol

from grainbridge.events.envelope import BridgeEvent

logger = logging.getLogger(__name__)


class EventSubscriber(Protocol):
    """Anything that can receive a serialized event (a WebSocket connection)."""

    @property
    def subscriber_id(self) -> str:
        ...

    def send_text(self, message: str) -> None:
        ...

    def close(self) -> None:
        ...


class EventBroadcaster:
    """Fans events out to every connected subscriber."""

    def __init__(self) -> None:
        self._subscribers: dict[str, EventSubscriber] = {}

    def subscribe(self, subscriber: EventSubscriber) -> None:
        self._subscribers[subscriber.subscriber_id] = subscriber
        logger.debug(f"Subscriber {subscriber.subscriber_id} joined ({len(self._subscribers)} total)")

    def unsubscribe(self, subscriber_id: str) -> None:
        if self._subscribers.pop(subscriber_id, None) is not None:
            logger.debug(f"Subscriber {subscriber_id} left ({len(self._subscribers)} total)")

    def send(self, subscriber: EventSubscriber, events: list[BridgeEvent]) -> None:
        """Deliver *events* to one subscriber (replay path)."""
        for event in events:
            subscriber.send_text(event.to_json())

    def publish(self, event: BridgeEvent) -> int:
        """Push *event* to all subscribers; returns how many were reached."""
        message = event.to_json()
        delivered = 0
        for subscriber_id, subscriber in list(self._subscribers.items()):
            try:
                subscriber.send_text(message)
                delivered += 1
            except (ConnectionError, RuntimeError) as exc:
                logger.warning(f"Dropping subscriber {subscriber_id}: {exc}")
                self.unsubscribe(subscriber_id)
        return delivered

    def close_all(self) -> None:
        """Close every subscriber (server shutdown)."""
        for subscriber in list(self._subscribers.values()):
            subscriber.close()
        self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
