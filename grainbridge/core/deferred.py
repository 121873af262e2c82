"""
Deferred work on the event loop.

Work items are armed with ``loop.call_soon`` (delay at or below the
inline threshold) or ``loop.call_later`` and keyed so they can be
canceled.  Everything runs on the single loop thread, which is what keeps
the shared stores free of locks.  Callbacks must re-check the state they
act on when they fire.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class DeferredScheduler:
    """Keyed one-shot timers on the running event loop."""

    def __init__(self, inline_threshold_seconds: float = 0.005) -> None:
        self._inline_threshold = inline_threshold_seconds
        self._handles: dict[str, asyncio.Handle] = {}
        self._counter = 0

    def schedule(
        self,
        delay_seconds: float,
        callback: Callable[[], None],
        key: str | None = None,
    ) -> str:
        """Arm *callback* after *delay_seconds*; returns the handle key.

        Re-scheduling an existing key replaces the earlier work item.
        """
        loop = asyncio.get_running_loop()
        if key is None:
            self._counter += 1
            key = f"work_{self._counter}"
        self.cancel(key)

        def _fire() -> None:
            self._handles.pop(key, None)
            try:
                callback()
            except Exception:
                logger.exception(f"Deferred work {key} failed")

        if delay_seconds <= self._inline_threshold:
            handle: asyncio.Handle = loop.call_soon(_fire)
        else:
            handle = loop.call_later(delay_seconds, _fire)
        self._handles[key] = handle
        logger.debug(f"Armed deferred work {key} in {delay_seconds * 1000:.1f}ms")
        return key

    def cancel(self, key: str) -> bool:
        """Cancel pending work for *key*; False if nothing was pending."""
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def is_pending(self, key: str) -> bool:
        return key in self._handles

    @property
    def pending_count(self) -> int:
        return len(self._handles)
