"""
ControlBridge: the single owner of control-plane state.

Every store (sessions, idempotency records, validation records, the
scheduled-bundle registry), the event hub and the deferred scheduler hang
off one ``ControlBridge``.  All of them are touched only from the event
loop thread, either by a request handler or by deferred work, so a
check-then-act sequence inside one handler can never interleave with
another request.
"""

from __future__ import annotations

import logging

from grainbridge.actions.engine import ActionEngine, bundle_risk
from grainbridge.actions.recording import RecordingCommand
from grainbridge.actions.registry import BundleRegistry, ScheduledBundleState
from grainbridge.actions.rules import ActionFailure
from grainbridge.actions.state_machine import BundleStatus
from grainbridge.actions.validation import ValidationStore
from grainbridge.auth.sessions import SessionStore
from grainbridge.config import Settings, settings as default_settings
from grainbridge.core.clock import Clock, system_clock
from grainbridge.core.deferred import DeferredScheduler
from grainbridge.core.idempotency import IdempotencyCache
from grainbridge.core.timing import ScheduledTime, resolve_scheduled_time
from grainbridge.daw.instrument import Instrument
from grainbridge.errors import ErrorCode
from grainbridge.events.broadcaster import EventBroadcaster
from grainbridge.events.hub import EventHub
from grainbridge.events.log import EventLog
from grainbridge.models.requests import ActionBundle, TimeSpec

logger = logging.getLogger(__name__)


class ControlBridge:
    """Holds every store and runs scheduled bundles against the instrument."""

    def __init__(
        self,
        instrument: Instrument | None = None,
        config: Settings | None = None,
        clock: Clock = system_clock,
    ) -> None:
        self.settings = config or default_settings
        self.clock = clock
        self.instrument = instrument or Instrument(fallback_sample_rate=self.settings.sample_rate)

        self.sessions = SessionStore(self.settings.session_ttl_seconds, clock)
        self.idempotency = IdempotencyCache()
        self.validations = ValidationStore(
            self.settings.validation_ttl_seconds,
            self.settings.confirmation_ttl_seconds,
            clock,
        )
        self.registry = BundleRegistry()
        self.broadcaster = EventBroadcaster()
        self.hub = EventHub(EventLog(self.settings.event_log_capacity), self.broadcaster, clock)
        self.engine = ActionEngine(self.instrument, self.hub)
        self.scheduler = DeferredScheduler(self.settings.inline_dispatch_threshold_ms / 1000.0)

    @property
    def state_version(self) -> int:
        return self.hub.state_version

    def resolve_time(self, spec: TimeSpec | None) -> ScheduledTime:
        """Resolve a ``TimeSpec`` against the live transport."""
        return resolve_scheduled_time(self.instrument.transport_snapshot(), spec, self.clock())

    # ── Scheduled bundles ──

    def schedule_bundle(
        self,
        bundle: ActionBundle,
        best_effort: bool,
        session_id: str | None = None,
    ) -> ScheduledBundleState:
        """Register *bundle*, announce it and arm its execution."""
        when = self.resolve_time(bundle.first_time_spec())
        state = ScheduledBundleState(
            bundle_id=bundle.bundle_id,
            intent_id=bundle.intent_id,
            scheduled_bar=when.bar,
            scheduled_beat=when.beat,
            state_version=self.state_version,
            created_at=self.clock(),
        )
        self.registry.add(state)
        self.hub.emit(
            "actions.bundle_scheduled",
            {
                "bundleId": bundle.bundle_id,
                "status": state.status.value,
                "scheduledAtTransport": when.transport_dict(),
            },
            session_id,
        )
        self.scheduler.schedule(
            when.delay_seconds,
            lambda: self._run_bundle(state, bundle, best_effort, session_id),
            key=bundle.bundle_id,
        )
        logger.info(
            f"Bundle {bundle.bundle_id} scheduled at bar {when.bar} beat {when.beat:.2f} "
            f"(in {when.delay_seconds:.3f}s, best_effort={best_effort})"
        )
        return state

    def _run_bundle(
        self,
        state: ScheduledBundleState,
        bundle: ActionBundle,
        best_effort: bool,
        session_id: str | None,
    ) -> None:
        if self.registry.get(state.bundle_id) is not state or state.status is not BundleStatus.SCHEDULED:
            logger.debug(f"Bundle {state.bundle_id} no longer scheduled; skipping")
            return

        state.transition(BundleStatus.IN_PROGRESS)
        self.hub.emit(
            "actions.bundle_started",
            {"bundleId": state.bundle_id, "status": state.status.value},
            session_id,
        )

        try:
            result = self.engine.execute(bundle, best_effort=best_effort, session_id=session_id)
        except Exception as exc:
            logger.exception(f"Bundle {state.bundle_id} failed during execution: {exc}")
            state.transition(BundleStatus.REJECTED)
            state.state_version = self.state_version
            state.error_codes = [ErrorCode.INTERNAL_ERROR.value]
            self.hub.emit(
                "actions.bundle_rejected",
                {
                    "bundleId": state.bundle_id,
                    "status": state.status.value,
                    "risk": bundle_risk(bundle).value,
                    "errors": [ActionFailure(None, ErrorCode.INTERNAL_ERROR, "Bundle execution failed").to_dict()],
                },
                session_id,
            )
            return

        state.transition(result.status)
        state.state_version = self.state_version
        state.error_codes = [failure.code.value for failure in result.failures]

        event_type = (
            "actions.bundle_rejected" if result.status is BundleStatus.REJECTED else "actions.bundle_applied"
        )
        self.hub.emit(
            event_type,
            {
                "bundleId": state.bundle_id,
                "status": state.status.value,
                "risk": result.risk.value,
                "errors": [failure.to_dict() for failure in result.failures],
            },
            session_id,
        )

    def cancel_bundle(self, bundle_id: str, session_id: str | None = None) -> ScheduledBundleState | None:
        """Cancel *bundle_id*; ``None`` when it was never scheduled.

        A bundle that already left ``scheduled`` keeps its status and no
        event is emitted.
        """
        state = self.registry.get(bundle_id)
        if state is None:
            return None
        if not self.registry.cancel(bundle_id):
            logger.info(f"Bundle {bundle_id} is {state.status.value}; cancel ignored")
            return state
        self.scheduler.cancel(bundle_id)
        self.hub.emit(
            "actions.bundle_canceled",
            {"bundleId": bundle_id, "status": state.status.value},
            session_id,
        )
        logger.info(f"Bundle {bundle_id} canceled")
        return state

    # ── Recording commands ──

    def schedule_recording(
        self,
        command: RecordingCommand,
        when: ScheduledTime,
        session_id: str | None = None,
    ) -> str:
        """Arm *command* to run at *when*; returns the deferred work key."""

        def fire() -> None:
            mutation = command.plan(self.instrument)
            if mutation is None:
                logger.info(f"Recording {command.op.value} on {command.voice.voice_id} no longer applies")
                return
            self.engine.commit(mutation, session_id=session_id)

        key = self.scheduler.schedule(when.delay_seconds, fire)
        logger.info(
            f"Recording {command.op.value} on {command.voice.voice_id} armed "
            f"for bar {when.bar} beat {when.beat:.2f}"
        )
        return key

    # ── Lifecycle ──

    def shutdown(self) -> None:
        """Drop pending work and per-process stores."""
        self.scheduler.cancel_all()
        self.broadcaster.close_all()
        self.sessions.clear()
        self.idempotency.clear()
        self.validations.clear()
        logger.info("Control bridge state cleared")
