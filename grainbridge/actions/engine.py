"""
Action engine: validate and execute action bundles.

Validation and execution share the per-target rules in
``grainbridge.actions.rules``.  A validation pass plans every action
against simulated recording state and throws the resulting mutations
away; an execution pass commits each mutation as soon as it is planned,
so later actions in the bundle read the state earlier ones produced.

Execution modes:
    atomic        dry run first; any failure rejects the bundle with zero
                  side effects, then a real pass where any failure aborts
    best effort   failures are collected and the remaining actions still run
    neither       the first failing action aborts the bundle
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from grainbridge.actions.risk import RiskLevel, aggregate_risk, exceeds
from grainbridge.actions.rules import (
    ActionFailure,
    Mutation,
    RecordingSimulation,
    RuleContext,
    plan_action,
)
from grainbridge.actions.state_machine import BundleStatus
from grainbridge.actions.values import normalize_action_type, numeric_value, text_value
from grainbridge.core.timing import ANCHOR_NOW
from grainbridge.daw.instrument import Instrument
from grainbridge.errors import ErrorCode
from grainbridge.events.hub import EventHub
from grainbridge.models.requests import ActionBundle, Policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BundleAssessment:
    """Outcome of validating a bundle without side effects."""

    failures: list[ActionFailure]
    risk: RiskLevel
    requires_confirmation: bool

    @property
    def valid(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class ExecutionResult:
    status: BundleStatus
    risk: RiskLevel
    applied_count: int = 0
    failures: list[ActionFailure] = field(default_factory=list)


def bundle_risk(bundle: ActionBundle) -> RiskLevel:
    return aggregate_risk(normalize_action_type(a.type, a.target) for a in bundle.actions)


class ActionEngine:
    """Plans actions against the instrument and commits them through the hub."""

    def __init__(self, instrument: Instrument, hub: EventHub) -> None:
        self._instrument = instrument
        self._hub = hub

    def _context(self, allow_recording: bool = True) -> RuleContext:
        return RuleContext(
            instrument=self._instrument,
            recording=RecordingSimulation(self._instrument),
            allow_recording=allow_recording,
        )

    def _dry_run(self, bundle: ActionBundle, allow_recording: bool) -> list[ActionFailure]:
        ctx = self._context(allow_recording)
        failures: list[ActionFailure] = []
        for action in bundle.actions:
            result = plan_action(action, ctx)
            if isinstance(result, ActionFailure):
                failures.append(result)
            elif result.recording is not None:
                ctx.recording.apply(*result.recording)
        return failures

    def assess(self, bundle: ActionBundle, policy: Policy | None = None) -> BundleAssessment:
        """Validate *bundle* against simulated state and *policy*."""
        failures: list[ActionFailure] = []
        if not bundle.actions:
            failures.append(ActionFailure(None, ErrorCode.DEPENDENCY_VIOLATION, "Bundle actions cannot be empty"))

        allow_recording = True
        if policy is not None and policy.allow_recording is not None:
            allow_recording = policy.allow_recording
        failures.extend(self._dry_run(bundle, allow_recording))

        risk = bundle_risk(bundle)
        if policy is not None and exceeds(risk, policy.max_risk):
            failures.append(ActionFailure(None, ErrorCode.RISK_EXCEEDS_POLICY, "Bundle risk exceeds policy maxRisk"))

        requires_confirmation = risk is RiskLevel.HIGH or bundle.require_confirmation is True
        return BundleAssessment(failures=failures, risk=risk, requires_confirmation=requires_confirmation)

    def execute(
        self,
        bundle: ActionBundle,
        best_effort: bool = False,
        session_id: str | None = None,
    ) -> ExecutionResult:
        """Apply *bundle* for real.  Never raises for per-action failures."""
        risk = bundle_risk(bundle)

        if bundle.atomic:
            precheck = self._dry_run(bundle, allow_recording=True)
            if precheck:
                logger.info(f"Bundle {bundle.bundle_id} rejected by atomic precheck ({len(precheck)} failures)")
                return ExecutionResult(BundleStatus.REJECTED, risk, 0, precheck)

        ctx = self._context()
        failures: list[ActionFailure] = []
        applied = 0
        for action in bundle.actions:
            result = plan_action(action, ctx)
            if isinstance(result, ActionFailure):
                failures.append(result)
                if bundle.atomic or not best_effort:
                    logger.info(f"Bundle {bundle.bundle_id} aborted at action {action.action_id}: {result.message}")
                    return ExecutionResult(BundleStatus.REJECTED, risk, applied, failures)
                continue
            self.commit(result, ctx, session_id)
            applied += 1

        status = BundleStatus.APPLIED if not failures else BundleStatus.PARTIALLY_APPLIED
        logger.info(f"Bundle {bundle.bundle_id} {status.value}: {applied} applied, {len(failures)} failed")
        return ExecutionResult(status, risk, applied, failures)

    def commit(
        self,
        mutation: Mutation,
        ctx: RuleContext | None = None,
        session_id: str | None = None,
    ) -> None:
        """Run the mutation's commands, then record it as one state change."""
        self._instrument.execute(mutation.commands)
        if mutation.recording is not None and ctx is not None:
            ctx.recording.apply(*mutation.recording)
        if mutation.changes_state:
            self._hub.record_mutation(list(mutation.changed_paths), list(mutation.events), session_id)


def musical_diff(bundle: ActionBundle, risk: RiskLevel) -> dict[str, object]:
    """Human-oriented preview of what a bundle changes."""
    changes: list[dict[str, object]] = []
    for action in bundle.actions:
        after: object = numeric_value(action)
        if after is None:
            after = text_value(action)
        changes.append({"path": action.target or "", "before": None, "after": after})

    time_spec = bundle.first_time_spec()
    return {
        "bundleId": bundle.bundle_id,
        "risk": risk.value,
        "summary": f"Bundle modifies {len(bundle.actions)} actions",
        "changes": changes,
        "timing": {
            "anchor": (time_spec.anchor if time_spec and time_spec.anchor else ANCHOR_NOW),
            "durationBars": time_spec.duration_bars if time_spec else None,
        },
    }
