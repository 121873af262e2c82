"""
Action bundle endpoints.

    POST /v1/actions/validate            dry-run a bundle, leave a ValidationRecord
    POST /v1/actions/schedule            accept a bundle for deferred execution
    GET  /v1/actions/scheduled           every bundle scheduled this process
    POST /v1/actions/{bundleId}/cancel   cancel before it fires

Schedule checks run in a fixed order: idempotency replay or conflict,
optimistic-concurrency state version, then (for ``validated_only``) the
validation record and confirmation token.  Any other ``applyMode`` skips
validation; risk and confirmation are advisory on that path.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from grainbridge.actions.engine import musical_diff
from grainbridge.actions.validation import bundle_wire_dict
from grainbridge.api.dependencies import idempotent_replay, remember
from grainbridge.api.router import RequestContext, Router
from grainbridge.errors import BridgeError, ErrorCode, not_found
from grainbridge.models.requests import ScheduleActionsRequest, ValidateActionsRequest
from grainbridge.transport.http import HTTPResponse

logger = logging.getLogger(__name__)

router = Router()

VALIDATED_ONLY = "validated_only"
BEST_EFFORT = "best_effort"


@router.post("/v1/actions/validate")
def validate_actions(ctx: RequestContext) -> HTTPResponse:
    body = ctx.parse(ValidateActionsRequest, "Invalid validate actions payload")
    bridge = ctx.bridge
    bridge.validations.purge_expired()

    assessment = bridge.engine.assess(body.bundle, body.policy)
    record = bridge.validations.record(body.bundle, assessment)
    logger.info(
        f"Validated {body.bundle.bundle_id} as {record.validation_id}: "
        f"valid={assessment.valid} risk={assessment.risk.value}"
    )
    return HTTPResponse.json(HTTPStatus.OK, {
        "valid": assessment.valid,
        "validationId": record.validation_id,
        "risk": assessment.risk.value,
        "requiresConfirmation": assessment.requires_confirmation,
        "confirmationToken": record.confirmation_token,
        "confirmationTokenExpiresAt": record.confirmation_token_expires_at_iso,
        "normalizedBundle": bundle_wire_dict(body.bundle),
        "musicalDiff": musical_diff(body.bundle, assessment.risk),
        "errors": [failure.to_dict() for failure in assessment.failures],
    })


@router.post("/v1/actions/schedule")
def schedule_actions(ctx: RequestContext) -> HTTPResponse:
    body = ctx.parse(ScheduleActionsRequest, "Invalid schedule actions payload")
    bridge = ctx.bridge
    bundle = body.bundle
    bridge.validations.purge_expired()

    replay = idempotent_replay(ctx, body.idempotency_key)
    if replay is not None:
        return HTTPResponse.json(HTTPStatus.OK, {**replay.body, "idempotentReplay": True})

    expected = bundle.precondition_state_version
    if expected is not None and expected != bridge.state_version:
        raise BridgeError(
            HTTPStatus.CONFLICT,
            ErrorCode.STALE_STATE_VERSION,
            "preconditionStateVersion does not match current state",
            details={"provided": expected, "current": bridge.state_version},
        )

    if body.apply_mode == VALIDATED_ONLY:
        bridge.validations.redeem(bundle, body.confirmation_token)

    state = bridge.schedule_bundle(
        bundle,
        best_effort=body.apply_mode == BEST_EFFORT,
        session_id=ctx.session_id,
    )
    response = HTTPResponse.json(HTTPStatus.ACCEPTED, {
        "bundleId": state.bundle_id,
        "status": state.status.value,
        "idempotentReplay": False,
        "scheduledAtTransport": {"bar": state.scheduled_bar, "beat": state.scheduled_beat},
        "stateVersion": bridge.state_version,
        "resultStatus": state.status.value,
        "errors": [],
    })
    return remember(ctx, body.idempotency_key, response)


@router.get("/v1/actions/scheduled")
def list_scheduled(ctx: RequestContext) -> HTTPResponse:
    return HTTPResponse.json(HTTPStatus.OK, [state.to_dict() for state in ctx.bridge.registry.list()])


@router.post("/v1/actions/{bundle_id}/cancel")
def cancel_scheduled(ctx: RequestContext) -> HTTPResponse:
    state = ctx.bridge.cancel_bundle(ctx.params["bundle_id"], ctx.session_id)
    if state is None:
        raise not_found("Bundle not found")
    return HTTPResponse.json(HTTPStatus.OK, {"bundleId": state.bundle_id, "status": state.status.value})
