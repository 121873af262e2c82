"""
Error taxonomy for the control plane.

Route handlers raise ``BridgeError``; the router turns it into the wire
envelope ``{"error": {"code", "message", "details"?}}``.  Failures of
individual actions inside a bundle are never raised: they are collected
as ``ActionFailure`` values by the action engine.
"""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus


class ErrorCode(str, Enum):
    """Wire error codes."""

    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    ACTION_PATH_UNKNOWN = "ACTION_PATH_UNKNOWN"
    DEPENDENCY_VIOLATION = "DEPENDENCY_VIOLATION"
    IDEMPOTENCY_KEY_CONFLICT = "IDEMPOTENCY_KEY_CONFLICT"
    RECORDING_ALREADY_ACTIVE = "RECORDING_ALREADY_ACTIVE"
    RECORDING_NOT_ACTIVE = "RECORDING_NOT_ACTIVE"
    RECORDING_MODE_UNSUPPORTED = "RECORDING_MODE_UNSUPPORTED"
    RECORDING_FEEDBACK_UNSUPPORTED = "RECORDING_FEEDBACK_UNSUPPORTED"
    ACTION_OUT_OF_RANGE = "ACTION_OUT_OF_RANGE"
    ACTION_TYPE_UNSUPPORTED = "ACTION_TYPE_UNSUPPORTED"
    RISK_EXCEEDS_POLICY = "RISK_EXCEEDS_POLICY"
    STALE_STATE_VERSION = "STALE_STATE_VERSION"
    CONFIRMATION_TOKEN_EXPIRED = "CONFIRMATION_TOKEN_EXPIRED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class BridgeError(Exception):
    """A request-level failure carrying its HTTP status and wire code."""

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: dict[str, object] | None = None,
    ) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"{status_code} {code.value}: {message}")

    def to_dict(self) -> dict[str, object]:
        """Serialize to the error envelope."""
        error: dict[str, object] = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"error": error}


def bad_request(message: str) -> BridgeError:
    return BridgeError(HTTPStatus.BAD_REQUEST, ErrorCode.DEPENDENCY_VIOLATION, message)


def not_found(message: str) -> BridgeError:
    return BridgeError(HTTPStatus.NOT_FOUND, ErrorCode.ACTION_PATH_UNKNOWN, message)


def unauthorized() -> BridgeError:
    return BridgeError(
        HTTPStatus.UNAUTHORIZED,
        ErrorCode.TOKEN_EXPIRED,
        "Missing or invalid bearer token",
    )


def unprocessable(code: ErrorCode, message: str) -> BridgeError:
    return BridgeError(HTTPStatus.UNPROCESSABLE_ENTITY, code, message)
