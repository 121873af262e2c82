"""
Validation records.

``POST /v1/actions/validate`` leaves a ``ValidationRecord`` behind;
``validated_only`` scheduling redeems it.  Records expire after the
validation TTL and are purged lazily whenever either route runs.  A record
for a high-risk bundle also carries a shorter-lived confirmation token.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from grainbridge.actions.engine import BundleAssessment
from grainbridge.actions.risk import RiskLevel
from grainbridge.core.clock import Clock, iso_timestamp, system_clock
from grainbridge.core.hashing import bundle_signature
from grainbridge.errors import ErrorCode, unprocessable
from grainbridge.models.requests import ActionBundle

logger = logging.getLogger(__name__)


def bundle_wire_dict(bundle: ActionBundle) -> dict[str, object]:
    """The bundle as it appears on the wire (camelCase, nulls kept)."""
    return bundle.model_dump(by_alias=True, mode="json")


def signature_for(bundle: ActionBundle) -> str:
    return bundle_signature(bundle_wire_dict(bundle))


@dataclass
class ValidationRecord:
    validation_id: str
    bundle_signature: str
    is_valid: bool
    risk: RiskLevel
    requires_confirmation: bool
    expires_at: float
    confirmation_token: str | None = None
    confirmation_token_expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at < now

    @property
    def confirmation_token_expires_at_iso(self) -> str | None:
        if self.confirmation_token_expires_at is None:
            return None
        return iso_timestamp(self.confirmation_token_expires_at)


class ValidationStore:
    """validationId -> ``ValidationRecord``, purged on access."""

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        confirmation_ttl_seconds: float = 120.0,
        clock: Clock = system_clock,
    ) -> None:
        self._ttl = ttl_seconds
        self._confirmation_ttl = confirmation_ttl_seconds
        self._clock = clock
        self._records: dict[str, ValidationRecord] = {}

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [vid for vid, record in self._records.items() if record.is_expired(now)]
        for vid in expired:
            del self._records[vid]
        if expired:
            logger.debug(f"Purged {len(expired)} expired validation records")
        return len(expired)

    def record(self, bundle: ActionBundle, assessment: BundleAssessment) -> ValidationRecord:
        """Store the outcome of validating *bundle*."""
        now = self._clock()
        validation_id = f"val_{secrets.token_hex(4)}"
        while validation_id in self._records:
            validation_id = f"val_{secrets.token_hex(4)}"

        record = ValidationRecord(
            validation_id=validation_id,
            bundle_signature=signature_for(bundle),
            is_valid=assessment.valid,
            risk=assessment.risk,
            requires_confirmation=assessment.requires_confirmation,
            expires_at=now + self._ttl,
        )
        if assessment.requires_confirmation:
            record.confirmation_token = secrets.token_hex(16)
            record.confirmation_token_expires_at = now + self._confirmation_ttl
        self._records[validation_id] = record
        return record

    def redeem(self, bundle: ActionBundle, confirmation_token: str | None) -> ValidationRecord:
        """Check that *bundle* may be scheduled under ``validated_only``.

        Raises:
            BridgeError: 422 naming the first check that failed.
        """
        record = self._records.get(bundle.validation_id) if bundle.validation_id else None
        if record is None:
            raise unprocessable(ErrorCode.DEPENDENCY_VIOLATION, "validationId is required for validated_only applyMode")
        if record.bundle_signature != signature_for(bundle):
            raise unprocessable(ErrorCode.DEPENDENCY_VIOLATION, "Validation record does not match bundle payload")
        if not record.is_valid:
            raise unprocessable(ErrorCode.DEPENDENCY_VIOLATION, "Bundle must be revalidated after validation errors")
        now = self._clock()
        if record.is_expired(now):
            del self._records[record.validation_id]
            raise unprocessable(ErrorCode.DEPENDENCY_VIOLATION, "Validation record expired")
        if record.requires_confirmation:
            token_ok = (
                confirmation_token is not None
                and record.confirmation_token is not None
                and secrets.compare_digest(confirmation_token, record.confirmation_token)
                and record.confirmation_token_expires_at is not None
                and record.confirmation_token_expires_at >= now
            )
            if not token_ok:
                raise unprocessable(ErrorCode.CONFIRMATION_TOKEN_EXPIRED, "Missing or expired confirmationToken")
        return record

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
