# otpguard/schemas/mfa.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from otpguard.core.errors import FailureReason


class SetupChallenge(BaseModel):
    """Returned by init_setup: everything an authenticator app needs."""
    model_config = ConfigDict(extra='forbid', frozen=True)

    challenge_id: str
    owner_id: str
    secret: str
    provisioning_uri: str
    account_label: str
    issuer_label: str
    expires_at: datetime
    method: str = "TOTP"


class RemovalOutcome(str, Enum):
    REMOVED = "REMOVED"
    NOT_ENROLLED = "NOT_ENROLLED"


class MfaResult(BaseModel):
    """
    Outcome of an enrollment or verification step.

    Carries enough data for a client to guide the user (remaining attempts,
    remaining lockout) and never the secret or internal counters.
    """
    model_config = ConfigDict(extra='forbid', frozen=True)

    owner_id: str
    operation: str
    success: bool
    reason: Optional[FailureReason] = None
    message: str = ""

    remaining_attempts: Optional[int] = None
    remaining_lockout_seconds: Optional[int] = None

    verification_token: Optional[str] = None
    backup_codes: Optional[List[str]] = None

    @classmethod
    def ok(cls, owner_id: str, operation: str, message: str = "", **data) -> "MfaResult":
        return cls(owner_id=owner_id, operation=operation, success=True, message=message, **data)

    @classmethod
    def failure(
        cls,
        owner_id: str,
        operation: str,
        reason: FailureReason,
        message: str,
        **data,
    ) -> "MfaResult":
        return cls(
            owner_id=owner_id,
            operation=operation,
            success=False,
            reason=reason,
            message=message,
            **data,
        )
