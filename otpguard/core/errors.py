"""
Failure taxonomy for the MFA engine.

User-facing outcomes travel inside ``MfaResult`` with a ``FailureReason``.
Infrastructure faults are raised as ``MfaError`` subclasses so the caller
decides on retry policy.
"""
from __future__ import annotations

from enum import Enum


class FailureReason(str, Enum):
    NOT_ENROLLED = "NOT_ENROLLED"
    EMPTY_CODE = "EMPTY_CODE"
    CODE_ALREADY_USED = "CODE_ALREADY_USED"
    INVALID_CODE = "INVALID_CODE"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    INVALID_CHALLENGE = "INVALID_CHALLENGE"
    SECRET_GENERATION_FAILURE = "SECRET_GENERATION_FAILURE"
    INFRA_ERROR = "INFRA_ERROR"


class MfaError(Exception):
    """Base class for faults the engine does not turn into a result."""

    reason: FailureReason = FailureReason.INFRA_ERROR

    def __init__(self, message: str, owner_id: str | None = None):
        super().__init__(message)
        self.owner_id = owner_id


class SecretGenerationError(MfaError):
    """Secure random source unavailable. Fatal, never retried."""

    reason = FailureReason.SECRET_GENERATION_FAILURE


class InvalidSecretError(MfaError, ValueError):
    """Stored secret is not valid base32 (configuration/programming error)."""

    reason = FailureReason.SECRET_GENERATION_FAILURE


class StoreError(MfaError):
    """Storage I/O failure. The whole flow is safe to retry."""

    reason = FailureReason.INFRA_ERROR


class ConcurrentUpdateError(StoreError):
    """A compare-and-swap lost against a concurrent writer."""


class AlreadyEnrolledError(MfaError):
    """Setup requested for an owner whose secret is already active."""

    reason = FailureReason.INVALID_CHALLENGE
