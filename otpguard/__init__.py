"""
otpguard: TOTP multi-factor authentication engine.

- RFC 6238 code generation and drift-tolerant verification
- Enrollment with short-lived confirmation challenges
- Anti-replay and failure-based lockout
- One-time backup codes
"""
from otpguard.core.config import MfaSettings
from otpguard.core.errors import (
    AlreadyEnrolledError,
    ConcurrentUpdateError,
    FailureReason,
    InvalidSecretError,
    MfaError,
    SecretGenerationError,
    StoreError,
)
from otpguard.core.tokens import JwtVerificationTokenIssuer, decode_verification_token
from otpguard.models import Challenge, SecretRecord
from otpguard.schemas import MfaResult, RemovalOutcome, SetupChallenge
from otpguard.security.otp import OtpCodeGenerator
from otpguard.services import EnrollmentFlow, MfaService, VerificationFlow
from otpguard.store import InMemoryChallengeStore, InMemorySecretStore

__all__ = [
    "AlreadyEnrolledError",
    "Challenge",
    "ConcurrentUpdateError",
    "EnrollmentFlow",
    "FailureReason",
    "InMemoryChallengeStore",
    "InMemorySecretStore",
    "InvalidSecretError",
    "JwtVerificationTokenIssuer",
    "MfaError",
    "MfaResult",
    "MfaService",
    "MfaSettings",
    "OtpCodeGenerator",
    "RemovalOutcome",
    "SecretGenerationError",
    "SecretRecord",
    "SetupChallenge",
    "StoreError",
    "VerificationFlow",
    "decode_verification_token",
]
