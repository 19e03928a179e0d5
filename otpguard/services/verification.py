"""
Login-time TOTP verification: ACTIVE <-> LOCKED.

Each call is one linearized step per owner: lockout check, anti-replay
check, code check, then a single compare-and-swap of the secret record.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Optional

from otpguard.core.config import MfaSettings
from otpguard.core.errors import FailureReason
from otpguard.core.tokens import JwtVerificationTokenIssuer, VerificationTokenIssuer
from otpguard.models import SecretRecord
from otpguard.schemas.mfa import MfaResult
from otpguard.security.backup_codes import find_matching_backup_code
from otpguard.security.otp import OtpCodeGenerator
from otpguard.security.owner_lock import OwnerLocks
from otpguard.services.base import RecordFlow, utcnow
from otpguard.store.base import ChallengeStore, SecretStore

logger = logging.getLogger(__name__)


class VerificationFlow(RecordFlow):

    def __init__(
        self,
        secrets: SecretStore,
        challenges: ChallengeStore,
        generator: Optional[OtpCodeGenerator] = None,
        config: Optional[MfaSettings] = None,
        locks: Optional[OwnerLocks] = None,
        token_issuer: Optional[VerificationTokenIssuer] = None,
    ):
        super().__init__(secrets, challenges, generator=generator, config=config, locks=locks)
        self.token_issuer = token_issuer or JwtVerificationTokenIssuer(config=self.config)

    def verify(self, owner_id: str, submitted_code: str, now: Optional[datetime] = None) -> MfaResult:
        now = now or utcnow()

        with self.locks.hold(owner_id):
            record = self.secrets.get(owner_id)
            refused = self._precheck(record, owner_id, submitted_code, now, "verify")
            if refused is not None:
                return refused

            counter_now = self.generator.timecode(now)
            last_used = record.last_used_counter
            if last_used is not None and last_used >= counter_now:
                return self._already_used(owner_id)

            matched = self.generator.match_counter(record.secret_value, submitted_code, now)
            if matched is None:
                return self._record_failure(record, now, "verify")

            # a drifted code from an already consumed window
            if last_used is not None and matched <= last_used:
                return self._already_used(owner_id)

            self._commit(record, record.evolve(
                last_used_counter=max(counter_now, matched),
                failure_count=0,
                last_failure_at=None,
            ))

        logger.info("TOTP verified for owner %s", owner_id)
        return MfaResult.ok(
            owner_id, "verify", "TOTP verified",
            verification_token=self.token_issuer(owner_id),
        )

    def verify_backup_code(self, owner_id: str, backup_code: str, now: Optional[datetime] = None) -> MfaResult:
        """
        Accept one of the owner's recovery codes instead of a TOTP code.
        Each backup code works once; failures share the TOTP lockout.
        """
        now = now or utcnow()

        with self.locks.hold(owner_id):
            record = self.secrets.get(owner_id)
            refused = self._precheck(record, owner_id, backup_code, now, "backup_code")
            if refused is not None:
                return refused

            index = find_matching_backup_code(backup_code, record.backup_code_hashes)
            if index is None:
                return self._record_failure(record, now, "backup_code")

            remaining = record.backup_code_hashes[:index] + record.backup_code_hashes[index + 1:]
            self._commit(record, record.evolve(
                backup_code_hashes=remaining,
                failure_count=0,
                last_failure_at=None,
            ))

        logger.info("Backup code accepted for owner %s, %d left", owner_id, len(remaining))
        return MfaResult.ok(
            owner_id, "backup_code", "Backup code accepted",
            verification_token=self.token_issuer(owner_id),
        )

    def lockout_status(self, owner_id: str, now: Optional[datetime] = None) -> int:
        """Remaining lockout in seconds, 0 when the owner may try again."""
        now = now or utcnow()
        record = self.secrets.get(owner_id)
        if record is None:
            return 0
        return self._remaining_lockout(record, now)

    def _precheck(
        self,
        record: Optional[SecretRecord],
        owner_id: str,
        code: str,
        now: datetime,
        operation: str,
    ) -> Optional[MfaResult]:
        if record is None or not record.verified:
            return MfaResult.failure(owner_id, operation, FailureReason.NOT_ENROLLED, "TOTP is not set up")

        remaining = self._remaining_lockout(record, now)
        if remaining > 0:
            logger.warning("Verification refused for owner %s: locked for %ds", owner_id, remaining)
            return MfaResult.failure(
                owner_id, operation, FailureReason.ACCOUNT_LOCKED,
                f"Account locked, try again in {remaining} seconds",
                remaining_lockout_seconds=remaining,
            )

        if code is None or not str(code).strip():
            return MfaResult.failure(owner_id, operation, FailureReason.EMPTY_CODE, "Code must not be empty")
        return None

    def _remaining_lockout(self, record: SecretRecord, now: datetime) -> int:
        until = record.locked_until(self.config.max_failure_attempts, self.config.lockout_duration)
        if until is None or now >= until:
            return 0
        return math.ceil((until - now).total_seconds())

    def _record_failure(self, record: SecretRecord, now: datetime, operation: str) -> MfaResult:
        failures = record.failure_count + 1
        self._commit(record, record.evolve(failure_count=failures, last_failure_at=now))

        max_attempts = self.config.max_failure_attempts
        if failures >= max_attempts:
            logger.warning("Owner %s locked after %d failed attempts", record.owner_id, failures)
            return MfaResult.failure(
                record.owner_id, operation, FailureReason.TOO_MANY_ATTEMPTS,
                "Too many failed attempts, account locked",
                remaining_attempts=0,
                remaining_lockout_seconds=math.ceil(self.config.lockout_duration.total_seconds()),
            )

        remaining = max_attempts - failures
        logger.warning("Wrong code for owner %s, %d attempts left", record.owner_id, remaining)
        return MfaResult.failure(
            record.owner_id, operation, FailureReason.INVALID_CODE,
            f"Invalid code, {remaining} attempts left",
            remaining_attempts=remaining,
        )

    @staticmethod
    def _already_used(owner_id: str) -> MfaResult:
        return MfaResult.failure(
            owner_id, "verify", FailureReason.CODE_ALREADY_USED,
            "This code was already used, wait for the next one",
        )
