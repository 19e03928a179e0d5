"""
TOTP enrollment: NOT_SETUP -> PENDING_VERIFICATION -> ACTIVE.

init_setup stores an unverified secret and a short-lived challenge;
complete_setup activates the secret once the owner proves their
authenticator app produces matching codes.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from otpguard.core.errors import AlreadyEnrolledError, FailureReason
from otpguard.models import Challenge, SecretRecord
from otpguard.schemas.mfa import MfaResult, RemovalOutcome, SetupChallenge
from otpguard.security.backup_codes import generate_backup_codes, hash_backup_codes
from otpguard.services.base import RecordFlow, utcnow

logger = logging.getLogger(__name__)


class EnrollmentFlow(RecordFlow):

    def is_enrolled(self, owner_id: str) -> bool:
        record = self.secrets.get(owner_id)
        return record is not None and record.verified

    def init_setup(
        self,
        owner_id: str,
        account_label: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SetupChallenge:
        """
        Start (or restart) enrollment for ``owner_id``.

        A pending secret from an earlier call is discarded together with its
        challenges. An active secret is never overwritten: rotation is
        remove_setup followed by init_setup.

        Raises:
            AlreadyEnrolledError: the owner already has an active secret.
            SecretGenerationError: no secure random source.
            StoreError: storage failure.
        """
        now = now or utcnow()
        account_label = account_label or owner_id
        issuer_label = self.config.issuer

        with self.locks.hold(owner_id):
            existing = self.secrets.get(owner_id)
            if existing is not None and existing.verified:
                logger.warning("TOTP setup refused for owner %s: already active", owner_id)
                raise AlreadyEnrolledError("TOTP is already active", owner_id=owner_id)

            secret = self.generator.generate_secret()
            record = SecretRecord(
                owner_id=owner_id,
                secret_value=secret,
                account_label=account_label,
                issuer_label=issuer_label,
                created_at=now,
            )
            if existing is None:
                self.secrets.put(record)
            else:
                self._commit(existing, record)
                self.challenges.delete_for_owner(owner_id)

            challenge = Challenge(
                challenge_id=str(uuid.uuid4()),
                owner_id=owner_id,
                secret_value=secret,
                created_at=now,
                expires_at=now + self.config.challenge_ttl,
            )
            self.challenges.put(challenge)

        logger.info("TOTP setup initialised for owner %s (challenge %s)", owner_id, challenge.challenge_id)
        return SetupChallenge(
            challenge_id=challenge.challenge_id,
            owner_id=owner_id,
            secret=secret,
            provisioning_uri=self.generator.provisioning_uri(secret, account_label, issuer_label),
            account_label=account_label,
            issuer_label=issuer_label,
            expires_at=challenge.expires_at,
        )

    def complete_setup(
        self,
        owner_id: str,
        challenge_id: str,
        submitted_code: str,
        now: Optional[datetime] = None,
    ) -> MfaResult:
        """
        Activate the pending secret if ``submitted_code`` matches it.

        A wrong code counts as a failure on the pending record but leaves
        the challenge open until its TTL, so the owner can retry.
        """
        now = now or utcnow()

        with self.locks.hold(owner_id):
            challenge = self.challenges.get(challenge_id)
            if challenge is None or not challenge.is_usable(now) or challenge.owner_id != owner_id:
                logger.warning("TOTP setup for owner %s: invalid challenge %s", owner_id, challenge_id)
                return self._invalid_challenge(owner_id)

            record = self.secrets.get(owner_id)
            if record is None or record.verified or record.secret_value != challenge.secret_value:
                logger.warning("TOTP setup for owner %s: challenge %s is stale", owner_id, challenge_id)
                return self._invalid_challenge(owner_id)

            matched = self.generator.match_counter(record.secret_value, submitted_code, now)
            if matched is None:
                self._commit(record, record.evolve(
                    failure_count=record.failure_count + 1,
                    last_failure_at=now,
                ))
                logger.warning("TOTP setup for owner %s: wrong code", owner_id)
                return MfaResult.failure(
                    owner_id, "setup", FailureReason.INVALID_CODE,
                    "Invalid code, check your authenticator app",
                )

            # activate first: a lost commit must leave the challenge usable
            backup_codes = generate_backup_codes(self.config.backup_code_count)
            self._commit(record, record.evolve(
                verified=True,
                failure_count=0,
                last_failure_at=None,
                last_used_counter=max(self.generator.timecode(now), matched),
                backup_code_hashes=tuple(hash_backup_codes(backup_codes)),
            ))

            if not self.challenges.mark_used(challenge_id):
                activated = self.secrets.get(owner_id)
                if activated is not None:
                    self._commit(activated, record)
                logger.warning("TOTP setup for owner %s: challenge %s consumed elsewhere", owner_id, challenge_id)
                return self._invalid_challenge(owner_id)

        logger.info("TOTP setup completed for owner %s", owner_id)
        return MfaResult.ok(
            owner_id, "setup", "TOTP enabled",
            backup_codes=backup_codes,
        )

    def remove_setup(self, owner_id: str) -> RemovalOutcome:
        with self.locks.hold(owner_id):
            removed = self.secrets.delete(owner_id)
            dropped = self.challenges.delete_for_owner(owner_id)

        if not removed:
            logger.info("TOTP removal for owner %s: nothing enrolled", owner_id)
            return RemovalOutcome.NOT_ENROLLED
        logger.info("TOTP removed for owner %s (%d challenges dropped)", owner_id, dropped)
        return RemovalOutcome.REMOVED

    def regenerate_backup_codes(self, owner_id: str) -> MfaResult:
        """Replace the whole backup code set of an active owner."""
        with self.locks.hold(owner_id):
            record = self.secrets.get(owner_id)
            if record is None or not record.verified:
                return MfaResult.failure(
                    owner_id, "backup_codes", FailureReason.NOT_ENROLLED,
                    "TOTP is not set up",
                )
            backup_codes = generate_backup_codes(self.config.backup_code_count)
            self._commit(record, record.evolve(
                backup_code_hashes=tuple(hash_backup_codes(backup_codes)),
            ))

        logger.info("Backup codes regenerated for owner %s", owner_id)
        return MfaResult.ok(owner_id, "backup_codes", "Backup codes regenerated", backup_codes=backup_codes)

    @staticmethod
    def _invalid_challenge(owner_id: str) -> MfaResult:
        return MfaResult.failure(
            owner_id, "setup", FailureReason.INVALID_CHALLENGE,
            "Setup challenge is invalid or expired",
        )
