from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from otpguard.core.config import MfaSettings, settings
from otpguard.core.errors import ConcurrentUpdateError
from otpguard.models import SecretRecord
from otpguard.security.otp import OtpCodeGenerator
from otpguard.security.owner_lock import OwnerLocks
from otpguard.store.base import ChallengeStore, SecretStore


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordFlow:
    """
    Shared wiring for the enrollment and verification flows.

    Flows that operate on the same owners must share one ``OwnerLocks``
    so their read-check-write sequences are linearized per owner.
    """

    def __init__(
        self,
        secrets: SecretStore,
        challenges: ChallengeStore,
        generator: Optional[OtpCodeGenerator] = None,
        config: Optional[MfaSettings] = None,
        locks: Optional[OwnerLocks] = None,
    ):
        self.config = config or settings
        self.secrets = secrets
        self.challenges = challenges
        self.generator = generator or OtpCodeGenerator.from_settings(self.config)
        self.locks = locks or OwnerLocks()

    def _commit(self, current: SecretRecord, updated: SecretRecord) -> None:
        if not self.secrets.compare_and_swap(current.owner_id, current.version, updated):
            raise ConcurrentUpdateError(
                "Secret record changed concurrently; retry the operation",
                owner_id=current.owner_id,
            )
