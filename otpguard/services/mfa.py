from __future__ import annotations

from typing import Optional

from otpguard.core.config import MfaSettings, settings
from otpguard.core.tokens import VerificationTokenIssuer
from otpguard.security.otp import OtpCodeGenerator
from otpguard.security.owner_lock import OwnerLocks
from otpguard.services.enrollment import EnrollmentFlow
from otpguard.services.verification import VerificationFlow
from otpguard.store.base import ChallengeStore, SecretStore
from otpguard.store.memory import InMemoryChallengeStore, InMemorySecretStore


class MfaService:
    """
    Wires both flows onto the same stores, generator and owner locks.

        service = MfaService.in_memory()
        setup = service.enrollment.init_setup("user-1", "alice@example.com")
        service.enrollment.complete_setup("user-1", setup.challenge_id, code)
        service.verification.verify("user-1", code)
    """

    def __init__(
        self,
        secrets: SecretStore,
        challenges: ChallengeStore,
        config: Optional[MfaSettings] = None,
        token_issuer: Optional[VerificationTokenIssuer] = None,
    ):
        self.config = config or settings
        self.generator = OtpCodeGenerator.from_settings(self.config)
        self.locks = OwnerLocks()
        self.enrollment = EnrollmentFlow(
            secrets, challenges,
            generator=self.generator, config=self.config, locks=self.locks,
        )
        self.verification = VerificationFlow(
            secrets, challenges,
            generator=self.generator, config=self.config, locks=self.locks,
            token_issuer=token_issuer,
        )

    @classmethod
    def in_memory(
        cls,
        config: Optional[MfaSettings] = None,
        token_issuer: Optional[VerificationTokenIssuer] = None,
    ) -> "MfaService":
        return cls(InMemorySecretStore(), InMemoryChallengeStore(), config=config, token_issuer=token_issuer)

    def is_enrolled(self, owner_id: str) -> bool:
        return self.enrollment.is_enrolled(owner_id)
