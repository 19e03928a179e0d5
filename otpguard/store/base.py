"""
Storage contracts for secrets and enrollment challenges.

Implementations raise ``otpguard.core.errors.StoreError`` on I/O failure.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from otpguard.models import Challenge, SecretRecord


@runtime_checkable
class SecretStore(Protocol):

    def get(self, owner_id: str) -> Optional[SecretRecord]:
        ...

    def put(self, record: SecretRecord) -> SecretRecord:
        """Create or replace unconditionally; returns the stored record."""
        ...

    def compare_and_swap(self, owner_id: str, expected_version: int, new_record: SecretRecord) -> bool:
        """
        Replace the record only if its stored version equals
        ``expected_version``. The store bumps the version on success.
        """
        ...

    def delete(self, owner_id: str) -> bool:
        """Return True if a record existed."""
        ...


@runtime_checkable
class ChallengeStore(Protocol):

    def get(self, challenge_id: str) -> Optional[Challenge]:
        """Expired challenges may still be returned; callers check ``expires_at``."""
        ...

    def put(self, challenge: Challenge) -> None:
        ...

    def mark_used(self, challenge_id: str) -> bool:
        """Flip ``used`` once. False if missing or already used."""
        ...

    def delete_for_owner(self, owner_id: str) -> int:
        ...
