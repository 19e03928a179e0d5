# otpguard/models/secret_record.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Optional, Tuple


@dataclass(frozen=True)
class SecretRecord:
    """
    Per-owner TOTP enrollment state.

    Records are immutable; every change produces a new record through
    ``evolve`` and is committed with a compare-and-swap on ``version``.
    """
    owner_id: str
    secret_value: str
    account_label: str
    issuer_label: str
    created_at: datetime

    verified: bool = False
    last_used_counter: Optional[int] = None
    failure_count: int = 0
    last_failure_at: Optional[datetime] = None
    backup_code_hashes: Tuple[str, ...] = ()

    version: int = field(default=0, compare=False)

    def evolve(self, **changes) -> "SecretRecord":
        return replace(self, **changes)

    def locked_until(self, max_failure_attempts: int, lockout_duration: timedelta) -> Optional[datetime]:
        """End of the current lockout, or None if the failure threshold is not reached."""
        if self.failure_count < max_failure_attempts or self.last_failure_at is None:
            return None
        return self.last_failure_at + lockout_duration
