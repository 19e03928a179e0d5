# otpguard/models/challenge.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime


@dataclass(frozen=True)
class Challenge:
    challenge_id: str
    owner_id: str
    secret_value: str
    created_at: datetime
    expires_at: datetime
    used: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_usable(self, now: datetime) -> bool:
        return not self.used and not self.is_expired(now)

    def mark_used(self) -> "Challenge":
        return replace(self, used=True)
