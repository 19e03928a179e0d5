"""
One-time recovery codes handed out when TOTP enrollment completes.

Only argon2 hashes are kept on the secret record; the plain codes are
shown to the owner exactly once.
"""
from __future__ import annotations

import secrets
from typing import List, Optional, Sequence

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

# Lighter than login passwords: codes are random, and a full set is
# hashed on every enrollment.
_ph = PasswordHasher(
    time_cost=2,
    memory_cost=19456,
    parallelism=1,
    hash_len=32,
    salt_len=16,
)


def _normalize(code: str) -> str:
    return code.replace("-", "").replace(" ", "").upper()


def generate_backup_codes(count: int = 10, length: int = 8) -> List[str]:
    """Uppercase hex codes formatted as XXXX-XXXX."""
    codes = []
    for _ in range(count):
        raw = secrets.token_hex(length // 2).upper()
        codes.append(f"{raw[:4]}-{raw[4:]}")
    return codes


def hash_backup_code(code: str) -> str:
    return _ph.hash(_normalize(code))


def hash_backup_codes(codes: Sequence[str]) -> List[str]:
    return [hash_backup_code(code) for code in codes]


def verify_backup_code(code: str, hashed_code: str) -> bool:
    try:
        return _ph.verify(hashed_code, _normalize(code))
    except (VerificationError, InvalidHashError):
        return False


def find_matching_backup_code(code: str, hashed_codes: Sequence[str]) -> Optional[int]:
    """Index of the hash matching ``code``, or None."""
    for i, hashed in enumerate(hashed_codes):
        if verify_backup_code(code, hashed):
            return i
    return None
