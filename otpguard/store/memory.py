"""
In-memory stores, one map per entity behind a lock.

Suitable for a single process and for tests; multi-process deployments
plug their own ``SecretStore`` / ``ChallengeStore``.
"""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Optional

from otpguard.models import Challenge, SecretRecord


class InMemorySecretStore:

    def __init__(self):
        self._records: Dict[str, SecretRecord] = {}
        self._lock = threading.RLock()

    def get(self, owner_id: str) -> Optional[SecretRecord]:
        with self._lock:
            return self._records.get(owner_id)

    def put(self, record: SecretRecord) -> SecretRecord:
        with self._lock:
            current = self._records.get(record.owner_id)
            version = current.version + 1 if current is not None else 0
            stored = record.evolve(version=version)
            self._records[record.owner_id] = stored
            return stored

    def compare_and_swap(self, owner_id: str, expected_version: int, new_record: SecretRecord) -> bool:
        with self._lock:
            current = self._records.get(owner_id)
            if current is None or current.version != expected_version:
                return False
            self._records[owner_id] = new_record.evolve(version=expected_version + 1)
            return True

    def delete(self, owner_id: str) -> bool:
        with self._lock:
            return self._records.pop(owner_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class InMemoryChallengeStore:

    def __init__(self):
        self._challenges: Dict[str, Challenge] = {}
        self._lock = threading.RLock()

    def get(self, challenge_id: str) -> Optional[Challenge]:
        with self._lock:
            return self._challenges.get(challenge_id)

    def put(self, challenge: Challenge) -> None:
        with self._lock:
            self._challenges[challenge.challenge_id] = challenge

    def mark_used(self, challenge_id: str) -> bool:
        with self._lock:
            challenge = self._challenges.get(challenge_id)
            if challenge is None or challenge.used:
                return False
            self._challenges[challenge_id] = challenge.mark_used()
            return True

    def delete_for_owner(self, owner_id: str) -> int:
        with self._lock:
            doomed = [cid for cid, c in self._challenges.items() if c.owner_id == owner_id]
            for cid in doomed:
                del self._challenges[cid]
            return len(doomed)

    def purge_expired(self, now: datetime) -> int:
        """Drop used or expired challenges (call periodically to bound memory)."""
        with self._lock:
            doomed = [
                cid for cid, c in self._challenges.items()
                if c.used or c.is_expired(now)
            ]
            for cid in doomed:
                del self._challenges[cid]
            return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._challenges)
