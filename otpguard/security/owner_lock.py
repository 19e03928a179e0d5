"""
Per-owner mutual exclusion for read-check-write sequences on a secret record.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, Iterator


@dataclass
class _OwnerLock:
    lock: Lock = field(default_factory=Lock)
    refs: int = 0  # threads holding or waiting


class OwnerLocks:
    """
    Hands out one lock per owner id. Entries are reference counted and
    dropped once no thread holds or waits on them, so the map only ever
    contains owners with a request in flight.
    """

    def __init__(self):
        self._guard = Lock()
        self._locks: Dict[str, _OwnerLock] = {}

    @contextmanager
    def hold(self, owner_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(owner_id, _OwnerLock())
            entry.refs += 1

        with entry.lock:
            try:
                yield
            finally:
                with self._guard:
                    entry.refs -= 1
                    if entry.refs == 0:
                        del self._locks[owner_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
