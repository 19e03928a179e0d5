from .base import ChallengeStore, SecretStore
from .memory import InMemoryChallengeStore, InMemorySecretStore

__all__ = [
    "ChallengeStore",
    "SecretStore",
    "InMemoryChallengeStore",
    "InMemorySecretStore",
]
