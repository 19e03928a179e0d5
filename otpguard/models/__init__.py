# otpguard/models/__init__.py
from .challenge import Challenge
from .secret_record import SecretRecord

__all__ = ["Challenge", "SecretRecord"]
