from .enrollment import EnrollmentFlow
from .mfa import MfaService
from .verification import VerificationFlow

__all__ = ["EnrollmentFlow", "MfaService", "VerificationFlow"]
