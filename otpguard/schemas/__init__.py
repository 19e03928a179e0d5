from .mfa import MfaResult, RemovalOutcome, SetupChallenge

__all__ = ["MfaResult", "RemovalOutcome", "SetupChallenge"]
