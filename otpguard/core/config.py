from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MfaSettings(BaseSettings):
    issuer: str = "otpguard"

    # TOTP
    step: int = Field(default=30, gt=0)
    digits: int = Field(default=6, ge=6, le=8)
    window_tolerance: int = Field(default=1, ge=0)
    secret_byte_length: int = Field(default=20, ge=16)

    # Lockout / enrollment
    max_failure_attempts: int = Field(default=5, gt=0)
    lockout_duration: timedelta = timedelta(minutes=15)
    challenge_ttl: timedelta = timedelta(minutes=10)
    backup_code_count: int = Field(default=10, ge=0)

    # Verification tokens
    token_secret: str = "change-me"
    token_algorithm: str = "HS256"
    token_expire_minutes: int = 5

    model_config = SettingsConfigDict(
        env_prefix="MFA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = MfaSettings()
