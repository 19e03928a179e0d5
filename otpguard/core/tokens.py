from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

from jose import JWTError, jwt

from otpguard.core.config import MfaSettings, settings

# Anything that turns an owner id into an opaque short-lived token.
VerificationTokenIssuer = Callable[[str], str]


class JwtVerificationTokenIssuer:
    """
    Issues short-lived JWTs proving that ``sub`` just passed MFA.
    Payload: sub, iat, exp and ``mfa: true``.
    """

    def __init__(
        self,
        secret: str | None = None,
        algorithm: str | None = None,
        expires_minutes: int | None = None,
        config: MfaSettings | None = None,
    ):
        config = config or settings
        self.secret = secret or config.token_secret
        self.algorithm = algorithm or config.token_algorithm
        self.expires_minutes = (
            config.token_expire_minutes if expires_minutes is None else expires_minutes
        )

    def __call__(self, owner_id: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": owner_id,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=self.expires_minutes)).timestamp()),
            "mfa": True,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> dict | None:
        return decode_verification_token(token, self.secret, self.algorithm)


def decode_verification_token(
    token: str,
    secret: str | None = None,
    algorithm: str | None = None,
) -> dict | None:
    try:
        payload = jwt.decode(
            token,
            secret or settings.token_secret,
            algorithms=[algorithm or settings.token_algorithm],
        )
    except JWTError:
        return None
    if not payload.get("mfa") or not payload.get("sub"):
        return None
    return payload
