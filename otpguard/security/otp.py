"""
RFC 6238 time-based one-time codes.

The HOTP core (HMAC-SHA1, dynamic truncation, zero padding) is pyotp's;
this module adds the time stepping, drift window and provisioning URI
the enrollment and verification flows rely on.
"""
from __future__ import annotations

import base64
import binascii
import logging
import os
from datetime import datetime
from typing import Optional, Union

import pyotp
from pyotp.utils import strings_equal

from otpguard.core.config import MfaSettings, settings
from otpguard.core.errors import InvalidSecretError, SecretGenerationError

logger = logging.getLogger(__name__)

Timestamp = Union[int, float, datetime]


def _unix_seconds(for_time: Timestamp) -> float:
    if isinstance(for_time, datetime):
        return for_time.timestamp()
    return float(for_time)


class OtpCodeGenerator:
    """
    Stateless TOTP generator/verifier.

    All methods are pure given (secret, time); the only failure mode is a
    malformed secret, reported as ``InvalidSecretError``.
    """

    def __init__(
        self,
        step: int = 30,
        digits: int = 6,
        window_tolerance: int = 1,
        secret_byte_length: int = 20,
    ) -> None:
        if step <= 0:
            raise ValueError("step must be a positive number of seconds")
        if not 1 <= digits <= 10:
            raise ValueError("digits must be between 1 and 10")
        if window_tolerance < 0:
            raise ValueError("window_tolerance must not be negative")
        self.step = step
        self.digits = digits
        self.window_tolerance = window_tolerance
        self.secret_byte_length = secret_byte_length

    @classmethod
    def from_settings(cls, config: MfaSettings | None = None) -> "OtpCodeGenerator":
        config = config or settings
        return cls(
            step=config.step,
            digits=config.digits,
            window_tolerance=config.window_tolerance,
            secret_byte_length=config.secret_byte_length,
        )

    def generate_secret(self) -> str:
        """Random secret, base32 without '=' padding (20 bytes -> 32 chars)."""
        try:
            raw = os.urandom(self.secret_byte_length)
        except (NotImplementedError, OSError) as exc:
            logger.critical("Secure random source unavailable")
            raise SecretGenerationError("Secure random source unavailable") from exc
        return base64.b32encode(raw).decode("ascii").rstrip("=")

    def timecode(self, for_time: Timestamp) -> int:
        return int(_unix_seconds(for_time) // self.step)

    def compute_code(self, secret: str, counter: int) -> str:
        if not secret:
            raise InvalidSecretError("Empty TOTP secret")
        if counter < 0:
            raise ValueError("counter must not be negative")
        try:
            return pyotp.HOTP(secret, digits=self.digits).at(counter)
        except binascii.Error as exc:
            # never echo the secret itself
            raise InvalidSecretError("Invalid base32 TOTP secret") from exc

    def current_code(self, secret: str, now: Timestamp) -> str:
        return self.compute_code(secret, self.timecode(now))

    def match_counter(
        self,
        secret: str,
        candidate: str,
        now: Timestamp,
        window_tolerance: Optional[int] = None,
    ) -> Optional[int]:
        """
        Return the counter whose code equals ``candidate``, scanning
        ``counterNow - w .. counterNow + w`` in ascending order, or None.
        """
        if candidate is None:
            return None
        candidate = str(candidate).strip()
        if not candidate:
            return None

        tolerance = self.window_tolerance if window_tolerance is None else window_tolerance
        counter_now = self.timecode(now)
        for offset in range(-tolerance, tolerance + 1):
            counter = counter_now + offset
            if counter < 0:
                continue
            if strings_equal(candidate, self.compute_code(secret, counter)):
                logger.debug("TOTP matched at window offset %d", offset)
                return counter
        return None

    def verify(
        self,
        secret: str,
        candidate: str,
        now: Timestamp,
        window_tolerance: Optional[int] = None,
    ) -> bool:
        return self.match_counter(secret, candidate, now, window_tolerance) is not None

    def provisioning_uri(self, secret: str, account_label: str, issuer_label: str) -> str:
        """
        otpauth:// URI for QR provisioning, e.g.

            otpauth://totp/alice?secret=JBSWY3DPEHPK3PXP&issuer=ACME&digits=6&period=30
        """
        return "otpauth://totp/{0}?secret={1}&issuer={2}&digits={3}&period={4}".format(
            account_label,
            secret,
            issuer_label,
            self.digits,
            self.step,
        )

    def seconds_remaining(self, now: Timestamp) -> int:
        """Seconds until the code for ``now`` rolls over."""
        return self.step - int(_unix_seconds(now)) % self.step
