"""
Pytest configuration and shared fixtures for otpguard tests.

Time is never read from the wall clock: every test passes an explicit
``now`` derived from NOW below.
"""
from datetime import datetime, timedelta, timezone

import pytest

from otpguard.core.config import MfaSettings
from otpguard.security.otp import OtpCodeGenerator
from otpguard.services.mfa import MfaService

# 10 seconds into the 30 s window starting at 1704110400
NOW = datetime(2024, 1, 1, 12, 0, 10, tzinfo=timezone.utc)
TOKEN_SECRET = "test-token-secret"


def wrong_code(generator: OtpCodeGenerator, secret: str, now) -> str:
    """A code that is not valid anywhere inside the tolerance window at ``now``."""
    counter = generator.timecode(now)
    valid = {
        generator.compute_code(secret, counter + k)
        for k in range(-generator.window_tolerance, generator.window_tolerance + 1)
    }
    for digit in "0123456789":
        candidate = digit * generator.digits
        if candidate not in valid:
            return candidate
    raise AssertionError("unreachable")


# ============================================
# Configuration / generator
# ============================================

@pytest.fixture
def config():
    return MfaSettings(
        _env_file=None,
        issuer="ACME",
        backup_code_count=3,
        token_secret=TOKEN_SECRET,
    )


@pytest.fixture
def generator(config):
    return OtpCodeGenerator.from_settings(config)


# ============================================
# Service fixtures
# ============================================

@pytest.fixture
def service(config):
    return MfaService.in_memory(config=config)


@pytest.fixture
def enrolled(service):
    """
    An owner with an active secret, enrolled at NOW.

    Returns (owner_id, secret, backup_codes).
    """
    owner_id = "user-1"
    setup = service.enrollment.init_setup(owner_id, "alice@example.com", now=NOW)
    code = service.generator.current_code(setup.secret, NOW)
    result = service.enrollment.complete_setup(owner_id, setup.challenge_id, code, now=NOW)
    assert result.success
    return owner_id, setup.secret, result.backup_codes


@pytest.fixture
def later():
    """Two windows after enrollment, so the enrollment window is not in play."""
    return NOW + timedelta(seconds=60)
