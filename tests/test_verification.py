"""
Tests for login-time TOTP verification.

Covers:
- Success and verification tokens
- Anti-replay
- Failure counting, lockout and unlock
- Backup codes
- Concurrent verification of one owner
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from otpguard.core.errors import ConcurrentUpdateError, FailureReason
from otpguard.core.tokens import decode_verification_token
from otpguard.services.mfa import MfaService
from otpguard.store import InMemoryChallengeStore, InMemorySecretStore

from .conftest import NOW, TOKEN_SECRET, wrong_code


def code_at(service, secret, when, offset=0):
    return service.generator.compute_code(secret, service.generator.timecode(when) + offset)


class TestVerify:

    def test_success_issues_token(self, service, enrolled, later):
        owner_id, secret, _ = enrolled

        result = service.verification.verify(owner_id, code_at(service, secret, later), now=later)

        assert result.success
        payload = decode_verification_token(result.verification_token, TOKEN_SECRET)
        assert payload["sub"] == owner_id
        assert payload["mfa"] is True

    def test_success_resets_failures(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        service.verification.verify(owner_id, wrong_code(service.generator, secret, later), now=later)
        assert service.verification.secrets.get(owner_id).failure_count == 1

        assert service.verification.verify(owner_id, code_at(service, secret, later), now=later).success

        record = service.verification.secrets.get(owner_id)
        assert record.failure_count == 0
        assert record.last_failure_at is None
        assert record.last_used_counter == service.generator.timecode(later)

    def test_injected_token_issuer(self, config, later):
        service = MfaService.in_memory(config=config, token_issuer=lambda owner: f"tok-{owner}")
        setup = service.enrollment.init_setup("user-9", now=NOW)
        service.enrollment.complete_setup(
            "user-9", setup.challenge_id, service.generator.current_code(setup.secret, NOW), now=NOW,
        )

        result = service.verification.verify("user-9", code_at(service, setup.secret, later), now=later)

        assert result.verification_token == "tok-user-9"

    @pytest.mark.parametrize("offset", [-1, 1])
    def test_adjacent_window_accepted(self, service, enrolled, later, offset):
        owner_id, secret, _ = enrolled
        result = service.verification.verify(owner_id, code_at(service, secret, later, offset), now=later)
        assert result.success

    def test_code_two_windows_old_rejected(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        result = service.verification.verify(owner_id, code_at(service, secret, later, -2), now=later)
        assert result.reason == FailureReason.INVALID_CODE
        assert result.remaining_attempts == 4

    def test_unknown_owner(self, service):
        result = service.verification.verify("ghost", "123456", now=NOW)
        assert result.reason == FailureReason.NOT_ENROLLED

    def test_pending_owner_is_not_enrolled(self, service):
        setup = service.enrollment.init_setup("user-2", now=NOW)
        result = service.verification.verify("user-2", service.generator.current_code(setup.secret, NOW), now=NOW)
        assert result.reason == FailureReason.NOT_ENROLLED

    @pytest.mark.parametrize("code", ["", "   ", None])
    def test_empty_code_does_not_count(self, service, enrolled, later, code):
        owner_id, _, _ = enrolled
        result = service.verification.verify(owner_id, code, now=later)
        assert result.reason == FailureReason.EMPTY_CODE
        assert service.verification.secrets.get(owner_id).failure_count == 0


class TestReplay:

    def test_same_code_same_window(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        code = code_at(service, secret, later)
        assert service.verification.verify(owner_id, code, now=later).success

        again = service.verification.verify(owner_id, code, now=later + timedelta(seconds=5))

        assert again.reason == FailureReason.CODE_ALREADY_USED
        assert service.verification.secrets.get(owner_id).failure_count == 0

    def test_any_code_in_consumed_window(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        assert service.verification.verify(owner_id, code_at(service, secret, later), now=later).success

        wrong = wrong_code(service.generator, secret, later)
        result = service.verification.verify(owner_id, wrong, now=later)

        assert result.reason == FailureReason.CODE_ALREADY_USED

    def test_enrollment_code_cannot_log_in(self, service, enrolled):
        owner_id, secret, _ = enrolled
        code = service.generator.current_code(secret, NOW)
        result = service.verification.verify(owner_id, code, now=NOW + timedelta(seconds=3))
        assert result.reason == FailureReason.CODE_ALREADY_USED

    def test_drifted_replay_in_next_window(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        code = code_at(service, secret, later)
        assert service.verification.verify(owner_id, code, now=later).success

        next_window = later + timedelta(seconds=30)
        result = service.verification.verify(owner_id, code, now=next_window)

        assert result.reason == FailureReason.CODE_ALREADY_USED

    def test_next_window_code_works(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        assert service.verification.verify(owner_id, code_at(service, secret, later), now=later).success

        next_window = later + timedelta(seconds=30)
        result = service.verification.verify(owner_id, code_at(service, secret, next_window), now=next_window)

        assert result.success

    def test_last_used_counter_never_decreases(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        ahead = code_at(service, secret, later, 1)
        assert service.verification.verify(owner_id, ahead, now=later).success
        assert service.verification.secrets.get(owner_id).last_used_counter == service.generator.timecode(later) + 1

        behind = code_at(service, secret, later, -1)
        result = service.verification.verify(owner_id, behind, now=later)

        assert result.reason == FailureReason.CODE_ALREADY_USED
        assert service.verification.secrets.get(owner_id).last_used_counter == service.generator.timecode(later) + 1


class TestLockout:

    def _fail(self, service, owner_id, secret, now, times):
        bad = wrong_code(service.generator, secret, now)
        return [service.verification.verify(owner_id, bad, now=now) for _ in range(times)]

    def test_remaining_attempts_count_down(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        results = self._fail(service, owner_id, secret, later, 4)
        assert [r.reason for r in results] == [FailureReason.INVALID_CODE] * 4
        assert [r.remaining_attempts for r in results] == [4, 3, 2, 1]

    def test_last_allowed_failure_locks(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        results = self._fail(service, owner_id, secret, later, 5)

        assert results[-1].reason == FailureReason.TOO_MANY_ATTEMPTS
        assert results[-1].remaining_lockout_seconds == 900
        assert service.verification.lockout_status(owner_id, now=later) == 900

    def test_correct_code_refused_while_locked(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        self._fail(service, owner_id, secret, later, 5)

        when = later + timedelta(seconds=10)
        result = service.verification.verify(owner_id, code_at(service, secret, when), now=when)

        assert result.reason == FailureReason.ACCOUNT_LOCKED
        assert result.remaining_lockout_seconds == 890
        assert service.verification.secrets.get(owner_id).failure_count == 5

    def test_unlocks_after_duration(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        self._fail(service, owner_id, secret, later, 5)

        when = later + timedelta(minutes=15)
        assert service.verification.lockout_status(owner_id, now=when) == 0
        result = service.verification.verify(owner_id, code_at(service, secret, when), now=when)

        assert result.success
        assert service.verification.secrets.get(owner_id).failure_count == 0

    def test_elapsed_lockout_does_not_reset_failures(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        self._fail(service, owner_id, secret, later, 5)

        when = later + timedelta(minutes=16)
        result = self._fail(service, owner_id, secret, when, 1)[0]

        assert result.reason == FailureReason.TOO_MANY_ATTEMPTS
        assert service.verification.secrets.get(owner_id).failure_count == 6
        assert service.verification.lockout_status(owner_id, now=when) == 900

    def test_locked_empty_code_reports_lock(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        self._fail(service, owner_id, secret, later, 5)
        result = service.verification.verify(owner_id, "", now=later)
        assert result.reason == FailureReason.ACCOUNT_LOCKED


class TestBackupCodes:

    def test_each_code_works_once(self, service, enrolled, later):
        owner_id, _, backup_codes = enrolled

        first = service.verification.verify_backup_code(owner_id, backup_codes[0], now=later)
        second = service.verification.verify_backup_code(owner_id, backup_codes[0], now=later)

        assert first.success
        assert first.verification_token
        assert second.reason == FailureReason.INVALID_CODE
        assert len(service.verification.secrets.get(owner_id).backup_code_hashes) == 2

    def test_formatting_is_ignored(self, service, enrolled, later):
        owner_id, _, backup_codes = enrolled
        sloppy = backup_codes[1].replace("-", " ").lower()
        assert service.verification.verify_backup_code(owner_id, sloppy, now=later).success

    def test_failures_share_totp_lockout(self, service, enrolled, later):
        owner_id, secret, backup_codes = enrolled
        for _ in range(5):
            service.verification.verify_backup_code(owner_id, "0000-0000", now=later)

        assert service.verification.verify_backup_code(owner_id, backup_codes[0], now=later).reason == (
            FailureReason.ACCOUNT_LOCKED
        )
        assert service.verification.verify(owner_id, code_at(service, secret, later), now=later).reason == (
            FailureReason.ACCOUNT_LOCKED
        )

    def test_not_enrolled(self, service):
        result = service.verification.verify_backup_code("ghost", "AAAA-BBBB", now=NOW)
        assert result.reason == FailureReason.NOT_ENROLLED


class TestConcurrency:

    def test_valid_code_is_accepted_once(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        code = code_at(service, secret, later)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: service.verification.verify(owner_id, code, now=later), range(16)))

        assert sum(r.success for r in results) == 1
        assert all(r.reason == FailureReason.CODE_ALREADY_USED for r in results if not r.success)

    def test_parallel_failures_reach_lockout(self, service, enrolled, later):
        owner_id, secret, _ = enrolled
        bad = wrong_code(service.generator, secret, later)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: service.verification.verify(owner_id, bad, now=later), range(10)))

        reasons = [r.reason for r in results]
        assert reasons.count(FailureReason.INVALID_CODE) == 4
        assert reasons.count(FailureReason.TOO_MANY_ATTEMPTS) == 1
        assert reasons.count(FailureReason.ACCOUNT_LOCKED) == 5
        assert service.verification.secrets.get(owner_id).failure_count == 5

    def test_lost_compare_and_swap_raises(self, config, later):
        class RacingSecretStore(InMemorySecretStore):
            racing = False

            def compare_and_swap(self, owner_id, expected_version, new_record):
                if self.racing:
                    return False
                return super().compare_and_swap(owner_id, expected_version, new_record)

        secrets = RacingSecretStore()
        service = MfaService(secrets, InMemoryChallengeStore(), config=config)
        setup = service.enrollment.init_setup("user-1", now=NOW)
        service.enrollment.complete_setup(
            "user-1", setup.challenge_id, service.generator.current_code(setup.secret, NOW), now=NOW,
        )
        secrets.racing = True

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            service.verification.verify("user-1", code_at(service, setup.secret, later), now=later)
        assert exc_info.value.reason == FailureReason.INFRA_ERROR
        assert secrets.get("user-1").last_used_counter == service.generator.timecode(NOW)
