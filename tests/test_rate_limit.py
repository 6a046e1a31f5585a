"""Tests for the submission cooldown and the per-client request limiter."""

import pytest

from src.orchestrator.rate_limit import RateLimitWindow, RequestRateLimiter, SubmissionThrottled


class TestRateLimitWindow:

    def test_first_submission_allowed(self, clock):
        window = RateLimitWindow(60, clock)
        window.check_and_record()
        assert window.last_submission == clock.now

    def test_rejects_within_cooldown_with_rounded_up_wait(self, clock):
        window = RateLimitWindow(60, clock)
        window.check_and_record()
        clock.advance(30.2)

        with pytest.raises(SubmissionThrottled) as exc_info:
            window.check_and_record()

        assert exc_info.value.wait_seconds == 30
        assert "Please wait 30 seconds" in str(exc_info.value)

    def test_rejection_does_not_restart_the_window(self, clock):
        window = RateLimitWindow(60, clock)
        window.check_and_record()
        first = window.last_submission
        clock.advance(10)
        with pytest.raises(SubmissionThrottled):
            window.check_and_record()
        assert window.last_submission == first

    def test_exact_boundary_is_allowed(self, clock):
        window = RateLimitWindow(60, clock)
        window.check_and_record()
        clock.advance(59.5)
        with pytest.raises(SubmissionThrottled) as exc_info:
            window.check()
        assert exc_info.value.wait_seconds == 1

        clock.advance(0.5)
        window.check_and_record()

    def test_remaining(self, clock):
        window = RateLimitWindow(60, clock)
        assert window.remaining() == 0
        window.record()
        clock.advance(45)
        assert window.remaining() == pytest.approx(15)


class TestRequestRateLimiter:

    def test_counts_down_then_blocks(self, clock):
        limiter = RequestRateLimiter(3, 60, clock)
        allowances = [limiter.hit("1.2.3.4") for _ in range(4)]

        assert [a.allowed for a in allowances] == [True, True, True, False]
        assert [a.remaining for a in allowances] == [2, 1, 0, 0]
        assert allowances[-1].reset_in == pytest.approx(60)

    def test_window_resets(self, clock):
        limiter = RequestRateLimiter(1, 60, clock)
        assert limiter.hit("a").allowed
        assert not limiter.hit("a").allowed
        clock.advance(60)
        assert limiter.hit("a").allowed

    def test_clients_are_independent(self, clock):
        limiter = RequestRateLimiter(1, 60, clock)
        assert limiter.hit("a").allowed
        assert limiter.hit("b").allowed
        assert not limiter.hit("a").allowed
