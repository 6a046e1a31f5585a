"""Submission cooldown and per-client request limiting."""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class SubmissionThrottled(RuntimeError):
    """A full run was requested before the cooldown elapsed."""

    def __init__(self, wait_seconds: int):
        self.wait_seconds = wait_seconds
        super().__init__(f"Please wait {wait_seconds} seconds before submitting another question.")


class RateLimitWindow:
    """Minimum interval between accepted full-run submissions.

    One window belongs to one controller. A submission exactly
    `cooldown_seconds` after the previous accepted one is allowed.
    """

    def __init__(self, cooldown_seconds: float, clock: Clock = time.monotonic):
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._last_submission: Optional[float] = None

    @property
    def last_submission(self) -> Optional[float]:
        return self._last_submission

    def remaining(self) -> float:
        """Seconds until the next submission is allowed (0 if allowed now)."""
        if self._last_submission is None:
            return 0.0
        elapsed = self._clock() - self._last_submission
        return max(0.0, self.cooldown_seconds - elapsed)

    def check(self) -> None:
        """Raise SubmissionThrottled if a submission now would be rejected."""
        remaining = self.remaining()
        if remaining > 0:
            raise SubmissionThrottled(math.ceil(remaining))

    def record(self) -> None:
        self._last_submission = self._clock()

    def check_and_record(self) -> None:
        """Accept a submission now or raise without recording anything."""
        self.check()
        self.record()


@dataclass
class RequestAllowance:
    allowed: bool
    limit: int
    remaining: int
    reset_in: float


class RequestRateLimiter:
    """Fixed-window request counter keyed by client.

    Windows start at a client's first request and last `window_seconds`.
    Expired windows are dropped lazily as new requests arrive.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Clock = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}

    def hit(self, client_key: str) -> RequestAllowance:
        """Count one request for client_key and report whether it is allowed."""
        now = self._clock()
        self._prune(now)

        reset_at, count = self._windows.get(client_key, (now + self.window_seconds, 0))
        if count >= self.max_requests:
            logger.info(f"[rate-limit] {client_key} over limit ({count}/{self.max_requests})")
            return RequestAllowance(False, self.max_requests, 0, reset_at - now)

        count += 1
        self._windows[client_key] = (reset_at, count)
        return RequestAllowance(True, self.max_requests, self.max_requests - count, reset_at - now)

    def _prune(self, now: float) -> None:
        expired = [key for key, (reset_at, _) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]
