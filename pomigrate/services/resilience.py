"""Retry with exponential backoff and a rolling-window rate limiter."""

import logging
import time
from collections import deque
from typing import Callable, Deque, Optional, TypeVar

import requests

from ..exceptions import ConnectivityError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_MIN_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0
DEFAULT_CALLS_PER_MINUTE = 300


class RateLimiter:
    """
    Allows at most max_calls within any rolling window of window_seconds.

    When the budget is spent, acquire() sleeps until the oldest call in
    the window expires.
    """

    def __init__(
        self,
        max_calls: int = DEFAULT_CALLS_PER_MINUTE,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_calls <= 0:
            raise ValueError("max_calls must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._calls: Deque[float] = deque()

    def _expire(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()

    def acquire(self) -> float:
        """
        Record a call, waiting first if the window is full.

        Returns:
            Seconds spent waiting
        """
        now = self._clock()
        self._expire(now)
        waited = 0.0
        while len(self._calls) >= self.max_calls:
            delay = self.window_seconds - (now - self._calls[0])
            logger.info(f"Rate limit reached, waiting {delay:.1f}s")
            self._sleep(delay)
            waited += delay
            now = self._clock()
            self._expire(now)
        self._calls.append(now)
        return waited


def is_retryable(error: BaseException) -> bool:
    """Decide whether an error is worth another attempt."""
    if isinstance(error, RateLimitError):
        return True
    if isinstance(error, ConnectivityError):
        return error.retryable
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return True
    return False


class ResiliencePolicy:
    """
    Bounded retry with exponential backoff, plus an optional rate limiter.

    Retries rate-limit and transient connectivity failures. Authorization
    failures and every other exception propagate on the first attempt.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        min_delay: float = DEFAULT_MIN_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the policy.

        Args:
            max_attempts: Total attempts including the first
            min_delay: Delay before the first retry, in seconds
            max_delay: Upper bound for any single delay
            rate_limiter: Limiter consulted before every attempt
            sleep: Sleep function, injectable for tests
        """
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if min_delay <= 0:
            raise ValueError("min_delay must be positive")
        if max_delay < min_delay:
            raise ValueError("max_delay must not be smaller than min_delay")
        self.max_attempts = max_attempts
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.rate_limiter = rate_limiter
        self._sleep = sleep

    @classmethod
    def from_config(cls, config, sleep: Callable[[float], None] = time.sleep) -> "ResiliencePolicy":
        """Build a policy from an ImportConfig."""
        return cls(
            max_attempts=config.max_retries,
            min_delay=config.retry_min_delay,
            max_delay=config.retry_max_delay,
            rate_limiter=RateLimiter(max_calls=config.rate_limit_per_minute, sleep=sleep),
            sleep=sleep,
        )

    def delay_for(self, attempt: int, error: Optional[BaseException] = None) -> float:
        """
        Delay before the retry that follows the given failed attempt.

        Args:
            attempt: 1-based number of the attempt that failed
            error: The failure, consulted for a server-provided retry-after

        Returns:
            Delay in seconds
        """
        delay = min(self.max_delay, self.min_delay * (2 ** (attempt - 1)))
        retry_after = getattr(error, "retry_after", None)
        if retry_after:
            delay = min(self.max_delay, max(delay, float(retry_after)))
        return delay

    def call(self, func: Callable[[], T], description: str = "request") -> T:
        """
        Run func under the policy.

        Args:
            func: Zero-argument callable performing one external call
            description: Label used in log messages

        Returns:
            Whatever func returns

        Raises:
            The last error once attempts are exhausted, or the first
            non-retryable error
        """
        attempt = 0
        while True:
            attempt += 1
            if self.rate_limiter is not None:
                self.rate_limiter.acquire()
            try:
                return func()
            except Exception as e:
                if not is_retryable(e) or attempt >= self.max_attempts:
                    if attempt > 1:
                        logger.error(f"{description} failed after {attempt} attempts: {e}")
                    raise
                delay = self.delay_for(attempt, e)
                logger.warning(
                    f"{description} failed (attempt {attempt}/{self.max_attempts}): {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                self._sleep(delay)


# No retries and no limiter: used for the in-memory sandbox
NO_RETRY = ResiliencePolicy(max_attempts=1)
