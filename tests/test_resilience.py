import pytest
import requests

from pomigrate.exceptions import AuthorizationError, ConnectivityError, RateLimitError
from pomigrate.models.migration import ImportConfig
from pomigrate.services.resilience import RateLimiter, ResiliencePolicy, is_retryable


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class Flaky:
    """Fails with the given errors, then returns "ok"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def test_backoff_doubles_up_to_max():
    policy = ResiliencePolicy(max_attempts=10, min_delay=1, max_delay=30, sleep=lambda s: None)

    assert [policy.delay_for(n) for n in range(1, 8)] == [1, 2, 4, 8, 16, 30, 30]


def test_retry_after_wins_when_larger():
    policy = ResiliencePolicy(min_delay=1, max_delay=30, sleep=lambda s: None)

    assert policy.delay_for(1, RateLimitError("slow down", retry_after=12)) == 12
    assert policy.delay_for(1, RateLimitError("slow down", retry_after=90)) == 30


def test_retries_transient_failures():
    sleeps = []
    policy = ResiliencePolicy(max_attempts=5, min_delay=1, sleep=sleeps.append)
    func = Flaky(ConnectivityError("502"), requests.Timeout("slow"))

    assert policy.call(func) == "ok"
    assert func.calls == 3
    assert sleeps == [1, 2]


def test_gives_up_after_max_attempts():
    sleeps = []
    policy = ResiliencePolicy(max_attempts=3, min_delay=1, sleep=sleeps.append)
    func = Flaky(*[RateLimitError("429") for _ in range(5)])

    with pytest.raises(RateLimitError):
        policy.call(func)
    assert func.calls == 3
    assert len(sleeps) == 2


def test_authorization_failure_not_retried():
    policy = ResiliencePolicy(max_attempts=5, sleep=lambda s: pytest.fail("should not sleep"))
    func = Flaky(AuthorizationError("401"))

    with pytest.raises(AuthorizationError):
        policy.call(func)
    assert func.calls == 1


def test_unexpected_errors_propagate_immediately():
    policy = ResiliencePolicy(max_attempts=5, sleep=lambda s: None)
    func = Flaky(KeyError("boom"))

    with pytest.raises(KeyError):
        policy.call(func)
    assert func.calls == 1


def test_retryable_classification():
    assert is_retryable(RateLimitError("x"))
    assert is_retryable(ConnectivityError("x"))
    assert not is_retryable(ConnectivityError("x", retryable=False))
    assert not is_retryable(AuthorizationError("x"))
    assert is_retryable(requests.ConnectionError("x"))
    assert not is_retryable(ValueError("x"))


def test_invalid_policy_arguments():
    with pytest.raises(ValueError):
        ResiliencePolicy(max_attempts=0)
    with pytest.raises(ValueError):
        ResiliencePolicy(min_delay=5, max_delay=1)


class TestRateLimiter:
    def test_waits_when_window_is_full(self):
        clock = FakeClock()
        limiter = RateLimiter(max_calls=3, window_seconds=60, clock=clock, sleep=clock.sleep)

        for _ in range(3):
            assert limiter.acquire() == 0
            clock.now += 1

        waited = limiter.acquire()

        assert waited == pytest.approx(57)
        assert clock.sleeps == [pytest.approx(57)]
        assert clock.now == pytest.approx(60)

    def test_lagging_clock_never_exceeds_budget(self):
        clock = FakeClock()
        lag = [0.5]

        def short_sleep(seconds):
            # First wake-up reads half a second early
            clock.sleeps.append(seconds)
            clock.now += seconds - (lag.pop() if lag else 0)

        limiter = RateLimiter(max_calls=2, window_seconds=10, clock=clock, sleep=short_sleep)
        limiter.acquire()
        limiter.acquire()

        limiter.acquire()

        assert clock.sleeps == [pytest.approx(10), pytest.approx(0.5)]
        assert clock.now == pytest.approx(10)

    def test_old_calls_expire(self):
        clock = FakeClock()
        limiter = RateLimiter(max_calls=2, window_seconds=10, clock=clock, sleep=clock.sleep)

        limiter.acquire()
        limiter.acquire()
        clock.now = 11

        assert limiter.acquire() == 0
        assert clock.sleeps == []

    def test_policy_consults_limiter(self):
        clock = FakeClock()
        limiter = RateLimiter(max_calls=1, window_seconds=60, clock=clock, sleep=clock.sleep)
        policy = ResiliencePolicy(rate_limiter=limiter, sleep=clock.sleep)

        policy.call(lambda: "a")
        policy.call(lambda: "b")

        assert clock.sleeps == [60]


def test_policy_from_config():
    config = ImportConfig(max_retries=3, retry_min_delay=0.5, retry_max_delay=4, rate_limit_per_minute=10)

    policy = ResiliencePolicy.from_config(config, sleep=lambda s: None)

    assert policy.max_attempts == 3
    assert policy.delay_for(4) == 4
    assert policy.rate_limiter.max_calls == 10
