"""
Unit tests for services.rate_limiter.RateLimiter.

Time is driven by a fake clock; nothing sleeps.
"""

from __future__ import annotations

import pytest

from equalpay.app.services.rate_limiter import RateLimiter


class FakeClock:

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_allows_up_to_limit_then_blocks():
    limiter = RateLimiter(limit=3, window_seconds=60, clock=FakeClock())

    assert [limiter.hit("k") for _ in range(3)] == [False, False, False]
    assert limiter.hit("k") is True
    assert limiter.hit("k") is True


def test_window_expiry_resets_count():
    clock = FakeClock()
    limiter = RateLimiter(limit=1, window_seconds=10, clock=clock)

    assert limiter.hit("k") is False
    assert limiter.hit("k") is True

    clock.advance(10)

    assert limiter.hit("k") is False


def test_keys_are_independent():
    limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())

    assert limiter.hit("expenses:create:u1") is False
    assert limiter.hit("expenses:create:u1") is True
    assert limiter.hit("expenses:create:u2") is False


def test_remaining_counts_down_and_recovers():
    clock = FakeClock()
    limiter = RateLimiter(limit=2, window_seconds=5, clock=clock)

    assert limiter.remaining("k") == 2
    limiter.hit("k")
    assert limiter.remaining("k") == 1
    limiter.hit("k")
    limiter.hit("k")
    assert limiter.remaining("k") == 0

    clock.advance(5)
    assert limiter.remaining("k") == 2


def test_retry_after_rounds_up_to_whole_seconds():
    clock = FakeClock()
    limiter = RateLimiter(limit=1, window_seconds=30, clock=clock)

    assert limiter.retry_after("k") == 0
    limiter.hit("k")
    assert limiter.retry_after("k") == 30

    clock.advance(12.5)
    assert limiter.retry_after("k") == 18

    clock.advance(20)
    assert limiter.retry_after("k") == 0


def test_store_is_bounded_by_max_keys():
    limiter = RateLimiter(limit=5, window_seconds=60, max_keys=3, clock=FakeClock())

    for key in ("a", "b", "c", "d", "e"):
        limiter.hit(key)

    assert len(limiter._windows) == 3


def test_oldest_window_is_evicted_first():
    limiter = RateLimiter(limit=1, window_seconds=60, max_keys=2, clock=FakeClock())

    limiter.hit("a")
    limiter.hit("b")
    limiter.hit("c")  # evicts "a"

    # "a" starts a fresh window; "c" is still counted.
    assert limiter.hit("a") is False
    assert limiter.hit("c") is True


def test_expired_windows_are_pruned_before_eviction():
    clock = FakeClock()
    limiter = RateLimiter(limit=1, window_seconds=10, max_keys=2, clock=clock)

    limiter.hit("old")
    clock.advance(5)
    limiter.hit("live")
    clock.advance(6)  # "old" expired, "live" has 4s left

    limiter.hit("new")

    assert len(limiter._windows) == 2
    assert limiter.hit("live") is True


def test_reset_clears_all_windows():
    limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())
    limiter.hit("k")
    limiter.hit("k")

    limiter.reset()

    assert len(limiter._windows) == 0
    assert limiter.hit("k") is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 5, "window_seconds": 0},
        {"limit": 5, "window_seconds": 60, "max_keys": 0},
    ],
)
def test_rejects_non_positive_settings(kwargs):
    with pytest.raises(ValueError):
        RateLimiter(**kwargs)
