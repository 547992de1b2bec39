from __future__ import annotations

import threading

import pytest

from listing_sync.providers.rate_limiter import ProviderRateLimiter


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_rate_limiter_admits_burst_then_waits_for_window() -> None:
    clock = _FakeClock()
    limiter = ProviderRateLimiter(max_requests=3, window_seconds=10, clock=clock, sleep_fn=clock.sleep)

    delays = [limiter.wait_for_slot() for _ in range(4)]

    assert delays == [0.0, 0.0, 0.0, 10.0]
    assert clock.sleeps == [10.0]
    assert clock.now == 10.0


def test_rate_limiter_never_exceeds_max_requests_in_any_window() -> None:
    clock = _FakeClock()
    limiter = ProviderRateLimiter(max_requests=3, window_seconds=10, clock=clock, sleep_fn=clock.sleep)

    admitted_at = []
    for _ in range(10):
        limiter.wait_for_slot()
        admitted_at.append(clock.now)

    for start in admitted_at:
        in_window = [value for value in admitted_at if start <= value < start + 10]
        assert len(in_window) <= 3


def test_rate_limiter_spaces_calls_by_min_interval() -> None:
    clock = _FakeClock()
    limiter = ProviderRateLimiter(
        max_requests=100,
        window_seconds=60,
        min_interval_seconds=2,
        clock=clock,
        sleep_fn=clock.sleep,
    )

    delays = [limiter.wait_for_slot() for _ in range(3)]

    assert delays == [0.0, 2.0, 2.0]
    assert clock.now == 4.0


def test_rate_limiter_reserves_distinct_slots_across_threads() -> None:
    sleeps: list[float] = []
    sleeps_lock = threading.Lock()

    def _record_sleep(seconds: float) -> None:
        with sleeps_lock:
            sleeps.append(seconds)

    limiter = ProviderRateLimiter(max_requests=4, window_seconds=5, clock=lambda: 0.0, sleep_fn=_record_sleep)
    results: list[float] = []
    results_lock = threading.Lock()

    def _worker() -> None:
        delay = limiter.wait_for_slot()
        with results_lock:
            results.append(delay)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == [0.0, 0.0, 0.0, 0.0, 5.0, 5.0, 5.0, 5.0]
    assert sorted(sleeps) == [5.0, 5.0, 5.0, 5.0]


def test_rate_limiter_remaining_recovers_after_window() -> None:
    clock = _FakeClock()
    limiter = ProviderRateLimiter(max_requests=3, window_seconds=10, clock=clock, sleep_fn=clock.sleep)
    limiter.wait_for_slot()
    limiter.wait_for_slot()

    assert limiter.remaining == 1
    clock.now = 10.5
    assert limiter.remaining == 3

    limiter.reset()
    assert limiter.remaining == 3


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": 0, "window_seconds": 10},
        {"max_requests": 5, "window_seconds": 0},
        {"max_requests": 5, "window_seconds": 10, "min_interval_seconds": -1},
    ],
)
def test_rate_limiter_rejects_invalid_configuration(kwargs) -> None:
    with pytest.raises(ValueError):
        ProviderRateLimiter(**kwargs)
