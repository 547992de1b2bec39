from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from functools import lru_cache

from listing_sync.core.config import get_settings
from listing_sync.core.metrics import rate_limiter_wait_seconds


logger = logging.getLogger("listing_sync.providers")


class ProviderRateLimiter:
    """Process-wide gate in front of every provider call.

    Admits at most ``max_requests`` calls per rolling ``window_seconds`` and keeps
    consecutive admissions at least ``min_interval_seconds`` apart. Callers are
    never rejected: each one reserves the earliest free slot under the lock and
    then sleeps outside it until that slot arrives, so waiters queue in arrival
    order and a burst from one tenant delays everyone equally.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        window_seconds: float,
        min_interval_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be greater than zero")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be greater than zero")
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds cannot be negative")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock
        self._sleep = sleep_fn
        self._lock = threading.Lock()
        self._admitted: deque[float] = deque(maxlen=max_requests)

    def wait_for_slot(self) -> float:
        """Block until the caller may issue one provider call; returns seconds waited."""
        with self._lock:
            now = self._clock()
            slot = now
            if self._admitted:
                slot = max(slot, self._admitted[-1] + self.min_interval_seconds)
            if len(self._admitted) == self.max_requests:
                slot = max(slot, self._admitted[0] + self.window_seconds)
            self._admitted.append(slot)
        delay = slot - now
        if delay > 0:
            logger.debug("provider.rate_limiter.wait", extra={"duration_ms": int(delay * 1000)})
            self._sleep(delay)
        rate_limiter_wait_seconds.observe(max(delay, 0.0))
        return max(delay, 0.0)

    @property
    def remaining(self) -> int:
        with self._lock:
            cutoff = self._clock() - self.window_seconds
            in_window = sum(1 for admitted_at in self._admitted if admitted_at > cutoff)
        return max(0, self.max_requests - in_window)

    def reset(self) -> None:
        with self._lock:
            self._admitted.clear()


@lru_cache
def get_provider_rate_limiter() -> ProviderRateLimiter:
    settings = get_settings()
    return ProviderRateLimiter(
        max_requests=settings.provider_rate_limit_max_requests,
        window_seconds=settings.provider_rate_limit_window_seconds,
        min_interval_seconds=settings.provider_min_interval_seconds,
    )
