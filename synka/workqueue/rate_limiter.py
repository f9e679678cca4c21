"""Rate limiters for the retry queue.

A rate limiter answers "how long should this key wait before it is retried?"
and keeps the per-key failure count that the retry ceiling is checked against.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable


class RateLimiter(ABC):
    """Abstract base class for retry delay policies."""

    @abstractmethod
    def when(self, item: str) -> float:
        """Record a failure for *item* and return the delay in seconds."""

    @abstractmethod
    def forget(self, item: str) -> None:
        """Stop tracking *item*; its failure count resets to zero."""

    @abstractmethod
    def num_requeues(self, item: str) -> int:
        """Number of failures recorded for *item* since it was last forgotten."""


class ItemExponentialFailureRateLimiter(RateLimiter):
    """Per-key exponential backoff: ``base_delay * 2**failures``, capped at ``max_delay``."""

    def __init__(self, base_delay: float = 0.005, max_delay: float = 1000.0) -> None:
        if base_delay < 0 or max_delay < 0:
            raise ValueError("Backoff delays must not be negative")
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._failures: dict[str, int] = {}

    def when(self, item: str) -> float:
        exp = self._failures.get(item, 0)
        self._failures[item] = exp + 1
        # 2**exp grows without bound; stop multiplying once past the cap
        if exp >= 64:
            return self._max_delay
        return min(self._base_delay * (2**exp), self._max_delay)

    def forget(self, item: str) -> None:
        self._failures.pop(item, None)

    def num_requeues(self, item: str) -> int:
        return self._failures.get(item, 0)


class BucketRateLimiter(RateLimiter):
    """Token bucket shared by all keys.

    Paces overall retry admission to ``qps`` with bursts of up to ``burst``.
    It keeps no per-key state, so it never reports requeues.
    """

    def __init__(
        self,
        qps: float = 10.0,
        burst: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if qps <= 0 or burst < 1:
            raise ValueError("qps must be positive and burst at least 1")
        self._qps = qps
        self._burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()

    def when(self, item: str) -> float:
        now = self._clock()
        self._tokens = min(float(self._burst), self._tokens + (now - self._last) * self._qps)
        self._last = now
        self._tokens -= 1.0
        if self._tokens >= 0:
            return 0.0
        return -self._tokens / self._qps

    def forget(self, item: str) -> None:
        return None

    def num_requeues(self, item: str) -> int:
        return 0


class MaxOfRateLimiter(RateLimiter):
    """Combines limiters: the longest delay wins, the highest requeue count wins."""

    def __init__(self, *limiters: RateLimiter) -> None:
        if not limiters:
            raise ValueError("MaxOfRateLimiter needs at least one limiter")
        self._limiters = limiters

    def when(self, item: str) -> float:
        return max(limiter.when(item) for limiter in self._limiters)

    def forget(self, item: str) -> None:
        for limiter in self._limiters:
            limiter.forget(item)

    def num_requeues(self, item: str) -> int:
        return max(limiter.num_requeues(item) for limiter in self._limiters)


def default_controller_rate_limiter(
    base_delay: float = 0.005,
    max_delay: float = 1000.0,
    qps: float = 10.0,
    burst: int = 100,
) -> RateLimiter:
    """Per-key exponential backoff combined with an overall token bucket."""
    return MaxOfRateLimiter(
        ItemExponentialFailureRateLimiter(base_delay, max_delay),
        BucketRateLimiter(qps, burst),
    )
