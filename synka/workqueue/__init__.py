"""Deduplicating, rate-limited retry queue.

Submodules:
    rate_limiter -- Backoff policies deciding how long a key waits before retry.
    queue        -- RateLimitingQueue: dirty/processing bookkeeping, delayed adds.
"""

from synka.workqueue.queue import RateLimitingQueue
from synka.workqueue.rate_limiter import (
    BucketRateLimiter,
    ItemExponentialFailureRateLimiter,
    MaxOfRateLimiter,
    RateLimiter,
    default_controller_rate_limiter,
)

__all__ = [
    "BucketRateLimiter",
    "ItemExponentialFailureRateLimiter",
    "MaxOfRateLimiter",
    "RateLimiter",
    "RateLimitingQueue",
    "default_controller_rate_limiter",
]
