"""Tests for the retry queue rate limiters."""

from __future__ import annotations

import pytest

from synka.workqueue.rate_limiter import (
    BucketRateLimiter,
    ItemExponentialFailureRateLimiter,
    MaxOfRateLimiter,
    default_controller_rate_limiter,
)


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestItemExponentialFailureRateLimiter:
    def test_delay_doubles_per_failure(self) -> None:
        limiter = ItemExponentialFailureRateLimiter(base_delay=0.005, max_delay=1000.0)
        delays = [limiter.when("default/web") for _ in range(4)]
        assert delays == pytest.approx([0.005, 0.01, 0.02, 0.04])
        assert limiter.num_requeues("default/web") == 4

    def test_delay_is_capped(self) -> None:
        limiter = ItemExponentialFailureRateLimiter(base_delay=1.0, max_delay=5.0)
        delays = [limiter.when("k") for _ in range(5)]
        assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_huge_failure_counts_stay_at_cap(self) -> None:
        limiter = ItemExponentialFailureRateLimiter(base_delay=1.0, max_delay=60.0)
        for _ in range(200):
            delay = limiter.when("k")
        assert delay == 60.0

    def test_forget_resets_counter(self) -> None:
        limiter = ItemExponentialFailureRateLimiter(base_delay=0.1, max_delay=10.0)
        limiter.when("k")
        limiter.when("k")
        limiter.forget("k")
        assert limiter.num_requeues("k") == 0
        assert limiter.when("k") == pytest.approx(0.1)

    def test_keys_are_independent(self) -> None:
        limiter = ItemExponentialFailureRateLimiter(base_delay=0.1, max_delay=10.0)
        limiter.when("a")
        limiter.when("a")
        assert limiter.num_requeues("b") == 0
        assert limiter.when("b") == pytest.approx(0.1)

    def test_rejects_negative_delays(self) -> None:
        with pytest.raises(ValueError):
            ItemExponentialFailureRateLimiter(base_delay=-1.0)


class TestBucketRateLimiter:
    def test_burst_is_free_then_paced(self) -> None:
        clock = _Clock()
        limiter = BucketRateLimiter(qps=1.0, burst=2, clock=clock)
        assert limiter.when("a") == 0.0
        assert limiter.when("b") == 0.0
        assert limiter.when("c") == pytest.approx(1.0)
        assert limiter.when("d") == pytest.approx(2.0)

    def test_tokens_refill_over_time(self) -> None:
        clock = _Clock()
        limiter = BucketRateLimiter(qps=10.0, burst=1, clock=clock)
        assert limiter.when("a") == 0.0
        clock.now = 0.5
        assert limiter.when("b") == 0.0

    def test_keeps_no_per_key_state(self) -> None:
        limiter = BucketRateLimiter()
        limiter.when("a")
        assert limiter.num_requeues("a") == 0

    def test_rejects_invalid_parameters(self) -> None:
        with pytest.raises(ValueError):
            BucketRateLimiter(qps=0.0)
        with pytest.raises(ValueError):
            BucketRateLimiter(burst=0)


class TestMaxOfRateLimiter:
    def test_longest_delay_wins(self) -> None:
        clock = _Clock()
        limiter = MaxOfRateLimiter(
            ItemExponentialFailureRateLimiter(base_delay=0.5, max_delay=10.0),
            BucketRateLimiter(qps=1.0, burst=1, clock=clock),
        )
        assert limiter.when("a") == pytest.approx(0.5)
        # bucket is now empty; its 1s wait beats the 0.5s backoff for "b"
        assert limiter.when("b") == pytest.approx(1.0)

    def test_requeues_come_from_per_item_limiter(self) -> None:
        limiter = default_controller_rate_limiter()
        limiter.when("k")
        limiter.when("k")
        assert limiter.num_requeues("k") == 2
        limiter.forget("k")
        assert limiter.num_requeues("k") == 0

    def test_requires_a_limiter(self) -> None:
        with pytest.raises(ValueError):
            MaxOfRateLimiter()


def test_default_controller_limiter_first_delay_is_base() -> None:
    limiter = default_controller_rate_limiter(base_delay=0.005, max_delay=1000.0)
    assert limiter.when("default/web") == pytest.approx(0.005)
