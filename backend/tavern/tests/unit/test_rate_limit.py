"""Tests for the token bucket rate limiter."""

import pytest

from tavern.server.rate_limit import TokenBucket
from tavern.server.websocket import RATE_LIMIT_BURST, RATE_LIMIT_RATE


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTokenBucket:
    def test_burst_allows_up_to_capacity(self):
        bucket = TokenBucket(rate=1.0, burst=5, clock=FakeClock())
        assert all(bucket.consume() for _ in range(5))
        assert bucket.consume() is False

    def test_refill_restores_tokens(self):
        clock = FakeClock()
        bucket = TokenBucket(rate=10.0, burst=5, clock=clock)
        for _ in range(5):
            bucket.consume()
        assert bucket.consume() is False

        clock.now += 0.1
        assert bucket.consume() is True
        assert bucket.consume() is False

    def test_refill_capped_at_burst(self):
        clock = FakeClock()
        bucket = TokenBucket(rate=10.0, burst=5, clock=clock)
        clock.now += 100.0
        assert all(bucket.consume() for _ in range(5))
        assert bucket.consume() is False

    def test_server_limits(self):
        """Twenty messages a second sustained, forty in a burst."""
        clock = FakeClock()
        bucket = TokenBucket(rate=RATE_LIMIT_RATE, burst=RATE_LIMIT_BURST, clock=clock)
        assert sum(bucket.consume() for _ in range(50)) == 40
        clock.now += 1.0
        assert sum(bucket.consume() for _ in range(50)) == 20

    @pytest.mark.parametrize(("rate", "burst"), [(0, 5), (-1, 5), (1, 0)])
    def test_invalid_parameters(self, rate, burst):
        with pytest.raises(ValueError, match="rate must be positive"):
            TokenBucket(rate=rate, burst=burst)
