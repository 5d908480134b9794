"""Tests for retry backoff configuration."""

import pytest

from fip_core.retry import RetryConfig


class TestDelay:
    def test_exponential_growth(self):
        config = RetryConfig(min_wait_seconds=1.0, max_wait_seconds=60.0, jitter_fraction=0)

        assert [config.delay_for(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_wait(self):
        config = RetryConfig(min_wait_seconds=1.0, max_wait_seconds=5.0, jitter_fraction=0)

        assert config.delay_for(10) == 5.0

    def test_retry_after_raises_the_wait(self):
        config = RetryConfig(min_wait_seconds=1.0, max_wait_seconds=60.0, jitter_fraction=0)

        assert config.delay_for(0, retry_after=12.0) == 12.0
        assert config.delay_for(5, retry_after=2.0) == 32.0

    def test_retry_after_is_capped(self):
        config = RetryConfig(max_wait_seconds=30.0, jitter_fraction=0)

        assert config.delay_for(0, retry_after=3600.0) == 30.0

    def test_jitter_bounds(self):
        config = RetryConfig(min_wait_seconds=10.0, jitter_fraction=0.1)

        for _ in range(50):
            assert 10.0 <= config.delay_for(0) <= 11.0


class TestBudget:
    @pytest.mark.parametrize("count,expected", [(0, True), (2, True), (3, False), (7, False)])
    def test_should_retry(self, count, expected):
        assert RetryConfig(max_attempts=3).should_retry(count) is expected

    def test_zero_budget_never_retries(self):
        assert not RetryConfig(max_attempts=0).should_retry(0)
