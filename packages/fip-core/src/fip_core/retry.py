"""
Retry configuration with capped exponential backoff.

RetryConfig computes delays between attempts of a failed cloud call.
Delays are returned as plain seconds relative to the caller's clock so
the reconciler can carry retry state across ticks instead of sleeping,
and tests can fast-forward time deterministically.

Per project patterns:
- Use exponential backoff with jitter
- Cap max_attempts to prevent infinite loops
- Honour the provider's Retry-After hint when it is longer
"""

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryConfig:
    """
    Configuration for cloud call retry behavior.

    Attributes:
        max_attempts: Retry budget per cycle intent (default 5)
        min_wait_seconds: Wait before the first retry (default 1.0)
        max_wait_seconds: Cap on the wait between retries (default 60.0)
        exponential_base: Base for exponential calculation (default 2.0)
        jitter_fraction: Fraction of wait time to add as jitter (default 0.1)

    Example:
        config = RetryConfig(max_attempts=5, min_wait_seconds=2.0)
        delay = config.delay_for(attempt=1)
        # ~4-4.4 seconds (2s * 2^1 + jitter)
    """

    max_attempts: int = 5
    min_wait_seconds: float = 1.0
    max_wait_seconds: float = 60.0
    exponential_base: float = 2.0
    jitter_fraction: float = 0.1

    def delay_for(self, attempt: int, retry_after: float | None = None) -> float:
        """
        Seconds to wait before the next attempt.

        Formula: min(max_wait, min_wait * base^attempt) + random(0, wait * jitter)

        Args:
            attempt: Retry number (0 for first retry, 1 for second, etc.)
            retry_after: Provider hint from a rate-limit response

        Returns:
            Delay in seconds, never larger than max_wait plus jitter
        """
        wait = min(
            self.max_wait_seconds,
            self.min_wait_seconds * (self.exponential_base**attempt),
        )
        if retry_after is not None:
            wait = min(self.max_wait_seconds, max(wait, retry_after))

        jitter = random.uniform(0, wait * self.jitter_fraction) if self.jitter_fraction else 0.0
        return wait + jitter

    def should_retry(self, retry_count: int) -> bool:
        """
        Check if another retry attempt should be made.

        Args:
            retry_count: Number of retries already scheduled

        Returns:
            True if retry_count < max_attempts, False otherwise
        """
        return retry_count < self.max_attempts
