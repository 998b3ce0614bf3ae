"""Exponential backoff policy shared by transport and parse retries."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

from agentcortex.config import RetryConfig


@dataclass(frozen=True)
class BackoffPolicy:
    """Delay schedule ``base_delay * multiplier ** (attempt - 1)``.

    ``max_attempts=None`` means the caller retries until cancelled.
    """

    base_delay: float = 1.0
    multiplier: float = 2.0
    max_attempts: int | None = None
    max_delay: float | None = None

    def __post_init__(self) -> None:
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1 when set")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the failed *attempt* (1-based).

        Once the exponential term overflows the delay is ``max_delay``, or
        ``math.inf`` for an uncapped policy.
        """
        if self.base_delay == 0:
            return 0.0
        try:
            delay = self.base_delay * self.multiplier ** (attempt - 1)
        except OverflowError:
            delay = math.inf
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt >= self.max_attempts

    def delays(self) -> Iterator[float]:
        """Yield the delay schedule; finite only when ``max_attempts`` is set."""
        attempt = 1
        while not self.exhausted(attempt):
            yield self.delay_for(attempt)
            attempt += 1

    @classmethod
    def transport(cls, config: RetryConfig) -> BackoffPolicy:
        return cls(
            base_delay=config.base_delay_seconds,
            multiplier=config.multiplier,
            max_attempts=config.transport_max_attempts,
            max_delay=config.max_delay_seconds,
        )

    @classmethod
    def parse(cls, config: RetryConfig) -> BackoffPolicy:
        return cls(
            base_delay=config.base_delay_seconds,
            multiplier=config.multiplier,
            max_attempts=config.parse_max_attempts,
            max_delay=config.max_delay_seconds,
        )
