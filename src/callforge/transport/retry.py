"""Retry policies for remote calls.

A Retryer is stateful (it counts attempts), so the dispatch handler
clones its prototype at the start of every call and consults the clone
each time a RetryableError occurs.

Example:
    >>> retryer = DefaultRetryer(period=0.1, max_period=1.0, max_attempts=3).clone()
    >>> error = RetryableError(-1, "connection reset")
    >>> retryer.next_backoff(error)
    0.1
    >>> round(retryer.next_backoff(error), 3)
    0.15
"""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from callforge.errors import RetryableError
from callforge.models.constants import (
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_PERIOD,
    DEFAULT_RETRY_PERIOD,
    RETRY_BACKOFF_MULTIPLIER,
    RETRY_JITTER_RATIO,
)


@dataclass
class RetryConfig:
    """Configuration for the default retry policy.

    Groups the backoff parameters to simplify builder configuration.

    Attributes:
        period: First interval in seconds (default: 0.1)
        max_period: Cap on any interval in seconds (default: 1.0)
        max_attempts: Attempts including the first one (default: 5)
        jitter: Whether to add up to 10% random jitter to computed intervals
    """

    period: float = DEFAULT_RETRY_PERIOD
    max_period: float = DEFAULT_RETRY_MAX_PERIOD
    max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS
    jitter: bool = False

    def build(self) -> DefaultRetryer:
        return DefaultRetryer(
            period=self.period,
            max_period=self.max_period,
            max_attempts=self.max_attempts,
            jitter=self.jitter,
        )


class Retryer(ABC):
    """Decides whether a failed attempt is retried and how long to wait."""

    @abstractmethod
    def next_backoff(self, error: RetryableError) -> float:
        """Return the seconds to wait before the next attempt.

        Raises:
            RetryableError: ``error`` itself, once the policy is exhausted
        """

    def continue_or_propagate(self, error: RetryableError) -> None:
        """Sleep for the next backoff, or raise ``error`` when exhausted."""
        interval = self.next_backoff(error)
        if interval > 0:
            time.sleep(interval)

    @abstractmethod
    def clone(self) -> Retryer:
        """Return a fresh policy with attempt counting reset."""


class DefaultRetryer(Retryer):
    """Exponential backoff honoring Retry-After.

    The interval before attempt ``n + 1`` is ``period * 1.5 ** (n - 1)``
    capped at ``max_period``. When the error carries ``retry_after`` the
    interval is the time remaining until then (capped at ``max_period``,
    zero if already past).

    Args:
        period: First interval in seconds
        max_period: Cap on any interval in seconds
        max_attempts: Attempts including the first one
        jitter: Add up to 10% random jitter to computed intervals
        clock: Epoch-seconds clock (tests inject a fixed one)
    """

    def __init__(
        self,
        period: float = DEFAULT_RETRY_PERIOD,
        max_period: float = DEFAULT_RETRY_MAX_PERIOD,
        max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS,
        jitter: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.period = period
        self.max_period = max_period
        self.max_attempts = max_attempts
        self.jitter = jitter
        self._clock = clock
        self.attempt = 1
        self.sleep_total = 0.0

    def next_backoff(self, error: RetryableError) -> float:
        if self.attempt >= self.max_attempts:
            raise error
        self.attempt += 1
        if error.retry_after is not None:
            interval = min(error.retry_after - self._clock(), self.max_period)
            interval = max(interval, 0.0)
        else:
            interval = self._next_max_interval()
        self.sleep_total += interval
        return interval

    def _next_max_interval(self) -> float:
        # attempt was already advanced: the first retry waits exactly ``period``
        interval = self.period * RETRY_BACKOFF_MULTIPLIER ** (self.attempt - 2)
        interval = min(interval, self.max_period)
        if self.jitter:
            interval += random.uniform(0, interval * RETRY_JITTER_RATIO)  # nosec B311
        return interval

    def clone(self) -> DefaultRetryer:
        return DefaultRetryer(
            period=self.period,
            max_period=self.max_period,
            max_attempts=self.max_attempts,
            jitter=self.jitter,
            clock=self._clock,
        )

    def __repr__(self) -> str:
        return (
            f"DefaultRetryer(period={self.period}, max_period={self.max_period}, "
            f"max_attempts={self.max_attempts}, attempt={self.attempt})"
        )


class NeverRetry(Retryer):
    """Never retries: the first RetryableError is raised."""

    def next_backoff(self, error: RetryableError) -> float:
        raise error

    def clone(self) -> NeverRetry:
        return self


NEVER_RETRY = NeverRetry()

__all__ = ["DefaultRetryer", "NEVER_RETRY", "NeverRetry", "RetryConfig", "Retryer"]
