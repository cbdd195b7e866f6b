"""
Retry/backoff policy applied around every sink call.

The budget is an elapsed-time ceiling measured from the first attempt: the
next delay is computed and checked against the remaining budget *before*
sleeping, so a retry is never started past the deadline. An attempt already
running when the deadline passes is allowed to finish.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ..config import (
    DEFAULT_INITIAL_RETRY_DELAY,
    DEFAULT_MAX_RETRY_DEADLINE_OFFSET,
    DEFAULT_RETRY_DELAY_MULTIPLIER,
    RetryConfig,
)
from ..errors import NonRetryableError

R = TypeVar("R")

RetryCallback = Callable[[BaseException, int, float], None]


def default_retry_classifier(exc: BaseException) -> bool:
    """Every sink error is treated as transient unless it is a NonRetryableError."""
    return not isinstance(exc, NonRetryableError)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff bounded by a total deadline and optionally a retry count.

    Attributes:
        max_retries: Retries after the first attempt; None means unlimited
            (deadline-bound only), 0 disables retrying.
        initial_delay: Delay in seconds before the first retry.
        multiplier: Applied to the delay after each failed attempt. Values
            <= 1 are replaced by the default so the delay always grows.
        max_deadline_offset: Seconds since the first attempt after which no
            new attempt is started.
        classify_retryable: Returns False for errors not worth retrying.
    """

    max_retries: Optional[int] = None
    initial_delay: float = DEFAULT_INITIAL_RETRY_DELAY
    multiplier: float = DEFAULT_RETRY_DELAY_MULTIPLIER
    max_deadline_offset: float = DEFAULT_MAX_RETRY_DEADLINE_OFFSET
    classify_retryable: Callable[[BaseException], bool] = default_retry_classifier

    def __post_init__(self) -> None:
        if self.multiplier <= 1:
            object.__setattr__(self, "multiplier", DEFAULT_RETRY_DELAY_MULTIPLIER)
        if self.max_retries is not None and self.max_retries < 0:
            object.__setattr__(self, "max_retries", 0)
        if self.initial_delay < 0:
            object.__setattr__(self, "initial_delay", 0.0)

    @classmethod
    def from_config(cls, cfg: RetryConfig) -> "RetryPolicy":
        return cls(
            max_retries=cfg.max_retries,
            initial_delay=cfg.initial_retry_delay,
            multiplier=cfg.retry_delay_multiplier,
            max_deadline_offset=cfg.max_retry_deadline_offset,
        )

    def next_delay(self, retry: int) -> float:
        """Delay before the given retry (1-based), ignoring the deadline."""
        return self.initial_delay * self.multiplier ** max(0, retry - 1)

    def budget(self, clock: Callable[[], float] = time.monotonic) -> "RetryBudget":
        return RetryBudget(self, clock)

    async def run(
        self, op: Callable[[], Awaitable[R]], *, on_retry: Optional[RetryCallback] = None
    ) -> R:
        """Run ``op`` until it succeeds or the budget is spent; re-raises the last error."""
        budget = self.budget()
        while True:
            try:
                return await op()
            except Exception as exc:
                delay = budget.next_delay(exc)
                if delay is None:
                    raise
                if on_retry is not None:
                    on_retry(exc, budget.attempts, delay)
                await asyncio.sleep(delay)


class RetryBudget:
    """State of one retry sequence (one flush operation)."""

    def __init__(self, policy: RetryPolicy, clock: Callable[[], float] = time.monotonic):
        self._policy = policy
        self._clock = clock
        self.started = clock()
        self.delay = policy.initial_delay
        self.attempts = 0  # failed attempts so far

    @property
    def elapsed(self) -> float:
        return self._clock() - self.started

    def next_delay(self, exc: BaseException) -> float | None:
        """Record a failed attempt; return the delay before the next one, or None to give up."""
        self.attempts += 1
        p = self._policy
        if not p.classify_retryable(exc):
            return None
        if p.max_retries is not None and self.attempts > p.max_retries:
            return None
        if self.elapsed + self.delay > p.max_deadline_offset:
            return None
        delay = self.delay
        self.delay *= p.multiplier
        return delay
