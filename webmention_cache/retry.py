from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """
    Exponential backoff for feed requests.

    max_attempts counts the first request (3 => 1 try + 2 retries).
    A Retry-After value from the server replaces the computed delay when larger,
    capped by retry_after_cap_seconds (0 disables the cap).
    """

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter_ratio: float = 0.1
    retry_after_cap_seconds: float = 120.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0 and 1")
        if self.retry_after_cap_seconds < 0:
            raise ValueError("retry_after_cap_seconds must be >= 0")

    def delay_for(self, failure_attempt: int, retry_after: float | None = None) -> float:
        # failure_attempt=1 => base delay.
        delay = self.base_delay_seconds * (2 ** max(0, failure_attempt - 1))
        delay = min(self.max_delay_seconds, delay)

        if retry_after is not None and retry_after >= 0:
            if self.retry_after_cap_seconds > 0:
                retry_after = min(retry_after, self.retry_after_cap_seconds)
            delay = max(delay, retry_after)

        if delay > 0 and self.jitter_ratio > 0:
            delay *= random.uniform(1.0 - self.jitter_ratio, 1.0 + self.jitter_ratio)
        return max(0.0, delay)


@dataclass(frozen=True)
class RetryEvent:
    operation: str
    url: str | None
    failure_attempt: int
    max_attempts: int
    delay_seconds: float
    reason: str | None
    error_type: str
    error_message: str


# exc -> (retryable, retry_after_seconds, reason)
IsRetryableFn = Callable[[BaseException], tuple[bool, float | None, str | None]]
OnRetryFn = Callable[[RetryEvent], None]
SleepFn = Callable[[float], None]


def call_with_retries(
    fn: Callable[[], T],
    *,
    cfg: RetryConfig,
    is_retryable: IsRetryableFn,
    operation: str,
    url: str | None = None,
    on_retry: OnRetryFn | None = None,
    sleep_fn: SleepFn | None = None,
) -> T:
    """Call fn(), retrying while is_retryable says so and attempts remain."""
    sleeper = sleep_fn or time.sleep
    attempt = 1

    while True:
        try:
            return fn()
        except Exception as exc:
            retryable, retry_after, reason = is_retryable(exc)
            if not retryable or attempt >= cfg.max_attempts:
                raise

            delay = cfg.delay_for(attempt, retry_after)
            if on_retry is not None:
                on_retry(
                    RetryEvent(
                        operation=operation,
                        url=url,
                        failure_attempt=attempt,
                        max_attempts=cfg.max_attempts,
                        delay_seconds=delay,
                        reason=reason,
                        error_type=type(exc).__name__,
                        error_message=(str(exc) or "").strip(),
                    )
                )
            if delay > 0:
                sleeper(delay)
            attempt += 1
