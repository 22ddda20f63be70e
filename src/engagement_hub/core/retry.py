"""Retry with exponential backoff for transient AI provider failures.

Timeouts are never retried: a request that timed out once will most likely
time out again. Rate limits, 5xx responses and dropped connections are.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

import structlog

from engagement_hub.llm.client import LLMConnectionError, LLMTimeoutError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503})
NON_RETRYABLE_STATUS_CODES = frozenset({408, 504, 522, 524})

NON_RETRYABLE_PATTERNS = ("timeout", "timed out", "abort")
RETRYABLE_PATTERNS = (
    "network",
    "fetch failed",
    "connection reset",
    "econnreset",
    "socket hang up",
    "rate limit",
    "too many requests",
    "service unavailable",
)

MAX_JITTER_SECONDS = 1.0


class RetryExhaustedError(Exception):
    """Raised when every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed after {attempts} attempts: {last_error}")


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings. max_retries counts every attempt, the first included."""

    max_retries: int = 2
    base_delay: float = 2.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0


DEFAULT_RETRY_CONFIG = RetryConfig()

# Most specific family first: "gpt-5-nano" must not match "gpt-5"
MODEL_RETRY_OVERRIDES: tuple[tuple[str, RetryConfig], ...] = (
    ("gpt-5-nano", RetryConfig(max_retries=3, base_delay=1.2, max_delay=8.0)),
    ("gpt-5-mini", RetryConfig(max_retries=3, base_delay=1.5, max_delay=10.0)),
    ("gpt-5", RetryConfig(max_retries=3, base_delay=1.5, max_delay=10.0)),
    ("claude", RetryConfig(max_retries=3, base_delay=1.5, max_delay=10.0)),
    ("gemini", RetryConfig(max_retries=3, base_delay=2.0, max_delay=15.0)),
    ("sonar", RetryConfig(max_retries=3, base_delay=2.0, max_delay=10.0)),
)


def is_retryable(error: Exception) -> bool:
    """Decide whether an error is worth another attempt."""
    if isinstance(error, (LLMTimeoutError, TimeoutError)):
        return False

    status = getattr(error, "status_code", None)
    if status in NON_RETRYABLE_STATUS_CODES:
        return False

    if isinstance(error, (LLMConnectionError, ConnectionError)):
        return True

    if status in RETRYABLE_STATUS_CODES:
        return True

    message = str(error).lower()
    if any(pattern in message for pattern in NON_RETRYABLE_PATTERNS):
        return False

    return any(pattern in message for pattern in RETRYABLE_PATTERNS)


def calculate_delay(attempt: int, config: RetryConfig = DEFAULT_RETRY_CONFIG) -> float:
    """Backoff delay in seconds before retry number `attempt` (1-based), without jitter."""
    delay = config.base_delay * config.backoff_factor ** (attempt - 1)
    return min(delay, config.max_delay)


def with_retry(
    fn: Callable[[], T],
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call fn, retrying transient failures with exponential backoff.

    Non-retryable errors propagate unchanged on the first occurrence.

    Raises:
        RetryExhaustedError: If the last allowed attempt also failed
    """
    attempt = 0
    while True:
        try:
            result = fn()
        except Exception as e:
            attempt += 1

            if not is_retryable(e):
                logger.info("retry.not_retryable", attempt=attempt, error=str(e))
                raise

            if attempt >= config.max_retries:
                logger.warning("retry.exhausted", attempts=attempt, error=str(e))
                raise RetryExhaustedError(attempt, e) from e

            delay = calculate_delay(attempt, config) + random.uniform(0, MAX_JITTER_SECONDS)
            logger.info("retry.waiting", attempt=attempt, delay=round(delay, 2), error=str(e))
            sleep(delay)
            continue

        if attempt > 0:
            logger.info("retry.succeeded", attempt=attempt)
        return result


def get_model_retry_config(model: str) -> RetryConfig:
    """Per-family retry settings, falling back to the defaults."""
    lowered = model.lower()
    for family, config in MODEL_RETRY_OVERRIDES:
        if family in lowered:
            return config
    return DEFAULT_RETRY_CONFIG
