"""Tests for retry with exponential backoff."""

import pytest

from engagement_hub.core.retry import (
    DEFAULT_RETRY_CONFIG,
    RetryConfig,
    RetryExhaustedError,
    calculate_delay,
    get_model_retry_config,
    is_retryable,
    with_retry,
)
from engagement_hub.llm.client import LLMConnectionError, LLMError, LLMTimeoutError


class Flaky:
    """Callable failing with the given errors before succeeding."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestIsRetryable:
    """Tests for is_retryable."""

    @pytest.mark.parametrize(
        "error",
        [
            LLMError("rate limited", status_code=429),
            LLMError("server error", status_code=503),
            LLMConnectionError("connection refused"),
            ConnectionError("reset"),
            Exception("fetch failed"),
            Exception("Too Many Requests"),
        ],
    )
    def test_retryable(self, error):
        assert is_retryable(error) is True

    @pytest.mark.parametrize(
        "error",
        [
            LLMTimeoutError("timed out", status_code=408),
            TimeoutError(),
            LLMError("gateway timeout", status_code=504),
            LLMError("bad request", status_code=400),
            Exception("request timed out over network"),
            ValueError("bad prompt"),
        ],
    )
    def test_not_retryable(self, error):
        assert is_retryable(error) is False


class TestCalculateDelay:
    """Tests for calculate_delay."""

    def test_exponential(self):
        assert calculate_delay(1) == 2.0
        assert calculate_delay(2) == 4.0
        assert calculate_delay(3) == 8.0

    def test_capped(self):
        assert calculate_delay(10) == DEFAULT_RETRY_CONFIG.max_delay


class TestWithRetry:
    """Tests for with_retry."""

    def test_success_first_try(self):
        sleeps = []
        fn = Flaky()

        assert with_retry(fn, sleep=sleeps.append) == "ok"
        assert fn.calls == 1
        assert sleeps == []

    def test_retries_then_succeeds(self):
        sleeps = []
        fn = Flaky(LLMError("busy", status_code=503), LLMConnectionError("reset"))

        result = with_retry(fn, RetryConfig(max_retries=3), sleep=sleeps.append)

        assert result == "ok"
        assert fn.calls == 3
        assert len(sleeps) == 2
        assert 2.0 <= sleeps[0] <= 3.0
        assert 4.0 <= sleeps[1] <= 5.0

    def test_exhausted(self):
        fn = Flaky(*[LLMError("busy", status_code=503)] * 5)

        with pytest.raises(RetryExhaustedError) as exc:
            with_retry(fn, RetryConfig(max_retries=2), sleep=lambda _: None)

        assert exc.value.attempts == 2
        assert fn.calls == 2
        assert isinstance(exc.value.last_error, LLMError)

    def test_non_retryable_propagates(self):
        fn = Flaky(LLMTimeoutError("timed out", status_code=408))

        with pytest.raises(LLMTimeoutError):
            with_retry(fn, sleep=lambda _: None)

        assert fn.calls == 1


class TestModelRetryConfig:
    """Tests for get_model_retry_config."""

    def test_most_specific_family_wins(self):
        assert get_model_retry_config("gpt-5-nano-2025-08-07").base_delay == 1.2
        assert get_model_retry_config("gpt-5-2025-08-07").max_retries == 3

    def test_provider_families(self):
        assert get_model_retry_config("claude-sonnet-4-20250514").base_delay == 1.5
        assert get_model_retry_config("gemini-2.5-pro").max_delay == 15.0

    def test_default(self):
        assert get_model_retry_config("gpt-4.1-mini") is DEFAULT_RETRY_CONFIG
