"""LLM client for the hosted AI providers.

Provides a unified interface for chat completions. Every supported provider
exposes an OpenAI-compatible endpoint, so a single OpenAI SDK client is used
with a per-provider base URL.

Supported providers:
- openai: OpenAI API
- anthropic: Anthropic API (OpenAI-compatible endpoint)
- google: Gemini API (OpenAI-compatible endpoint)
- perplexity: Perplexity Sonar API
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Literal

import openai
import structlog
from openai import OpenAI

from engagement_hub.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

Provider = Literal["openai", "anthropic", "google", "perplexity"]

PROVIDERS: tuple[Provider, ...] = ("openai", "anthropic", "google", "perplexity")


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class LLMConfig:
    """Configuration for LLM client."""

    provider: Provider = "openai"
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4.1-mini"
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout: int = 120
    api_key: str | None = None

    @classmethod
    def from_app_config(cls, provider: Provider = "openai", model: str | None = None) -> LLMConfig:
        """Build configuration from the app config's provider section.

        The API key is read from the environment variable the provider names.
        """
        app_config = load_app_config()
        provider_config = app_config.providers.get(provider)
        if provider_config is None:
            raise LLMError(f"Unknown provider: {provider}")

        return cls(
            provider=provider,
            base_url=provider_config.base_url,
            model=model or provider_config.default_model,
            timeout=app_config.hub.llm_timeout,
            api_key=provider_config.get_api_key(),
        )


@dataclass
class Message:
    """A chat message."""

    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for API call."""
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Response from LLM."""

    content: str
    model: str
    provider: Provider
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def prompt_tokens(self) -> int:
        """Get prompt token count."""
        return self.usage.get("prompt_tokens", 0)

    @property
    def completion_tokens(self) -> int:
        """Get completion token count."""
        return self.usage.get("completion_tokens", 0)

    @property
    def total_tokens(self) -> int:
        """Get total token count."""
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """Error during LLM interaction."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class LLMConnectionError(LLMError):
    """Error connecting to the provider."""

    pass


class LLMTimeoutError(LLMError):
    """The provider did not answer in time."""

    pass


class LLMResponseError(LLMError):
    """Error in LLM response."""

    pass


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """Unified client for LLM interactions."""

    def __init__(
        self,
        config: LLMConfig | None = None,
        provider: Provider | None = None,
        model: str | None = None,
    ):
        """Initialize LLM client.

        Args:
            config: LLM configuration (built from app config if not provided)
            provider: Provider to use when config is not given
            model: Override model from config
        """
        if config is None:
            config = LLMConfig.from_app_config(provider or "openai")

        self.config = config

        if model is not None:
            self.config.model = model

        self._client = OpenAI(
            base_url=self.config.base_url,
            api_key=self.config.api_key or "not-configured",
            timeout=self.config.timeout,
            max_retries=0,
        )

        logger.info(
            "llm_client_initialized",
            provider=self.config.provider,
            model=self.config.model,
            base_url=self.config.base_url,
        )

    def chat(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Send chat completion request.

        Args:
            messages: List of messages in conversation
            temperature: Override default temperature
            max_tokens: Override default max tokens

        Returns:
            LLMResponse with content and metadata

        Raises:
            LLMTimeoutError: If the request timed out
            LLMConnectionError: If the provider cannot be reached
            LLMResponseError: If response is empty
            LLMError: For any other API error (status_code set when known)
        """
        if temperature is None:
            temperature = self.config.temperature
        if max_tokens is None:
            max_tokens = self.config.max_tokens

        request_kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        start_time = time.time()

        try:
            response = self._client.chat.completions.create(**request_kwargs)
        except openai.APITimeoutError as e:
            raise LLMTimeoutError(
                f"{self.config.provider} request timed out after {self.config.timeout}s",
                status_code=408,
            ) from e
        except openai.APIConnectionError as e:
            raise LLMConnectionError(
                f"Could not connect to {self.config.provider} at {self.config.base_url}: {e}"
            ) from e
        except openai.APIStatusError as e:
            raise LLMError(
                f"{self.config.provider} API error {e.status_code}: {e.message}",
                status_code=e.status_code,
            ) from e
        except openai.OpenAIError as e:
            raise LLMError(f"LLM call failed: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            raise LLMResponseError(f"Empty response from {self.config.provider}")

        content = response.choices[0].message.content or ""

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.debug(
            "llm_response",
            provider=self.config.provider,
            model=response.model,
            tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=response.model,
            provider=self.config.provider,
            usage=usage,
            latency_ms=latency_ms,
        )

    def is_available(self) -> bool:
        """Check if the provider answers and accepts our key.

        Returns:
            True if the models endpoint responds, False otherwise
        """
        try:
            self._client.models.list()
            return True
        except openai.OpenAIError as e:
            logger.debug("llm_unavailable", provider=self.config.provider, error=str(e))
            return False
