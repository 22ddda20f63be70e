"""Smart conversation history.

Chooses how many earlier chats of a project to send along with a new
prompt, based on the context window of the selected model.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol, Sequence, TypeVar

import structlog

logger = structlog.get_logger(__name__)

CHARS_PER_TOKEN = 3
CONTEXT_USAGE_RATIO = 0.7
RESERVED_BUFFER_TOKENS = 1000
LONG_CONTEXT_THRESHOLD = 100_000


class ChatLike(Protocol):
    prompt: str
    response: str


C = TypeVar("C", bound=ChatLike)


@dataclass(frozen=True)
class ModelContextConfig:
    max_tokens: int
    optimal_messages: int
    max_messages: int


MODEL_CONFIGS: dict[str, ModelContextConfig] = {
    "GPT-5 Nano": ModelContextConfig(128_000, 20, 50),
    "GPT-5 Mini": ModelContextConfig(128_000, 25, 60),
    "GPT-5": ModelContextConfig(400_000, 40, 100),
    "Claude Sonnet 4": ModelContextConfig(200_000, 30, 75),
    "Claude Opus 4": ModelContextConfig(200_000, 35, 80),
    "Gemini Flash": ModelContextConfig(32_000, 10, 25),
    "Gemini 2.5 Pro": ModelContextConfig(1_000_000, 50, 200),
    "Sonar Pro": ModelContextConfig(127_000, 20, 50),
}

DEFAULT_CONFIG = ModelContextConfig(32_000, 10, 25)


@dataclass
class HistorySummary:
    messages_included: int
    total_messages: int
    estimated_tokens: int
    max_tokens: int
    model_name: str


def get_model_config(model: str) -> ModelContextConfig:
    return MODEL_CONFIGS.get(model, DEFAULT_CONFIG)


def estimate_tokens(text: str | None) -> int:
    """Conservative token estimate (one token per 3 characters)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def calculate_history_tokens(chats: Sequence[ChatLike]) -> int:
    return sum(estimate_tokens(c.prompt) + estimate_tokens(c.response) for c in chats)


def get_smart_conversation_history(
    chats: Sequence[C],
    model: str,
    current_prompt: str = "",
    pdf_content: str = "",
) -> list[C]:
    """Pick the chats to include as context, oldest first.

    Starts from the model's optimal number of recent chats and drops the
    oldest until they fit the token budget (always keeping at least one),
    then adds older chats back, up to the model's maximum, while they fit.

    Args:
        chats: Project chats in conversation order (oldest first)
        model: Model display name, e.g. "Claude Sonnet 4"
        current_prompt: Prompt about to be sent
        pdf_content: Attachment text about to be sent

    Returns:
        The selected chats, oldest first
    """
    config = get_model_config(model)

    valid = [
        c for c in chats if c.prompt and c.response and c.prompt.strip() and c.response.strip()
    ]
    if not valid:
        return []

    reserved = estimate_tokens(current_prompt) + estimate_tokens(pdf_content) + RESERVED_BUFFER_TOKENS
    available = math.floor(config.max_tokens * CONTEXT_USAGE_RATIO) - reserved

    history = valid[-config.optimal_messages :]
    history_tokens = calculate_history_tokens(history)

    while history_tokens > available and len(history) > 1:
        history = history[1:]
        history_tokens = calculate_history_tokens(history)

    candidates = valid[-config.max_messages :]
    while len(history) < len(candidates):
        older = candidates[len(candidates) - len(history) - 1]
        older_tokens = estimate_tokens(older.prompt) + estimate_tokens(older.response)
        if history_tokens + older_tokens > available:
            break
        history.insert(0, older)
        history_tokens += older_tokens

    logger.debug(
        "history.selected",
        model=model,
        total_chats=len(chats),
        valid_chats=len(valid),
        included=len(history),
        estimated_tokens=history_tokens,
        available_tokens=available,
    )
    return history


def get_history_summary(
    chats: Sequence[ChatLike],
    model: str,
    current_prompt: str = "",
    pdf_content: str = "",
) -> HistorySummary:
    history = get_smart_conversation_history(chats, model, current_prompt, pdf_content)
    return HistorySummary(
        messages_included=len(history),
        total_messages=len(chats),
        estimated_tokens=calculate_history_tokens(history),
        max_tokens=get_model_config(model).max_tokens,
        model_name=model,
    )


def is_long_context_model(model: str) -> bool:
    config = MODEL_CONFIGS.get(model)
    return config is not None and config.max_tokens >= LONG_CONTEXT_THRESHOLD


def get_recommended_message_count(model: str) -> int:
    return get_model_config(model).optimal_messages
