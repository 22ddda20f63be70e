"""Cost calculation for AI model usage.

Prices are USD per one million tokens. Perplexity models also charge per
search request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol

import structlog

logger = structlog.get_logger(__name__)

TOKENS_PER_PRICE_UNIT = 1_000_000
DAYS_PER_MONTH = 30
UNKNOWN_PROVIDER = "Unknown"


@dataclass(frozen=True)
class ModelPricing:
    """Price card of one model."""

    input: float
    output: float
    provider: str
    display_name: str
    search_cost: float = 0.0


MODEL_PRICING: dict[str, ModelPricing] = {
    # OpenAI
    "gpt-4.1-mini": ModelPricing(0.40, 1.60, "OpenAI", "GPT-4.1 Mini"),
    "gpt-4.1": ModelPricing(2.00, 8.00, "OpenAI", "GPT-4.1"),
    "gpt-5-nano-2025-08-07": ModelPricing(0.05, 0.40, "OpenAI", "GPT-5 Nano"),
    "gpt-5-mini-2025-08-07": ModelPricing(0.25, 2.00, "OpenAI", "GPT-5 Mini"),
    "gpt-5-2025-08-07": ModelPricing(1.25, 10.00, "OpenAI", "GPT-5"),
    # Legacy OpenAI ids still present in stored chats
    "gpt-4o-2024-08-06": ModelPricing(5.00, 15.00, "OpenAI", "GPT-4o (Legacy)"),
    "gpt-4o": ModelPricing(5.00, 15.00, "OpenAI", "GPT-4o (Legacy)"),
    # Anthropic
    "claude-sonnet-4-20250514": ModelPricing(3.00, 15.00, "Anthropic", "Claude Sonnet 4"),
    "claude-sonnet-4": ModelPricing(3.00, 15.00, "Anthropic", "Claude Sonnet 4"),
    "claude-4-opus-20250514": ModelPricing(15.00, 75.00, "Anthropic", "Claude Opus 4"),
    # Google
    "gemini-1.5-flash": ModelPricing(0.15, 0.60, "Google", "Gemini Flash"),
    "gemini-flash": ModelPricing(0.15, 0.60, "Google", "Gemini Flash"),
    "gemini-2.5-pro": ModelPricing(1.25, 10.00, "Google", "Gemini 2.5 Pro"),
    # Perplexity ($5 per 1000 searches)
    "sonar-pro": ModelPricing(3.00, 15.00, "Perplexity", "Sonar Pro", search_cost=0.005),
}

# UI display names -> model ids
DISPLAY_NAME_MAPPING = {
    "GPT-4.1 Mini": "gpt-4.1-mini",
    "GPT-4.1": "gpt-4.1",
    "GPT-4o": "gpt-4o",
    "GPT-5 Nano": "gpt-5-nano-2025-08-07",
    "GPT-5 Mini": "gpt-5-mini-2025-08-07",
    "GPT-5": "gpt-5-2025-08-07",
    "Claude Opus 4": "claude-4-opus-20250514",
    "Gemini 2.5 Pro": "gemini-2.5-pro",
    "Claude Sonnet 4": "claude-sonnet-4-20250514",
    "Gemini Flash": "gemini-1.5-flash",
    "Sonar Pro": "sonar-pro",
}

# Lower-cased name prefixes -> provider key in the app config
_PROVIDER_PREFIXES = (
    ("gpt", "openai"),
    ("o1", "openai"),
    ("o3", "openai"),
    ("claude", "anthropic"),
    ("gemini", "google"),
    ("sonar", "perplexity"),
    ("perplexity", "perplexity"),
)


class UsageLike(Protocol):
    """Anything carrying the fields cost aggregation reads."""

    model: str
    input_tokens: int
    output_tokens: int
    searches: int


@dataclass
class ModelCost:
    """Cost breakdown of one interaction."""

    input_cost: float
    output_cost: float
    search_cost: float
    total_cost: float
    provider: str
    display_name: str
    model_id: str | None = None


@dataclass
class CostBucket:
    """Running totals for one provider or model."""

    cost: float = 0.0
    interactions: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    provider: str | None = None


@dataclass
class CostSummary:
    """Aggregated cost data over many usage records."""

    total_cost: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_searches: int = 0
    total_interactions: int = 0
    by_provider: dict[str, CostBucket] = field(default_factory=dict)
    by_model: dict[str, CostBucket] = field(default_factory=dict)
    daily_costs: dict[str, float] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens


def calculate_model_cost(
    model: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    searches: int = 0,
) -> ModelCost:
    """Calculate the cost of one model interaction.

    Accepts a model id or a UI display name. Unknown models cost nothing
    and are reported with provider "Unknown".
    """
    model_id = DISPLAY_NAME_MAPPING.get(model, model)
    pricing = MODEL_PRICING.get(model_id)

    if pricing is None:
        logger.warning("cost.unknown_model", model=model)
        return ModelCost(
            input_cost=0.0,
            output_cost=0.0,
            search_cost=0.0,
            total_cost=0.0,
            provider=UNKNOWN_PROVIDER,
            display_name=model,
        )

    input_cost = (input_tokens / TOKENS_PER_PRICE_UNIT) * pricing.input
    output_cost = (output_tokens / TOKENS_PER_PRICE_UNIT) * pricing.output
    search_cost = searches * pricing.search_cost

    return ModelCost(
        input_cost=input_cost,
        output_cost=output_cost,
        search_cost=search_cost,
        total_cost=input_cost + output_cost + search_cost,
        provider=pricing.provider,
        display_name=pricing.display_name,
        model_id=model_id,
    )


def calculate_platform_costs(records: Iterable[UsageLike]) -> CostSummary:
    """Sum costs over usage records, bucketed by provider, model and day.

    Records with a `date` attribute (datetime) contribute to daily_costs,
    keyed YYYY-MM-DD.
    """
    summary = CostSummary()

    for record in records:
        cost = calculate_model_cost(
            record.model,
            record.input_tokens or 0,
            record.output_tokens or 0,
            record.searches or 0,
        )
        input_tokens = record.input_tokens or 0
        output_tokens = record.output_tokens or 0

        summary.total_interactions += 1
        summary.total_cost += cost.total_cost
        summary.total_input_tokens += input_tokens
        summary.total_output_tokens += output_tokens
        summary.total_searches += record.searches or 0

        provider = summary.by_provider.setdefault(cost.provider, CostBucket())
        _add_to_bucket(provider, cost.total_cost, input_tokens, output_tokens)

        model = summary.by_model.setdefault(
            cost.display_name, CostBucket(provider=cost.provider)
        )
        _add_to_bucket(model, cost.total_cost, input_tokens, output_tokens)

        day = getattr(record, "date", None)
        if day is not None:
            key = day.date().isoformat()
            summary.daily_costs[key] = summary.daily_costs.get(key, 0.0) + cost.total_cost

    return summary


def _add_to_bucket(bucket: CostBucket, cost: float, input_tokens: int, output_tokens: int) -> None:
    bucket.cost += cost
    bucket.interactions += 1
    bucket.input_tokens += input_tokens
    bucket.output_tokens += output_tokens


def estimate_monthly_cost(summary: CostSummary, days_of_data: float) -> float:
    """Project the observed daily average onto a 30-day month."""
    if days_of_data <= 0:
        return 0.0
    return summary.total_cost / days_of_data * DAYS_PER_MONTH


def format_currency(amount: float) -> str:
    """Format as USD with 2 to 4 decimals, e.g. "$1,234.50", "$0.0042"."""
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):,.4f}"
    whole, decimals = text.split(".")
    decimals = decimals.rstrip("0").ljust(2, "0")
    return f"{sign}${whole}.{decimals}"


def format_number(number: float) -> str:
    """Compact number display: 1.5M, 12.3K, 999."""
    if number >= 1_000_000:
        return f"{number / 1_000_000:.1f}M"
    if number >= 1_000:
        return f"{number / 1_000:.1f}K"
    if isinstance(number, int) or float(number).is_integer():
        return f"{int(number):,}"
    return f"{number:,.3f}".rstrip("0").rstrip(".")


def provider_for_model(model: str | None) -> str | None:
    """Map a model id or display name to its provider key, or None."""
    if not model:
        return None

    model_id = DISPLAY_NAME_MAPPING.get(model, model).lower()
    for prefix, provider in _PROVIDER_PREFIXES:
        if model_id.startswith(prefix):
            return provider
    return None
