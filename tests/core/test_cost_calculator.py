"""Tests for cost calculator."""

from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from engagement_hub.core.cost_calculator import (
    calculate_model_cost,
    calculate_platform_costs,
    estimate_monthly_cost,
    format_currency,
    format_number,
    provider_for_model,
)


@dataclass
class Usage:
    model: str
    input_tokens: int
    output_tokens: int
    searches: int = 0
    date: datetime | None = None


class TestCalculateModelCost:
    """Tests for calculate_model_cost."""

    def test_priced_per_million_tokens(self):
        cost = calculate_model_cost("gpt-5-2025-08-07", 1_000_000, 1_000_000)

        assert cost.input_cost == pytest.approx(1.25)
        assert cost.output_cost == pytest.approx(10.0)
        assert cost.total_cost == pytest.approx(11.25)
        assert cost.display_name == "GPT-5"

    def test_accepts_display_name(self):
        by_name = calculate_model_cost("Claude Sonnet 4", 1000, 500)
        by_id = calculate_model_cost("claude-sonnet-4-20250514", 1000, 500)
        assert by_name.total_cost == pytest.approx(by_id.total_cost)
        assert by_name.model_id == "claude-sonnet-4-20250514"

    def test_search_cost(self):
        cost = calculate_model_cost("sonar-pro", 0, 0, searches=2)
        assert cost.search_cost > 0
        assert cost.total_cost == pytest.approx(cost.search_cost)

    def test_unknown_model_is_free(self):
        cost = calculate_model_cost("mystery-model", 1000, 1000)
        assert cost.total_cost == 0.0
        assert cost.provider == "Unknown"
        assert cost.display_name == "mystery-model"


class TestCalculatePlatformCosts:
    """Tests for calculate_platform_costs."""

    def test_buckets(self):
        day = datetime(2025, 3, 1, 9, tzinfo=timezone.utc)
        records = [
            Usage("GPT-5", 1000, 2000, date=day),
            Usage("GPT-5", 500, 500, date=day),
            Usage("Claude Sonnet 4", 100, 100, date=datetime(2025, 3, 2, tzinfo=timezone.utc)),
        ]

        summary = calculate_platform_costs(records)

        assert summary.total_interactions == 3
        assert summary.total_input_tokens == 1600
        assert summary.total_output_tokens == 2600
        assert summary.by_model["GPT-5"].interactions == 2
        assert set(summary.daily_costs) == {"2025-03-01", "2025-03-02"}
        assert sum(b.cost for b in summary.by_provider.values()) == pytest.approx(
            summary.total_cost
        )

    def test_empty(self):
        summary = calculate_platform_costs([])
        assert summary.total_cost == 0
        assert summary.by_model == {}


class TestHelpers:
    """Tests for estimates and formatting."""

    def test_monthly_estimate(self):
        summary = calculate_platform_costs([Usage("GPT-5", 1_000_000, 0)])
        assert estimate_monthly_cost(summary, 10) == pytest.approx(1.25 / 10 * 30)
        assert estimate_monthly_cost(summary, 0) == 0.0

    @pytest.mark.parametrize(
        "amount,expected",
        [
            (1234.5, "$1,234.50"),
            (0.0042, "$0.0042"),
            (0, "$0.00"),
            (-2.5, "-$2.50"),
        ],
    )
    def test_format_currency(self, amount, expected):
        assert format_currency(amount) == expected

    @pytest.mark.parametrize(
        "number,expected",
        [(1_500_000, "1.5M"), (12_345, "12.3K"), (999, "999"), (2.5, "2.5")],
    )
    def test_format_number(self, number, expected):
        assert format_number(number) == expected

    @pytest.mark.parametrize(
        "model,provider",
        [
            ("gpt-5-mini-2025-08-07", "openai"),
            ("Claude Opus 4", "anthropic"),
            ("gemini-2.5-pro", "google"),
            ("sonar-pro", "perplexity"),
            ("llama-3", None),
            (None, None),
        ],
    )
    def test_provider_for_model(self, model, provider):
        assert provider_for_model(model) == provider
