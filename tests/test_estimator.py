"""Tests for token counting, price tiers and cost estimates."""

import math

import pytest

from enkai.dispatch.estimator import estimate_cost
from enkai.dispatch.pricing import PRICE_TIERS, build_price_table, resolve_tier
from enkai.errors import UnknownModelError
from enkai.tokenizer import count_tokens, count_tokens_many


class TestTokenCount:
    """ceil(len / 2) approximation."""

    @pytest.mark.parametrize("length", [1, 2, 3, 999, 1000, 1001])
    def test_half_of_length_rounded_up(self, length):
        assert count_tokens("a" * length) == math.ceil(length / 2)

    def test_empty(self):
        assert count_tokens("") == 0
        assert count_tokens(None) == 0

    def test_counts_characters_not_bytes(self):
        assert count_tokens("日本語") == 2

    def test_many(self):
        assert count_tokens_many(["ab", "abc", ""]) == 3


class TestEstimateCost:
    """Forecasts built from the same split the dispatcher would run."""

    def test_single_subtask(self):
        tier = PRICE_TIERS["economy"]
        est = estimate_cost("x" * 1000, model="economy", average_output_tokens=500)
        assert est.sub_task_count == 1
        assert est.total_input_tokens == 500
        assert est.total_output_tokens == 500
        assert est.total_cost == pytest.approx(500 * tier.input + 500 * tier.output)
        assert est.currency == "JPY"

    def test_deterministic(self):
        args = ("Create A.tsx. Create B.tsx. Style all files", ["A.tsx", "B.tsx"])
        first = estimate_cost(*args, model="premium")
        second = estimate_cost(*args, model="premium")
        assert first.total_cost == second.total_cost
        assert first == second

    def test_input_tokens_follow_instructions(self):
        est = estimate_cost("abcd, efghij", average_output_tokens=0)
        assert est.sub_task_count == 2
        assert est.total_input_tokens == 2 + 3
        assert est.output_cost == 0

    def test_output_tokens_scale_with_tasks(self):
        est = estimate_cost("a, b, c", average_output_tokens=1000)
        assert est.total_output_tokens == 3000
        assert est.estimated_time == "30m"

    def test_defaults(self):
        est = estimate_cost("one task")
        assert est.model == "economy"
        assert est.average_output_tokens == 1000

    @pytest.mark.parametrize("alias,tier", [("flash", "economy"), ("PRO", "premium")])
    def test_aliases(self, alias, tier):
        assert estimate_cost("x", model=alias).model == tier

    def test_premium_costs_more(self):
        cheap = estimate_cost("Build a page", model="economy")
        dear = estimate_cost("Build a page", model="premium")
        assert dear.total_cost > cheap.total_cost

    def test_unknown_model(self):
        with pytest.raises(UnknownModelError) as exc:
            estimate_cost("x", model="gpt-9")
        assert "gpt-9" in str(exc.value)
        assert "economy" in exc.value.known

    def test_unknown_model_checked_before_split(self):
        with pytest.raises(UnknownModelError):
            estimate_cost("", model="nope")

    def test_negative_average_rejected(self):
        with pytest.raises(ValueError):
            estimate_cost("x", average_output_tokens=-1)

    def test_format_details(self):
        text = estimate_cost("x" * 10, average_output_tokens=10).format_details()
        assert "Cost estimate (economy)" in text
        assert "**Sub-tasks**: 1" in text
        assert "JPY" in text


class TestPriceTable:
    """Tier lookup and config overrides."""

    def test_resolve(self):
        assert resolve_tier("economy") is PRICE_TIERS["economy"]
        assert resolve_tier(" Flash ") is PRICE_TIERS["economy"]

    def test_override_merges_with_defaults(self):
        table = build_price_table({"economy": {"input": 0.001}, "local": {"input": 0, "output": 0}})
        assert table["economy"].input == 0.001
        assert table["economy"].output == PRICE_TIERS["economy"].output
        assert table["local"].output == 0.0
        assert table["local"].currency == "JPY"
        assert "premium" in table

    def test_custom_tier_usable_for_estimates(self):
        table = build_price_table({"free": {"input": 0, "output": 0}})
        assert estimate_cost("x" * 100, model="free", price_table=table).total_cost == 0

    def test_bad_override(self):
        with pytest.raises(ValueError):
            build_price_table({"broken": "not a mapping"})
        with pytest.raises(ValueError):
            build_price_table({"broken": {"input": "cheap"}})
