"""Tests for the per-model price table."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from hiveline.cost.pricing import DEFAULT_PRICES, ModelPrice, PriceTable, format_cost


def test_exact_match() -> None:
    table = PriceTable(use_litellm=False)
    assert table.get("gpt-4o") == DEFAULT_PRICES["gpt-4o"]


def test_longest_substring_match() -> None:
    table = PriceTable(use_litellm=False)
    assert table.get("openai/gpt-4o-mini") == DEFAULT_PRICES["gpt-4o-mini"]
    assert table.get("azure/gpt-4o") == DEFAULT_PRICES["gpt-4o"]


def test_unknown_model_uses_fallback() -> None:
    table = PriceTable(use_litellm=False)
    assert table.get("totally-new-model") == DEFAULT_PRICES["gpt-4o-mini"]


def test_litellm_registry_consulted_before_fallback() -> None:
    registry = {"acme-large": {"input_cost_per_token": 2e-6, "output_cost_per_token": 8e-6}}
    with patch("hiveline.cost.pricing._litellm_price") as lookup:
        lookup.side_effect = lambda model: (
            ModelPrice(
                registry[model]["input_cost_per_token"] * 1000,
                registry[model]["output_cost_per_token"] * 1000,
            )
            if model in registry
            else None
        )
        table = PriceTable()
        price = table.get("acme-large")
        assert price.prompt_per_k == pytest.approx(0.002)
        assert price.completion_per_k == pytest.approx(0.008)
        assert table.get("acme-other") == DEFAULT_PRICES["gpt-4o-mini"]


def test_local_models_are_free() -> None:
    table = PriceTable(use_litellm=False)
    assert table.cost("ollama/llama3", 10_000, 10_000) == 0.0


def test_from_config_overrides_defaults() -> None:
    table = PriceTable.from_config(
        {"gpt-4o": {"prompt": 0.001, "completion": 0.002}}, use_litellm=False
    )
    assert table.get("gpt-4o") == ModelPrice(0.001, 0.002)
    assert "gpt-4o-mini" in table


def test_cost_per_thousand_tokens() -> None:
    price = ModelPrice(prompt_per_k=0.01, completion_per_k=0.03)
    assert price.cost(2000, 1000) == pytest.approx(0.05)


def test_iteration_is_sorted() -> None:
    names = [name for name, _ in PriceTable(use_litellm=False)]
    assert names == sorted(names)


@pytest.mark.parametrize(
    "cost,expected",
    [(0.0, "$0.0000"), (0.0012, "$0.0012"), (0.01, "$0.01"), (1.234, "$1.23")],
)
def test_format_cost(cost: float, expected: str) -> None:
    assert format_cost(cost) == expected
