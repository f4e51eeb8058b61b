"""Per-model price table (USD per 1K tokens)."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

FALLBACK_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class ModelPrice:
    """Price per 1K prompt tokens and per 1K completion tokens."""

    prompt_per_k: float
    completion_per_k: float

    def cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        return (
            prompt_tokens / 1000 * self.prompt_per_k
            + completion_tokens / 1000 * self.completion_per_k
        )


DEFAULT_PRICES: dict[str, ModelPrice] = {
    # OpenAI
    "gpt-4o": ModelPrice(0.005, 0.015),
    "gpt-4o-mini": ModelPrice(0.00015, 0.0006),
    "o1": ModelPrice(0.015, 0.06),
    "o1-mini": ModelPrice(0.003, 0.012),
    "gpt-4-turbo": ModelPrice(0.01, 0.03),
    "gpt-4": ModelPrice(0.03, 0.06),
    "gpt-3.5-turbo": ModelPrice(0.0005, 0.0015),
    # Anthropic
    "claude-3-5-sonnet-20241022": ModelPrice(0.003, 0.015),
    "claude-3-opus-20240229": ModelPrice(0.015, 0.075),
    "claude-3-haiku-20240307": ModelPrice(0.00025, 0.00125),
    # Google Gemini
    "gemini-2.0-flash": ModelPrice(0.0001, 0.0004),
    "gemini-1.5-pro": ModelPrice(0.00125, 0.005),
    "gemini-1.5-flash": ModelPrice(0.000075, 0.0003),
    # Local models are free
    "llama3": ModelPrice(0.0, 0.0),
    "mistral": ModelPrice(0.0, 0.0),
    "codellama": ModelPrice(0.0, 0.0),
}


def _litellm_price(model: str) -> ModelPrice | None:
    """Look *model* up in LiteLLM's bundled cost registry."""
    import litellm

    info = litellm.model_cost.get(model)
    if not isinstance(info, dict):
        return None
    prompt = info.get("input_cost_per_token")
    completion = info.get("output_cost_per_token")
    if prompt is None or completion is None:
        return None
    return ModelPrice(float(prompt) * 1000, float(completion) * 1000)


class PriceTable:
    """Resolve a model name to its price.

    Lookup order: exact name, longest table key contained in the name
    (``openai/gpt-4o`` -> ``gpt-4o``), LiteLLM's registry, then the
    fallback model's price.
    """

    def __init__(
        self,
        prices: Mapping[str, ModelPrice] | None = None,
        *,
        fallback: str = FALLBACK_MODEL,
        use_litellm: bool = True,
    ) -> None:
        self._prices: dict[str, ModelPrice] = dict(DEFAULT_PRICES)
        if prices:
            self._prices.update(prices)
        self.fallback = fallback
        self.use_litellm = use_litellm
        self._resolved: dict[str, ModelPrice] = {}

    @classmethod
    def from_config(cls, prices: Mapping[str, Mapping[str, Any]], **kwargs: Any) -> PriceTable:
        """Build a table from ``{model: {"prompt": x, "completion": y}}`` overrides."""
        parsed = {
            model: ModelPrice(float(p.get("prompt", 0.0)), float(p.get("completion", 0.0)))
            for model, p in prices.items()
        }
        return cls(parsed, **kwargs)

    def get(self, model: str) -> ModelPrice:
        if model in self._prices:
            return self._prices[model]
        if model in self._resolved:
            return self._resolved[model]

        price = None
        for key in sorted(self._prices, key=len, reverse=True):
            if key in model:
                price = self._prices[key]
                break
        if price is None and self.use_litellm:
            price = _litellm_price(model)
        if price is None:
            logger.warning("No price for model %s, using %s pricing", model, self.fallback)
            price = self._prices[self.fallback]

        self._resolved[model] = price
        return price

    def cost(self, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        return self.get(model).cost(prompt_tokens, completion_tokens)

    def __contains__(self, model: object) -> bool:
        return model in self._prices

    def __iter__(self) -> Iterator[tuple[str, ModelPrice]]:
        return iter(sorted(self._prices.items()))


def format_cost(cost: float) -> str:
    """Render a dollar amount: 4 decimals below one cent, 2 otherwise."""
    if cost < 0.01:
        return f"${cost:.4f}"
    return f"${cost:.2f}"
