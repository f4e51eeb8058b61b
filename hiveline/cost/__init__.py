"""Cost accounting: price table, ledger and budget enforcement."""

from __future__ import annotations

from hiveline.cost.pricing import DEFAULT_PRICES, ModelPrice, PriceTable, format_cost
from hiveline.cost.tracker import CostTracker
from hiveline.cost.types import CostEntry, CostSummary, TokenUsage

__all__ = [
    "DEFAULT_PRICES",
    "CostEntry",
    "CostSummary",
    "CostTracker",
    "ModelPrice",
    "PriceTable",
    "TokenUsage",
    "format_cost",
]
