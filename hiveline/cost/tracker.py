"""Append-only cost ledger with budget enforcement."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from hiveline.cost.pricing import PriceTable, format_cost
from hiveline.cost.types import CostEntry, CostSummary, TokenUsage
from hiveline.errors import BudgetExceededError, ValidationError

logger = logging.getLogger(__name__)

# Absorbs float drift when summing many small costs against a ceiling
_EPSILON = 1e-12

_RULE = "━" * 38


class CostTracker:
    """Tracks token usage and cost of every completed provider call.

    When ``max_total_cost`` is set, ``record()`` refuses any entry that would
    push the running total past the ceiling and leaves the ledger untouched.
    Callers should also call ``check_budget()`` before issuing a provider
    call so that a spent budget aborts the call entirely.

    Usage:
        tracker = CostTracker(max_total_cost=1.00)
        tracker.check_budget()
        response = await provider.complete(...)
        tracker.record(response.usage, agent_name="executor")
        print(tracker.get_report())
    """

    def __init__(
        self,
        prices: PriceTable | None = None,
        max_total_cost: float | None = None,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_total_cost is not None and max_total_cost < 0:
            raise ValidationError(
                f"max_total_cost must be >= 0, got {max_total_cost}", field="max_total_cost"
            )
        self.prices = prices or PriceTable()
        self.max_total_cost = max_total_cost
        self.enabled = enabled
        self._clock = clock
        self._entries: list[CostEntry] = []
        self._lock = threading.Lock()

    # ── Recording ────────────────────────────────────────────

    def estimate(self, usage: TokenUsage) -> float:
        """Cost of *usage* under the price table, without recording it."""
        _validate_usage(usage)
        return self.prices.cost(usage.model, usage.prompt_tokens, usage.completion_tokens)

    def record(
        self,
        usage: TokenUsage,
        agent_name: str | None = None,
        task_id: str | None = None,
    ) -> CostEntry | None:
        """Append a ledger entry for *usage*.

        Raises:
            ValidationError: If a token count is negative.
            BudgetExceededError: If the entry would pass the ceiling. Nothing
                is recorded in that case.
        """
        if not self.enabled:
            return None

        cost = self.estimate(usage)
        with self._lock:
            current = self._total_cost()
            if self.max_total_cost is not None and current + cost > self.max_total_cost + _EPSILON:
                logger.warning(
                    "Rejected %s charge for %s: budget %s, spent %s",
                    format_cost(cost),
                    usage.model,
                    format_cost(self.max_total_cost),
                    format_cost(current),
                )
                raise BudgetExceededError(current, cost, self.max_total_cost)
            entry = CostEntry(
                timestamp=self._clock(),
                model=usage.model,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
                cost=cost,
                agent_name=agent_name,
                task_id=task_id,
            )
            self._entries.append(entry)

        logger.debug(
            "Cost tracked: %s for %s using %s",
            format_cost(cost),
            agent_name or "unknown",
            usage.model,
        )
        return entry

    def discard(self, entry: CostEntry) -> bool:
        """Remove *entry* (by identity) from the ledger. Returns False if absent."""
        with self._lock:
            for i, existing in enumerate(self._entries):
                if existing is entry:
                    del self._entries[i]
                    return True
        return False

    # ── Budget ───────────────────────────────────────────────

    def get_current_cost(self) -> float:
        with self._lock:
            return self._total_cost()

    def remaining_budget(self) -> float | None:
        """Dollars left before the ceiling, or None when there is no ceiling."""
        if self.max_total_cost is None:
            return None
        return max(self.max_total_cost - self.get_current_cost(), 0.0)

    def check_budget(self, estimated_cost: float = 0.0) -> None:
        """Raise BudgetExceededError if a call costing *estimated_cost* cannot fit.

        With no estimate, the budget must simply not be used up yet.
        """
        if not self.enabled or self.max_total_cost is None:
            return
        current = self.get_current_cost()
        remaining = self.max_total_cost - current
        if remaining <= _EPSILON or estimated_cost > remaining + _EPSILON:
            raise BudgetExceededError(current, estimated_cost, self.max_total_cost)

    # ── Views ────────────────────────────────────────────────

    @property
    def entries(self) -> tuple[CostEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def get_summary(self) -> CostSummary:
        """Aggregate the full ledger. Recomputed on every call."""
        summary = CostSummary()
        for entry in self.entries:
            summary.total_requests += 1
            summary.total_cost += entry.cost
            summary.total_tokens += entry.total_tokens
            summary.cost_by_model[entry.model] = (
                summary.cost_by_model.get(entry.model, 0.0) + entry.cost
            )
            if entry.agent_name:
                summary.cost_by_agent[entry.agent_name] = (
                    summary.cost_by_agent.get(entry.agent_name, 0.0) + entry.cost
                )
        return summary

    def entries_in_range(self, start: float, end: float) -> list[CostEntry]:
        return [e for e in self.entries if start <= e.timestamp <= end]

    def entries_by_agent(self, agent_name: str) -> list[CostEntry]:
        return [e for e in self.entries if e.agent_name == agent_name]

    def entries_by_task(self, task_id: str) -> list[CostEntry]:
        return [e for e in self.entries if e.task_id == task_id]

    def get_report(self) -> str:
        """Render the summary as text. Model and agent lines are sorted by name."""
        summary = self.get_summary()
        lines = [
            "Cost Tracking Report",
            _RULE,
            f"Total Cost: {format_cost(summary.total_cost)}",
            f"Total Tokens: {summary.total_tokens:,}",
            f"Total Requests: {summary.total_requests}",
        ]
        if self.max_total_cost is not None:
            lines.append(f"Budget: {format_cost(self.max_total_cost)}")
        lines.append("")
        lines.append("Cost by Model:")
        lines.extend(
            f"  {model}: {format_cost(cost)}"
            for model, cost in sorted(summary.cost_by_model.items())
        )
        lines.append("")
        lines.append("Cost by Agent:")
        lines.extend(
            f"  {agent}: {format_cost(cost)}"
            for agent, cost in sorted(summary.cost_by_agent.items())
        )
        lines.append(_RULE)
        return "\n".join(lines)

    # ── Persistence ──────────────────────────────────────────

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Cost tracker cleared")

    def export(self) -> str:
        """Serialise the ledger as a JSON array."""
        return json.dumps([e.to_dict() for e in self.entries], indent=2)

    @classmethod
    def from_export(cls, text: str, **kwargs: Any) -> CostTracker:
        """Rebuild a tracker from ``export()`` output.

        Entries are restored as-is; the budget is not re-applied to them.
        """
        raw = json.loads(text)
        if not isinstance(raw, list):
            raise ValidationError("Cost export must be a JSON array", field="entries")
        tracker = cls(**kwargs)
        tracker._entries = [CostEntry.from_dict(item) for item in raw if isinstance(item, dict)]
        return tracker

    def _total_cost(self) -> float:
        return sum(e.cost for e in self._entries)


def _validate_usage(usage: TokenUsage) -> None:
    if usage.prompt_tokens < 0:
        raise ValidationError(
            f"prompt_tokens must be >= 0, got {usage.prompt_tokens}", field="prompt_tokens"
        )
    if usage.completion_tokens < 0:
        raise ValidationError(
            f"completion_tokens must be >= 0, got {usage.completion_tokens}",
            field="completion_tokens",
        )
