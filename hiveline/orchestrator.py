"""Orchestrator: wires pool, cache, cost ledger, retry and provider together.

Three execution modes share one ``complete()`` path:

- ``run_parallel``: bounded-concurrency batch of independent requests;
- ``drain_pool``: a swarm of LLM workers claiming tasks from the pool;
- ``run_within_budget``: sequential requests against a scoped cost ceiling.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from hiveline.cache.request_cache import CachedResponse, RequestCache
from hiveline.config import HivelineConfig
from hiveline.cost.pricing import PriceTable
from hiveline.cost.tracker import CostTracker
from hiveline.errors import BudgetExceededError, ValidationError
from hiveline.llm.provider import ChatProvider, LiteLLMProvider, ProviderResponse
from hiveline.resilience.batch import BatchItemOutcome, BatchProcessor
from hiveline.resilience.retry import RetryPolicy
from hiveline.swarm.roles import get_role
from hiveline.swarm.scheduler import Swarm
from hiveline.swarm.types import SwarmRunResult
from hiveline.swarm.worker import LLMWorker, Worker
from hiveline.tasks.pool import TaskPool
from hiveline.tasks.store import MemoryTaskStore, SqliteTaskStore
from hiveline.tasks.types import Task, TaskPriority

logger = logging.getLogger(__name__)

Message = Mapping[str, Any]


@dataclass
class CompletionRequest:
    """One chat request for the batch and budget modes."""

    messages: list[dict[str, Any]]
    model: str | None = None
    temperature: float | None = None
    agent_name: str | None = None
    task_id: str | None = None

    @classmethod
    def from_prompt(cls, prompt: str, **kwargs: Any) -> CompletionRequest:
        return cls(messages=[{"role": "user", "content": prompt}], **kwargs)


@dataclass
class BudgetRunResult:
    outcomes: list[BatchItemOutcome[CompletionRequest, ProviderResponse]] = field(
        default_factory=list
    )
    skipped: list[CompletionRequest] = field(default_factory=list)
    spent: float = 0.0
    budget_exhausted: bool = False


class Orchestrator:
    """Composition root. Collaborators not passed in are built from *config*."""

    def __init__(
        self,
        config: HivelineConfig | None = None,
        *,
        provider: ChatProvider | None = None,
        pool: TaskPool | None = None,
        cache: RequestCache | None = None,
        cost_tracker: CostTracker | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.config = config or HivelineConfig()
        cfg = self.config
        self.provider = provider or LiteLLMProvider()
        self.pool = pool or TaskPool(
            MemoryTaskStore() if cfg.db_path == ":memory:" else SqliteTaskStore(cfg.db_path)
        )
        self.cache = cache or RequestCache(
            enabled=cfg.cache_enabled, ttl=cfg.cache_ttl, max_size=cfg.cache_max_size
        )
        self.cost_tracker = cost_tracker or CostTracker(
            prices=PriceTable.from_config(cfg.prices), max_total_cost=cfg.budget
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=cfg.retry_max_attempts,
            initial_delay=cfg.retry_initial_delay,
            max_delay=cfg.retry_max_delay,
            factor=cfg.retry_factor,
        )

    # ── Single call ──────────────────────────────────────────

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        model: str | None = None,
        temperature: float | None = None,
        agent_name: str | None = None,
        task_id: str | None = None,
        budget: CostTracker | None = None,
    ) -> ProviderResponse:
        """Run one chat completion with caching, budget checks, retry and accounting.

        *budget* is an optional scoped ledger checked and charged alongside
        the global one.

        Raises:
            BudgetExceededError: If either ledger has no room. The provider
                is not called when the budget is already spent.
        """
        model = model or self.config.model
        if temperature is None:
            temperature = self.config.temperature

        cached = self.cache.get(model, messages, temperature)
        if cached is not None:
            logger.debug("Cache hit for %s (%s)", model, agent_name or "anonymous")
            return ProviderResponse(
                content=cached.content, usage=cached.usage, model=cached.model, cached=True
            )

        self.cost_tracker.check_budget()
        if budget is not None:
            budget.check_budget()

        response = await self.retry_policy.run(
            lambda: self.provider.complete(model, messages, temperature)
        )

        scoped_entry = None
        if budget is not None:
            scoped_entry = budget.record(response.usage, agent_name=agent_name, task_id=task_id)
        try:
            self.cost_tracker.record(response.usage, agent_name=agent_name, task_id=task_id)
        except BudgetExceededError:
            # Both ledgers hold the call or neither does
            if budget is not None and scoped_entry is not None:
                budget.discard(scoped_entry)
            raise

        self.cache.set(
            model,
            messages,
            CachedResponse(content=response.content, usage=response.usage, model=response.model),
            temperature,
        )
        return response

    # ── Batch mode ───────────────────────────────────────────

    async def run_parallel(
        self,
        requests: Sequence[CompletionRequest],
        *,
        concurrency: int | None = None,
        on_progress: Callable[[int, int], Any] | None = None,
    ) -> list[BatchItemOutcome[CompletionRequest, ProviderResponse]]:
        """Run independent requests with bounded concurrency.

        A spent budget aborts the whole batch; any other failure is recorded
        on its outcome and the batch continues.
        """

        def _on_error(error: BaseException, request: CompletionRequest) -> str:
            if isinstance(error, BudgetExceededError):
                return "abort"
            logger.warning("Request failed (%s): %s", request.agent_name or "batch", error)
            return "skip"

        return await BatchProcessor.process(
            requests,
            self._run_request,
            concurrency=concurrency or self.config.concurrency,
            delay_between_batches=self.config.delay_between_batches,
            on_progress=on_progress,
            on_error=_on_error,  # type: ignore[arg-type]
        )

    async def _run_request(
        self, request: CompletionRequest, budget: CostTracker | None = None
    ) -> ProviderResponse:
        return await self.complete(
            request.messages,
            model=request.model,
            temperature=request.temperature,
            agent_name=request.agent_name,
            task_id=request.task_id,
            budget=budget,
        )

    # ── Pool mode ────────────────────────────────────────────

    def add_tasks(self, specs: Iterable[Mapping[str, Any]]) -> list[Task]:
        """Create tasks from dicts with ``title``, ``description`` and optional
        ``priority``, ``requires`` and ``metadata``."""
        created = []
        for spec in specs:
            metadata = dict(spec.get("metadata") or {})
            if spec.get("requires"):
                metadata["requires"] = spec["requires"]
            created.append(
                self.pool.create_task(
                    title=spec.get("title", ""),
                    description=spec.get("description", ""),
                    priority=spec.get("priority", TaskPriority.MEDIUM),
                    metadata=metadata,
                )
            )
        return created

    def build_workers(
        self,
        count: int | None = None,
        model: str | None = None,
        roles: Sequence[str] | None = None,
    ) -> list[LLMWorker]:
        """Build LLM workers; personas in *roles* are assigned round-robin.

        Without an explicit *model*, a persona worker uses its role's
        ``default_model`` and a plain worker uses the configured model.
        """
        count = count or self.config.workers
        personas = []
        for name in roles or []:
            role = get_role(name)
            if role is None:
                raise ValidationError(f"Unknown role: {name}", field="roles")
            personas.append(role)

        workers = []
        for i in range(count):
            role = personas[i % len(personas)] if personas else None
            prefix = role.name if role else "worker"
            worker_model = model or (role.default_model if role else None)
            workers.append(LLMWorker(f"{prefix}-{i + 1}", self, role=role, model=worker_model))
        return workers

    async def drain_pool(
        self,
        workers: Sequence[Worker] | None = None,
        *,
        stop_when_empty: bool = True,
        poll_interval: float | None = None,
        max_iterations: int | None = None,
        max_concurrency: int | None = None,
    ) -> SwarmRunResult:
        """Run a swarm over the pool until it is drained (or stalls).

        *max_concurrency* defaults to the configured cap (0 means no cap).
        """
        if max_concurrency is None:
            max_concurrency = self.config.max_concurrency or None
        swarm = Swarm(self.pool, name=f"run-{self.config.run_id[:8]}")
        for worker in workers if workers is not None else self.build_workers():
            swarm.register_agent(worker)
        return await swarm.start(
            stop_when_empty=stop_when_empty,
            poll_interval=poll_interval if poll_interval is not None else self.config.poll_interval,
            max_iterations=max_iterations,
            max_concurrency=max_concurrency,
        )

    # ── Budget mode ──────────────────────────────────────────

    async def run_within_budget(
        self, requests: Sequence[CompletionRequest], max_cost: float
    ) -> BudgetRunResult:
        """Run requests one after another until *max_cost* is used up.

        The first request that does not fit stops the run; it and every
        request after it are reported as skipped.
        """
        scope = CostTracker(prices=self.cost_tracker.prices, max_total_cost=max_cost)
        result = BudgetRunResult()

        for index, request in enumerate(requests):
            try:
                response = await self._run_request(request, budget=scope)
            except BudgetExceededError as e:
                logger.info("Budget of %.4f reached: %s", max_cost, e)
                result.budget_exhausted = True
                result.skipped = list(requests[index:])
                break
            except Exception as e:
                logger.warning("Request failed: %s", e)
                result.outcomes.append(BatchItemOutcome(item=request, error=e))
            else:
                result.outcomes.append(BatchItemOutcome(item=request, result=response))

        result.spent = scope.get_current_cost()
        return result

    # ── Lifecycle ────────────────────────────────────────────

    def get_report(self) -> str:
        return self.cost_tracker.get_report()

    def close(self) -> None:
        self.pool.close()
