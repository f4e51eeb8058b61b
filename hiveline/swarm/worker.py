"""Workers: the units that execute claimed tasks inside a swarm."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

from hiveline.swarm.roles import Role
from hiveline.swarm.types import WorkerResult
from hiveline.tasks.types import Task

if TYPE_CHECKING:
    from hiveline.orchestrator import Orchestrator

logger = logging.getLogger(__name__)


class Worker(ABC):
    """Base class for swarm workers.

    Subclasses set ``name`` and implement ``execute``. A worker runs at most
    one task at a time; the swarm guarantees it.
    """

    def __init__(self, name: str, capabilities: Iterable[str] = ()) -> None:
        self.name = name
        self.capabilities = frozenset(capabilities)

    def can_take(self, task: Task) -> bool:
        """True if this worker holds every capability the task requires."""
        return task.required_capabilities <= self.capabilities

    @abstractmethod
    async def execute(self, task: Task) -> WorkerResult:
        """Run *task* and report the outcome. May raise; the swarm marks it failed."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionWorker(Worker):
    """Wrap an async callable ``fn(task) -> WorkerResult | str``."""

    def __init__(
        self,
        name: str,
        fn: Callable[[Task], Awaitable[WorkerResult | str]],
        capabilities: Iterable[str] = (),
    ) -> None:
        super().__init__(name, capabilities)
        self._fn = fn

    async def execute(self, task: Task) -> WorkerResult:
        outcome = await self._fn(task)
        if isinstance(outcome, WorkerResult):
            return outcome
        return WorkerResult(success=True, content=str(outcome))


class LLMWorker(Worker):
    """Run a task as a chat completion through the orchestrator.

    The persona's system prompt frames the request; the task title and
    description form the user message. Costs are attributed to this worker's
    name and the task id.
    """

    def __init__(
        self,
        name: str,
        orchestrator: Orchestrator,
        role: Role | None = None,
        model: str | None = None,
        temperature: float | None = None,
        capabilities: Iterable[str] | None = None,
    ) -> None:
        if capabilities is None:
            capabilities = role.capabilities if role else ()
        super().__init__(name, capabilities)
        self.orchestrator = orchestrator
        self.role = role
        self.model = model
        self.temperature = temperature if temperature is not None else (
            role.temperature if role else None
        )

    def build_messages(self, task: Task) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if self.role is not None:
            messages.append({"role": "system", "content": self.role.system_prompt})
        messages.append({"role": "user", "content": f"{task.title}\n\n{task.description}"})
        return messages

    async def execute(self, task: Task) -> WorkerResult:
        response = await self.orchestrator.complete(
            self.build_messages(task),
            model=self.model,
            temperature=self.temperature,
            agent_name=self.name,
            task_id=task.id,
        )
        cost = 0.0
        if not response.cached:
            cost = self.orchestrator.cost_tracker.estimate(response.usage)
        logger.debug(
            "Worker %s finished %s (%d tokens)", self.name, task.id, response.usage.total_tokens
        )
        return WorkerResult(
            success=True,
            content=response.content,
            tokens_used=response.usage.total_tokens,
            cost_usd=cost,
        )
