"""Error hierarchy shared by every hiveline component."""

from __future__ import annotations

from typing import Any


class HivelineError(Exception):
    """Base class for all hiveline errors."""

    code = "HIVELINE_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.suggestion: str | None = None


class ValidationError(HivelineError):
    """Malformed input (empty title, negative token counts, bad options)."""

    code = "VALIDATION_ERROR"

    def __init__(
        self, message: str, field: str, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, details)
        self.field = field


class ConfigError(HivelineError):
    """Malformed configuration file or value."""

    code = "CONFIG_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        self.suggestion = "Check .hiveline.yml for typos and wrong value types"


class APIError(HivelineError):
    """A provider call failed."""

    code = "API_ERROR"

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.provider = provider
        self.status_code = status_code
        self.suggestion = self._suggest()

    def _suggest(self) -> str:
        if self.status_code == 401:
            return f"Check the API key for {self.provider}"
        if self.status_code == 429:
            return "Rate limit exceeded. Wait a moment or lower the concurrency"
        if self.status_code is not None and self.status_code >= 500:
            return f"{self.provider} server error. Try again later"
        return "Check the provider configuration and try again"

    def __str__(self) -> str:
        status = f" {self.status_code}" if self.status_code is not None else ""
        return f"[{self.provider}{status}] {self.message}"


class ProviderTimeoutError(HivelineError, TimeoutError):
    """A provider call exceeded its deadline."""

    code = "TIMEOUT_ERROR"

    def __init__(self, message: str, timeout: float | None = None) -> None:
        super().__init__(message, {"timeout": timeout})
        self.timeout = timeout
        self.suggestion = "Increase the timeout or shorten the request"


class BudgetExceededError(HivelineError):
    """Recording a call would push spend past the configured ceiling."""

    code = "BUDGET_EXCEEDED"

    def __init__(self, current_cost: float, attempted_cost: float, limit: float) -> None:
        super().__init__(
            f"Budget exceeded: ${current_cost:.4f} spent, "
            f"${attempted_cost:.4f} more would pass the ${limit:.4f} limit",
            {
                "current_cost": current_cost,
                "attempted_cost": attempted_cost,
                "limit": limit,
            },
        )
        self.current_cost = current_cost
        self.attempted_cost = attempted_cost
        self.limit = limit
        self.suggestion = "Raise max_total_cost or switch to a cheaper model"


class TaskError(HivelineError):
    """Invalid task transition or operation."""

    code = "TASK_ERROR"

    def __init__(
        self,
        message: str,
        task_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.task_id = task_id


class TaskNotFoundError(TaskError):
    """No task with the given id exists in the pool."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}", task_id=task_id)


class SwarmError(HivelineError):
    """Scheduler misuse, such as starting a swarm twice."""

    code = "SWARM_ERROR"
