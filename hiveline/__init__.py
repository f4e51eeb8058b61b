"""hiveline: cost-aware orchestration of LLM calls."""

from __future__ import annotations

from hiveline.cache import CachedResponse, RequestCache, TTLCache
from hiveline.config import HivelineConfig, load_config, resolve_config
from hiveline.cost import CostEntry, CostSummary, CostTracker, PriceTable, TokenUsage
from hiveline.errors import (
    APIError,
    BudgetExceededError,
    ConfigError,
    HivelineError,
    ProviderTimeoutError,
    SwarmError,
    TaskError,
    TaskNotFoundError,
    ValidationError,
)
from hiveline.llm import ChatProvider, EchoProvider, LiteLLMProvider, ProviderResponse
from hiveline.orchestrator import BudgetRunResult, CompletionRequest, Orchestrator
from hiveline.resilience import BatchItemOutcome, BatchProcessor, RetryPolicy, retry
from hiveline.swarm import FunctionWorker, LLMWorker, Swarm, SwarmRunResult, Worker, WorkerResult
from hiveline.tasks import (
    MemoryTaskStore,
    SqliteTaskStore,
    Task,
    TaskPool,
    TaskPriority,
    TaskStatus,
)

__version__ = "0.1.0"

__all__ = [
    "APIError",
    "BatchItemOutcome",
    "BatchProcessor",
    "BudgetExceededError",
    "BudgetRunResult",
    "CachedResponse",
    "ChatProvider",
    "CompletionRequest",
    "ConfigError",
    "CostEntry",
    "CostSummary",
    "CostTracker",
    "EchoProvider",
    "FunctionWorker",
    "HivelineConfig",
    "HivelineError",
    "LLMWorker",
    "LiteLLMProvider",
    "MemoryTaskStore",
    "Orchestrator",
    "PriceTable",
    "ProviderResponse",
    "ProviderTimeoutError",
    "RequestCache",
    "RetryPolicy",
    "SqliteTaskStore",
    "Swarm",
    "SwarmError",
    "SwarmRunResult",
    "TTLCache",
    "Task",
    "TaskError",
    "TaskNotFoundError",
    "TaskPool",
    "TaskPriority",
    "TaskStatus",
    "TokenUsage",
    "ValidationError",
    "Worker",
    "WorkerResult",
    "load_config",
    "resolve_config",
    "__version__",
]
