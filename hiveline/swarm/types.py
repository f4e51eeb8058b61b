"""Shared types for the swarm module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hiveline.tasks.types import TaskStats


@dataclass
class WorkerResult:
    """Result from a single worker run on one task."""

    success: bool
    content: str = ""
    error: str | None = None
    tokens_used: int = 0
    cost_usd: float = 0.0


@dataclass
class SwarmRunResult:
    """Summary of one ``Swarm.start()`` run."""

    stopped_reason: str  # empty | stopped | max_iterations | stalled
    iterations: int = 0
    dispatched: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0  # outcomes discarded because the task left in_progress


@dataclass
class SwarmStatus:
    running: bool
    workers: dict[str, str | None] = field(default_factory=dict)  # name -> active task id
    stats: TaskStats = field(default_factory=TaskStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "workers": dict(self.workers),
            "stats": self.stats.to_dict(),
        }
