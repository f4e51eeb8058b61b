"""Task entity, status and priority types."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any

from hiveline.errors import ValidationError


class TaskStatus(str, Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS})


class TaskPriority(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @classmethod
    def parse(cls, value: TaskPriority | int | str) -> TaskPriority:
        """Accept an enum member, its int value, or its (case-insensitive) name."""
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValidationError(f"Unknown priority: {value!r}", field="priority") from None
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown priority: {value!r}", field="priority") from None


@dataclass(frozen=True)
class Task:
    """A unit of work. Instances are snapshots; change them through the pool."""

    id: str
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    created_at: float
    updated_at: float
    assigned_agent: str | None = None
    started_at: float | None = None
    completed_at: float | None = None
    result: str | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def required_capabilities(self) -> frozenset[str]:
        """Capabilities a worker needs to take this task (``metadata["requires"]``)."""
        requires = self.metadata.get("requires") or []
        if isinstance(requires, str):
            requires = [requires]
        return frozenset(str(r) for r in requires)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["priority"] = self.priority.name.lower()
        return data


@dataclass(frozen=True)
class TaskFilter:
    status: TaskStatus | None = None
    assigned_agent: str | None = None
    priority: TaskPriority | None = None

    def matches(self, task: Task) -> bool:
        if self.status is not None and task.status != self.status:
            return False
        if self.assigned_agent is not None and task.assigned_agent != self.assigned_agent:
            return False
        return self.priority is None or task.priority == self.priority


@dataclass
class TaskStats:
    total: int = 0
    pending: int = 0
    claimed: int = 0
    in_progress: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0

    @classmethod
    def from_counts(cls, counts: dict[TaskStatus, int]) -> TaskStats:
        stats = cls(**{status.value: counts.get(status, 0) for status in TaskStatus})
        stats.total = sum(counts.values())
        return stats

    def to_dict(self) -> dict[str, int]:
        return asdict(self)
