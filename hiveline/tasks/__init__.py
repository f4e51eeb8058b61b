"""Task pool: task entities, backing stores and the pool API."""

from __future__ import annotations

from hiveline.tasks.pool import TaskPool
from hiveline.tasks.store import MemoryTaskStore, SqliteTaskStore, TaskStore
from hiveline.tasks.types import Task, TaskFilter, TaskPriority, TaskStats, TaskStatus

__all__ = [
    "MemoryTaskStore",
    "SqliteTaskStore",
    "Task",
    "TaskFilter",
    "TaskPool",
    "TaskPriority",
    "TaskStats",
    "TaskStatus",
    "TaskStore",
]
