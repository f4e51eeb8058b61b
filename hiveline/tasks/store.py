"""Backing stores for TaskPool: in-memory and SQLite.

Each store serialises ``modify()`` calls, so a read-check-write performed
by the pool (such as the pending -> claimed transition) is atomic.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from hiveline.errors import TaskNotFoundError
from hiveline.tasks.types import Task, TaskFilter, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

Mutation = Callable[[Task], "Task | None"]


def _sort_key(task: Task) -> tuple[int, float]:
    return (-int(task.priority), task.created_at)


class TaskStore(ABC):
    """Persistence contract for tasks: create, read, update, query, stats."""

    @abstractmethod
    def insert(self, task: Task) -> None: ...

    @abstractmethod
    def get(self, task_id: str) -> Task | None: ...

    @abstractmethod
    def find(self, task_filter: TaskFilter | None = None) -> list[Task]:
        """Matching tasks, priority descending then oldest first."""
        ...

    @abstractmethod
    def modify(self, task_id: str, mutation: Mutation) -> Task | None:
        """Atomically apply *mutation* to the stored task.

        *mutation* receives the current task and returns its replacement, or
        None to leave it unchanged (``modify`` then returns None). Exceptions
        raised by *mutation* propagate and nothing is written.

        Raises:
            TaskNotFoundError: If no task has this id.
        """
        ...

    @abstractmethod
    def delete(self, task_id: str, check: Callable[[Task], None] | None = None) -> bool:
        """Delete a task; *check* may raise to veto. Returns False if absent."""
        ...

    @abstractmethod
    def delete_where(self, predicate: Callable[[Task], bool]) -> int: ...

    @abstractmethod
    def counts(self) -> dict[TaskStatus, int]: ...

    def close(self) -> None:  # noqa: B027
        pass


class MemoryTaskStore(TaskStore):
    """Dict-backed store guarded by a lock. Safe across threads and tasks."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._lock = threading.Lock()

    def insert(self, task: Task) -> None:
        with self._lock:
            self._tasks[task.id] = _snapshot(task)

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return _snapshot(task) if task else None

    def find(self, task_filter: TaskFilter | None = None) -> list[Task]:
        with self._lock:
            tasks = [
                _snapshot(t)
                for t in self._tasks.values()
                if task_filter is None or task_filter.matches(t)
            ]
        # Stable sort keeps insertion order for equal keys
        return sorted(tasks, key=_sort_key)

    def modify(self, task_id: str, mutation: Mutation) -> Task | None:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                raise TaskNotFoundError(task_id)
            updated = mutation(_snapshot(current))
            if updated is None:
                return None
            self._tasks[task_id] = _snapshot(updated)
            return _snapshot(updated)

    def delete(self, task_id: str, check: Callable[[Task], None] | None = None) -> bool:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                return False
            if check:
                check(current)
            del self._tasks[task_id]
            return True

    def delete_where(self, predicate: Callable[[Task], bool]) -> int:
        with self._lock:
            doomed = [tid for tid, t in self._tasks.items() if predicate(t)]
            for tid in doomed:
                del self._tasks[tid]
            return len(doomed)

    def counts(self) -> dict[TaskStatus, int]:
        with self._lock:
            counts: dict[TaskStatus, int] = {}
            for task in self._tasks.values():
                counts[task.status] = counts.get(task.status, 0) + 1
            return counts


def _snapshot(task: Task) -> Task:
    return replace(task, metadata=copy.deepcopy(task.metadata))


_SCHEMA = """
CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    status TEXT NOT NULL,
    priority INTEGER NOT NULL,
    assigned_agent TEXT,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL,
    started_at REAL,
    completed_at REAL,
    result TEXT,
    error TEXT,
    metadata TEXT
);
CREATE INDEX IF NOT EXISTS idx_status ON tasks(status);
CREATE INDEX IF NOT EXISTS idx_assigned_agent ON tasks(assigned_agent);
CREATE INDEX IF NOT EXISTS idx_priority ON tasks(priority);
"""

_COLUMNS = (
    "id, title, description, status, priority, assigned_agent, created_at, "
    "updated_at, started_at, completed_at, result, error, metadata"
)


class SqliteTaskStore(TaskStore):
    """SQLite-backed store; ``path`` may be a file or ``":memory:"``.

    Mutations run inside ``BEGIN IMMEDIATE`` transactions on a single
    connection guarded by a lock.
    """

    def __init__(self, path: str = ":memory:") -> None:
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        with self._lock:
            self._conn.executescript(_SCHEMA)
        logger.info("SqliteTaskStore opened: %s", path)

    def insert(self, task: Task) -> None:
        with self._lock:
            self._conn.execute(
                f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _to_row(task),
            )

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            ).fetchone()
        return _from_row(row) if row else None

    def find(self, task_filter: TaskFilter | None = None) -> list[Task]:
        query = f"SELECT {_COLUMNS} FROM tasks WHERE 1=1"
        params: list[Any] = []
        if task_filter is not None:
            if task_filter.status is not None:
                query += " AND status = ?"
                params.append(task_filter.status.value)
            if task_filter.assigned_agent is not None:
                query += " AND assigned_agent = ?"
                params.append(task_filter.assigned_agent)
            if task_filter.priority is not None:
                query += " AND priority = ?"
                params.append(int(task_filter.priority))
        query += " ORDER BY priority DESC, created_at ASC, rowid ASC"
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [_from_row(r) for r in rows]

    def modify(self, task_id: str, mutation: Mutation) -> Task | None:
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                row = self._conn.execute(
                    f"SELECT {_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
                ).fetchone()
                if row is None:
                    raise TaskNotFoundError(task_id)
                updated = mutation(_from_row(row))
                if updated is None:
                    self._conn.execute("ROLLBACK")
                    return None
                values = _to_row(updated)
                self._conn.execute(
                    "UPDATE tasks SET title = ?, description = ?, status = ?, priority = ?, "
                    "assigned_agent = ?, created_at = ?, updated_at = ?, started_at = ?, "
                    "completed_at = ?, result = ?, error = ?, metadata = ? WHERE id = ?",
                    (*values[1:], task_id),
                )
                self._conn.execute("COMMIT")
                return updated
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise

    def delete(self, task_id: str, check: Callable[[Task], None] | None = None) -> bool:
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                row = self._conn.execute(
                    f"SELECT {_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
                ).fetchone()
                if row is None:
                    self._conn.execute("ROLLBACK")
                    return False
                if check:
                    check(_from_row(row))
                self._conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
                self._conn.execute("COMMIT")
                return True
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise

    def delete_where(self, predicate: Callable[[Task], bool]) -> int:
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                rows = self._conn.execute(f"SELECT {_COLUMNS} FROM tasks").fetchall()
                doomed = [(row["id"],) for row in rows if predicate(_from_row(row))]
                self._conn.executemany("DELETE FROM tasks WHERE id = ?", doomed)
                self._conn.execute("COMMIT")
                return len(doomed)
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise

    def counts(self) -> dict[TaskStatus, int]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT status, COUNT(*) AS n FROM tasks GROUP BY status"
            ).fetchall()
        return {TaskStatus(row["status"]): row["n"] for row in rows}

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("SqliteTaskStore closed: %s", self.path)


def _to_row(task: Task) -> tuple[Any, ...]:
    return (
        task.id,
        task.title,
        task.description,
        task.status.value,
        int(task.priority),
        task.assigned_agent,
        task.created_at,
        task.updated_at,
        task.started_at,
        task.completed_at,
        task.result,
        task.error,
        json.dumps(task.metadata) if task.metadata else None,
    )


def _from_row(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        status=TaskStatus(row["status"]),
        priority=TaskPriority(row["priority"]),
        assigned_agent=row["assigned_agent"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        result=row["result"],
        error=row["error"],
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
    )
