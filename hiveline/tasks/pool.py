"""TaskPool: the task store API used by the swarm and the CLI."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from typing import Any, cast

from hiveline.errors import TaskError, ValidationError
from hiveline.tasks.store import MemoryTaskStore, TaskStore
from hiveline.tasks.types import (
    Task,
    TaskFilter,
    TaskPriority,
    TaskStats,
    TaskStatus,
)

logger = logging.getLogger(__name__)


class TaskPool:
    """Create, read, update, query and claim tasks.

    All mutation goes through this API; the backing store applies each
    read-check-write atomically, so two claimers can never both win the
    same task.

    Usage:
        pool = TaskPool()                                 # in memory
        pool = TaskPool(SqliteTaskStore("tasks.db"))      # durable
        task = pool.create_task("Review", "Review the auth module", priority="high")
        claimed = pool.claim_task(task.id, "reviewer-1")
    """

    def __init__(
        self,
        store: TaskStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store if store is not None else MemoryTaskStore()
        self._clock = clock

    # ── Create / read ────────────────────────────────────────

    def create_task(
        self,
        title: str,
        description: str,
        priority: TaskPriority | int | str = TaskPriority.MEDIUM,
        metadata: dict[str, Any] | None = None,
    ) -> Task:
        if not title or not title.strip():
            raise ValidationError("Task title must not be empty", field="title")
        if not description or not description.strip():
            raise ValidationError("Task description must not be empty", field="description")

        now = self._clock()
        task = Task(
            id=str(uuid.uuid4()),
            title=title.strip(),
            description=description,
            status=TaskStatus.PENDING,
            priority=TaskPriority.parse(priority),
            created_at=now,
            updated_at=now,
            metadata=dict(metadata or {}),
        )
        self.store.insert(task)
        logger.info("Task created: %s - %s", task.id, task.title)
        return task

    def get_task(self, task_id: str) -> Task | None:
        return self.store.get(task_id)

    def get_tasks(
        self,
        status: TaskStatus | str | None = None,
        assigned_agent: str | None = None,
        priority: TaskPriority | int | str | None = None,
    ) -> list[Task]:
        """Tasks matching every given field, highest priority first, FIFO within a priority."""
        task_filter = TaskFilter(
            status=TaskStatus(status) if status is not None else None,
            assigned_agent=assigned_agent,
            priority=TaskPriority.parse(priority) if priority is not None else None,
        )
        return self.store.find(task_filter)

    def get_stats(self) -> TaskStats:
        return TaskStats.from_counts(self.store.counts())

    # ── Update ───────────────────────────────────────────────

    def update_task(
        self,
        task_id: str,
        *,
        status: TaskStatus | str | None = None,
        assigned_agent: str | None = None,
        result: str | None = None,
        error: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Task:
        """Apply a patch. Fields left as None are unchanged.

        Raises:
            TaskNotFoundError: Unknown id.
            TaskError: Moving a terminal task back to a non-terminal status,
                or setting ``claimed`` (use ``claim_task``).
        """
        new_status = TaskStatus(status) if status is not None else None
        if new_status is TaskStatus.CLAIMED:
            raise TaskError("Tasks can only be claimed through claim_task()", task_id=task_id)

        def _patch(task: Task) -> Task:
            changes: dict[str, Any] = {"updated_at": self._bump(task)}
            if new_status is not None and new_status != task.status:
                if task.status.is_terminal and not new_status.is_terminal:
                    raise TaskError(
                        f"Cannot move task from {task.status.value} to {new_status.value}",
                        task_id=task.id,
                    )
                changes.update(self._status_changes(task, new_status, changes["updated_at"]))
            if assigned_agent is not None:
                changes["assigned_agent"] = assigned_agent
            if result is not None:
                changes["result"] = result
            if error is not None:
                changes["error"] = error
            if metadata is not None:
                changes["metadata"] = dict(metadata)
            return replace(task, **changes)

        # _patch always returns a task, so modify never yields None here
        updated = cast(Task, self.store.modify(task_id, _patch))
        logger.info("Task updated: %s (%s)", task_id, updated.status.value)
        return updated

    def cancel_task(self, task_id: str) -> Task:
        return self.update_task(task_id, status=TaskStatus.CANCELLED)

    # ── Claim / release ──────────────────────────────────────

    def claim_task(self, task_id: str, agent_name: str) -> Task | None:
        """Atomically move *task_id* from pending to claimed.

        Returns the claimed task, or None if it was not pending (someone else
        won the race, or it was cancelled).
        """

        def _claim(task: Task) -> Task | None:
            if task.status is not TaskStatus.PENDING:
                return None
            return replace(
                task,
                status=TaskStatus.CLAIMED,
                assigned_agent=agent_name,
                updated_at=self._bump(task),
            )

        claimed = self.store.modify(task_id, _claim)
        if claimed is not None:
            logger.info("Task claimed by %s: %s - %s", agent_name, claimed.id, claimed.title)
        return claimed

    def claim_next(
        self,
        agent_name: str,
        eligible: Callable[[Task], bool] | None = None,
    ) -> Task | None:
        """Claim the highest-priority pending task that *eligible* accepts."""
        for task in self.get_tasks(status=TaskStatus.PENDING):
            if eligible is not None and not eligible(task):
                continue
            claimed = self.claim_task(task.id, agent_name)
            if claimed is not None:
                return claimed
        return None

    def release_task(self, task_id: str) -> Task | None:
        """Atomically return a claimed (not yet started) task to pending."""

        def _release(task: Task) -> Task | None:
            if task.status is not TaskStatus.CLAIMED:
                return None
            return replace(
                task,
                status=TaskStatus.PENDING,
                assigned_agent=None,
                updated_at=self._bump(task),
            )

        released = self.store.modify(task_id, _release)
        if released is not None:
            logger.info("Task released: %s", task_id)
        return released

    def finish_task(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        result: str | None = None,
        error: str | None = None,
    ) -> Task | None:
        """Atomically move an in-progress task to a terminal *status*.

        Returns None, leaving the task untouched, if it is no longer in
        progress (for example cancelled while its worker was running).
        """
        if not status.is_terminal:
            raise TaskError(f"Not a terminal status: {status.value}", task_id=task_id)

        def _finish(task: Task) -> Task | None:
            if task.status is not TaskStatus.IN_PROGRESS:
                return None
            now = self._bump(task)
            changes = self._status_changes(task, status, now)
            return replace(
                task,
                updated_at=now,
                result=result if result is not None else task.result,
                error=error if error is not None else task.error,
                **changes,
            )

        finished = self.store.modify(task_id, _finish)
        if finished is not None:
            logger.info("Task finished: %s (%s)", task_id, status.value)
        return finished

    # ── Delete ───────────────────────────────────────────────

    def delete_task(self, task_id: str) -> bool:
        """Delete a task. Claimed and in-progress tasks cannot be deleted."""

        def _check(task: Task) -> None:
            if task.status.is_active:
                raise TaskError(
                    f"Cannot delete task while {task.status.value}", task_id=task.id
                )

        deleted = self.store.delete(task_id, _check)
        if deleted:
            logger.info("Task deleted: %s", task_id)
        return deleted

    def clear(self) -> int:
        """Delete every task that is not claimed or in progress."""
        removed = self.store.delete_where(lambda t: not t.status.is_active)
        logger.info("Cleared %d tasks", removed)
        return removed

    def close(self) -> None:
        self.store.close()

    # ── Helpers ──────────────────────────────────────────────

    def _bump(self, task: Task) -> float:
        return max(self._clock(), task.updated_at)

    @staticmethod
    def _status_changes(task: Task, status: TaskStatus, now: float) -> dict[str, Any]:
        changes: dict[str, Any] = {"status": status}
        if status is TaskStatus.IN_PROGRESS and task.started_at is None:
            changes["started_at"] = now
        if status.is_terminal:
            changes["completed_at"] = now
        return changes
