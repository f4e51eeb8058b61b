"""Swarm: claim-based scheduler that drains a TaskPool with a set of workers."""

from __future__ import annotations

import asyncio
import logging

from hiveline.errors import SwarmError, TaskError, ValidationError
from hiveline.swarm.types import SwarmRunResult, SwarmStatus, WorkerResult
from hiveline.swarm.worker import Worker
from hiveline.tasks.pool import TaskPool
from hiveline.tasks.types import Task, TaskStatus

logger = logging.getLogger(__name__)


class Swarm:
    """Coordinate workers over a shared task pool.

    One coordinating loop lists pending tasks, lets each idle worker claim one
    task it is eligible for, and runs the claimed tasks as asyncio tasks. The
    pool's atomic claim means several swarms (or processes sharing a SQLite
    store) may drain the same pool without executing a task twice.

    Usage:
        swarm = Swarm(pool)
        swarm.register_agent(FunctionWorker("w1", handle))
        result = await swarm.start(stop_when_empty=True)
    """

    def __init__(self, pool: TaskPool, name: str = "swarm") -> None:
        self.pool = pool
        self.name = name
        self._workers: dict[str, Worker] = {}
        self._in_flight: dict[str, asyncio.Task[None]] = {}
        self._current: dict[str, str] = {}
        self._running = False
        self._stop_requested = False
        self._wake: asyncio.Event | None = None
        self._max_concurrency: int | None = None
        self._result = SwarmRunResult(stopped_reason="")

    # ── Registration ─────────────────────────────────────────

    def register_agent(self, worker: Worker) -> None:
        if worker.name in self._workers:
            raise ValidationError(f"Worker already registered: {worker.name}", field="name")
        self._workers[worker.name] = worker
        logger.info("[%s] Registered worker %s", self.name, worker.name)

    def unregister_agent(self, name: str) -> bool:
        """Remove a worker. A task it is running still finishes."""
        removed = self._workers.pop(name, None) is not None
        if removed:
            logger.info("[%s] Unregistered worker %s", self.name, name)
        return removed

    @property
    def workers(self) -> list[Worker]:
        return list(self._workers.values())

    @property
    def is_running(self) -> bool:
        return self._running

    # ── Run loop ─────────────────────────────────────────────

    async def start(
        self,
        stop_when_empty: bool = False,
        poll_interval: float = 1.0,
        max_iterations: int | None = None,
        max_concurrency: int | None = None,
    ) -> SwarmRunResult:
        """Run until stopped. See the class docstring for the loop.

        *max_concurrency* caps how many workers run a task at once; None
        lets every registered worker run.

        Raises:
            SwarmError: If this swarm is already running.
        """
        if max_concurrency is not None and max_concurrency < 1:
            raise ValidationError(
                f"max_concurrency must be >= 1, got {max_concurrency}", field="max_concurrency"
            )
        if self._running:
            raise SwarmError(f"Swarm {self.name} is already running")
        self._running = True
        self._stop_requested = False
        self._wake = asyncio.Event()
        self._max_concurrency = max_concurrency
        self._result = result = SwarmRunResult(stopped_reason="")
        logger.info(
            "[%s] Starting with %d workers (stop_when_empty=%s, max_concurrency=%s)",
            self.name,
            len(self._workers),
            stop_when_empty,
            max_concurrency,
        )

        try:
            while True:
                if self._stop_requested:
                    result.stopped_reason = "stopped"
                    break

                result.iterations += 1
                self._wake.clear()
                result.dispatched += self._dispatch()

                if stop_when_empty:
                    reason = self._exhausted()
                    if reason:
                        result.stopped_reason = reason
                        break

                if max_iterations is not None and result.iterations >= max_iterations:
                    result.stopped_reason = "max_iterations"
                    break

                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=poll_interval)
                except TimeoutError:
                    pass

            # Graceful: let in-flight tasks finish
            if self._in_flight:
                await asyncio.gather(*self._in_flight.values(), return_exceptions=True)
        except asyncio.CancelledError:
            for task in self._in_flight.values():
                task.cancel()
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)
            raise
        finally:
            self._running = False

        logger.info(
            "[%s] Stopped (%s): %d dispatched, %d completed, %d failed",
            self.name,
            result.stopped_reason,
            result.dispatched,
            result.completed,
            result.failed,
        )
        return result

    def stop(self) -> None:
        """Stop claiming new tasks. ``start()`` returns once in-flight tasks finish."""
        self._stop_requested = True
        if self._wake is not None:
            self._wake.set()

    def get_status(self) -> SwarmStatus:
        return SwarmStatus(
            running=self._running,
            workers={
                name: self._current.get(name) if name in self._in_flight else None
                for name in self._workers
            },
            stats=self.pool.get_stats(),
        )

    # ── Internals ────────────────────────────────────────────

    def _dispatch(self) -> int:
        """Let every idle worker claim one eligible pending task."""
        idle = [w for w in self._workers.values() if w.name not in self._in_flight]
        slots = len(idle)
        if self._max_concurrency is not None:
            slots = min(slots, self._max_concurrency - len(self._in_flight))
        if slots <= 0:
            return 0

        candidates = self.pool.get_tasks(status=TaskStatus.PENDING)
        dispatched = 0
        for worker in idle:
            if dispatched >= slots:
                break
            for task in list(candidates):
                if not worker.can_take(task):
                    continue
                candidates.remove(task)
                try:
                    claimed = self.pool.claim_task(task.id, worker.name)
                except TaskError as e:
                    logger.warning("[%s] Claim failed for %s: %s", self.name, task.id, e)
                    continue
                if claimed is None:
                    # Lost the race to another claimer
                    continue
                self._launch(worker, claimed)
                dispatched += 1
                break
        return dispatched

    def _launch(self, worker: Worker, task: Task) -> None:
        running = asyncio.create_task(
            self._run_task(worker, task), name=f"{self.name}:{worker.name}:{task.id}"
        )
        self._in_flight[worker.name] = running
        self._current[worker.name] = task.id
        running.add_done_callback(lambda _t, name=worker.name: self._on_done(name))

    def _on_done(self, worker_name: str) -> None:
        self._in_flight.pop(worker_name, None)
        if self._wake is not None:
            self._wake.set()

    def _exhausted(self) -> str | None:
        """Why a ``stop_when_empty`` run should end now, or None to keep going."""
        if self._in_flight:
            return None
        pending = self.pool.get_tasks(status=TaskStatus.PENDING)
        if not pending:
            stats = self.pool.get_stats()
            return "empty" if stats.in_progress == 0 else None
        if not any(w.can_take(t) for w in self._workers.values() for t in pending):
            logger.warning(
                "[%s] %d pending tasks but no registered worker can take them",
                self.name,
                len(pending),
            )
            return "stalled"
        return None

    async def _run_task(self, worker: Worker, task: Task) -> None:
        try:
            self.pool.update_task(task.id, status=TaskStatus.IN_PROGRESS)
        except TaskError as e:
            logger.warning("[%s] Could not start task %s: %s", self.name, task.id, e)
            return

        logger.info("[%s] %s working on %s - %s", self.name, worker.name, task.id, task.title)
        try:
            outcome = await worker.execute(task)
        except asyncio.CancelledError:
            self._finish(task, WorkerResult(success=False, error="Cancelled"))
            raise
        except Exception as e:
            logger.error("[%s] Worker %s failed on %s: %s", self.name, worker.name, task.id, e)
            outcome = WorkerResult(success=False, error=str(e) or type(e).__name__)
        self._finish(task, outcome)

    def _finish(self, task: Task, outcome: WorkerResult) -> None:
        if outcome.success:
            status, fields = TaskStatus.COMPLETED, {"result": outcome.content}
        else:
            error = outcome.error or "Worker reported failure"
            status, fields = TaskStatus.FAILED, {"error": error}
        try:
            finished = self.pool.finish_task(task.id, status, **fields)
        except TaskError as e:
            logger.warning("[%s] Could not record outcome of %s: %s", self.name, task.id, e)
            return
        if finished is None:
            logger.warning(
                "[%s] Dropped %s outcome of %s: task is no longer in progress",
                self.name,
                status.value,
                task.id,
            )
            self._result.dropped += 1
        elif outcome.success:
            self._result.completed += 1
        else:
            self._result.failed += 1
