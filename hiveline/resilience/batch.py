"""Chunked batch execution with bounded concurrency."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from hiveline.errors import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ErrorAction = Literal["skip", "abort", "retry"]

_ACTIONS = ("skip", "abort", "retry")


@dataclass
class BatchItemOutcome(Generic[T, R]):
    """Outcome for one input item: either a result or an error."""

    item: T
    result: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchProcessor:
    """Run a homogeneous set of async jobs in fixed-size chunks.

    Every item of a chunk runs concurrently and the whole chunk finishes
    before the next one starts, so at most ``concurrency`` jobs are ever in
    flight. Outcomes come back in input order.

    Usage:
        outcomes = await BatchProcessor.process(
            urls, fetch, concurrency=4, on_error=lambda e, item: "skip"
        )
    """

    @staticmethod
    async def process(
        items: Sequence[T],
        fn: Callable[[T], Awaitable[R]],
        *,
        concurrency: int,
        delay_between_batches: float = 0.0,
        on_progress: Callable[[int, int], Any] | None = None,
        on_error: Callable[[BaseException, T], ErrorAction] | None = None,
        max_item_retries: int = 3,
    ) -> list[BatchItemOutcome[T, R]]:
        if concurrency < 1:
            raise ValidationError(
                f"concurrency must be >= 1, got {concurrency}", field="concurrency"
            )

        total = len(items)
        completed = 0
        outcomes: list[BatchItemOutcome[T, R]] = []

        def _progress() -> None:
            nonlocal completed
            completed += 1
            if on_progress:
                on_progress(completed, total)

        async def _run_item(item: T) -> BatchItemOutcome[T, R]:
            retries = 0
            while True:
                try:
                    result = await fn(item)
                except Exception as e:
                    action = on_error(e, item) if on_error else "skip"
                    if action not in _ACTIONS:
                        raise ValidationError(
                            f"on_error returned unknown action {action!r}", field="on_error"
                        ) from e
                    if action == "abort":
                        raise
                    if action == "retry" and retries < max_item_retries:
                        retries += 1
                        logger.debug("Retrying batch item (%d/%d)", retries, max_item_retries)
                        continue
                    _progress()
                    return BatchItemOutcome(item=item, error=e)
                _progress()
                return BatchItemOutcome(item=item, result=result)

        chunk_count = (total + concurrency - 1) // concurrency
        for index, start in enumerate(range(0, total, concurrency), 1):
            chunk = items[start : start + concurrency]
            logger.debug("Processing chunk %d/%d (%d items)", index, chunk_count, len(chunk))

            tasks = [asyncio.ensure_future(_run_item(item)) for item in chunk]
            try:
                chunk_outcomes = await asyncio.gather(*tasks)
            except BaseException:
                # Abort: stop the rest of this chunk and every later chunk
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
            outcomes.extend(chunk_outcomes)

            if delay_between_batches > 0 and start + concurrency < total:
                await asyncio.sleep(delay_between_batches)

        return outcomes
