"""Tests for the chunked BatchProcessor."""

from __future__ import annotations

import asyncio

import pytest

from hiveline.errors import ValidationError
from hiveline.resilience.batch import BatchProcessor


async def _double(x: int) -> int:
    await asyncio.sleep(0)
    return x * 2


class TestProcess:
    @pytest.mark.asyncio
    async def test_results_in_input_order(self) -> None:
        async def _jittery(x: int) -> int:
            await asyncio.sleep(0.001 * (5 - x))
            return x * 2

        outcomes = await BatchProcessor.process([1, 2, 3, 4, 5], _jittery, concurrency=2)
        assert [o.item for o in outcomes] == [1, 2, 3, 4, 5]
        assert [o.result for o in outcomes] == [2, 4, 6, 8, 10]
        assert all(o.ok for o in outcomes)

    @pytest.mark.asyncio
    async def test_concurrency_bounded_and_chunks_sequential(self) -> None:
        running = 0
        peak = 0
        order: list[str] = []

        async def _track(x: int) -> int:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            order.append(f"start-{x}")
            await asyncio.sleep(0.001 * x)
            order.append(f"end-{x}")
            running -= 1
            return x

        await BatchProcessor.process([1, 2, 3, 4], _track, concurrency=2)
        assert peak == 2
        # Chunk [3, 4] starts only after chunk [1, 2] has fully finished
        assert order.index("start-3") > order.index("end-2")

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        assert await BatchProcessor.process([], _double, concurrency=3) == []

    @pytest.mark.asyncio
    async def test_invalid_concurrency(self) -> None:
        with pytest.raises(ValidationError):
            await BatchProcessor.process([1], _double, concurrency=0)

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self) -> None:
        seen: list[tuple[int, int]] = []
        await BatchProcessor.process(
            list(range(5)), _double, concurrency=2, on_progress=lambda d, t: seen.append((d, t))
        )
        assert seen == [(i, 5) for i in range(1, 6)]

    @pytest.mark.asyncio
    async def test_delay_between_chunks(self, monkeypatch) -> None:
        sleeps: list[float] = []
        real_sleep = asyncio.sleep

        async def _fake_sleep(delay: float) -> None:
            sleeps.append(delay)
            await real_sleep(0)

        monkeypatch.setattr("hiveline.resilience.batch.asyncio.sleep", _fake_sleep)

        async def _identity(x: int) -> int:
            return x

        await BatchProcessor.process(
            [1, 2, 3, 4, 5], _identity, concurrency=2, delay_between_batches=0.5
        )
        # Three chunks, so two pauses and none after the last
        assert sleeps == [0.5, 0.5]


class TestErrorPolicy:
    @pytest.mark.asyncio
    async def test_skip_is_default(self) -> None:
        async def _flaky(x: int) -> int:
            if x == 2:
                raise RuntimeError("bad item")
            return x

        outcomes = await BatchProcessor.process([1, 2, 3], _flaky, concurrency=3)
        assert [o.ok for o in outcomes] == [True, False, True]
        assert str(outcomes[1].error) == "bad item"
        assert outcomes[1].result is None

    @pytest.mark.asyncio
    async def test_abort_stops_further_chunks(self) -> None:
        started: list[int] = []
        error = RuntimeError("fatal")

        async def _fn(x: int) -> int:
            started.append(x)
            if x == 2:
                raise error
            return x

        with pytest.raises(RuntimeError) as exc_info:
            await BatchProcessor.process(
                [1, 2, 3, 4], _fn, concurrency=2, on_error=lambda e, item: "abort"
            )
        assert exc_info.value is error
        assert 3 not in started
        assert 4 not in started

    @pytest.mark.asyncio
    async def test_retry_until_success(self) -> None:
        attempts = {"n": 0}

        async def _eventually(x: int) -> int:
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise RuntimeError("flaky")
            return x

        outcomes = await BatchProcessor.process(
            [7], _eventually, concurrency=1, on_error=lambda e, item: "retry"
        )
        assert outcomes[0].result == 7
        assert attempts["n"] == 3

    @pytest.mark.asyncio
    async def test_retry_is_bounded(self) -> None:
        calls = 0

        async def _always(x: int) -> int:
            nonlocal calls
            calls += 1
            raise RuntimeError("never")

        outcomes = await BatchProcessor.process(
            [1], _always, concurrency=1, on_error=lambda e, item: "retry", max_item_retries=2
        )
        assert calls == 3
        assert not outcomes[0].ok

    @pytest.mark.asyncio
    async def test_unknown_action_rejected(self) -> None:
        async def _fail(x: int) -> int:
            raise RuntimeError("x")

        with pytest.raises(ValidationError):
            await BatchProcessor.process(
                [1], _fail, concurrency=1, on_error=lambda e, item: "explode"
            )
