"""Tests for RetryPolicy and transient-error classification."""

from __future__ import annotations

import random
from unittest.mock import AsyncMock

import pytest

from hiveline.errors import (
    APIError,
    BudgetExceededError,
    ProviderTimeoutError,
    TaskError,
    ValidationError,
)
from hiveline.resilience.retry import RetryPolicy, is_transient_error, retry


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


# ── Classification ───────────────────────────────────────────


@pytest.mark.parametrize(
    "error",
    [
        APIError("slow down", provider="openai", status_code=429),
        APIError("oops", provider="openai", status_code=503),
        ProviderTimeoutError("too slow", timeout=5),
        TimeoutError(),
        ConnectionResetError(),
        StatusError(502),
        RuntimeError("read ECONNRESET"),
        RuntimeError("Request timed out"),
        RuntimeError("Rate limit reached for gpt-4o"),
    ],
)
def test_transient_errors(error: Exception) -> None:
    assert is_transient_error(error)


@pytest.mark.parametrize(
    "error",
    [
        APIError("bad key", provider="openai", status_code=401),
        APIError("no status", provider="openai"),
        ValidationError("bad", field="x"),
        BudgetExceededError(1.0, 0.5, 1.0),
        TaskError("nope"),
        StatusError(400),
        ValueError("something else"),
    ],
)
def test_permanent_errors(error: Exception) -> None:
    assert not is_transient_error(error)


# ── Delays ───────────────────────────────────────────────────


def test_delays_without_jitter() -> None:
    policy = RetryPolicy(initial_delay=1.0, factor=2.0, max_delay=5.0, jitter=0)
    assert [policy.compute_delay(n) for n in range(1, 5)] == [1.0, 2.0, 4.0, 5.0]


def test_seeded_jitter_is_reproducible() -> None:
    a = RetryPolicy(jitter=1.0, rng=random.Random(7))
    b = RetryPolicy(jitter=1.0, rng=random.Random(7))
    delays_a = [a.compute_delay(n) for n in range(1, 4)]
    assert delays_a == [b.compute_delay(n) for n in range(1, 4)]
    assert all(1.0 * 2 ** (n - 1) <= d <= 2 ** (n - 1) + 1 for n, d in enumerate(delays_a, 1))


def test_invalid_attempts() -> None:
    with pytest.raises(ValidationError):
        RetryPolicy(max_attempts=0)


# ── Run ──────────────────────────────────────────────────────


class TestRun:
    @pytest.mark.asyncio
    async def test_fails_twice_then_succeeds(self) -> None:
        sleep = FakeSleep()
        seen: list[tuple[int, str, float]] = []
        fn = AsyncMock(
            side_effect=[
                APIError("busy", provider="openai", status_code=503),
                TimeoutError("timed out"),
                "ok",
            ]
        )
        policy = RetryPolicy(
            max_attempts=3,
            initial_delay=0.5,
            jitter=0,
            sleep=sleep,
            on_retry=lambda attempt, err, delay: seen.append((attempt, type(err).__name__, delay)),
        )

        assert await policy.run(fn) == "ok"
        assert fn.await_count == 3
        assert sleep.delays == [0.5, 1.0]
        assert seen == [(1, "APIError", 0.5), (2, "TimeoutError", 1.0)]

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_last_error(self) -> None:
        last = APIError("still busy", provider="openai", status_code=503)
        fn = AsyncMock(side_effect=[APIError("busy", provider="openai", status_code=503), last])
        policy = RetryPolicy(max_attempts=2, jitter=0, sleep=FakeSleep())

        with pytest.raises(APIError) as exc_info:
            await policy.run(fn)
        assert exc_info.value is last

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self) -> None:
        sleep = FakeSleep()
        fn = AsyncMock(side_effect=ValidationError("bad", field="prompt"))
        with pytest.raises(ValidationError):
            await RetryPolicy(sleep=sleep).run(fn)
        assert fn.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_budget_error_not_retried(self) -> None:
        fn = AsyncMock(side_effect=BudgetExceededError(1.0, 0.1, 1.0))
        with pytest.raises(BudgetExceededError):
            await RetryPolicy(sleep=FakeSleep()).run(fn)
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_custom_retry_if(self) -> None:
        fn = AsyncMock(side_effect=[KeyError("flaky"), "ok"])
        policy = RetryPolicy(
            retry_if=lambda e: isinstance(e, KeyError), jitter=0, sleep=FakeSleep()
        )
        assert await policy.run(fn) == "ok"

    @pytest.mark.asyncio
    async def test_hook_exception_is_ignored(self) -> None:
        def _bad_hook(attempt: int, error: BaseException, delay: float) -> None:
            raise RuntimeError("hook broke")

        fn = AsyncMock(side_effect=[TimeoutError(), "ok"])
        policy = RetryPolicy(on_retry=_bad_hook, jitter=0, sleep=FakeSleep())
        assert await policy.run(fn) == "ok"

    @pytest.mark.asyncio
    async def test_functional_form(self) -> None:
        sleep = FakeSleep()
        fn = AsyncMock(side_effect=[ConnectionResetError(), "ok"])
        assert await retry(fn, max_attempts=2, jitter=0, sleep=sleep) == "ok"
        assert sleep.delays == [1.0]
