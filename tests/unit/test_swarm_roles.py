"""Tests for the worker persona catalogue and worker classes."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from hiveline.cost.types import TokenUsage
from hiveline.llm.provider import ProviderResponse
from hiveline.swarm.roles import (
    ROLES,
    get_all_roles_info,
    get_role,
    get_role_prompt,
    list_roles,
)
from hiveline.swarm.types import WorkerResult
from hiveline.swarm.worker import FunctionWorker, LLMWorker
from hiveline.tasks.types import Task, TaskPriority, TaskStatus


def _task(**metadata) -> Task:
    return Task(
        id="t1",
        title="Add tests",
        description="Cover the parser",
        status=TaskStatus.CLAIMED,
        priority=TaskPriority.MEDIUM,
        created_at=0.0,
        updated_at=0.0,
        metadata=metadata,
    )


# ── Catalogue ────────────────────────────────────────────────


def test_list_roles() -> None:
    assert list_roles() == ["architect", "executor", "reviewer", "qa-tester", "documenter"]


def test_get_role_case_insensitive() -> None:
    role = get_role("Reviewer")
    assert role is not None
    assert role.name == "reviewer"
    assert "review" in role.capabilities


def test_unknown_role() -> None:
    assert get_role("wizard") is None
    assert get_role_prompt("wizard") == ""


def test_every_role_has_a_prompt() -> None:
    for name in list_roles():
        assert get_role_prompt(name).strip()


def test_roles_info() -> None:
    info = get_all_roles_info()
    assert len(info) == len(ROLES)
    assert {"name", "description", "capabilities", "default_model"} <= set(info[0])


# ── Workers ──────────────────────────────────────────────────


def test_eligibility() -> None:
    worker = FunctionWorker("w", AsyncMock(), capabilities={"testing"})
    assert worker.can_take(_task())
    assert worker.can_take(_task(requires="testing"))
    assert not worker.can_take(_task(requires=["testing", "gpu"]))


@pytest.mark.asyncio
async def test_function_worker_wraps_plain_result() -> None:
    worker = FunctionWorker("w", AsyncMock(return_value="fine"))
    assert await worker.execute(_task()) == WorkerResult(success=True, content="fine")


@pytest.mark.asyncio
async def test_llm_worker_sends_persona_and_task() -> None:
    orchestrator = MagicMock()
    orchestrator.complete = AsyncMock(
        return_value=ProviderResponse(
            content="tests written", usage=TokenUsage("gpt-4o-mini", 80, 20), model="gpt-4o-mini"
        )
    )
    orchestrator.cost_tracker.estimate.return_value = 0.01
    worker = LLMWorker("qa-1", orchestrator, role=get_role("qa-tester"), model="gpt-4o-mini")

    result = await worker.execute(_task())

    assert result.success
    assert result.content == "tests written"
    assert result.tokens_used == 100
    assert result.cost_usd == 0.01
    messages = orchestrator.complete.await_args.args[0]
    assert messages[0]["role"] == "system"
    assert "QA Engineer" in messages[0]["content"]
    assert messages[1] == {"role": "user", "content": "Add tests\n\nCover the parser"}
    kwargs = orchestrator.complete.await_args.kwargs
    assert kwargs["agent_name"] == "qa-1"
    assert kwargs["task_id"] == "t1"
    assert kwargs["temperature"] == 0.3
    assert worker.capabilities == frozenset({"testing"})


@pytest.mark.asyncio
async def test_llm_worker_without_role() -> None:
    orchestrator = MagicMock()
    orchestrator.complete = AsyncMock(
        return_value=ProviderResponse(
            content="x", usage=TokenUsage("m", 1, 1), model="m", cached=True
        )
    )
    worker = LLMWorker("plain", orchestrator)
    result = await worker.execute(_task())
    assert result.cost_usd == 0.0
    assert len(orchestrator.complete.await_args.args[0]) == 1
    assert orchestrator.complete.await_args.kwargs["temperature"] is None
