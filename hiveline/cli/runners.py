"""Async runner functions for CLI commands (no Typer coupling)."""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hiveline.cost.tracker import CostTracker
from hiveline.errors import BudgetExceededError, HivelineError
from hiveline.orchestrator import CompletionRequest, Orchestrator
from hiveline.tasks.types import Task, TaskStatus

console = Console()

LEDGER_DIR = ".hiveline/costs"

_STATUS_STYLE = {
    TaskStatus.COMPLETED: "[green]✅ completed[/green]",
    TaskStatus.FAILED: "[red]❌ failed[/red]",
    TaskStatus.CANCELLED: "[yellow]cancelled[/yellow]",
}


def save_ledger(cwd: str, run_id: str, tracker: CostTracker) -> Path:
    """Save the cost ledger to .hiveline/costs/<run_id>.json and return the path."""
    ledger_dir = Path(cwd) / LEDGER_DIR
    ledger_dir.mkdir(parents=True, exist_ok=True)
    out_path = ledger_dir / f"{run_id}.json"
    out_path.write_text(tracker.export(), encoding="utf-8")
    return out_path


def render_report(tracker: CostTracker, title: str = "Costs") -> None:
    console.print(
        Panel(tracker.get_report(), title=f"[bold]{title}[/bold]", border_style="blue")
    )


def _task_table(tasks: Sequence[Task]) -> Table:
    table = Table(
        title="[bold cyan]hiveline Tasks[/bold cyan]",
        border_style="cyan",
        show_lines=True,
    )
    table.add_column("Task", style="cyan")
    table.add_column("Priority", style="dim")
    table.add_column("Worker", style="dim")
    table.add_column("Status")
    table.add_column("Result", max_width=60)

    for task in tasks:
        outcome = task.result if task.status is TaskStatus.COMPLETED else task.error
        table.add_row(
            task.title,
            task.priority.name.lower(),
            task.assigned_agent or "-",
            _STATUS_STYLE.get(task.status, task.status.value),
            (outcome or "")[:200],
        )
    return table


async def run_tasks(
    orchestrator: Orchestrator,
    specs: Sequence[Mapping[str, Any]],
    roles: Sequence[str] | None = None,
    model: str | None = None,
) -> int:
    """Load *specs* into the pool and drain it with LLM workers.

    *model* overrides every worker's model, persona defaults included.
    """
    cfg = orchestrator.config
    try:
        created = orchestrator.add_tasks(specs)
        workers = orchestrator.build_workers(model=model, roles=roles)
    except HivelineError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    console.print(
        f"\n[bold blue]Draining[/bold blue] {len(created)} tasks "
        f"with {len(workers)} workers…"
    )
    started_at = time.time()

    try:
        result = await orchestrator.drain_pool(workers)
    except Exception as e:
        console.print(f"\n[red]Run failed: {e}[/red]")
        return 1
    finally:
        path = save_ledger(cfg.cwd, cfg.run_id, orchestrator.cost_tracker)

    elapsed = time.time() - started_at
    tasks = [t for t in (orchestrator.pool.get_task(c.id) for c in created) if t]
    console.print(_task_table(tasks))
    render_report(orchestrator.cost_tracker)

    all_done = all(t.status is TaskStatus.COMPLETED for t in tasks)
    color = "green" if all_done else "red"
    info_parts = [
        f"Completed: [bold]{result.completed}[/bold]",
        f"Failed: [bold]{result.failed}[/bold]",
        f"Stopped: [bold]{result.stopped_reason}[/bold]",
        f"Time: [bold]{elapsed:.1f}s[/bold]",
    ]
    console.print(
        Panel(
            "  ·  ".join(info_parts) + f"\n[dim]Ledger: {path}[/dim]",
            border_style=color,
            title="[bold]Run Complete[/bold]",
        )
    )
    return 0 if all_done else 1


async def run_batch(
    orchestrator: Orchestrator,
    prompts: Sequence[str],
    concurrency: int | None = None,
) -> int:
    """One completion per prompt with bounded concurrency."""
    cfg = orchestrator.config
    requests = [
        CompletionRequest.from_prompt(p, agent_name=f"batch-{i + 1}")
        for i, p in enumerate(prompts)
    ]

    def _progress(done: int, total: int) -> None:
        console.print(f"[dim]  {done}/{total}[/dim]")

    try:
        outcomes = await orchestrator.run_parallel(
            requests, concurrency=concurrency, on_progress=_progress
        )
    except BudgetExceededError as e:
        console.print(f"\n[red]{e}[/red]")
        render_report(orchestrator.cost_tracker)
        return 1
    finally:
        path = save_ledger(cfg.cwd, cfg.run_id, orchestrator.cost_tracker)

    for i, outcome in enumerate(outcomes, 1):
        prompt = outcome.item.messages[-1]["content"]
        if outcome.ok and outcome.result is not None:
            cached = " [dim](cached)[/dim]" if outcome.result.cached else ""
            console.print(f"  ✅ [bold]{i}[/bold]: {prompt[:60]}{cached}")
            console.print(f"     [dim]{outcome.result.content[:200]}[/dim]")
        else:
            console.print(f"  ❌ [bold]{i}[/bold]: {prompt[:60]}")
            console.print(f"     [red]{outcome.error}[/red]")

    render_report(orchestrator.cost_tracker)
    console.print(f"[dim]Ledger: {path}[/dim]")
    return 0 if all(o.ok for o in outcomes) else 1
