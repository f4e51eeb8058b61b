"""Typer CLI for hiveline."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from hiveline.config import PROVIDER_KEY_ENV_VARS, HivelineConfig

console = Console()
app = typer.Typer(
    name="hiveline",
    help="Cost-aware LLM task orchestration: swarms, batches and budgets.",
    add_completion=False,
    no_args_is_help=True,
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resolve_config(
    cwd: str,
    *,
    model: str | None,
    max_cost: float | None,
    api_key: str | None,
    api_base: str | None,
    **overrides: Any,
) -> HivelineConfig:
    """Merge defaults, .hiveline.yml and CLI flags (highest priority).

    Also loads ``.env`` and exports ``--api-key`` / ``--api-base`` to the
    provider environment variables LiteLLM reads.
    """
    import os

    from dotenv import load_dotenv

    from hiveline.config import resolve_config
    from hiveline.errors import ConfigError

    load_dotenv()

    if api_key:
        for env_var in PROVIDER_KEY_ENV_VARS:
            if not os.environ.get(env_var):
                os.environ[env_var] = api_key
    if api_base:
        os.environ["OPENAI_API_BASE"] = api_base

    try:
        return resolve_config(cwd, model=model, max_total_cost=max_cost, **overrides)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        if e.suggestion:
            console.print(f"[yellow]{e.suggestion}[/yellow]")
        raise typer.Exit(code=1) from e


def _build_orchestrator(cfg: HivelineConfig, dry_run: bool) -> Any:
    from hiveline.llm.provider import EchoProvider, LiteLLMProvider
    from hiveline.orchestrator import Orchestrator

    provider = EchoProvider() if dry_run else LiteLLMProvider()
    return Orchestrator(cfg, provider=provider)


def _banner(title: str, cfg: HivelineConfig, dry_run: bool) -> None:
    budget = f"${cfg.budget:.2f}" if cfg.budget is not None else "none"
    console.print(
        Panel(
            Text.from_markup(
                f"[bold cyan]hiveline {title}[/bold cyan]  "
                f"model=[bold]{cfg.model}[/bold]  "
                f"budget=[bold]{budget}[/bold]  "
                f"cache=[bold]{'on' if cfg.cache_enabled else 'off'}[/bold]"
                + ("  [yellow](dry run)[/yellow]" if dry_run else "")
                + f"\n[dim]run: {cfg.run_id}  cwd: {cfg.cwd}[/dim]"
            ),
            border_style="cyan",
        )
    )


@app.command()
def run(
    tasks_file: Path = typer.Argument(..., help="YAML file with a list of tasks"),
    cwd: str = typer.Option(".", "--cwd", "-C", help="Project directory (default: current dir)"),
    model: str | None = typer.Option(
        None, "--model", "-m", help="LLM model name (LiteLLM format)"
    ),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Number of LLM workers"),
    max_concurrency: int | None = typer.Option(
        None, "--max-concurrency", help="Max workers running a task at once"
    ),
    roles: str | None = typer.Option(
        None, "--roles", "-r", help="Comma-separated personas, assigned round-robin"
    ),
    db: str | None = typer.Option(None, "--db", help="SQLite task store path"),
    max_cost: float | None = typer.Option(
        None, "--max-cost", help="Max spend in USD. Calls stop once it is used up."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use the offline echo provider"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
    api_key: str | None = typer.Option(
        None, "--api-key", "-k", help="API key (overrides env var)", envvar="LLM_API_KEY"
    ),
    api_base: str | None = typer.Option(
        None, "--api-base", help="Custom API base URL (e.g. for Azure, Ollama, vLLM)"
    ),
) -> None:
    """Drain a file of tasks with a swarm of LLM workers.

    TASKS_FILE is a YAML list (or a mapping with a ``tasks`` list) of
    entries with ``title``, ``description`` and optional ``priority`` and
    ``requires``.

    Examples:
        hiveline run tasks.yml --workers 4 --roles architect,executor
        hiveline run tasks.yml --max-cost 0.50 --model gpt-4o
    """
    import yaml

    from hiveline.cli.runners import run_tasks

    _setup_logging(verbose)
    resolved_cwd = str(Path(cwd).resolve())
    cfg = _resolve_config(
        resolved_cwd,
        model=model,
        max_cost=max_cost,
        api_key=api_key,
        api_base=api_base,
        workers=workers,
        max_concurrency=max_concurrency,
        db_path=db,
    )

    if not tasks_file.exists():
        console.print(f"[red]Tasks file not found: {tasks_file}[/red]")
        raise typer.Exit(code=1)
    try:
        data = yaml.safe_load(tasks_file.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        console.print(f"[red]Could not parse {tasks_file}: {e}[/red]")
        raise typer.Exit(code=1) from e
    specs = data.get("tasks") if isinstance(data, dict) else data
    if not isinstance(specs, list) or not all(isinstance(s, dict) for s in specs):
        console.print(f"[red]{tasks_file} must contain a list of tasks[/red]")
        raise typer.Exit(code=1)

    _banner("run", cfg, dry_run)
    orchestrator = _build_orchestrator(cfg, dry_run)
    role_names = [r.strip() for r in roles.split(",") if r.strip()] if roles else None
    try:
        exit_code = asyncio.run(run_tasks(orchestrator, specs, roles=role_names, model=model))
    finally:
        orchestrator.close()
    raise typer.Exit(code=exit_code)


@app.command()
def batch(
    prompts_file: Path = typer.Argument(..., help="Text file, one prompt per line"),
    cwd: str = typer.Option(".", "--cwd", "-C", help="Project directory"),
    model: str | None = typer.Option(None, "--model", "-m", help="LLM model name"),
    concurrency: int | None = typer.Option(
        None, "--concurrency", "-c", help="Requests in flight at once"
    ),
    max_cost: float | None = typer.Option(None, "--max-cost", help="Max spend in USD"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use the offline echo provider"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
    api_key: str | None = typer.Option(
        None, "--api-key", "-k", help="API key", envvar="LLM_API_KEY"
    ),
    api_base: str | None = typer.Option(None, "--api-base", help="Custom API base URL"),
) -> None:
    """Run one completion per non-empty line of PROMPTS_FILE."""
    from hiveline.cli.runners import run_batch

    _setup_logging(verbose)
    resolved_cwd = str(Path(cwd).resolve())
    cfg = _resolve_config(
        resolved_cwd,
        model=model,
        max_cost=max_cost,
        api_key=api_key,
        api_base=api_base,
        concurrency=concurrency,
    )

    if not prompts_file.exists():
        console.print(f"[red]Prompts file not found: {prompts_file}[/red]")
        raise typer.Exit(code=1)
    prompts = [
        line.strip()
        for line in prompts_file.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    if not prompts:
        console.print(f"[yellow]No prompts in {prompts_file}[/yellow]")
        raise typer.Exit(code=0)

    _banner("batch", cfg, dry_run)
    orchestrator = _build_orchestrator(cfg, dry_run)
    try:
        exit_code = asyncio.run(run_batch(orchestrator, prompts))
    finally:
        orchestrator.close()
    raise typer.Exit(code=exit_code)


@app.command()
def report(
    ledger_file: Path = typer.Argument(..., help="Ledger JSON saved under .hiveline/costs/"),
) -> None:
    """Print the cost report of a saved ledger."""
    from hiveline.cli.runners import render_report
    from hiveline.cost.tracker import CostTracker
    from hiveline.errors import ValidationError

    if not ledger_file.exists():
        console.print(f"[red]Ledger not found: {ledger_file}[/red]")
        raise typer.Exit(code=1)
    try:
        tracker = CostTracker.from_export(ledger_file.read_text(encoding="utf-8"))
    except (ValidationError, ValueError, KeyError) as e:
        console.print(f"[red]Could not read ledger {ledger_file}: {e}[/red]")
        raise typer.Exit(code=1) from e
    render_report(tracker, title=ledger_file.stem)


@app.command()
def models() -> None:
    """Show the built-in price table (USD per 1K tokens)."""
    from rich.table import Table

    from hiveline.cost.pricing import PriceTable

    table = Table(
        title="[bold cyan]Model Prices (per 1K tokens)[/bold cyan]",
        border_style="cyan",
    )
    table.add_column("Model", style="cyan")
    table.add_column("Prompt", justify="right")
    table.add_column("Completion", justify="right")
    for name, price in PriceTable(use_litellm=False):
        table.add_row(name, f"${price.prompt_per_k:.5f}", f"${price.completion_per_k:.5f}")
    console.print(table)


@app.command()
def roles() -> None:
    """List the worker personas."""
    from rich.table import Table

    from hiveline.swarm.roles import get_all_roles_info

    table = Table(title="[bold cyan]Worker Personas[/bold cyan]", border_style="cyan")
    table.add_column("Role", style="cyan")
    table.add_column("Description")
    table.add_column("Capabilities", style="dim")
    table.add_column("Model", style="dim")
    for info in get_all_roles_info():
        table.add_row(
            info["name"],
            info["description"],
            ", ".join(info["capabilities"]),
            info["default_model"],
        )
    console.print(table)
