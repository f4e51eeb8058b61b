"""Tests for the Typer CLI, run offline with the echo provider."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from hiveline.cli.app import app
from hiveline.cost.pricing import PriceTable
from hiveline.cost.tracker import CostTracker
from hiveline.cost.types import TokenUsage

runner = CliRunner()


@pytest.fixture
def tasks_file(tmp_path: Path) -> Path:
    path = tmp_path / "tasks.yml"
    path.write_text(
        yaml.dump(
            {
                "tasks": [
                    {"title": "Plan", "description": "Plan the module", "priority": "high"},
                    {"title": "Build", "description": "Build the module"},
                ]
            }
        )
    )
    return path


def test_models() -> None:
    result = runner.invoke(app, ["models"])
    assert result.exit_code == 0
    assert "gpt-4o-mini" in result.output


def test_roles() -> None:
    result = runner.invoke(app, ["roles"])
    assert result.exit_code == 0
    assert "architect" in result.output


class TestRun:
    def test_dry_run_drains_and_saves_ledger(self, tmp_path: Path, tasks_file: Path) -> None:
        result = runner.invoke(
            app, ["run", str(tasks_file), "--dry-run", "--cwd", str(tmp_path), "--workers", "2"]
        )
        assert result.exit_code == 0, result.output
        assert "Run Complete" in result.output
        (ledger,) = (tmp_path / ".hiveline" / "costs").glob("*.json")
        assert len(json.loads(ledger.read_text())) == 2

    def test_missing_tasks_file(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["run", str(tmp_path / "nope.yml"), "--dry-run", "--cwd", str(tmp_path)]
        )
        assert result.exit_code == 1

    def test_tasks_file_must_be_a_list(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.yml"
        bad.write_text("just a string\n")
        result = runner.invoke(app, ["run", str(bad), "--dry-run", "--cwd", str(tmp_path)])
        assert result.exit_code == 1

    def test_invalid_task_exits_nonzero(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.yml"
        bad.write_text(yaml.dump([{"title": "No description"}]))
        result = runner.invoke(app, ["run", str(bad), "--dry-run", "--cwd", str(tmp_path)])
        assert result.exit_code == 1

    def test_unknown_role_exits_nonzero(self, tmp_path: Path, tasks_file: Path) -> None:
        result = runner.invoke(
            app,
            ["run", str(tasks_file), "--dry-run", "--cwd", str(tmp_path), "--roles", "wizard"],
        )
        assert result.exit_code == 1

    def test_bad_config_file(self, tmp_path: Path, tasks_file: Path) -> None:
        (tmp_path / ".hiveline.yml").write_text(yaml.dump({"workers": 0}))
        result = runner.invoke(app, ["run", str(tasks_file), "--dry-run", "--cwd", str(tmp_path)])
        assert result.exit_code == 1


class TestBatch:
    def test_dry_run(self, tmp_path: Path) -> None:
        prompts = tmp_path / "prompts.txt"
        prompts.write_text("first prompt\n\nsecond prompt\n")
        result = runner.invoke(
            app, ["batch", str(prompts), "--dry-run", "--cwd", str(tmp_path), "-c", "2"]
        )
        assert result.exit_code == 0, result.output
        assert "echo: second prompt" in result.output

    def test_empty_file(self, tmp_path: Path) -> None:
        prompts = tmp_path / "prompts.txt"
        prompts.write_text("\n\n")
        result = runner.invoke(app, ["batch", str(prompts), "--dry-run", "--cwd", str(tmp_path)])
        assert result.exit_code == 0


class TestReport:
    def test_renders_saved_ledger(self, tmp_path: Path) -> None:
        tracker = CostTracker(PriceTable(use_litellm=False))
        tracker.record(TokenUsage("gpt-4o", 1000, 1000), agent_name="architect")
        ledger = tmp_path / "ledger.json"
        ledger.write_text(tracker.export())

        result = runner.invoke(app, ["report", str(ledger)])

        assert result.exit_code == 0, result.output
        assert "Cost Tracking Report" in result.output
        assert "gpt-4o" in result.output

    def test_missing_ledger(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["report", str(tmp_path / "missing.json")])
        assert result.exit_code == 1

    def test_corrupt_ledger(self, tmp_path: Path) -> None:
        ledger = tmp_path / "ledger.json"
        ledger.write_text("{not json")
        result = runner.invoke(app, ["report", str(ledger)])
        assert result.exit_code == 1
