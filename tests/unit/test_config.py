"""Tests for HivelineConfig and the .hiveline.yml loader."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from hiveline.config import HivelineConfig, load_config, resolve_config
from hiveline.errors import ConfigError


def _write_config(tmp_path: Path, data: dict | str) -> Path:
    path = tmp_path / ".hiveline.yml"
    path.write_text(data if isinstance(data, str) else yaml.dump(data))
    return path


def test_defaults(tmp_path: Path) -> None:
    cfg = HivelineConfig(cwd=str(tmp_path))
    assert cfg.model == "gpt-4o-mini"
    assert cfg.temperature == 0.0
    assert cfg.budget is None
    assert cfg.run_id
    assert cfg.cwd == str(tmp_path.resolve())


def test_budget_property() -> None:
    assert HivelineConfig(max_total_cost=2.5).budget == 2.5


@pytest.mark.parametrize(
    "field,value",
    [("workers", 0), ("concurrency", 0), ("max_concurrency", -1), ("max_total_cost", -1.0)],
)
def test_invalid_values(field: str, value: float) -> None:
    with pytest.raises(ConfigError):
        HivelineConfig(**{field: value})


def test_load_config_missing(tmp_path: Path) -> None:
    assert load_config(str(tmp_path)) is None


def test_load_config_reads_yaml(tmp_path: Path) -> None:
    _write_config(tmp_path, {"model": "gpt-4o", "workers": 5})
    assert load_config(str(tmp_path)) == {"model": "gpt-4o", "workers": 5}


def test_load_config_malformed(tmp_path: Path) -> None:
    _write_config(tmp_path, "model: [unclosed")
    with pytest.raises(ConfigError):
        load_config(str(tmp_path))


def test_cli_overrides_beat_file(tmp_path: Path) -> None:
    _write_config(tmp_path, {"model": "gpt-4o", "workers": 5, "max_total_cost": 2.0})
    cfg = resolve_config(str(tmp_path), model="claude-3-haiku-20240307", workers=None)
    assert cfg.model == "claude-3-haiku-20240307"
    assert cfg.workers == 5
    assert cfg.budget == 2.0


def test_unknown_keys_ignored(tmp_path: Path) -> None:
    _write_config(tmp_path, {"model": "gpt-4o", "colour": "blue"})
    assert resolve_config(str(tmp_path)).model == "gpt-4o"


def test_wrong_type_is_config_error(tmp_path: Path) -> None:
    _write_config(tmp_path, {"workers": "many"})
    with pytest.raises(ConfigError):
        resolve_config(str(tmp_path))


def test_prices_from_file(tmp_path: Path) -> None:
    _write_config(tmp_path, {"prices": {"house": {"prompt": 0.1, "completion": 0.2}}})
    assert resolve_config(str(tmp_path)).prices == {"house": {"prompt": 0.1, "completion": 0.2}}
