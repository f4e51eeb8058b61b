"""Run configuration dataclass and .hiveline.yml loader."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from hiveline.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE = ".hiveline.yml"

# Env vars that receive --api-key when they are not already set
PROVIDER_KEY_ENV_VARS: list[str] = [
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "AZURE_API_KEY",
]


@dataclass
class HivelineConfig:
    """Configuration for one orchestrated run."""

    model: str = "gpt-4o-mini"
    temperature: float = 0.0
    workers: int = 3
    max_concurrency: int = 0  # 0 = every worker may run at once
    poll_interval: float = 1.0
    concurrency: int = 4
    delay_between_batches: float = 0.0
    max_total_cost: float = 0.0  # 0 = no limit
    cache_enabled: bool = True
    cache_ttl: float = 86400.0
    cache_max_size: int = 500
    retry_max_attempts: int = 3
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 30.0
    retry_factor: float = 2.0
    db_path: str = ":memory:"
    prices: dict[str, dict[str, float]] = field(default_factory=dict)
    cwd: str = field(default_factory=lambda: str(Path.cwd()))
    run_id: str = ""

    def __post_init__(self) -> None:
        if not self.run_id:
            import uuid

            self.run_id = str(uuid.uuid4())
        self.cwd = str(Path(self.cwd).resolve())
        if self.workers < 1:
            raise ConfigError(f"workers must be >= 1, got {self.workers}")
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.max_concurrency < 0:
            raise ConfigError(f"max_concurrency must be >= 0, got {self.max_concurrency}")
        if self.max_total_cost < 0:
            raise ConfigError(f"max_total_cost must be >= 0, got {self.max_total_cost}")

    @property
    def budget(self) -> float | None:
        """The cost ceiling, or None when spending is unlimited."""
        return self.max_total_cost if self.max_total_cost > 0 else None

    @classmethod
    def from_dict(cls, data: dict[str, Any], **overrides: Any) -> HivelineConfig:
        """Build a config from file data; keyword overrides win over file values.

        Unknown keys are ignored with a warning. Overrides set to None are
        treated as "not given".
        """
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            values[key] = value
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(cwd: str) -> dict[str, Any] | None:
    """Load config from .hiveline.yml if it exists, else return None."""
    import yaml

    config_path = Path(cwd) / CONFIG_FILE
    if not config_path.exists():
        return None
    with config_path.open() as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {config_path}: {e}") from e
    return data if isinstance(data, dict) else None


def resolve_config(cwd: str, **overrides: Any) -> HivelineConfig:
    """Merge defaults, .hiveline.yml and explicit overrides (highest priority)."""
    file_cfg = load_config(cwd) or {}
    return HivelineConfig.from_dict(file_cfg, cwd=cwd, **overrides)
