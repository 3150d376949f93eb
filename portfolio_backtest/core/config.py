"""Configuration models and YAML loading."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from portfolio_backtest.core.backtest.engine import BacktestSettings
from portfolio_backtest.core.utils.errors import ConfigLoadError


class SyntheticDataConfig(BaseModel):
    """Random walk datasets used when ``data.source`` is ``synthetic``."""

    datasets: int = 5
    rows: int = 504
    assets: int = 10
    seed: int = 42
    start: date = date(2015, 1, 1)

    @model_validator(mode="after")
    def validate_synthetic(self) -> SyntheticDataConfig:
        """Ensure dataset dimensions are positive."""
        if self.datasets < 1 or self.rows < 2 or self.assets < 1:
            raise ValueError(
                "data.synthetic requires datasets >= 1, rows >= 2 and assets >= 1."
            )
        return self


class DataConfig(BaseModel):
    """Price dataset settings."""

    source: Literal["files", "synthetic"] = "files"
    prices_dir: Path | None = None
    pattern: str = "*.csv"
    synthetic: SyntheticDataConfig = Field(default_factory=SyntheticDataConfig)

    @model_validator(mode="after")
    def validate_source(self) -> DataConfig:
        """Ensure file-based sources name a directory."""
        if self.source == "files" and self.prices_dir is None:
            raise ValueError("data.prices_dir is required when data.source is 'files'.")
        if not self.pattern.strip():
            raise ValueError("data.pattern must be non-empty.")
        return self


class AllocationConfig(BaseModel):
    """Allocation module used by the ``backtest`` command."""

    module: str = "portfolio_backtest.strategies.examples.uniform"

    @model_validator(mode="after")
    def validate_module(self) -> AllocationConfig:
        """Ensure allocation module path is valid."""
        if not self.module.strip():
            raise ValueError("allocation.module must be a non-empty import path.")
        return self


class BacktestConfig(BaseModel):
    """Rolling backtest settings."""

    t_rolling_window: int = 252
    optimize_every: int = 20
    rebalance_every: int | None = None
    shortselling: bool = False
    leverage: float = 1.0
    return_portfolio: bool = False
    execution: Literal["same_day", "next_day"] = "same_day"
    annualization_factor: int = 252

    @model_validator(mode="after")
    def validate_backtest(self) -> BacktestConfig:
        """Validate scheduling and constraint settings."""
        if self.t_rolling_window < 1:
            raise ValueError("backtest.t_rolling_window must be >= 1.")
        if self.optimize_every < 1:
            raise ValueError("backtest.optimize_every must be >= 1.")
        rebalance_every = self.rebalance_every
        if rebalance_every is None:
            rebalance_every = self.optimize_every
        if rebalance_every < 1:
            raise ValueError("backtest.rebalance_every must be >= 1.")
        if self.optimize_every % rebalance_every != 0:
            raise ValueError(
                "backtest.optimize_every must be a multiple of backtest.rebalance_every."
            )
        if self.leverage <= 0:
            raise ValueError("backtest.leverage must be > 0.")
        if self.annualization_factor <= 0:
            raise ValueError("backtest.annualization_factor must be > 0.")
        return self

    def to_settings(self) -> BacktestSettings:
        """Build engine settings."""
        return BacktestSettings(**self.model_dump())


class LeaderboardConfig(BaseModel):
    """Submission discovery and ranking settings."""

    submissions_dir: Path | None = None
    pattern: str = "*.py"
    weights: list[float] = Field(default_factory=lambda: [1.0, 1.0, 1.0, 7.0])

    @model_validator(mode="after")
    def validate_weights(self) -> LeaderboardConfig:
        """Ensure ranking weights are usable."""
        if len(self.weights) != 4:
            raise ValueError(
                "leaderboard.weights must have 4 elements "
                "(sharpe ratio, max drawdown, cpu time, failure ratio)."
            )
        if any(weight < 0 for weight in self.weights):
            raise ValueError("leaderboard.weights must be >= 0.")
        if sum(self.weights) <= 0:
            raise ValueError("leaderboard.weights must not sum to zero.")
        return self


class RuntimeConfig(BaseModel):
    """Execution settings."""

    max_workers: int = 1
    log_level: str = "INFO"

    @model_validator(mode="after")
    def validate_runtime(self) -> RuntimeConfig:
        """Validate worker count and log level."""
        if self.max_workers < 1:
            raise ValueError("runtime.max_workers must be >= 1.")
        self.log_level = self.log_level.strip().upper()
        return self


class AppConfig(BaseModel):
    """Top-level application configuration."""

    data: DataConfig
    allocation: AllocationConfig = Field(default_factory=AllocationConfig)
    backtest: BacktestConfig = Field(default_factory=BacktestConfig)
    leaderboard: LeaderboardConfig = Field(default_factory=LeaderboardConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)


def _resolve_config_path(path: Path) -> Path:
    """Resolve and validate a config file path."""
    resolved_path = path.expanduser().resolve()
    if not resolved_path.exists():
        raise ConfigLoadError(f"Config file not found: {resolved_path}")
    if not resolved_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {resolved_path}")
    return resolved_path


def _resolve_path(path: Path | None, base_dir: Path) -> Path | None:
    """Resolve a possibly relative path against ``base_dir``."""
    if path is None:
        return None
    expanded = path.expanduser()
    return expanded.resolve() if expanded.is_absolute() else (base_dir / expanded).resolve()


def load_config(path: Path) -> AppConfig:
    """
    Load and validate application config from YAML.

    Relative paths are resolved from the YAML file parent directory.

    Args:
        path: YAML config file path.

    Returns:
        Validated application config.
    """
    config_path = _resolve_config_path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            raw_config: Any = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigLoadError(f"Failed to read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Invalid YAML in config file {config_path}: {exc}") from exc

    if not isinstance(raw_config, dict):
        raise ConfigLoadError("YAML root must be a mapping/object.")

    return _build_config(raw_config, config_path.parent)


def _build_config(raw_config: dict[str, Any], base_dir: Path) -> AppConfig:
    """Build and path-resolve config from raw data."""
    try:
        config = AppConfig.model_validate(raw_config)
    except Exception as exc:
        raise ConfigLoadError(f"Config validation failed: {exc}") from exc

    updated_data = config.data.model_copy(
        update={"prices_dir": _resolve_path(config.data.prices_dir, base_dir)}
    )
    updated_leaderboard = config.leaderboard.model_copy(
        update={"submissions_dir": _resolve_path(config.leaderboard.submissions_dir, base_dir)}
    )
    return config.model_copy(update={"data": updated_data, "leaderboard": updated_leaderboard})


def load_config_from_yaml_text(yaml_text: str, base_dir: Path | None = None) -> AppConfig:
    """
    Load and validate config from YAML text.

    Args:
        yaml_text: YAML string.
        base_dir: Base directory for relative paths.

    Returns:
        Validated application config.
    """
    try:
        raw_config: Any = yaml.safe_load(yaml_text) or {}
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Invalid YAML text: {exc}") from exc
    if not isinstance(raw_config, dict):
        raise ConfigLoadError("YAML root must be a mapping/object.")
    resolved_base_dir = (base_dir or Path.cwd()).expanduser().resolve()
    return _build_config(raw_config, resolved_base_dir)


def dump_config_to_yaml(config: AppConfig) -> str:
    """
    Serialize config to canonical YAML for reproducibility.

    Args:
        config: App config.

    Returns:
        YAML string.
    """
    payload = config.model_dump(mode="json")
    return yaml.safe_dump(payload, sort_keys=True, default_flow_style=False)
