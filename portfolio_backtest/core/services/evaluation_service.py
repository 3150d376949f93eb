"""Programmatic workflows behind the command-line interface."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from portfolio_backtest.core.backtest.batch import run_batch, run_batch_many
from portfolio_backtest.core.backtest.types import BatchResult
from portfolio_backtest.core.config import AppConfig, load_config
from portfolio_backtest.core.data.loader import load_price_datasets
from portfolio_backtest.core.data.synthetic import make_random_datasets
from portfolio_backtest.core.research.allocation import load_allocation
from portfolio_backtest.core.research.leaderboard import Leaderboard, rank_leaderboard
from portfolio_backtest.core.research.submissions import discover_submissions
from portfolio_backtest.core.utils.errors import ConfigLoadError, StrategyError
from portfolio_backtest.core.utils.logging import get_logger

ProgressCallback = Callable[[str], None]
_LOGGER_NAME = "portfolio_backtest.core.services.evaluation_service"


@dataclass(frozen=True)
class EvaluationOutcome:
    """Batch backtest of one allocation function."""

    allocation_name: str
    dataset_names: list[str]
    batch: BatchResult


@dataclass(frozen=True)
class LeaderboardOutcome:
    """Ranked submissions plus the files that could not be loaded."""

    leaderboard: Leaderboard
    batch_results: dict[str, BatchResult]
    dataset_names: list[str]
    load_errors: dict[str, str]


def _emit_progress(callback: ProgressCallback | None, message: str) -> None:
    """Emit optional progress messages."""
    if callback is not None:
        callback(message)


def _resolve_app_config(config_path: Path | None, app_config: AppConfig | None) -> AppConfig:
    """Return an in-memory config or load it from disk."""
    if (config_path is None) == (app_config is None):
        raise ConfigLoadError("Provide exactly one of config_path or app_config.")
    if app_config is not None:
        return app_config
    assert config_path is not None
    return load_config(config_path)


def load_datasets(
    app_config: AppConfig,
    progress_callback: ProgressCallback | None = None,
) -> dict[str, pd.DataFrame]:
    """Load or generate the configured price datasets."""
    data_config = app_config.data
    if data_config.source == "synthetic":
        synthetic = data_config.synthetic
        datasets = make_random_datasets(
            n_datasets=synthetic.datasets,
            n_rows=synthetic.rows,
            n_assets=synthetic.assets,
            seed=synthetic.seed,
            start=synthetic.start.isoformat(),
        )
    else:
        assert data_config.prices_dir is not None
        datasets = load_price_datasets(data_config.prices_dir, pattern=data_config.pattern)

    for name, frame in datasets.items():
        _emit_progress(progress_callback, f"{name}: shape={frame.shape}")
    return datasets


def evaluate_allocation(
    config_path: Path | None = None,
    app_config: AppConfig | None = None,
    progress_callback: ProgressCallback | None = None,
) -> EvaluationOutcome:
    """
    Backtest the configured allocation module on every configured dataset.

    Args:
        config_path: Path to YAML config file.
        app_config: Already loaded config, instead of ``config_path``.
        progress_callback: Optional callback for status messages.

    Returns:
        Completed evaluation outcome.
    """
    logger = get_logger(_LOGGER_NAME)
    resolved_config = _resolve_app_config(config_path, app_config)
    allocation = load_allocation(resolved_config.allocation.module)
    datasets = load_datasets(resolved_config, progress_callback=progress_callback)

    logger.info("Evaluating allocation '%s'", allocation.allocation_name)
    _emit_progress(
        progress_callback,
        f"Backtesting {allocation.allocation_name} on {len(datasets)} dataset(s)",
    )
    batch = run_batch(
        allocation.allocate,
        list(datasets.values()),
        settings=resolved_config.backtest.to_settings(),
        max_workers=resolved_config.runtime.max_workers,
    )
    return EvaluationOutcome(
        allocation_name=allocation.allocation_name,
        dataset_names=list(datasets),
        batch=batch,
    )


def evaluate_submissions(
    config_path: Path | None = None,
    app_config: AppConfig | None = None,
    progress_callback: ProgressCallback | None = None,
) -> LeaderboardOutcome:
    """
    Backtest every discovered submission and rank them.

    Args:
        config_path: Path to YAML config file.
        app_config: Already loaded config, instead of ``config_path``.
        progress_callback: Optional callback for status messages.

    Returns:
        Leaderboard outcome.
    """
    resolved_config = _resolve_app_config(config_path, app_config)
    submissions_dir = resolved_config.leaderboard.submissions_dir
    if submissions_dir is None:
        raise ConfigLoadError("leaderboard.submissions_dir is required to build a leaderboard.")

    discovery = discover_submissions(submissions_dir, pattern=resolved_config.leaderboard.pattern)
    for identifier, message in discovery.load_errors.items():
        _emit_progress(progress_callback, f"load error {identifier}: {message}")
    if not discovery.submissions:
        raise StrategyError(f"No loadable submissions found in {submissions_dir}.")

    datasets = load_datasets(resolved_config, progress_callback=progress_callback)
    _emit_progress(
        progress_callback,
        f"Backtesting {len(discovery.submissions)} submission(s) on {len(datasets)} dataset(s)",
    )
    batch_results = run_batch_many(
        discovery.allocations,
        list(datasets.values()),
        settings=resolved_config.backtest.to_settings(),
        max_workers=resolved_config.runtime.max_workers,
    )
    leaderboard = rank_leaderboard(
        batch_results,
        weights=resolved_config.leaderboard.weights,
        names=discovery.names,
    )
    return LeaderboardOutcome(
        leaderboard=leaderboard,
        batch_results={str(key): value for key, value in batch_results.items()},
        dataset_names=list(datasets),
        load_errors=dict(discovery.load_errors),
    )
