"""Portfolio backtest command-line interface."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import typer

from portfolio_backtest.core.backtest.types import PERFORMANCE_LABELS, BatchResult, is_unavailable
from portfolio_backtest.core.config import AppConfig, load_config
from portfolio_backtest.core.services.evaluation_service import (
    evaluate_allocation,
    evaluate_submissions,
)
from portfolio_backtest.core.utils.errors import exit_code_for_exception
from portfolio_backtest.core.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Rolling-window portfolio backtest CLI", no_args_is_help=True)

CONFIG_OPTION = typer.Option(
    ...,
    "--config",
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
    help="Path to YAML configuration file.",
)
LOG_LEVEL_OPTION = typer.Option(
    None,
    "--log-level",
    help="Override runtime.log_level from the config.",
)


@app.callback()
def callback() -> None:
    """Portfolio backtest CLI commands."""


def _handle_cli_exception(logger_name: str, context: str, exc: Exception) -> None:
    """Log diagnostics and exit with the typed exit code."""
    logger = get_logger(logger_name)
    logger.exception("%s failed: %s", context, exc)
    typer.echo(f"error={exc}", err=True)
    raise typer.Exit(code=exit_code_for_exception(exc)) from None


def _load_and_configure(config: Path, log_level: str | None) -> AppConfig:
    """Load config and configure logging from it."""
    configure_logging(log_level or "INFO")
    app_config = load_config(config)
    configure_logging(log_level or app_config.runtime.log_level)
    return app_config


def _format_value(value: object) -> str:
    """Render a float or the unavailable sentinel."""
    if is_unavailable(value):
        return "unavailable"
    return f"{float(value):.6f}"


def _print_batch(batch: BatchResult, dataset_names: list[str]) -> None:
    """Print per-dataset performance and the summary in deterministic order."""
    performance = batch.performance.copy()
    performance.columns = dataset_names
    with pd.option_context("display.width", 160, "display.max_columns", 50):
        typer.echo(performance.to_string(float_format=lambda value: f"{value:.6f}"))

    for name, messages in zip(dataset_names, batch.failure_messages, strict=True):
        if messages:
            typer.echo(f"failure[{name}]={' '.join(messages)}")

    summary = batch.performance_summary
    for position, label in enumerate(PERFORMANCE_LABELS):
        value = summary if is_unavailable(summary) else summary.as_tuple()[position]
        typer.echo(f"{label} (median)={_format_value(value)}")
    typer.echo(f"cpu_time_average={_format_value(batch.cpu_time_average)}")
    typer.echo(f"failure_ratio={batch.failure_ratio:.6f}")


@app.command("backtest")
def backtest(
    config: Path = CONFIG_OPTION,
    log_level: str | None = LOG_LEVEL_OPTION,
) -> None:
    """Backtest the configured allocation module on every configured dataset."""
    logger_name = __name__
    try:
        app_config = _load_and_configure(config, log_level)
        outcome = evaluate_allocation(app_config=app_config)
    except Exception as exc:
        _handle_cli_exception(logger_name=logger_name, context="Backtest command", exc=exc)

    typer.echo(f"allocation={outcome.allocation_name}")
    typer.echo(f"datasets={','.join(outcome.dataset_names)}")
    _print_batch(outcome.batch, outcome.dataset_names)


@app.command("leaderboard")
def leaderboard(
    config: Path = CONFIG_OPTION,
    log_level: str | None = LOG_LEVEL_OPTION,
) -> None:
    """Backtest every submission in leaderboard.submissions_dir and rank them."""
    logger_name = __name__
    try:
        app_config = _load_and_configure(config, log_level)
        outcome = evaluate_submissions(app_config=app_config)
    except Exception as exc:
        _handle_cli_exception(logger_name=logger_name, context="Leaderboard command", exc=exc)

    table = outcome.leaderboard.to_frame()
    table.insert(0, "name", [entry.name for entry in outcome.leaderboard])
    typer.echo(f"datasets={','.join(outcome.dataset_names)}")
    with pd.option_context("display.width", 160, "display.max_columns", 50):
        typer.echo(table.to_string(float_format=lambda value: f"{value:.2f}", na_rep="-"))
    for identifier, message in outcome.load_errors.items():
        typer.echo(f"load_error[{identifier}]={message}")


def main() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
