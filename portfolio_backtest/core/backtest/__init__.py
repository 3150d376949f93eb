"""Backtest engine exports."""

from portfolio_backtest.core.backtest.batch import aggregate_results, run_batch, run_batch_many
from portfolio_backtest.core.backtest.engine import BacktestSettings, run_backtest
from portfolio_backtest.core.backtest.metrics import calculate_max_drawdown, calculate_metrics
from portfolio_backtest.core.backtest.returns import accumulate_portfolio, accumulate_returns
from portfolio_backtest.core.backtest.types import (
    UNAVAILABLE,
    BacktestResult,
    BatchResult,
    PerformanceVector,
)

__all__ = [
    "UNAVAILABLE",
    "BacktestResult",
    "BacktestSettings",
    "BatchResult",
    "PerformanceVector",
    "accumulate_portfolio",
    "accumulate_returns",
    "aggregate_results",
    "calculate_max_drawdown",
    "calculate_metrics",
    "run_backtest",
    "run_batch",
    "run_batch_many",
]
