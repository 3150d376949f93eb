"""Utility helpers."""

from portfolio_backtest.core.utils.errors import (
    BacktestError,
    ConfigLoadError,
    DataValidationError,
    LeaderboardError,
    PortfolioBacktestError,
    StrategyError,
    exit_code_for_exception,
)
from portfolio_backtest.core.utils.logging import configure_logging, get_logger

__all__ = [
    "BacktestError",
    "ConfigLoadError",
    "DataValidationError",
    "LeaderboardError",
    "PortfolioBacktestError",
    "StrategyError",
    "configure_logging",
    "exit_code_for_exception",
    "get_logger",
]
