"""Error taxonomy for portfolio backtesting.

Only configuration-type problems are raised. Allocation and constraint
failures of a single backtest are recorded on its result instead.
"""

from __future__ import annotations


class PortfolioBacktestError(Exception):
    """Base error with CLI exit-code metadata."""

    exit_code: int = 1
    error_code: str = "portfolio_backtest_error"


class ConfigLoadError(PortfolioBacktestError, ValueError):
    """YAML configuration loading/validation error."""

    exit_code = 2
    error_code = "config_error"


class DataValidationError(PortfolioBacktestError, ValueError):
    """Price data integrity error (missing values, bad index, duplicate assets)."""

    exit_code = 4
    error_code = "data_validation_error"


class StrategyError(PortfolioBacktestError, ValueError):
    """Allocation module or submission could not be loaded."""

    exit_code = 6
    error_code = "strategy_error"


class BacktestError(PortfolioBacktestError, ValueError):
    """Invalid scheduling parameters or mismatched return/weight shapes."""

    exit_code = 7
    error_code = "backtest_error"


class LeaderboardError(PortfolioBacktestError, ValueError):
    """Invalid leaderboard weights or inputs."""

    exit_code = 9
    error_code = "leaderboard_error"


def exit_code_for_exception(exc: Exception) -> int:
    """
    Resolve process exit code for an exception.

    Args:
        exc: Raised exception.

    Returns:
        Integer process exit code.
    """
    return int(getattr(exc, "exit_code", 1))
