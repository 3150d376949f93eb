"""Performance statistics computed from a portfolio return series."""

from __future__ import annotations

import math

import pandas as pd

from portfolio_backtest.core.backtest.types import PerformanceVector


def calculate_wealth(returns: pd.Series) -> pd.Series:
    """Return cumulative wealth of an initial budget of 1 compounded by ``returns``."""
    return (1.0 + returns.astype(float)).cumprod()


def calculate_max_drawdown(returns: pd.Series) -> float:
    """
    Calculate max drawdown of the geometric wealth curve.

    The running peak starts at the initial wealth of 1, so a loss on the first
    day already counts as drawdown.

    Args:
        returns: Daily linear returns.

    Returns:
        Largest peak-to-trough loss as a positive decimal.
    """
    if returns.empty:
        return 0.0

    wealth = calculate_wealth(returns)
    running_max = wealth.cummax().clip(lower=1.0)
    drawdowns = 1.0 - wealth / running_max
    return float(max(drawdowns.max(), 0.0))


def calculate_metrics(returns: pd.Series, annualization_factor: int = 252) -> PerformanceVector:
    """
    Calculate the performance vector of a daily return series.

    Args:
        returns: Daily linear portfolio returns.
        annualization_factor: Trading-day annualization factor.

    Returns:
        Sharpe ratio, max drawdown, annualized return and annualized volatility.
    """
    sample_size = int(returns.shape[0])
    if sample_size == 0:
        return PerformanceVector(
            sharpe_ratio=0.0,
            max_drawdown=0.0,
            annualized_return=0.0,
            annualized_volatility=0.0,
        )

    final_wealth = float((1.0 + returns.astype(float)).prod())
    if final_wealth > 0:
        annualized_return = final_wealth ** (annualization_factor / sample_size) - 1.0
    else:
        # leveraged portfolios can lose the whole budget
        annualized_return = -1.0
    volatility = float(returns.std(ddof=1)) if sample_size > 1 else 0.0
    annualized_volatility = volatility * math.sqrt(annualization_factor)
    sharpe_ratio = annualized_return / annualized_volatility if annualized_volatility > 0 else 0.0

    return PerformanceVector(
        sharpe_ratio=float(sharpe_ratio),
        max_drawdown=calculate_max_drawdown(returns),
        annualized_return=float(annualized_return),
        annualized_volatility=float(annualized_volatility),
    )
