"""Test helpers for deterministic backtest cases."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import pandas as pd

from portfolio_backtest.core.backtest.types import UNAVAILABLE, BatchResult, PerformanceVector
from portfolio_backtest.core.data.synthetic import make_random_prices


def make_price_frame(n_rows: int = 300, n_assets: int = 5, seed: int = 0) -> pd.DataFrame:
    """Build a deterministic random walk price dataframe."""
    return make_random_prices(n_rows=n_rows, n_assets=n_assets, seed=seed)


def make_returns_frame(rows: Sequence[Sequence[float]], columns: Sequence[str]) -> pd.DataFrame:
    """Build daily linear returns with a missing first row, as derived from prices."""
    index = pd.date_range("2020-01-01", periods=len(rows) + 1, freq="D")
    values = np.vstack([np.full(len(columns), np.nan), np.asarray(rows, dtype=float)])
    return pd.DataFrame(values, index=index, columns=list(columns))


def constant_allocation(weights: Sequence[float]):
    """Create an allocation function always returning ``weights``."""
    values = np.asarray(weights, dtype=float)

    def allocate(prices: pd.DataFrame) -> np.ndarray:
        return values.copy()

    return allocate


def uniform_allocation(prices: pd.DataFrame) -> pd.Series:
    """Equal weights over the window's assets."""
    return pd.Series(1.0 / prices.shape[1], index=prices.columns)


def make_batch_result(
    sharpe_ratio: float,
    max_drawdown: float,
    cpu_time: float,
    failure_ratio: float,
) -> BatchResult:
    """Build a batch result carrying only the fields the leaderboard reads."""
    if failure_ratio >= 1.0:
        summary = UNAVAILABLE
        cpu_time_average = UNAVAILABLE
    else:
        summary = PerformanceVector(
            sharpe_ratio=sharpe_ratio,
            max_drawdown=max_drawdown,
            annualized_return=0.0,
            annualized_volatility=0.0,
        )
        cpu_time_average = cpu_time
    return BatchResult(
        results=(),
        performance=pd.DataFrame(),
        performance_summary=summary,
        cpu_time=(),
        cpu_time_average=cpu_time_average,
        failure_ratio=failure_ratio,
        failures=(),
        failure_messages=(),
    )
