"""Portfolio return accounting with explicit cash and weight drift.

Weights are fractions of net asset value (NAV) decided on rebalancing dates.
Between rebalances the holdings drift with their asset returns and are
renormalized to the current NAV every day, so a hold date applies the drifted
exposure rather than the stale target. Cash is carried explicitly, earns
nothing and goes negative for leveraged portfolios.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, NamedTuple

import numpy as np
import pandas as pd

from portfolio_backtest.core.utils.errors import BacktestError

ExecutionMode = Literal["same_day", "next_day"]

# weights decided with information through row t start earning on row t + lag
EXECUTION_LAGS: dict[str, int] = {"same_day": 1, "next_day": 2}


class DriftState(NamedTuple):
    """State carried from one date to the next."""

    weights: np.ndarray
    holdings: np.ndarray
    nav: float


@dataclass(frozen=True)
class PortfolioAccounting:
    """Daily portfolio returns plus the NAV-normalized holdings behind them."""

    returns: pd.Series
    holdings: pd.DataFrame
    nav: pd.Series


def _check_date_index(frame: pd.DataFrame, name: str) -> None:
    """Require a strictly increasing datetime index."""
    if not isinstance(frame, pd.DataFrame):
        raise BacktestError(f"{name} must be a pandas DataFrame.")
    if not isinstance(frame.index, pd.DatetimeIndex):
        raise BacktestError(f"{name} must use a DatetimeIndex.")
    if not frame.index.is_monotonic_increasing or not frame.index.is_unique:
        raise BacktestError(f"{name} must be indexed by strictly increasing dates.")


def _align_weights(asset_returns: pd.DataFrame, weights: pd.DataFrame) -> pd.DataFrame:
    """Validate accounting inputs and order weight columns like the returns."""
    _check_date_index(asset_returns, "Asset returns")
    _check_date_index(weights, "Weights")

    if asset_returns.columns.has_duplicates or weights.columns.has_duplicates:
        raise BacktestError("Asset labels must be unique in returns and weights.")
    if set(asset_returns.columns) != set(weights.columns):
        raise BacktestError(
            "Number of weights does not match the assets in the returns: "
            f"returns={list(asset_returns.columns)}, weights={list(weights.columns)}"
        )
    if weights.empty:
        raise BacktestError("Weights contain no rebalancing dates.")

    missing_dates = weights.index.difference(asset_returns.index)
    if len(missing_dates) > 0:
        raise BacktestError(
            f"Weight dates do not appear in the returns (first missing: {missing_dates[0]})."
        )
    if not np.isfinite(asset_returns.iloc[1:].to_numpy(dtype=float)).all():
        raise BacktestError("Returns contain missing or non-finite values after the first row.")
    if weights.isna().to_numpy().any():
        raise BacktestError("Weights contain missing values.")

    return weights[list(asset_returns.columns)].astype(float)


def drift_step(
    state: DriftState,
    asset_returns: np.ndarray,
    target: np.ndarray | None,
) -> tuple[DriftState, float]:
    """
    Advance the portfolio by one date.

    Args:
        state: State at the end of the previous date.
        asset_returns: Linear returns of every asset on this date.
        target: Fresh target weights if this is a rebalancing date, else ``None``.

    Returns:
        New state and the realized portfolio return of the date.
    """
    invested = state.holdings if target is None else target
    cash = 1.0 - float(invested.sum())
    period_return = float(np.dot(asset_returns, invested))
    # still expressed relative to yesterday's NAV
    grown = (1.0 + asset_returns) * invested
    nav_change = cash + float(grown.sum())
    holdings = grown / nav_change
    weights = state.weights if target is None else target
    return DriftState(weights=weights, holdings=holdings, nav=state.nav * nav_change), period_return


def accumulate_portfolio(
    asset_returns: pd.DataFrame,
    weights: pd.DataFrame,
    execution: ExecutionMode = "same_day",
) -> PortfolioAccounting:
    """
    Turn a sparse weight schedule into daily portfolio returns.

    Args:
        asset_returns: Dense linear returns, one column per asset. Only the
            first row may contain missing values.
        weights: Target NAV fractions, one row per rebalancing date. Every date
            must appear in ``asset_returns``.
        execution: ``same_day`` applies weights from the row after the decision
            row, ``next_day`` from two rows after.

    Returns:
        Returns, drifted holdings and NAV path from the first applied rebalance on.
    """
    lag = EXECUTION_LAGS.get(execution)
    if lag is None:
        raise BacktestError(
            f"Unknown execution mode '{execution}'. Expected one of {sorted(EXECUTION_LAGS)}."
        )
    aligned = _align_weights(asset_returns, weights)

    targets = aligned.reindex(asset_returns.index).shift(lag)
    rebalance_mask = targets.notna().all(axis=1).to_numpy()
    if not rebalance_mask.any():
        raise BacktestError("No rebalancing date remains inside the returns after execution lag.")

    start = int(np.argmax(rebalance_mask))
    return_matrix = asset_returns.to_numpy(dtype=float)
    target_matrix = targets.to_numpy(dtype=float)

    first_target = target_matrix[start]
    state = DriftState(weights=first_target, holdings=first_target, nav=1.0)
    period_returns: list[float] = []
    holdings_rows: list[np.ndarray] = []
    nav_path: list[float] = []
    for row in range(start, return_matrix.shape[0]):
        target = target_matrix[row] if rebalance_mask[row] else None
        state, period_return = drift_step(state, return_matrix[row], target)
        period_returns.append(period_return)
        holdings_rows.append(state.holdings)
        nav_path.append(state.nav)

    index = asset_returns.index[start:]
    return PortfolioAccounting(
        returns=pd.Series(period_returns, index=index, name="portfolio", dtype=float),
        holdings=pd.DataFrame(holdings_rows, index=index, columns=asset_returns.columns),
        nav=pd.Series(nav_path, index=index, name="nav", dtype=float),
    )


def accumulate_returns(
    asset_returns: pd.DataFrame,
    weights: pd.DataFrame,
    execution: ExecutionMode = "same_day",
) -> pd.Series:
    """Return only the daily portfolio return series of :func:`accumulate_portfolio`."""
    return accumulate_portfolio(asset_returns, weights, execution=execution).returns
