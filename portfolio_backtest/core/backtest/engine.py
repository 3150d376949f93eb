"""Rolling-window backtest of one allocation function on one price dataset."""

from __future__ import annotations

import threading
import time
import warnings
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from portfolio_backtest.core.backtest.metrics import calculate_metrics, calculate_wealth
from portfolio_backtest.core.backtest.returns import (
    EXECUTION_LAGS,
    ExecutionMode,
    accumulate_returns,
)
from portfolio_backtest.core.backtest.types import BacktestResult
from portfolio_backtest.core.utils.errors import BacktestError, DataValidationError
from portfolio_backtest.core.utils.logging import get_logger

AllocationFunction = Callable[[pd.DataFrame], Any]

WEIGHT_TOLERANCE = 1e-6
_LOGGER_NAME = "portfolio_backtest.core.backtest.engine"

# guards the process-global warning filters; held while an allocation call runs
# with escalated warnings and while a unit computes returns under default filters
_WARNING_STATE_LOCK = threading.Lock()


@dataclass(frozen=True)
class BacktestSettings:
    """Scheduling and constraint settings of a rolling backtest.

    ``rebalance_every`` defaults to ``optimize_every``.
    """

    t_rolling_window: int = 252
    optimize_every: int = 20
    rebalance_every: int | None = None
    shortselling: bool = False
    leverage: float = 1.0
    return_portfolio: bool = False
    execution: ExecutionMode = "same_day"
    annualization_factor: int = 252

    @property
    def rebalance_period(self) -> int:
        return self.optimize_every if self.rebalance_every is None else self.rebalance_every

    def validate(self) -> None:
        """Raise ``BacktestError`` for inconsistent scheduling parameters."""
        if self.t_rolling_window < 1:
            raise BacktestError("t_rolling_window must be >= 1.")
        if self.optimize_every < 1 or self.rebalance_period < 1:
            raise BacktestError("optimize_every and rebalance_every must be positive integers.")
        if self.optimize_every % self.rebalance_period != 0:
            raise BacktestError(
                "The reoptimization period has to be a multiple of the rebalancing period "
                f"(optimize_every={self.optimize_every}, rebalance_every={self.rebalance_period})."
            )
        if not self.leverage > 0:
            raise BacktestError("leverage must be greater than 0.")
        if self.execution not in EXECUTION_LAGS:
            raise BacktestError(
                f"Unknown execution mode '{self.execution}'. "
                f"Expected one of {sorted(EXECUTION_LAGS)}."
            )
        if self.annualization_factor <= 0:
            raise BacktestError("annualization_factor must be greater than 0.")


@dataclass(frozen=True)
class AllocationOutcome:
    """Weights from one allocation call, or the reason it produced none."""

    weights: np.ndarray | None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.weights is not None


def validate_prices(prices: pd.DataFrame, name: str = "prices") -> None:
    """
    Validate a price dataset before any simulation work.

    Args:
        prices: Asset closing prices, one column per asset.
        name: Dataset label used in error messages.
    """
    if isinstance(prices, (list, tuple, dict)):
        raise BacktestError(
            f"{name} has to be a single DataFrame, not a {type(prices).__name__}; "
            "use the batch runner for collections of datasets."
        )
    if not isinstance(prices, pd.DataFrame):
        raise BacktestError(f"{name} has to be a pandas DataFrame.")
    if prices.empty or prices.shape[1] == 0:
        raise DataValidationError(f"{name} contains no rows or no assets.")
    if not isinstance(prices.index, pd.DatetimeIndex):
        raise DataValidationError(f"{name} must use a DatetimeIndex.")
    if not prices.index.is_monotonic_increasing or not prices.index.is_unique:
        raise DataValidationError(f"{name} must be indexed by strictly increasing dates.")
    if prices.columns.has_duplicates:
        raise DataValidationError(f"{name} has duplicate asset labels.")
    if not all(pd.api.types.is_numeric_dtype(dtype) for dtype in prices.dtypes):
        raise DataValidationError(f"{name} has non-numeric price columns.")
    if prices.isna().to_numpy().any():
        raise DataValidationError(f"{name} contains missing values.")
    if (prices.to_numpy(dtype=float) <= 0).any():
        raise DataValidationError(f"{name} contains non-positive prices.")


def check_inputs(prices: pd.DataFrame, settings: BacktestSettings, name: str = "prices") -> None:
    """Raise for settings or a dataset that cannot be backtested at all."""
    settings.validate()
    validate_prices(prices, name=name)

    n_rows = int(prices.shape[0])
    if settings.t_rolling_window >= n_rows:
        raise BacktestError(
            f"{name}: price history of {n_rows} rows is not large enough for a rolling "
            f"window of {settings.t_rolling_window} rows."
        )
    if settings.t_rolling_window - 1 + EXECUTION_LAGS[settings.execution] >= n_rows:
        raise BacktestError(
            f"{name}: price history of {n_rows} rows leaves no trading date for "
            f"'{settings.execution}' execution."
        )


def build_schedule(n_rows: int, settings: BacktestSettings) -> tuple[list[int], set[int]]:
    """
    Build rebalance and optimize row positions (0-based).

    The first rebalance is the last row of the first full window.

    Args:
        n_rows: Number of price rows.
        settings: Backtest settings.

    Returns:
        Ordered rebalance positions and the set of optimize positions.
    """
    first = settings.t_rolling_window - 1
    rebalance_positions = list(range(first, n_rows, settings.rebalance_period))
    optimize_positions = set(range(first, n_rows, settings.optimize_every))
    if not optimize_positions.issubset(rebalance_positions):
        raise BacktestError(
            "The reoptimization indices have to be a subset of the rebalancing indices."
        )
    return rebalance_positions, optimize_positions


def _coerce_weights(raw: Any, columns: pd.Index) -> np.ndarray:
    """Convert allocation output to a finite float vector ordered like ``columns``."""
    if isinstance(raw, pd.DataFrame):
        if raw.shape[0] != 1:
            raise ValueError(
                f"Portfolio function returned a DataFrame with {raw.shape[0]} rows, expected 1."
            )
        raw = raw.iloc[0]
    if isinstance(raw, pd.Series) and not isinstance(raw.index, pd.RangeIndex):
        if set(raw.index) != set(columns):
            raise ValueError("Portfolio function returned weights for assets not in the window.")
        raw = raw.reindex(columns)

    values = np.asarray(raw, dtype=float).reshape(-1)
    if values.shape[0] != len(columns):
        raise ValueError(
            f"Portfolio function returned {values.shape[0]} weights for {len(columns)} assets."
        )
    if not np.isfinite(values).all():
        raise ValueError("Portfolio function returned non-finite weights.")
    return values


def invoke_allocation(allocation: AllocationFunction, window: pd.DataFrame) -> AllocationOutcome:
    """
    Call an untrusted allocation function and convert any fault into an outcome.

    Warnings raised during the call are escalated and count as failures. Calls
    are serialized across threads since the warning filters are process-global.

    Args:
        allocation: Allocation function.
        window: Trailing price window passed to the function.

    Returns:
        Outcome holding either the weight vector or the failure message.
    """
    try:
        with _WARNING_STATE_LOCK, warnings.catch_warnings():
            warnings.simplefilter("error")
            raw = allocation(window.copy())
            weights = _coerce_weights(raw, window.columns)
    except Exception as exc:
        message = str(exc) or exc.__class__.__name__
        return AllocationOutcome(weights=None, message=message)
    return AllocationOutcome(weights=weights)


def check_constraints(weights: np.ndarray, shortselling: bool, leverage: float) -> list[str]:
    """Return one message per violated portfolio constraint."""
    messages: list[str] = []
    if not shortselling and bool(np.any(weights + WEIGHT_TOLERANCE < 0)):
        messages.append("No-shortselling constraint not satisfied.")
    if float(np.abs(weights).sum()) > leverage + WEIGHT_TOLERANCE:
        messages.append("Leverage constraint not satisfied.")
    return messages


def _linear_returns(prices: pd.DataFrame) -> pd.DataFrame:
    """Close-to-close linear returns; the first row is missing."""
    return prices / prices.shift(1) - 1.0


def run_backtest(
    allocation: AllocationFunction,
    prices: pd.DataFrame,
    settings: BacktestSettings | None = None,
) -> BacktestResult:
    """
    Backtest an allocation function on a rolling-window basis.

    Execution model:
    - On every optimize date the function sees the trailing ``t_rolling_window``
      rows ending on that date (inclusive) and returns target weights.
    - On other rebalance dates the previous weights are held unchanged.
    - Weights decided on date ``t`` start earning on ``t+1`` (``same_day``)
      or ``t+2`` (``next_day``).

    The first allocation error, warning or constraint violation ends the run
    with a failed result; it is never raised.

    Args:
        allocation: Callable mapping a price window to a weight vector.
        prices: Asset closing prices with a DatetimeIndex.
        settings: Backtest settings, defaults when omitted.

    Returns:
        Backtest result container.
    """
    settings = settings or BacktestSettings()
    if not callable(allocation):
        raise BacktestError("allocation is not a callable.")
    check_inputs(prices, settings)
    rebalance_positions, optimize_positions = build_schedule(int(prices.shape[0]), settings)

    logger = get_logger(_LOGGER_NAME)
    window_length = settings.t_rolling_window
    schedule_rows: list[np.ndarray] = []
    messages: list[str] = []
    current: np.ndarray | None = None

    started = time.perf_counter()
    for position in rebalance_positions:
        if position in optimize_positions:
            window = prices.iloc[position - window_length + 1 : position + 1]
            outcome = invoke_allocation(allocation, window)
            if not outcome.ok:
                messages.append(str(outcome.message))
                break
            current = outcome.weights
        else:
            current = current.copy()

        schedule_rows.append(current)
        messages.extend(check_constraints(current, settings.shortselling, settings.leverage))
        if messages:
            break
    elapsed = time.perf_counter() - started

    recorded_dates = prices.index[rebalance_positions[: len(schedule_rows)]]
    portfolio = pd.DataFrame(
        np.vstack(schedule_rows) if schedule_rows else np.empty((0, prices.shape[1])),
        index=recorded_dates,
        columns=prices.columns,
    )

    if messages:
        logger.warning(
            "Backtest failed on rebalance date %s (%d of %d): %s",
            prices.index[position].date().isoformat(),
            rebalance_positions.index(position) + 1,
            len(rebalance_positions),
            " ".join(messages),
        )
        return BacktestResult.failed(
            messages,
            portfolio=portfolio if settings.return_portfolio else None,
        )

    with _WARNING_STATE_LOCK:
        asset_returns = _linear_returns(prices.iloc[window_length - 1 :])
        returns = accumulate_returns(asset_returns, portfolio, execution=settings.execution)
        performance = calculate_metrics(
            returns, annualization_factor=settings.annualization_factor
        )
    logger.debug(
        "Backtest completed: %d rebalances, %d return dates, %.4fs",
        len(rebalance_positions),
        returns.shape[0],
        elapsed,
    )

    return BacktestResult(
        returns=returns,
        wealth=calculate_wealth(returns),
        performance=performance,
        cpu_time=float(elapsed),
        failure=False,
        failure_messages=(),
        portfolio=portfolio if settings.return_portfolio else None,
    )
