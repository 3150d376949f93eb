"""Result records for backtests, batches and leaderboards."""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass
from enum import Enum
from typing import Final, Literal

import pandas as pd


class _Unavailable(Enum):
    """Single-member marker for numeric outputs that were never produced."""

    UNAVAILABLE = "unavailable"

    def __repr__(self) -> str:
        return "UNAVAILABLE"

    def __bool__(self) -> bool:
        return False


UNAVAILABLE: Final = _Unavailable.UNAVAILABLE
Unavailable = Literal[_Unavailable.UNAVAILABLE]

PERFORMANCE_LABELS: tuple[str, ...] = (
    "sharpe ratio",
    "max drawdown",
    "annualized return",
    "annualized volatility",
)


def is_unavailable(value: object) -> bool:
    """Return True if ``value`` is the ``UNAVAILABLE`` sentinel."""
    return value is UNAVAILABLE


@dataclass(frozen=True)
class PerformanceVector:
    """Fixed set of performance statistics for one return series.

    ``max_drawdown`` is a positive fraction (0.25 means a 25% peak-to-trough loss).
    """

    sharpe_ratio: float
    max_drawdown: float
    annualized_return: float
    annualized_volatility: float

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (
            self.sharpe_ratio,
            self.max_drawdown,
            self.annualized_return,
            self.annualized_volatility,
        )

    def to_series(self) -> pd.Series:
        """Return the vector as a labeled series."""
        return pd.Series(self.as_tuple(), index=list(PERFORMANCE_LABELS), dtype=float)


@dataclass(frozen=True)
class BacktestResult:
    """Outcome of one allocation function on one price dataset.

    A failed run carries ``UNAVAILABLE`` in every numeric field; only
    ``failure_messages`` (and ``portfolio`` when requested) are populated.
    """

    returns: pd.Series | Unavailable
    wealth: pd.Series | Unavailable
    performance: PerformanceVector | Unavailable
    cpu_time: float | Unavailable
    failure: bool
    failure_messages: tuple[str, ...] = ()
    portfolio: pd.DataFrame | None = None

    @property
    def succeeded(self) -> bool:
        return not self.failure

    @classmethod
    def failed(
        cls,
        messages: list[str],
        portfolio: pd.DataFrame | None = None,
    ) -> BacktestResult:
        """Build a failed result with every numeric field unavailable."""
        return cls(
            returns=UNAVAILABLE,
            wealth=UNAVAILABLE,
            performance=UNAVAILABLE,
            cpu_time=UNAVAILABLE,
            failure=True,
            failure_messages=tuple(messages),
            portfolio=portfolio,
        )


@dataclass(frozen=True)
class BatchResult:
    """Aggregation of one allocation function over a collection of datasets."""

    results: tuple[BacktestResult, ...]
    performance: pd.DataFrame
    performance_summary: PerformanceVector | Unavailable
    cpu_time: tuple[float | Unavailable, ...]
    cpu_time_average: float | Unavailable
    failure_ratio: float
    failures: tuple[bool, ...]
    failure_messages: tuple[tuple[str, ...], ...]

    @property
    def dataset_count(self) -> int:
        return len(self.results)

    @property
    def is_valid(self) -> bool:
        """True if at least one dataset completed successfully."""
        return self.failure_ratio < 1.0 and not is_unavailable(self.performance_summary)


@dataclass(frozen=True)
class CriterionScores:
    """Percentile scores in [0, 100], one per ranking criterion."""

    sharpe_ratio: float
    max_drawdown: float
    cpu_time: float
    failure_ratio: float

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.sharpe_ratio, self.max_drawdown, self.cpu_time, self.failure_ratio)


@dataclass(frozen=True)
class LeaderboardEntry:
    """One ranked row of a leaderboard."""

    identifier: Hashable
    name: str
    scores: CriterionScores | Unavailable
    final_score: float | Unavailable

    @property
    def is_valid(self) -> bool:
        return not is_unavailable(self.final_score)
