"""Percentile-based multi-criterion ranking of competing allocation functions."""

from __future__ import annotations

from collections.abc import Hashable, Iterator, Mapping, Sequence
from dataclasses import dataclass

import numpy as np
import pandas as pd

from portfolio_backtest.core.backtest.types import (
    UNAVAILABLE,
    BatchResult,
    CriterionScores,
    LeaderboardEntry,
)
from portfolio_backtest.core.utils.errors import LeaderboardError

CRITERIA: tuple[str, ...] = ("sharpe ratio", "max drawdown", "cpu time", "failure ratio")
SCORE_COLUMNS: tuple[str, ...] = (*(f"{criterion} score" for criterion in CRITERIA), "final score")
DEFAULT_WEIGHTS: tuple[float, float, float, float] = (1.0, 1.0, 1.0, 7.0)


@dataclass(frozen=True)
class Leaderboard:
    """Ranked entries: valid entries by final score, then every invalid entry."""

    entries: tuple[LeaderboardEntry, ...]
    weights: tuple[float, ...]

    def __iter__(self) -> Iterator[LeaderboardEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def to_frame(self) -> pd.DataFrame:
        """Return the display table; invalid entries have empty score cells."""
        rows: list[list[float]] = []
        for entry in self.entries:
            if entry.is_valid:
                rows.append([*entry.scores.as_tuple(), float(entry.final_score)])
            else:
                rows.append([np.nan] * len(SCORE_COLUMNS))
        index = pd.Index([entry.identifier for entry in self.entries], name="identifier")
        return pd.DataFrame(rows, index=index, columns=list(SCORE_COLUMNS), dtype=float)

    def identifiers_frame(self) -> pd.DataFrame:
        """Return the ``(identifier, name)`` table parallel to :meth:`to_frame`."""
        return pd.DataFrame(
            {
                "identifier": [entry.identifier for entry in self.entries],
                "name": [entry.name for entry in self.entries],
            }
        )


def rank_percentile(values: Sequence[float] | pd.Series) -> pd.Series:
    """
    Map values to percentile scores in [0, 100].

    Uses the empirical CDF with an affine correction so the smallest value
    scores 0 and the largest scores 100 regardless of cohort size. A cohort of
    one scores 100.

    Args:
        values: Values where larger is better.

    Returns:
        Percentile score per value, aligned to the input.
    """
    if isinstance(values, pd.Series):
        series = values.astype(float)
    else:
        series = pd.Series(values, dtype=float)
    count = int(series.shape[0])
    if count == 0:
        return series
    if count == 1:
        return pd.Series(100.0, index=series.index)

    ecdf = series.rank(method="max", pct=True)
    return 100.0 * (ecdf - 1.0 / count) / (1.0 - 1.0 / count)


def normalize_weights(weights: Sequence[float]) -> np.ndarray:
    """Validate the four criterion weights and scale them to sum to one."""
    try:
        values = np.asarray(list(weights), dtype=float)
    except (TypeError, ValueError) as exc:
        raise LeaderboardError(f"Leaderboard weights must be numeric: {exc}") from exc
    if values.shape != (len(CRITERIA),):
        raise LeaderboardError(
            f'Argument "weights" must have {len(CRITERIA)} elements, got {values.size}.'
        )
    if not np.isfinite(values).all() or (values < 0).any():
        raise LeaderboardError("Leaderboard weights must be finite and non-negative.")
    total = float(values.sum())
    if total <= 0:
        raise LeaderboardError("Leaderboard weights must not sum to zero.")
    return values / total


def _criteria_frame(
    batch_results: Mapping[Hashable, BatchResult],
    valid: list[Hashable],
) -> pd.DataFrame:
    """Criterion values oriented so that larger is always better."""
    return pd.DataFrame(
        {
            "sharpe ratio": [batch_results[key].performance_summary.sharpe_ratio for key in valid],
            "max drawdown": [-batch_results[key].performance_summary.max_drawdown for key in valid],
            "cpu time": [-float(batch_results[key].cpu_time_average) for key in valid],
            "failure ratio": [-batch_results[key].failure_ratio for key in valid],
        },
        columns=list(CRITERIA),
        dtype=float,
    )


def rank_leaderboard(
    batch_results: Mapping[Hashable, BatchResult],
    weights: Sequence[float] = DEFAULT_WEIGHTS,
    names: Mapping[Hashable, str] | None = None,
) -> Leaderboard:
    """
    Rank allocation functions by a weighted sum of criterion percentiles.

    Criteria are sharpe ratio (higher is better), max drawdown, average cpu
    time and failure ratio (lower is better). Functions that failed on every
    dataset get no scores and are placed last in input order.

    Args:
        batch_results: Identifier -> batch result, in input order.
        weights: Non-negative weights for the four criteria.
        names: Optional identifier -> display name mapping.

    Returns:
        Leaderboard with valid entries sorted by final score (ties keep input order).
    """
    normalized = normalize_weights(weights)
    if not batch_results:
        raise LeaderboardError("At least one batch result is required to build a leaderboard.")
    names = names or {}

    identifiers = list(batch_results)
    valid = [key for key in identifiers if batch_results[key].is_valid]
    invalid = [key for key in identifiers if not batch_results[key].is_valid]

    ranked: list[LeaderboardEntry] = []
    if valid:
        scores = _criteria_frame(batch_results, valid).apply(rank_percentile)
        final_scores = scores.to_numpy() @ normalized
        order = sorted(range(len(valid)), key=lambda position: -final_scores[position])
        for position in order:
            key = valid[position]
            ranked.append(
                LeaderboardEntry(
                    identifier=key,
                    name=names.get(key, str(key)),
                    scores=CriterionScores(*(float(value) for value in scores.iloc[position])),
                    final_score=float(final_scores[position]),
                )
            )

    for key in invalid:
        ranked.append(
            LeaderboardEntry(
                identifier=key,
                name=names.get(key, str(key)),
                scores=UNAVAILABLE,
                final_score=UNAVAILABLE,
            )
        )

    return Leaderboard(entries=tuple(ranked), weights=tuple(float(value) for value in normalized))
