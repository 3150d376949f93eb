"""Service-layer workflows for CLI orchestration."""

from portfolio_backtest.core.services.evaluation_service import (
    EvaluationOutcome,
    LeaderboardOutcome,
    evaluate_allocation,
    evaluate_submissions,
    load_datasets,
)

__all__ = [
    "EvaluationOutcome",
    "LeaderboardOutcome",
    "evaluate_allocation",
    "evaluate_submissions",
    "load_datasets",
]
