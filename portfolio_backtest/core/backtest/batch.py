"""Batch backtests of allocation functions over collections of price datasets."""

from __future__ import annotations

from collections.abc import Hashable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pandas as pd

from portfolio_backtest.core.backtest.engine import (
    AllocationFunction,
    BacktestSettings,
    check_inputs,
    run_backtest,
)
from portfolio_backtest.core.backtest.types import (
    PERFORMANCE_LABELS,
    UNAVAILABLE,
    BacktestResult,
    BatchResult,
    PerformanceVector,
)
from portfolio_backtest.core.utils.errors import BacktestError
from portfolio_backtest.core.utils.logging import get_logger

_LOGGER_NAME = "portfolio_backtest.core.backtest.batch"
_DEFAULT_KEY = "allocation"


def dataset_labels(count: int) -> list[str]:
    """Return performance-matrix column labels for ``count`` datasets."""
    return [f"dataset {position}" for position in range(1, count + 1)]


def _prepare_datasets(
    datasets: Sequence[pd.DataFrame] | pd.DataFrame,
    settings: BacktestSettings,
) -> list[pd.DataFrame]:
    """Validate every dataset up front so configuration errors abort before any run."""
    if isinstance(datasets, pd.DataFrame):
        datasets = [datasets]
    prepared = list(datasets)
    if not prepared:
        raise BacktestError("At least one price dataset is required for a batch backtest.")
    for label, prices in zip(dataset_labels(len(prepared)), prepared, strict=True):
        check_inputs(prices, settings, name=label)
    return prepared


def aggregate_results(results: Sequence[BacktestResult]) -> BatchResult:
    """
    Summarize per-dataset results of one allocation function.

    The summary is the elementwise median over successful datasets and the
    average time is taken over successful datasets only. Both are
    ``UNAVAILABLE`` when no dataset succeeded.

    Args:
        results: One backtest result per dataset, in dataset order.

    Returns:
        Aggregated batch result.
    """
    if not results:
        raise BacktestError("Cannot aggregate an empty list of backtest results.")

    labels = dataset_labels(len(results))
    columns: dict[str, pd.Series] = {}
    for label, result in zip(labels, results, strict=True):
        if result.succeeded:
            columns[label] = result.performance.to_series()
        else:
            columns[label] = pd.Series(np.nan, index=list(PERFORMANCE_LABELS), dtype=float)
    performance = pd.DataFrame(columns, index=list(PERFORMANCE_LABELS), columns=labels)

    failures = tuple(result.failure for result in results)
    failure_ratio = sum(failures) / len(results)
    successful = [result for result in results if result.succeeded]

    if successful:
        successful_labels = [label for label, failed in zip(labels, failures) if not failed]
        median = performance[successful_labels].median(axis=1)
        performance_summary = PerformanceVector(
            *(float(median[label]) for label in PERFORMANCE_LABELS)
        )
        cpu_time_average = float(np.mean([result.cpu_time for result in successful]))
    else:
        performance_summary = UNAVAILABLE
        cpu_time_average = UNAVAILABLE

    return BatchResult(
        results=tuple(results),
        performance=performance,
        performance_summary=performance_summary,
        cpu_time=tuple(result.cpu_time for result in results),
        cpu_time_average=cpu_time_average,
        failure_ratio=float(failure_ratio),
        failures=failures,
        failure_messages=tuple(result.failure_messages for result in results),
    )


def run_batch_many(
    allocations: Mapping[Hashable, AllocationFunction],
    datasets: Sequence[pd.DataFrame] | pd.DataFrame,
    settings: BacktestSettings | None = None,
    max_workers: int = 1,
) -> dict[Hashable, BatchResult]:
    """
    Backtest several allocation functions on the same datasets.

    Every (function, dataset) pair is an independent unit of work. With
    ``max_workers > 1`` units run on a thread pool; each function's results are
    aggregated only after all of its units completed.

    Args:
        allocations: Identifier -> allocation function mapping.
        datasets: Price datasets shared read-only by every unit.
        settings: Backtest settings applied to every unit.
        max_workers: Worker threads; 1 runs units sequentially.

    Returns:
        Identifier -> batch result, in the input order of ``allocations``.
    """
    settings = settings or BacktestSettings()
    if max_workers < 1:
        raise BacktestError("max_workers must be >= 1.")
    if not allocations:
        raise BacktestError("At least one allocation function is required.")
    for identifier, allocation in allocations.items():
        if not callable(allocation):
            raise BacktestError(f"Allocation '{identifier}' is not a callable.")
    prepared = _prepare_datasets(datasets, settings)

    logger = get_logger(_LOGGER_NAME)
    logger.info(
        "Backtesting %d allocation function(s) on %d dataset(s) with %d worker(s)",
        len(allocations),
        len(prepared),
        max_workers,
    )

    units = [
        (identifier, position)
        for identifier in allocations
        for position in range(len(prepared))
    ]
    unit_results: dict[tuple[Hashable, int], BacktestResult] = {}
    if max_workers == 1:
        for identifier, position in units:
            unit_results[(identifier, position)] = run_backtest(
                allocations[identifier], prepared[position], settings
            )
    else:
        with ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="portfolio-backtest"
        ) as executor:
            futures = {
                unit: executor.submit(
                    run_backtest, allocations[unit[0]], prepared[unit[1]], settings
                )
                for unit in units
            }
            for unit, future in futures.items():
                unit_results[unit] = future.result()

    batch_results: dict[Hashable, BatchResult] = {}
    for identifier in allocations:
        batch = aggregate_results(
            [unit_results[(identifier, position)] for position in range(len(prepared))]
        )
        logger.info(
            "Allocation '%s': failure ratio %.2f over %d dataset(s)",
            identifier,
            batch.failure_ratio,
            batch.dataset_count,
        )
        batch_results[identifier] = batch
    return batch_results


def run_batch(
    allocation: AllocationFunction,
    datasets: Sequence[pd.DataFrame] | pd.DataFrame,
    settings: BacktestSettings | None = None,
    max_workers: int = 1,
) -> BatchResult:
    """
    Backtest one allocation function on every dataset and aggregate the results.

    Args:
        allocation: Allocation function.
        datasets: Price datasets.
        settings: Backtest settings applied to every dataset.
        max_workers: Worker threads; 1 runs datasets sequentially.

    Returns:
        Aggregated batch result.
    """
    results = run_batch_many({_DEFAULT_KEY: allocation}, datasets, settings, max_workers)
    return results[_DEFAULT_KEY]
