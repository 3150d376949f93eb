"""Synthetic price datasets for demos and tests."""

from __future__ import annotations

import numpy as np
import pandas as pd


def make_random_prices(
    n_rows: int,
    n_assets: int,
    seed: int = 0,
    start: str = "2015-01-01",
    daily_drift: float = 0.0003,
    daily_volatility: float = 0.015,
) -> pd.DataFrame:
    """
    Generate one geometric random walk price dataset on business days.

    Args:
        n_rows: Number of trading dates.
        n_assets: Number of assets (columns ``A1`` .. ``An``).
        seed: Random seed.
        start: First date.
        daily_drift: Mean daily log return.
        daily_volatility: Standard deviation of daily log returns.

    Returns:
        Strictly positive prices starting at 100.
    """
    rng = np.random.default_rng(seed)
    log_returns = rng.normal(daily_drift, daily_volatility, size=(n_rows, n_assets))
    log_returns[0, :] = 0.0
    prices = 100.0 * np.exp(np.cumsum(log_returns, axis=0))
    index = pd.bdate_range(start=start, periods=n_rows, name="date")
    columns = [f"A{asset}" for asset in range(1, n_assets + 1)]
    return pd.DataFrame(prices, index=index, columns=columns)


def make_random_datasets(
    n_datasets: int,
    n_rows: int,
    n_assets: int,
    seed: int = 0,
    start: str = "2015-01-01",
) -> dict[str, pd.DataFrame]:
    """Generate ``n_datasets`` independent random walk datasets keyed ``dataset_1`` ..."""
    return {
        f"dataset_{position}": make_random_prices(
            n_rows=n_rows,
            n_assets=n_assets,
            seed=seed + position,
            start=start,
        )
        for position in range(1, n_datasets + 1)
    }
