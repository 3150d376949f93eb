"""Equally weighted (1/N) allocation."""

from __future__ import annotations

import numpy as np
import pandas as pd

ALLOCATION_NAME: str = "uniform"


def allocate(prices: pd.DataFrame) -> pd.Series:
    """
    Allocate the full budget equally across every asset in the window.

    Args:
        prices: Price window, one column per asset.

    Returns:
        Weights summing to 1 indexed by asset.
    """
    n_assets = prices.shape[1]
    return pd.Series(np.full(n_assets, 1.0 / n_assets), index=prices.columns)
