"""Global minimum variance portfolio (GMVP) allocation.

Weights may be negative, so backtest with ``shortselling: true``.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

ALLOCATION_NAME: str = "gmvp"


def allocate(prices: pd.DataFrame) -> pd.Series:
    """
    Solve ``Sigma w = 1`` on the sample covariance of log returns.

    The solution is scaled to unit gross exposure (``sum(|w|) = 1``).

    Args:
        prices: Price window, one column per asset.

    Returns:
        Weights indexed by asset.
    """
    log_returns = np.log(prices).diff().iloc[1:]
    sigma = log_returns.cov().to_numpy()
    raw = np.linalg.solve(sigma, np.ones(sigma.shape[0]))
    weights = raw / np.abs(raw).sum()
    return pd.Series(weights, index=prices.columns)
