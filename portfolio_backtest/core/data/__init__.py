"""Price dataset loading."""

from portfolio_backtest.core.data.loader import load_price_datasets, read_price_file
from portfolio_backtest.core.data.synthetic import make_random_datasets, make_random_prices

__all__ = ["load_price_datasets", "make_random_datasets", "make_random_prices", "read_price_file"]
