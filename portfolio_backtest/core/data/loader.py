"""Loading of price datasets from CSV or Parquet files."""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from portfolio_backtest.core.backtest.engine import validate_prices
from portfolio_backtest.core.utils.errors import DataValidationError
from portfolio_backtest.core.utils.logging import get_logger

SUPPORTED_SUFFIXES: tuple[str, ...] = (".csv", ".parquet")
_LOGGER_NAME = "portfolio_backtest.core.data.loader"


def _to_date_index(frame: pd.DataFrame, source: str) -> pd.DataFrame:
    """Move a ``date`` column into the index and coerce it to datetimes."""
    normalized = frame.copy()
    if "date" in normalized.columns:
        normalized = normalized.set_index("date")
    try:
        normalized.index = pd.DatetimeIndex(pd.to_datetime(normalized.index, errors="raise"))
    except (TypeError, ValueError) as exc:
        raise DataValidationError(f"{source}: index cannot be parsed as dates: {exc}") from exc
    normalized.index.name = "date"
    return normalized


def read_price_file(path: Path) -> pd.DataFrame:
    """
    Read one price dataset.

    CSV files hold the dates in the first column; Parquet files either carry a
    datetime index or a ``date`` column. Every other column is one asset.

    Args:
        path: CSV or Parquet file.

    Returns:
        Validated price dataframe.
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise DataValidationError(
            f"Unsupported price file type '{path.suffix}'. Expected one of {SUPPORTED_SUFFIXES}."
        )
    try:
        if suffix == ".csv":
            frame = pd.read_csv(path, index_col=0)
        else:
            frame = pd.read_parquet(path, engine="pyarrow")
    except (OSError, ValueError) as exc:
        raise DataValidationError(f"Failed to read price file {path}: {exc}") from exc

    frame = _to_date_index(frame, path.name)
    frame = frame.apply(pd.to_numeric, errors="coerce").astype(float)
    validate_prices(frame, name=path.name)
    return frame


def load_price_datasets(directory: Path, pattern: str = "*.csv") -> dict[str, pd.DataFrame]:
    """
    Load every price file matching ``pattern`` in a directory.

    Args:
        directory: Directory holding price files.
        pattern: Glob pattern for dataset files.

    Returns:
        File stem -> price dataframe, ordered by file name.
    """
    resolved_dir = directory.expanduser().resolve()
    if not resolved_dir.is_dir():
        raise DataValidationError(f"Price directory not found: {resolved_dir}")

    logger = get_logger(_LOGGER_NAME)
    datasets: dict[str, pd.DataFrame] = {}
    for path in sorted(resolved_dir.glob(pattern)):
        if not path.is_file():
            continue
        frame = read_price_file(path)
        datasets[path.stem] = frame
        logger.info(
            "Loaded %s: %d rows x %d assets [%s, %s]",
            path.name,
            frame.shape[0],
            frame.shape[1],
            frame.index.min().date().isoformat(),
            frame.index.max().date().isoformat(),
        )

    if not datasets:
        raise DataValidationError(f"No price files matching '{pattern}' found in {resolved_dir}")
    return datasets
