"""Tests for price file loading and synthetic datasets."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

import numpy as np

from portfolio_backtest.core.data.loader import load_price_datasets, read_price_file
from portfolio_backtest.core.data.synthetic import make_random_datasets, make_random_prices
from portfolio_backtest.core.utils.errors import DataValidationError


class TestPriceLoader(unittest.TestCase):
    """Validate CSV and Parquet reading plus validation failures."""

    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self._temp_dir.name)
        self.prices = make_random_prices(n_rows=20, n_assets=3, seed=1)

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def test_csv_round_trip(self) -> None:
        path = self.root / "stocks.csv"
        self.prices.to_csv(path)

        frame = read_price_file(path)

        self.assertEqual(list(frame.columns), ["A1", "A2", "A3"])
        self.assertEqual(frame.index.name, "date")
        np.testing.assert_allclose(frame.to_numpy(), self.prices.to_numpy())

    def test_parquet_with_date_column(self) -> None:
        path = self.root / "stocks.parquet"
        self.prices.reset_index().to_parquet(path)

        frame = read_price_file(path)

        self.assertEqual(frame.shape, (20, 3))
        self.assertEqual(frame.index[0], self.prices.index[0])

    def test_directory_loading_is_ordered_by_name(self) -> None:
        self.prices.to_csv(self.root / "b_market.csv")
        self.prices.iloc[:10].to_csv(self.root / "a_market.csv")

        datasets = load_price_datasets(self.root)

        self.assertEqual(list(datasets), ["a_market", "b_market"])
        self.assertEqual(datasets["a_market"].shape, (10, 3))

    def test_invalid_files_raise(self) -> None:
        with_gap = self.prices.copy()
        with_gap.iloc[3, 1] = np.nan
        with_gap.to_csv(self.root / "gap.csv")
        (self.root / "prices.json").write_text("{}", encoding="utf-8")
        (self.root / "dates.csv").write_text("date,A1\nnot-a-date,1.0\n", encoding="utf-8")

        with self.assertRaises(DataValidationError):
            read_price_file(self.root / "gap.csv")
        with self.assertRaises(DataValidationError):
            read_price_file(self.root / "prices.json")
        with self.assertRaises(DataValidationError):
            read_price_file(self.root / "dates.csv")
        with self.assertRaises(DataValidationError):
            load_price_datasets(self.root, pattern="*.parquet")
        with self.assertRaises(DataValidationError):
            load_price_datasets(self.root / "absent")

    def test_unordered_dates_are_rejected(self) -> None:
        path = self.root / "unordered.csv"
        self.prices.iloc[::-1].to_csv(path)

        with self.assertRaises(DataValidationError):
            read_price_file(path)

    def test_non_positive_price_is_rejected(self) -> None:
        zero = self.prices.copy()
        zero.iloc[5, 0] = 0.0
        zero.to_csv(self.root / "zero.csv")

        with self.assertRaises(DataValidationError):
            read_price_file(self.root / "zero.csv")


class TestSyntheticPrices(unittest.TestCase):
    """Validate deterministic random walk datasets."""

    def test_shape_and_determinism(self) -> None:
        first = make_random_datasets(n_datasets=3, n_rows=50, n_assets=4, seed=9)
        second = make_random_datasets(n_datasets=3, n_rows=50, n_assets=4, seed=9)

        self.assertEqual(list(first), ["dataset_1", "dataset_2", "dataset_3"])
        for name, frame in first.items():
            self.assertEqual(frame.shape, (50, 4))
            self.assertTrue((frame > 0).all().all())
            np.testing.assert_array_equal(frame.to_numpy(), second[name].to_numpy())
        self.assertFalse(np.allclose(first["dataset_1"], first["dataset_2"]))


if __name__ == "__main__":
    unittest.main()
