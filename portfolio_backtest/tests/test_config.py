"""Tests for YAML configuration loading."""

from __future__ import annotations

import tempfile
import textwrap
import unittest
from pathlib import Path

from portfolio_backtest.core.backtest.engine import BacktestSettings
from portfolio_backtest.core.config import (
    dump_config_to_yaml,
    load_config,
    load_config_from_yaml_text,
)
from portfolio_backtest.core.utils.errors import ConfigLoadError


class TestConfig(unittest.TestCase):
    """Validate defaults, path resolution and validation errors."""

    def test_defaults_and_settings(self) -> None:
        config = load_config_from_yaml_text("data:\n  source: synthetic\n")

        self.assertEqual(config.allocation.module, "portfolio_backtest.strategies.examples.uniform")
        self.assertEqual(config.leaderboard.weights, [1.0, 1.0, 1.0, 7.0])
        self.assertEqual(config.runtime.max_workers, 1)
        self.assertEqual(config.backtest.to_settings(), BacktestSettings())

    def test_relative_paths_resolve_from_config_directory(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            config_path = root / "config.yaml"
            config_path.write_text(
                textwrap.dedent("""
                    data:
                      prices_dir: prices
                    leaderboard:
                      submissions_dir: ./submissions
                    runtime:
                      log_level: debug
                    """),
                encoding="utf-8",
            )

            config = load_config(config_path)

            self.assertEqual(config.data.prices_dir, (root / "prices").resolve())
            self.assertEqual(config.leaderboard.submissions_dir, (root / "submissions").resolve())
            self.assertEqual(config.runtime.log_level, "DEBUG")

    def test_backtest_section_maps_to_settings(self) -> None:
        config = load_config_from_yaml_text(
            textwrap.dedent("""
                data:
                  source: synthetic
                backtest:
                  t_rolling_window: 60
                  optimize_every: 10
                  rebalance_every: 5
                  shortselling: true
                  leverage: 1.5
                  execution: next_day
                """)
        )

        settings = config.backtest.to_settings()

        self.assertEqual(settings.t_rolling_window, 60)
        self.assertEqual(settings.rebalance_period, 5)
        self.assertTrue(settings.shortselling)
        self.assertEqual(settings.execution, "next_day")

    def test_validation_errors(self) -> None:
        invalid_documents = [
            "data:\n  source: files\n",
            "data:\n  source: synthetic\nbacktest:\n  optimize_every: 30\n  rebalance_every: 20\n",
            "data:\n  source: synthetic\nleaderboard:\n  weights: [1, 1, 1]\n",
            "data:\n  source: synthetic\nruntime:\n  max_workers: 0\n",
            "- not\n- a mapping\n",
            "data: [unclosed\n",
        ]
        for document in invalid_documents:
            with self.subTest(document=document):
                with self.assertRaises(ConfigLoadError):
                    load_config_from_yaml_text(document)

    def test_missing_file_raises(self) -> None:
        with self.assertRaises(ConfigLoadError):
            load_config(Path("/nonexistent/portfolio-backtest.yaml"))

    def test_dump_round_trips(self) -> None:
        config = load_config_from_yaml_text("data:\n  source: synthetic\n")

        reloaded = load_config_from_yaml_text(dump_config_to_yaml(config))

        self.assertEqual(reloaded, config)


if __name__ == "__main__":
    unittest.main()
