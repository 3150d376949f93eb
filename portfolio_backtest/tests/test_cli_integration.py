"""Integration tests for CLI command flow and typed exit codes."""

from __future__ import annotations

import tempfile
import textwrap
import unittest
from pathlib import Path

from typer.testing import CliRunner

from portfolio_backtest.cli import app

SYNTHETIC_DATA = """
    data:
      source: synthetic
      synthetic:
        datasets: 3
        rows: 300
        assets: 4
        seed: 11
"""


def _write_config(root: Path, body: str) -> Path:
    config_path = root / "config.yaml"
    config_path.write_text(
        textwrap.dedent(SYNTHETIC_DATA + body).strip() + "\n",
        encoding="utf-8",
    )
    return config_path


class TestCliIntegration(unittest.TestCase):
    """Validate the backtest and leaderboard commands end to end."""

    def test_backtest_command(self) -> None:
        runner = CliRunner()
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = _write_config(
                Path(temp_dir),
                """
    allocation:
      module: portfolio_backtest.strategies.examples.uniform
    """,
            )

            result = runner.invoke(app, ["backtest", "--config", str(config_path)])

            self.assertEqual(result.exit_code, 0, msg=result.output)
            self.assertIn("allocation=uniform", result.output)
            self.assertIn("datasets=dataset_1,dataset_2,dataset_3", result.output)
            self.assertIn("sharpe ratio (median)=", result.output)
            self.assertIn("failure_ratio=0.000000", result.output)

    def test_leaderboard_command(self) -> None:
        runner = CliRunner()
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            submissions_dir = root / "submissions"
            submissions_dir.mkdir()
            (submissions_dir / "equal.py").write_text(
                textwrap.dedent("""
                    import pandas as pd

                    SUBMISSION_NAME = "Equal Weights"


                    def allocate(prices):
                        return pd.Series(1.0 / prices.shape[1], index=prices.columns)
                    """),
                encoding="utf-8",
            )
            (submissions_dir / "levered.py").write_text(
                "def allocate(prices):\n    return [0.5] * prices.shape[1]\n",
                encoding="utf-8",
            )
            (submissions_dir / "broken.py").write_text("def allocate(\n", encoding="utf-8")
            config_path = _write_config(
                root,
                """
    leaderboard:
      submissions_dir: submissions
    runtime:
      max_workers: 2
    """,
            )

            result = runner.invoke(app, ["leaderboard", "--config", str(config_path)])

            self.assertEqual(result.exit_code, 0, msg=result.output)
            self.assertIn("Equal Weights", result.output)
            self.assertIn("levered", result.output)
            self.assertIn("load_error[broken]=", result.output)
            lines = result.output.splitlines()
            equal_line = next(index for index, line in enumerate(lines) if "Equal Weights" in line)
            levered_line = next(
                index for index, line in enumerate(lines) if line.startswith("levered")
            )
            self.assertLess(equal_line, levered_line)


class TestCliFailures(unittest.TestCase):
    """Validate typed exit codes."""

    def test_missing_config_returns_config_exit_code(self) -> None:
        runner = CliRunner()
        with tempfile.TemporaryDirectory() as temp_dir:
            missing_path = Path(temp_dir) / "missing.yaml"
            result = runner.invoke(app, ["backtest", "--config", str(missing_path)])
            self.assertEqual(result.exit_code, 2, msg=result.output)

    def test_unknown_allocation_module_returns_strategy_exit_code(self) -> None:
        runner = CliRunner()
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = _write_config(
                Path(temp_dir),
                """
    allocation:
      module: portfolio_backtest.strategies.examples.does_not_exist
    """,
            )
            result = runner.invoke(app, ["backtest", "--config", str(config_path)])
            self.assertEqual(result.exit_code, 6, msg=result.output)

    def test_too_short_history_returns_backtest_exit_code(self) -> None:
        runner = CliRunner()
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = _write_config(
                Path(temp_dir),
                """
    backtest:
      t_rolling_window: 400
    """,
            )
            result = runner.invoke(app, ["backtest", "--config", str(config_path)])
            self.assertEqual(result.exit_code, 7, msg=result.output)

    def test_leaderboard_without_submissions_dir_returns_config_exit_code(self) -> None:
        runner = CliRunner()
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = _write_config(Path(temp_dir), "")
            result = runner.invoke(app, ["leaderboard", "--config", str(config_path)])
            self.assertEqual(result.exit_code, 2, msg=result.output)


if __name__ == "__main__":
    unittest.main()
