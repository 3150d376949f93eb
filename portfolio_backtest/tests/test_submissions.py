"""Tests for allocation module loading and submission discovery."""

from __future__ import annotations

import tempfile
import textwrap
import unittest
from pathlib import Path

from portfolio_backtest.core.research.allocation import load_allocation
from portfolio_backtest.core.research.submissions import discover_submissions, load_submission
from portfolio_backtest.core.utils.errors import StrategyError

UNIFORM_SOURCE = textwrap.dedent("""
    import pandas as pd

    SUBMISSION_NAME = "Team Uniform"


    def allocate(prices):
        return pd.Series(1.0 / prices.shape[1], index=prices.columns)
    """)


class TestAllocationLoading(unittest.TestCase):
    """Validate loading of allocation modules by import path."""

    def test_example_modules_load(self) -> None:
        uniform = load_allocation("portfolio_backtest.strategies.examples.uniform")
        gmvp = load_allocation("portfolio_backtest.strategies.examples.gmvp")

        self.assertEqual(uniform.allocation_name, "uniform")
        self.assertEqual(gmvp.allocation_name, "gmvp")
        self.assertTrue(callable(uniform.allocate))

    def test_missing_module_raises_strategy_error(self) -> None:
        with self.assertRaises(StrategyError):
            load_allocation("portfolio_backtest.strategies.examples.does_not_exist")


class TestSubmissionDiscovery(unittest.TestCase):
    """Validate directory discovery, naming and load-error bookkeeping."""

    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self._temp_dir.name)

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def _write(self, name: str, source: str) -> Path:
        path = self.root / name
        path.write_text(source, encoding="utf-8")
        return path

    def test_load_submission_defaults(self) -> None:
        path = self._write("plain.py", "def allocate(prices):\n    return [1.0]\n")

        submission = load_submission(path)

        self.assertEqual(submission.identifier, "plain")
        self.assertEqual(submission.name, "plain")
        self.assertEqual(submission.path, path)

    def test_discovery_records_load_errors_and_continues(self) -> None:
        self._write("good.py", UNIFORM_SOURCE)
        self._write("broken.py", "def allocate(prices)\n    return None\n")
        self._write("missing.py", "ALLOCATION_NAME = 'nothing here'\n")
        self._write("raising.py", "raise RuntimeError('import-time failure')\n")
        self._write("_shared.py", "raise RuntimeError('never imported')\n")
        self._write("notes.txt", "not python")

        discovery = discover_submissions(self.root)

        self.assertEqual([submission.identifier for submission in discovery.submissions], ["good"])
        self.assertEqual(discovery.names, {"good": "Team Uniform"})
        self.assertEqual(sorted(discovery.load_errors), ["broken", "missing", "raising"])
        self.assertIn("allocate", discovery.load_errors["missing"])
        self.assertIn("import-time failure", discovery.load_errors["raising"])
        self.assertEqual(list(discovery.allocations), ["good"])

    def test_explicit_identifier_and_duplicates(self) -> None:
        self._write("a_first.py", "SUBMISSION_ID = 'team'\n" + UNIFORM_SOURCE)
        self._write("b_second.py", "SUBMISSION_ID = 'team'\n" + UNIFORM_SOURCE)

        discovery = discover_submissions(self.root)

        self.assertEqual([submission.identifier for submission in discovery.submissions], ["team"])
        self.assertEqual(discovery.submissions[0].path.name, "a_first.py")
        self.assertIn("Duplicate", discovery.load_errors["b_second"])

    def test_invalid_name_attribute_is_a_load_error(self) -> None:
        self._write(
            "numbered.py",
            "SUBMISSION_NAME = 42\n\n\ndef allocate(prices):\n    return [1.0]\n",
        )

        discovery = discover_submissions(self.root)

        self.assertEqual(discovery.submissions, ())
        self.assertIn("SUBMISSION_NAME", discovery.load_errors["numbered"])

    def test_missing_directory_raises(self) -> None:
        with self.assertRaises(StrategyError):
            discover_submissions(self.root / "absent")


if __name__ == "__main__":
    unittest.main()
