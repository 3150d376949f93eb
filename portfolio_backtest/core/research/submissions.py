"""Discovery of submitted allocation functions in a directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from portfolio_backtest.core.research.allocation import (
    AllocateFn,
    load_module_from_file,
    resolve_allocate,
)
from portfolio_backtest.core.utils.errors import StrategyError
from portfolio_backtest.core.utils.logging import get_logger

_LOGGER_NAME = "portfolio_backtest.core.research.submissions"


@dataclass(frozen=True)
class Submission:
    """One loaded submission.

    ``identifier`` comes from ``SUBMISSION_ID`` (default: file stem) and
    ``name`` from ``SUBMISSION_NAME`` (default: identifier).
    """

    identifier: str
    name: str
    path: Path
    allocate: AllocateFn


@dataclass(frozen=True)
class SubmissionDiscovery:
    """Loaded submissions plus the files that could not be loaded."""

    submissions: tuple[Submission, ...]
    load_errors: dict[str, str] = field(default_factory=dict)

    @property
    def allocations(self) -> dict[str, AllocateFn]:
        return {submission.identifier: submission.allocate for submission in self.submissions}

    @property
    def names(self) -> dict[str, str]:
        return {submission.identifier: submission.name for submission in self.submissions}


def _string_attribute(module: object, attribute: str, default: str, source: str) -> str:
    """Read an optional non-empty string attribute."""
    value = getattr(module, attribute, default)
    if not isinstance(value, str) or not value.strip():
        raise StrategyError(f"Submission '{source}' has an invalid {attribute}; expected a string.")
    return value.strip()


def load_submission(path: Path) -> Submission:
    """
    Load one submission file.

    Args:
        path: Python file defining ``allocate(prices)``.

    Returns:
        Loaded submission.
    """
    module = load_module_from_file(path, prefix="portfolio_backtest_submission")
    allocate = resolve_allocate(module, path.name)
    identifier = _string_attribute(module, "SUBMISSION_ID", path.stem, path.name)
    name = _string_attribute(module, "SUBMISSION_NAME", identifier, path.name)
    return Submission(identifier=identifier, name=name, path=path, allocate=allocate)


def discover_submissions(directory: Path, pattern: str = "*.py") -> SubmissionDiscovery:
    """
    Load every submission file in a directory.

    A file that fails to load is recorded in ``load_errors`` (keyed by file
    stem) and discovery continues with the remaining files. Files starting
    with an underscore are skipped.

    Args:
        directory: Directory holding submission files.
        pattern: Glob pattern for submission files.

    Returns:
        Discovered submissions in file-name order.
    """
    resolved_dir = directory.expanduser().resolve()
    if not resolved_dir.is_dir():
        raise StrategyError(f"Submissions directory not found: {resolved_dir}")

    logger = get_logger(_LOGGER_NAME)
    submissions: list[Submission] = []
    load_errors: dict[str, str] = {}
    seen: set[str] = set()
    for path in sorted(resolved_dir.glob(pattern)):
        if not path.is_file() or path.name.startswith("_"):
            continue
        try:
            submission = load_submission(path)
            if submission.identifier in seen:
                raise StrategyError(
                    f"Duplicate submission identifier '{submission.identifier}' in {path.name}."
                )
        except StrategyError as exc:
            logger.warning("Skipping submission %s: %s", path.name, exc)
            load_errors[path.stem] = str(exc)
            continue
        seen.add(submission.identifier)
        submissions.append(submission)

    logger.info(
        "Discovered %d submission(s) in %s (%d failed to load)",
        len(submissions),
        resolved_dir,
        len(load_errors),
    )
    return SubmissionDiscovery(submissions=tuple(submissions), load_errors=load_errors)
