"""Logging helpers."""

from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _parse_level(level: str) -> int:
    """Parse a logging level string into a logging numeric level."""
    resolved_level = getattr(logging, level.upper(), None)
    if not isinstance(resolved_level, int):
        raise ValueError(f"Invalid logging level: {level}")
    return resolved_level


def configure_logging(level: str = "INFO") -> None:
    """
    Configure process-wide logging for CLI runs.

    Args:
        level: Logging level name, for example ``INFO`` or ``DEBUG``.
    """
    logging.basicConfig(
        level=_parse_level(level),
        format=_LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S%z",
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Return a named logger."""
    return logging.getLogger(name)
