"""Allocation function loading utilities."""

from __future__ import annotations

import importlib.util
import re
import sys
from collections.abc import Callable
from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from types import ModuleType
from typing import Any

import pandas as pd

from portfolio_backtest.core.utils.errors import StrategyError

AllocateFn = Callable[[pd.DataFrame], Any]

_MODULE_NAME_PATTERN = re.compile(r"[^A-Za-z0-9_]+")


@dataclass(frozen=True)
class AllocationDefinition:
    """Validated allocation module interface."""

    allocation_name: str
    allocate: AllocateFn


def _load_module(module_path: str) -> ModuleType:
    """Import an allocation module by dotted path."""
    try:
        return import_module(module_path)
    except Exception as exc:  # pragma: no cover - import errors are environment-dependent.
        raise StrategyError(f"Unable to import allocation module '{module_path}': {exc}") from exc


def load_module_from_file(path: Path, prefix: str = "portfolio_backtest_user") -> ModuleType:
    """
    Execute a Python source file as a fresh module.

    Args:
        path: Source file path.
        prefix: Module name prefix; the sanitized file stem is appended.

    Returns:
        Executed module.
    """
    resolved_path = path.expanduser().resolve()
    if not resolved_path.is_file():
        raise StrategyError(f"Allocation file not found: {resolved_path}")

    module_name = f"{prefix}_{_MODULE_NAME_PATTERN.sub('_', resolved_path.stem)}"
    spec = importlib.util.spec_from_file_location(module_name, resolved_path)
    if spec is None or spec.loader is None:
        raise StrategyError(f"Cannot build an import spec for {resolved_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        raise StrategyError(f"Failed to execute {resolved_path.name}: {exc}") from exc
    return module


def resolve_allocate(module: ModuleType, source: str) -> AllocateFn:
    """Return the module's callable ``allocate`` or raise ``StrategyError``."""
    allocate = getattr(module, "allocate", None)
    if not callable(allocate):
        raise StrategyError(f"Allocation module '{source}' is missing callable allocate().")
    return allocate


def load_allocation(module_path: str) -> AllocationDefinition:
    """
    Load and validate an allocation module.

    Required module attributes:
    - ``ALLOCATION_NAME: str``
    - ``allocate(prices: pd.DataFrame) -> weights``

    Args:
        module_path: Python import path for the allocation module.

    Returns:
        Validated allocation definition.
    """
    module = _load_module(module_path)

    allocation_name = getattr(module, "ALLOCATION_NAME", None)
    if not isinstance(allocation_name, str) or not allocation_name.strip():
        raise StrategyError(
            f"Allocation module '{module_path}' is missing a valid ALLOCATION_NAME string."
        )
    return AllocationDefinition(
        allocation_name=allocation_name.strip(),
        allocate=resolve_allocate(module, module_path),
    )
