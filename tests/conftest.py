"""
Shared test fixtures and helpers for the Kindle test suite.
"""

import textwrap
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import pytest

from kindle.config import BootConfig
from kindle.loader import Hook
from kindle.units import HookKind, Unit


# ============================================================================
# Hook helpers
# ============================================================================


class FakeHookResolver:
    """
    In-memory hook resolver.

    Maps unit names to callables; units without an entry have no hook.
    Records every resolve() call so tests can check resolution order.
    """

    def __init__(self, hooks: Optional[Dict[str, Callable[[Any], Any]]] = None):
        self.hooks = hooks or {}
        self.resolved: list = []

    def resolve(self, unit: Unit, kind: HookKind) -> Optional[Hook]:
        self.resolved.append(unit.name)
        func = self.hooks.get(unit.name)
        if func is None:
            return None
        return Hook(unit=unit, kind=kind, func=func, origin=f"<memory:{unit.name}>")


def write_hook(directory: Path, source: str, kind: str = "app") -> Path:
    """Write a hook file into a unit directory, creating it if needed."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{kind}.py"
    path.write_text(textwrap.dedent(source))
    return path


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def make_config(tmp_path) -> Callable[..., BootConfig]:
    """Factory for BootConfig rooted at tmp_path."""

    def _make(**overrides: Any) -> BootConfig:
        values = {"base_dir": tmp_path, "kind": "app"}
        values.update(overrides)
        return BootConfig(**values)

    return _make


@pytest.fixture
def units(tmp_path):
    """Three unit descriptors: one, two, three."""
    return [Unit(tmp_path / name) for name in ("one", "two", "three")]
