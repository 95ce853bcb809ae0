"""
Load units - the ordered extension directories a bootstrap walks.

A unit is just a directory reference. Whoever resolves the list owns the
ordering; everything downstream treats it as authoritative.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Union

from .faults import ConfigurationFault


class HookKind(str, Enum):
    """Context kinds a unit can provide a hook for."""
    APP = "app"
    AGENT = "agent"

    @property
    def filename(self) -> str:
        """Well-known hook file for this kind inside a unit."""
        return f"{self.value}.py"

    @classmethod
    def parse(cls, value: Any) -> "HookKind":
        """
        Parse a kind from user input.

        Accepts enum members, "app", "agent" and the long form "application".

        Raises:
            ConfigurationFault: If the value names no known kind
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized == "application":
                return cls.APP
            for member in cls:
                if member.value == normalized:
                    return member
        raise ConfigurationFault("kind", f"expected 'app' or 'agent', got {value!r}")


@dataclass(frozen=True)
class Unit:
    """Directory reference contributing optional hooks."""

    path: Path
    name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "path", Path(self.path))
        if self.name is None:
            object.__setattr__(self, "name", self.path.name)

    def __repr__(self) -> str:
        return f"Unit({self.name!r}, {str(self.path)!r})"


class UnitResolver(Protocol):
    """Supplies the ordered units for a bootstrap."""

    def get_load_units(self) -> Sequence[Unit]:
        ...


class StaticUnitResolver:
    """
    Resolver over an explicit, already-ordered list of units.

    Usage:
        resolver = StaticUnitResolver(["plugins/session", "plugins/cache", "."])
        for unit in resolver.get_load_units():
            ...
    """

    def __init__(self, units: Iterable[Union[str, Path, Unit]]):
        self._units: List[Unit] = [
            unit if isinstance(unit, Unit) else Unit(Path(unit))
            for unit in units
        ]

    @classmethod
    def from_config(cls, config: Any) -> "StaticUnitResolver":
        """
        Build the unit list from a BootConfig.

        Configured units come first, in order, resolved against the base
        directory. The base directory itself is always the last unit.
        """
        base_dir = Path(config.base_dir)
        units: List[Unit] = []
        for entry in config.units:
            path = Path(entry)
            if not path.is_absolute():
                path = base_dir / path
            if not path.is_dir():
                raise ConfigurationFault("units", f"unit directory {path} does not exist")
            units.append(Unit(path))
        units.append(Unit(base_dir))
        return cls(units)

    def get_load_units(self) -> List[Unit]:
        return list(self._units)

    def __len__(self) -> int:
        return len(self._units)
