"""
Config system - Layered configuration for a bootstrap.

Loads and merges configuration with precedence (later wins):
config/config.default.* > config/config.<env>.* > .env file > environment > overrides
"""

from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass, field
from pathlib import Path
import os
import json

import yaml
from dotenv import dotenv_values

from .faults import ConfigurationFault
from .units import HookKind


DEFAULT_READY_TIMEOUT = 10.0
CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Merge order (later overrides earlier):
    1. config/config.default.{yaml,yml,json}
    2. config/config.{env}.{yaml,yml,json}
    3. .env file (KINDLE_* keys only)
    4. Environment variables (KINDLE_* prefix)
    5. Manual overrides
    """

    def __init__(self, env_prefix: str = "KINDLE_"):
        self.env_prefix = env_prefix
        self.env = "local"
        self.config_data: Dict[str, Any] = {}
        self.sources: List[str] = []

    @classmethod
    def load(
        cls,
        base_dir: Union[str, Path],
        env: Optional[str] = None,
        env_prefix: str = "KINDLE_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration for the application rooted at base_dir.

        Args:
            base_dir: Application root; config files live in base_dir/config
            env: Environment name (defaults to $KINDLE_ENV, then "local")
            env_prefix: Prefix for environment variables
            env_file: Path to .env file (relative paths resolve against base_dir)
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)
        base = Path(base_dir)
        loader.env = env or os.environ.get(f"{env_prefix}ENV") or "local"

        config_dir = base / "config"
        for stem in ("config.default", f"config.{loader.env}"):
            for suffix in CONFIG_SUFFIXES:
                path = config_dir / f"{stem}{suffix}"
                if path.is_file():
                    loader._load_file(path)

        if env_file:
            env_path = Path(env_file)
            if not env_path.is_absolute():
                env_path = base / env_path
            loader._load_env_file(env_path)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_file(self, path: Path):
        """Load config from a YAML or JSON file."""
        with open(path) as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)

        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigurationFault(str(path), "top level must be a mapping")

        self._merge_dict(self.config_data, data)
        self.sources.append(str(path))

    def _load_env_file(self, path: Path):
        """Load KINDLE_* keys from a .env file."""
        if not path.exists():
            return

        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)
        self.sources.append(str(path))

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix) and key != f"{self.env_prefix}ENV":
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert KINDLE_READY__TIMEOUT to {"ready": {"timeout": ...}}."""
        key = key[len(self.env_prefix):]

        # Double underscore separates nesting levels
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self.config_data

        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default

        return current

    def to_dict(self) -> dict:
        """Export all config as dictionary."""
        return self.config_data.copy()


@dataclass
class BootConfig:
    """
    Validated construction arguments for a LifecycleCoordinator.

    Raises ConfigurationFault on construction when anything is malformed;
    a coordinator is never built from an invalid config.
    """

    base_dir: Path
    kind: HookKind
    name: Optional[str] = None
    ready_timeout: float = DEFAULT_READY_TIMEOUT
    units: List[str] = field(default_factory=list)
    log_level: str = "INFO"
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.base_dir, (str, Path)) or str(self.base_dir) == "":
            raise ConfigurationFault("base_dir", "required, and must be a string or path")

        self.base_dir = Path(self.base_dir)
        if not self.base_dir.exists():
            raise ConfigurationFault("base_dir", f"directory {self.base_dir} does not exist")
        if not self.base_dir.is_dir():
            raise ConfigurationFault("base_dir", f"{self.base_dir} is not a directory")

        self.kind = HookKind.parse(self.kind)

        if self.name is None:
            self.name = self.base_dir.resolve().name

        if isinstance(self.ready_timeout, bool) or not isinstance(self.ready_timeout, (int, float)):
            raise ConfigurationFault("ready.timeout", f"expected a number, got {self.ready_timeout!r}")
        if self.ready_timeout <= 0:
            raise ConfigurationFault("ready.timeout", "must be greater than zero")
        self.ready_timeout = float(self.ready_timeout)

        if isinstance(self.units, str) or not isinstance(self.units, (list, tuple)):
            raise ConfigurationFault("units", "must be a list of directories")
        self.units = [str(u) for u in self.units]

    @classmethod
    def from_loader(
        cls,
        loader: ConfigLoader,
        base_dir: Union[str, Path],
        kind: Any,
        **overrides: Any,
    ) -> "BootConfig":
        """
        Build a BootConfig from loaded configuration.

        Keyword overrides (e.g. ready_timeout from a CLI flag) win over
        anything the loader found.
        """
        data = loader.to_dict()
        known = {"name", "ready", "units", "logging"}

        values: Dict[str, Any] = {
            "base_dir": base_dir,
            "kind": kind,
            "name": loader.get("name"),
            "ready_timeout": loader.get("ready.timeout", DEFAULT_READY_TIMEOUT),
            "units": loader.get("units", []),
            "log_level": str(loader.get("logging.level", "INFO")).upper(),
            "extra": {k: v for k, v in data.items() if k not in known},
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def to_dict(self) -> dict:
        return {
            "base_dir": str(self.base_dir),
            "kind": self.kind.value,
            "name": self.name,
            "ready_timeout": self.ready_timeout,
            "units": list(self.units),
            "log_level": self.log_level,
        }
