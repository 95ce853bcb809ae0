"""
Config System (config.py, units.py)

Tests BootConfig validation, ConfigLoader layering and StaticUnitResolver.
"""

import pytest

from kindle.config import BootConfig, ConfigLoader, DEFAULT_READY_TIMEOUT
from kindle.faults import ConfigurationFault
from kindle.units import HookKind, StaticUnitResolver, Unit


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    import os
    for key in list(os.environ):
        if key.startswith("KINDLE_"):
            monkeypatch.delenv(key)


# ============================================================================
# HookKind
# ============================================================================

class TestHookKind:

    def test_filenames(self):
        assert HookKind.APP.filename == "app.py"
        assert HookKind.AGENT.filename == "agent.py"

    @pytest.mark.parametrize("value,expected", [
        ("app", HookKind.APP),
        ("APP", HookKind.APP),
        ("application", HookKind.APP),
        ("agent", HookKind.AGENT),
        (HookKind.AGENT, HookKind.AGENT),
    ])
    def test_parse(self, value, expected):
        assert HookKind.parse(value) is expected

    @pytest.mark.parametrize("value", ["worker", "", None, 3])
    def test_parse_invalid(self, value):
        with pytest.raises(ConfigurationFault) as exc:
            HookKind.parse(value)
        assert exc.value.key == "kind"


# ============================================================================
# BootConfig
# ============================================================================

class TestBootConfig:

    def test_defaults(self, tmp_path):
        config = BootConfig(base_dir=str(tmp_path), kind="app")
        assert config.base_dir == tmp_path
        assert config.kind is HookKind.APP
        assert config.name == tmp_path.name
        assert config.ready_timeout == DEFAULT_READY_TIMEOUT
        assert config.units == []

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationFault) as exc:
            BootConfig(base_dir=tmp_path / "nope", kind="app")
        assert exc.value.key == "base_dir"

    def test_file_is_not_directory(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x")
        with pytest.raises(ConfigurationFault):
            BootConfig(base_dir=target, kind="app")

    @pytest.mark.parametrize("base_dir", [None, "", 42])
    def test_base_dir_type(self, base_dir):
        with pytest.raises(ConfigurationFault):
            BootConfig(base_dir=base_dir, kind="app")

    def test_unspecified_kind(self, tmp_path):
        with pytest.raises(ConfigurationFault):
            BootConfig(base_dir=tmp_path, kind=None)

    @pytest.mark.parametrize("timeout", [0, -1, True, "10"])
    def test_invalid_timeout(self, tmp_path, timeout):
        with pytest.raises(ConfigurationFault) as exc:
            BootConfig(base_dir=tmp_path, kind="app", ready_timeout=timeout)
        assert exc.value.key == "ready.timeout"

    def test_int_timeout_becomes_float(self, tmp_path):
        config = BootConfig(base_dir=tmp_path, kind="agent", ready_timeout=3)
        assert config.ready_timeout == 3.0
        assert isinstance(config.ready_timeout, float)

    def test_units_must_be_list(self, tmp_path):
        with pytest.raises(ConfigurationFault):
            BootConfig(base_dir=tmp_path, kind="app", units="plugins/a")

    def test_to_dict(self, tmp_path):
        config = BootConfig(base_dir=tmp_path, kind="agent", name="svc")
        data = config.to_dict()
        assert data["kind"] == "agent"
        assert data["name"] == "svc"
        assert data["base_dir"] == str(tmp_path)


# ============================================================================
# ConfigLoader
# ============================================================================

class TestConfigLoader:

    def _write(self, tmp_path, name, text):
        config_dir = tmp_path / "config"
        config_dir.mkdir(exist_ok=True)
        (config_dir / name).write_text(text)

    def test_empty(self, tmp_path):
        loader = ConfigLoader.load(tmp_path)
        assert loader.to_dict() == {}
        assert loader.env == "local"

    def test_default_then_env_file(self, tmp_path):
        self._write(tmp_path, "config.default.yaml", "name: svc\nready:\n  timeout: 10\n  extra: 1\n")
        self._write(tmp_path, "config.prod.yaml", "ready:\n  timeout: 30\n")

        loader = ConfigLoader.load(tmp_path, env="prod")
        assert loader.get("name") == "svc"
        assert loader.get("ready.timeout") == 30
        assert loader.get("ready.extra") == 1
        assert len(loader.sources) == 2

    def test_json_config(self, tmp_path):
        self._write(tmp_path, "config.default.json", '{"units": ["plugins/a"]}')
        loader = ConfigLoader.load(tmp_path)
        assert loader.get("units") == ["plugins/a"]

    def test_env_selected_from_environment(self, tmp_path, monkeypatch):
        self._write(tmp_path, "config.staging.yaml", "name: staged\n")
        monkeypatch.setenv("KINDLE_ENV", "staging")
        loader = ConfigLoader.load(tmp_path)
        assert loader.env == "staging"
        assert loader.get("name") == "staged"
        assert loader.get("env") is None

    def test_environment_variables(self, tmp_path, monkeypatch):
        monkeypatch.setenv("KINDLE_READY__TIMEOUT", "2.5")
        monkeypatch.setenv("KINDLE_LOGGING__LEVEL", "debug")
        loader = ConfigLoader.load(tmp_path)
        assert loader.get("ready.timeout") == 2.5
        assert loader.get("logging.level") == "debug"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("KINDLE_NAME=from-dotenv\nOTHER=ignored\n")
        loader = ConfigLoader.load(tmp_path, env_file=".env")
        assert loader.get("name") == "from-dotenv"
        assert loader.get("other") is None

    def test_missing_dotenv_file_is_ignored(self, tmp_path):
        loader = ConfigLoader.load(tmp_path, env_file=".env.missing")
        assert loader.to_dict() == {}

    def test_overrides_win(self, tmp_path, monkeypatch):
        self._write(tmp_path, "config.default.yaml", "name: svc\n")
        monkeypatch.setenv("KINDLE_NAME", "env")
        loader = ConfigLoader.load(tmp_path, overrides={"name": "override"})
        assert loader.get("name") == "override"

    def test_non_mapping_file(self, tmp_path):
        self._write(tmp_path, "config.default.yaml", "- a\n- b\n")
        with pytest.raises(ConfigurationFault):
            ConfigLoader.load(tmp_path)

    def test_parse_value(self):
        loader = ConfigLoader()
        assert loader._parse_value("true") is True
        assert loader._parse_value("no") is False
        assert loader._parse_value("12") == 12
        assert loader._parse_value("1.5") == 1.5
        assert loader._parse_value('["a"]') == ["a"]
        assert loader._parse_value("plain") == "plain"


class TestBootConfigFromLoader:

    def test_reads_known_keys(self, tmp_path):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "config.default.yaml").write_text(
            "name: svc\nready:\n  timeout: 4\nlogging:\n  level: debug\nfeature: on\n"
        )
        loader = ConfigLoader.load(tmp_path)
        config = BootConfig.from_loader(loader, tmp_path, "agent")
        assert config.name == "svc"
        assert config.ready_timeout == 4.0
        assert config.log_level == "DEBUG"
        assert config.kind is HookKind.AGENT
        assert config.extra == {"feature": True}

    def test_keyword_overrides(self, tmp_path):
        loader = ConfigLoader.load(tmp_path, overrides={"ready": {"timeout": 4}})
        config = BootConfig.from_loader(loader, tmp_path, "app", ready_timeout=0.5)
        assert config.ready_timeout == 0.5

    def test_none_override_is_ignored(self, tmp_path):
        loader = ConfigLoader.load(tmp_path, overrides={"ready": {"timeout": 4}})
        config = BootConfig.from_loader(loader, tmp_path, "app", ready_timeout=None)
        assert config.ready_timeout == 4.0

    def test_invalid_timeout_from_file(self, tmp_path):
        loader = ConfigLoader.load(tmp_path, overrides={"ready": {"timeout": "soon"}})
        with pytest.raises(ConfigurationFault):
            BootConfig.from_loader(loader, tmp_path, "app")


# ============================================================================
# Units
# ============================================================================

class TestStaticUnitResolver:

    def test_preserves_order(self, tmp_path):
        resolver = StaticUnitResolver(["c", tmp_path / "a", Unit(tmp_path / "b", name="bee")])
        names = [u.name for u in resolver.get_load_units()]
        assert names == ["c", "a", "bee"]
        assert len(resolver) == 3

    def test_returns_copy(self, tmp_path):
        resolver = StaticUnitResolver([tmp_path])
        resolver.get_load_units().clear()
        assert len(resolver.get_load_units()) == 1

    def test_from_config(self, tmp_path):
        (tmp_path / "plugins" / "session").mkdir(parents=True)
        (tmp_path / "plugins" / "cache").mkdir(parents=True)
        config = BootConfig(base_dir=tmp_path, kind="app", units=["plugins/session", "plugins/cache"])

        units = StaticUnitResolver.from_config(config).get_load_units()
        assert [u.path for u in units] == [
            tmp_path / "plugins" / "session",
            tmp_path / "plugins" / "cache",
            tmp_path,
        ]

    def test_from_config_missing_unit(self, tmp_path):
        config = BootConfig(base_dir=tmp_path, kind="app", units=["plugins/ghost"])
        with pytest.raises(ConfigurationFault) as exc:
            StaticUnitResolver.from_config(config)
        assert exc.value.key == "units"

    def test_unit_is_immutable(self, tmp_path):
        unit = Unit(tmp_path)
        with pytest.raises(Exception):
            unit.path = tmp_path / "other"
