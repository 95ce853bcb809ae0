"""
CLI (kindle/cli)

Tests the boot and hooks commands through click's CliRunner.
"""

import os

import pytest
from click.testing import CliRunner

from kindle import __version__
from kindle.cli.__main__ import cli

from tests.conftest import write_hook


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("KINDLE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def runner():
    return CliRunner()


def write_config(base_dir, text):
    config_dir = base_dir / "config"
    config_dir.mkdir(exist_ok=True)
    (config_dir / "config.default.yaml").write_text(text)


class TestCliGroup:

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "boot" in result.output
        assert "hooks" in result.output


class TestHooksCommand:

    def test_lists_units_in_load_order(self, runner, tmp_path):
        write_hook(tmp_path / "plugins" / "session", "def setup(context): pass\n")
        (tmp_path / "plugins" / "cache").mkdir(parents=True)
        write_config(tmp_path, "name: svc\nunits:\n  - plugins/session\n  - plugins/cache\n")

        result = runner.invoke(cli, ["hooks", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "svc (app)" in result.output
        lines = result.output.splitlines()
        assert any(line.lstrip().startswith("1.") and "session" in line for line in lines)
        assert any(line.lstrip().startswith("2.") and "cache" in line for line in lines)
        assert "no app.py" in result.output

    def test_hooks_never_runs_hook_code(self, runner, tmp_path):
        write_hook(tmp_path, """
            from pathlib import Path
            (Path(__file__).parent / "marker").write_text("ran")
        """)
        result = runner.invoke(cli, ["hooks", str(tmp_path)])
        assert result.exit_code == 0
        assert not (tmp_path / "marker").exists()

    def test_missing_unit(self, runner, tmp_path):
        write_config(tmp_path, "units:\n  - plugins/ghost\n")
        result = runner.invoke(cli, ["hooks", str(tmp_path)])
        assert result.exit_code == 1
        assert "CONFIG_INVALID" in result.output


class TestBootCommand:

    def test_boot_ready(self, runner, tmp_path):
        write_hook(tmp_path, """
            import asyncio

            def setup(context):
                asyncio.get_running_loop().call_later(0.01, context.register("client"))
        """)
        write_config(tmp_path, "name: svc\n")

        result = runner.invoke(cli, ["boot", str(tmp_path), "--wait", "5"])

        assert result.exit_code == 0, result.output
        assert "svc is ready" in result.output

    def test_boot_agent_kind(self, runner, tmp_path):
        write_hook(tmp_path, "def setup(context): raise RuntimeError('app hook ran')\n", kind="app")
        write_hook(tmp_path, "def setup(context): pass\n", kind="agent")

        result = runner.invoke(cli, ["boot", str(tmp_path), "--kind", "agent", "--wait", "5"])
        assert result.exit_code == 0, result.output

    def test_boot_failure(self, runner, tmp_path):
        write_hook(tmp_path, "def setup(context): raise RuntimeError('no database')\n")

        result = runner.invoke(cli, ["boot", str(tmp_path)])

        assert result.exit_code == 1
        assert "Bootstrap failed" in result.output
        assert "no database" in result.output

    def test_boot_not_ready(self, runner, tmp_path):
        write_hook(tmp_path, "def setup(context): context.register('never')\n")
        write_config(tmp_path, "name: svc\n")

        result = runner.invoke(cli, ["boot", str(tmp_path), "--wait", "0.05"])

        assert result.exit_code == 1
        assert "svc not ready after 0.05 seconds" in result.output
        assert "never" in result.output

    def test_invalid_base_dir(self, runner, tmp_path):
        result = runner.invoke(cli, ["boot", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "base_dir" in result.output

    def test_invalid_timeout(self, runner, tmp_path):
        result = runner.invoke(cli, ["boot", str(tmp_path), "--timeout", "0"])
        assert result.exit_code == 1
        assert "ready.timeout" in result.output
