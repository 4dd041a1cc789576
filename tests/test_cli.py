"""Tests for CLI commands."""

import json
import os
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from treetop import __version__
from treetop.cli import main


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_args(tmp_path: Path) -> list[str]:
    """Point the CLI at a config file that does not exist."""
    return ["--config", str(tmp_path / "config.toml")]


@pytest.fixture
def exited_pid() -> int:
    """Pid of a child that has already been reaped."""
    proc = subprocess.Popen(["true"])
    proc.wait()
    return proc.pid


def test_version(runner: CliRunner):
    """--version prints the package version."""
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_text_output(runner: CliRunner, config_args: list[str]):
    """A one-shot run prints the header and the root row."""
    pid = os.getpid()
    result = runner.invoke(main, [str(pid), "-s", *config_args])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0].startswith("=== treetop")
    assert f"PID {pid}" in lines[0]
    assert lines[1].startswith("+ ")
    assert lines[2].startswith("* ")


def test_json_output(runner: CliRunner, config_args: list[str]):
    """--json prints one compact array."""
    pid = os.getpid()
    result = runner.invoke(main, [str(pid), "--single", "--json", *config_args])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert len(data) == 5
    assert data[1] == 0
    assert data[4][0][0] == pid


def test_missing_root_text(runner: CliRunner, config_args: list[str], exited_pid: int):
    """A missing root is a labelled fatal error."""
    result = runner.invoke(main, [str(exited_pid), *config_args])
    assert result.exit_code == 1
    assert "Error" in result.output
    assert f"Process {exited_pid} doesn't exist!" in result.output


def test_missing_root_json(runner: CliRunner, config_args: list[str], exited_pid: int):
    """A missing root in JSON mode exits cleanly without output."""
    result = runner.invoke(main, [str(exited_pid), "--json", *config_args])
    assert result.exit_code == 0
    assert result.output == ""


def test_permission_denied(runner: CliRunner, config_args: list[str]):
    """An unreadable memory map is fatal with its own exit code."""
    from treetop.errors import PermissionDenied

    with patch("treetop.kernel.PsutilReader.memory_pss_mb", side_effect=PermissionDenied(7)):
        result = runner.invoke(main, [str(os.getpid()), "-s", *config_args])
    assert result.exit_code == 3
    assert "permission" in result.output


def test_permission_denied_ignored(runner: CliRunner, config_args: list[str]):
    """-i reports zero memory instead of failing."""
    from treetop.errors import PermissionDenied

    with patch("treetop.kernel.PsutilReader.memory_pss_mb", side_effect=PermissionDenied(7)):
        result = runner.invoke(main, [str(os.getpid()), "-s", "-i", "-j", *config_args])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)[2] == 0.0


def test_limit_breach_exits_successfully(runner: CliRunner, config_args: list[str]):
    """A breached ceiling exits 0 without the monitor signalling itself."""
    with patch("treetop.enforcer.PsutilSignalSender.send") as send:
        result = runner.invoke(main, [str(os.getpid()), "-s", "-p", "1", "-m", "1", *config_args])
    assert result.exit_code == 0
    send.assert_not_called()
    assert "limit exceeded" in result.output


def test_config_file_values(runner: CliRunner, tmp_path: Path):
    """Values from the config file are used when no option overrides them."""
    path = tmp_path / "config.toml"
    path.write_text(f"[sampling]\nroot_pid = {os.getpid()}\nrecurse = false\n\n[output]\njson = true\n")
    result = runner.invoke(main, ["--config", str(path)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)[4][0][0] == os.getpid()


def test_invalid_config_file(runner: CliRunner, tmp_path: Path):
    """A broken config file is reported as a usage error."""
    path = tmp_path / "config.toml"
    path.write_text("[limits\n")
    result = runner.invoke(main, ["--config", str(path)])
    assert result.exit_code == 1
    assert "Failed to parse" in result.output
