"""Tests for configuration system."""

from pathlib import Path

import pytest

from treetop.config import Config, LimitsConfig, OutputConfig, SamplingConfig


def test_limits_config_defaults():
    """LimitsConfig disables every ceiling by default."""
    config = LimitsConfig()
    assert config.memory_mb == 0
    assert config.cpu_percent == 0.0
    assert config.pid_count == 0
    assert config.exclude_pids == ()
    assert config.ignore_permission_errors is False


def test_sampling_config_defaults():
    """SamplingConfig observes pid 1 once, recursively, without pacing."""
    config = SamplingConfig()
    assert config.root_pid == 1
    assert config.recurse is True
    assert config.delay_ms == 0
    assert config.repeat is False


def test_output_config_defaults():
    """OutputConfig renders text by default."""
    assert OutputConfig().json is False


def test_config_path():
    """Config lives under ~/.config/treetop."""
    config = Config()
    assert config.config_path == Path.home() / ".config" / "treetop" / "config.toml"


def test_load_missing_file_returns_defaults(tmp_path: Path):
    """A missing file yields the defaults."""
    assert Config.load(tmp_path / "missing.toml") == Config()


def test_save_and_load(tmp_path: Path):
    """Saved values are read back."""
    path = tmp_path / "config.toml"
    config = Config().with_overrides(memory_mb=256, exclude_pids=(50, 60), delay_ms=200)
    config.save(path)

    loaded = Config.load(path)
    assert loaded.limits.memory_mb == 256
    assert loaded.limits.exclude_pids == (50, 60)
    assert loaded.sampling.delay_ms == 200
    assert loaded.sampling.repeat is False


def test_partial_file_uses_defaults(tmp_path: Path):
    """Keys missing from the file fall back to defaults."""
    path = tmp_path / "config.toml"
    path.write_text("[limits]\ncpu_percent = 150.0\n")
    config = Config.load(path)
    assert config.limits.cpu_percent == 150.0
    assert config.limits.memory_mb == 0
    assert config.sampling.root_pid == 1


def test_invalid_toml(tmp_path: Path):
    """Unparseable files raise ValueError."""
    path = tmp_path / "config.toml"
    path.write_text("[limits\nmemory_mb = ")
    with pytest.raises(ValueError, match="Failed to parse"):
        Config.load(path)


def test_negative_limit_rejected(tmp_path: Path):
    """Negative ceilings are rejected."""
    path = tmp_path / "config.toml"
    path.write_text("[limits]\nmemory_mb = -1\n")
    with pytest.raises(ValueError, match="memory_mb"):
        Config.load(path)


def test_overrides_skip_none():
    """None overrides keep the existing value."""
    config = Config().with_overrides(root_pid=None, repeat=True)
    assert config.sampling.root_pid == 1
    assert config.sampling.repeat is True


def test_overrides_unknown_field():
    """Unknown override names are rejected."""
    with pytest.raises(ValueError, match="Unknown"):
        Config().with_overrides(colour="red")


def test_config_is_immutable():
    """Config sections cannot be changed after creation."""
    config = Config()
    with pytest.raises(AttributeError):
        config.sampling.root_pid = 5


def test_effective_delay_in_repeat_mode():
    """Repeat mode without a delay falls back to repeat_delay_ms."""
    config = Config().with_overrides(repeat=True)
    assert config.effective_delay_ms == 1000
    assert Config().with_overrides(repeat=True, delay_ms=300).effective_delay_ms == 300
    assert Config().effective_delay_ms == 0


def test_to_limits():
    """Limits are built from the limits section."""
    limits = Config().with_overrides(pid_count=8, exclude_pids=(3,)).to_limits()
    assert limits.pid_count == 8
    assert limits.exclude_pids == frozenset({3})
