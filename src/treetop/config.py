"""Configuration system for treetop."""

from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path

import tomlkit

from treetop.models import Limits


@dataclass(frozen=True)
class LimitsConfig:
    """Resource ceilings. 0 disables a ceiling."""

    memory_mb: int = 0
    cpu_percent: float = 0.0
    pid_count: int = 0
    exclude_pids: tuple[int, ...] = ()
    ignore_permission_errors: bool = False


@dataclass(frozen=True)
class SamplingConfig:
    """Sampling loop configuration."""

    root_pid: int = 1
    recurse: bool = True
    delay_ms: int = 0  # Minimum cycle duration, 0 = no pacing
    repeat: bool = False
    repeat_delay_ms: int = 1000  # Pacing used in repeat mode when delay_ms is 0


@dataclass(frozen=True)
class OutputConfig:
    """Output configuration."""

    json: bool = False


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if isinstance(value, tuple):
            value = list(value)
        table.add(f.name, value)
    return table


def _load_section(cls: type, data: dict) -> object:
    """Build a section dataclass from TOML data, using dataclass defaults for missing keys."""
    defaults = cls()
    values = {}
    for f in fields(cls):
        value = data.get(f.name, getattr(defaults, f.name))
        if isinstance(getattr(defaults, f.name), tuple):
            value = tuple(int(v) for v in value)
        values[f.name] = value
    return cls(**values)


@dataclass(frozen=True)
class Config:
    """Main configuration container, immutable for the lifetime of a run."""

    limits: LimitsConfig = field(default_factory=LimitsConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "treetop"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def effective_delay_ms(self) -> int:
        """Pacing delay, falling back to repeat_delay_ms in repeat mode."""
        sampling = self.sampling
        if sampling.repeat and sampling.delay_ms <= 0:
            return sampling.repeat_delay_ms
        return sampling.delay_ms

    def to_limits(self) -> Limits:
        """Build the engine's Limits from the limits section."""
        limits = self.limits
        return Limits(
            memory_mb=limits.memory_mb,
            cpu_percent=limits.cpu_percent,
            pid_count=limits.pid_count,
            exclude_pids=frozenset(limits.exclude_pids),
            ignore_permission_errors=limits.ignore_permission_errors,
        )

    def with_overrides(self, **overrides: object) -> "Config":
        """
        Return a copy with section fields replaced.

        Keys are field names of any section. None values are skipped so
        unset command line options keep the file or default value.
        """
        sections = {}
        for f in fields(self):
            section = getattr(self, f.name)
            names = {sf.name for sf in fields(section)}
            changes = {k: v for k, v in overrides.items() if k in names and v is not None}
            sections[f.name] = replace(section, **changes) if changes else section
            overrides = {k: v for k, v in overrides.items() if k not in names}
        if overrides:
            raise ValueError(f"Unknown config fields: {sorted(overrides)}")
        return replace(self, **sections)

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for f in fields(self):
            section = getattr(self, f.name)
            if is_dataclass(section):
                doc.add(f.name, _dataclass_to_table(section))
                doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values."""
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        config = cls(
            limits=_load_section(LimitsConfig, data.get("limits", {})),
            sampling=_load_section(SamplingConfig, data.get("sampling", {})),
            output=_load_section(OutputConfig, data.get("output", {})),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Reject negative ceilings and delays."""
        limits = self.limits
        for name in ("memory_mb", "cpu_percent", "pid_count"):
            value = getattr(limits, name)
            if value < 0:
                raise ValueError(f"limits.{name} must be >= 0, got {value}")
        for name in ("delay_ms", "repeat_delay_ms"):
            value = getattr(self.sampling, name)
            if value < 0:
                raise ValueError(f"sampling.{name} must be >= 0, got {value}")
