"""Data models for treetop."""

from dataclasses import dataclass, field


@dataclass(slots=True)
class TickWindow:
    """Cumulative tick counter read at the start and end of a measurement window."""

    start: int
    end: int | None = None

    @property
    def delta(self) -> int | None:
        """Ticks elapsed inside the window, or None while it is still open."""
        if self.end is None:
            return None
        return self.end - self.start


@dataclass(slots=True)
class ProcessSample:
    """Per-cycle record for one process of the observed tree."""

    pid: int
    command: str = ""
    state: str = "?"  # 'R', 'S', 'Z', 'D', etc.
    cpu_ticks: TickWindow | None = None
    memory_mb: float = 0.0
    cpu_percent: float = 0.0


@dataclass(slots=True, frozen=True)
class Limits:
    """Resource ceilings. Zero disables a ceiling."""

    memory_mb: float = 0
    cpu_percent: float = 0
    pid_count: int = 0
    exclude_pids: frozenset[int] = frozenset()
    ignore_permission_errors: bool = False

    @property
    def enabled(self) -> bool:
        """Whether any ceiling is active."""
        return self.memory_mb > 0 or self.cpu_percent > 0 or self.pid_count > 0


@dataclass(slots=True)
class Snapshot:
    """
    State of a single sampling cycle.

    Owned by exactly one cycle and rebuilt from scratch for the next one, so
    the running totals never carry over between cycles.
    """

    root_pid: int
    system_ticks: TickWindow
    samples: dict[int, ProcessSample] = field(default_factory=dict)
    total_memory_mb: float = 0.0
    total_cpu_percent: float = 0.0
    name_width: int = 5

    @property
    def child_count(self) -> int:
        """Number of sampled processes excluding the root."""
        return sum(1 for pid in self.samples if pid != self.root_pid)


@dataclass(slots=True, frozen=True)
class ProcessReport:
    """Immutable per-process row handed to the formatters."""

    pid: int
    command: str
    memory_mb: float
    cpu_percent: float
    state: str


@dataclass(slots=True, frozen=True)
class CycleReport:
    """Immutable result of one sampling cycle."""

    root_pid: int
    elapsed_ms: float
    child_count: int
    total_memory_mb: float
    total_cpu_percent: float
    processes: tuple[ProcessReport, ...]
    name_width: int = 5

    @property
    def frequency_hz(self) -> float:
        """Cycles per second at the measured cycle duration."""
        if self.elapsed_ms <= 0:
            return 0.0
        return 1e3 / self.elapsed_ms
