"""Shared test fixtures for treetop."""

from collections import Counter

import pytest

from treetop.errors import PermissionDenied, ProcessNotFound
from treetop.kernel import ProcessStat


class FakeReader:
    """
    In-memory kernel metrics reader.

    tree maps every live pid to its children. Tick series are consumed one
    value per read; the last value repeats once a series is exhausted.
    """

    def __init__(
        self,
        tree: dict[int, list[int]],
        *,
        ticks: dict[int, list[int]] | None = None,
        system: list[int] | None = None,
        memory: dict[int, float] | None = None,
        cores: int = 4,
        denied: set[int] | None = None,
        stat_reads_before_exit: dict[int, int] | None = None,
        commands: dict[int, str] | None = None,
    ) -> None:
        self.tree = {pid: list(children) for pid, children in tree.items()}
        self.ticks = {pid: list(series) for pid, series in (ticks or {}).items()}
        self.system = list(system or [1000, 1200])
        self.memory = memory or {}
        self.cores = cores
        self.denied = denied or set()
        self.lifetimes = stat_reads_before_exit or {}
        self.commands = commands or {}
        self.stat_reads: Counter[int] = Counter()
        self.system_reads = 0

    def _series_value(self, series: list[int], index: int) -> int:
        return series[min(index, len(series) - 1)]

    def process_stat(self, pid: int) -> ProcessStat:
        if pid not in self.tree:
            raise ProcessNotFound(pid)
        limit = self.lifetimes.get(pid)
        if limit is not None and self.stat_reads[pid] >= limit:
            raise ProcessNotFound(pid)
        index = self.stat_reads[pid]
        self.stat_reads[pid] += 1
        ticks = self._series_value(self.ticks.get(pid, [0]), index)
        return ProcessStat(ticks, self.commands.get(pid, f"proc{pid}"), "S")

    def system_ticks(self) -> int:
        value = self._series_value(self.system, self.system_reads)
        self.system_reads += 1
        return value

    def memory_pss_mb(self, pid: int) -> float:
        if pid not in self.tree:
            raise ProcessNotFound(pid)
        if pid in self.denied:
            raise PermissionDenied(pid)
        return self.memory.get(pid, 0.0)

    def children(self, pid: int) -> list[int]:
        if pid not in self.tree:
            raise ProcessNotFound(pid)
        return list(self.tree[pid])

    def logical_cores(self) -> int:
        return self.cores


class RecordingSender:
    """Signal sender that records pids instead of killing them."""

    def __init__(self) -> None:
        self.sent: list[int] = []

    def send(self, pid: int) -> None:
        self.sent.append(pid)


class FakeClock:
    """Monotonic clock advancing by a fixed step on every read."""

    def __init__(self, step: float = 0.0) -> None:
        self.now = 0.0
        self.step = step
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def sender() -> RecordingSender:
    """Create a recording signal sender."""
    return RecordingSender()


@pytest.fixture
def clock() -> FakeClock:
    """Create a clock that only advances when slept on."""
    return FakeClock()
