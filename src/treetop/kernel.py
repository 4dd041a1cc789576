"""Kernel metrics reader backed by psutil."""

import os
from typing import NamedTuple, Protocol

import psutil

from treetop.errors import PermissionDenied, ProcessNotFound

# Single-character scheduling codes as shown in /proc/<pid>/stat
_STATE_CODES = {
    psutil.STATUS_RUNNING: "R",
    psutil.STATUS_SLEEPING: "S",
    psutil.STATUS_DISK_SLEEP: "D",
    psutil.STATUS_ZOMBIE: "Z",
    psutil.STATUS_STOPPED: "T",
    psutil.STATUS_TRACING_STOP: "t",
    psutil.STATUS_DEAD: "X",
    psutil.STATUS_WAKING: "W",
    psutil.STATUS_IDLE: "I",
    psutil.STATUS_PARKED: "P",
}

BYTES_PER_MB = 1024 * 1024


class ProcessStat(NamedTuple):
    """CPU ticks together with the command and state read from the same record."""

    ticks: int
    command: str
    state: str


class KernelMetricsReader(Protocol):
    """Source of raw per-process and system-wide counters."""

    def process_stat(self, pid: int) -> ProcessStat:
        """Return cumulative user+system ticks, command and state of a process."""
        ...

    def system_ticks(self) -> int:
        """Return the global user+nice+system+idle tick count."""
        ...

    def memory_pss_mb(self, pid: int) -> float:
        """Return the proportional set size of a process in MB."""
        ...

    def children(self, pid: int) -> list[int]:
        """Return the direct child pids of a process."""
        ...

    def logical_cores(self) -> int:
        """Return the number of logical CPUs."""
        ...


def state_code(status: str) -> str:
    """Map a psutil status string to its single-character kernel code."""
    return _STATE_CODES.get(status, "?")


def command_name(cmdline: list[str], name: str) -> str:
    """Return the executable token of a command line, or the process name if empty."""
    if cmdline and cmdline[0]:
        return cmdline[0].split(" ")[0]
    return name


class PsutilReader:
    """
    Kernel metrics reader using psutil.

    Tick values are reconstructed from psutil's second-based CPU times using
    the kernel clock rate, so both process and system counters share the
    same unit and the ratio between them stays meaningful.
    """

    def __init__(self, clock_ticks: int | None = None) -> None:
        """
        Initialize the PsutilReader.

        Args:
            clock_ticks: Kernel ticks per second. Defaults to SC_CLK_TCK.
        """
        self._clock_ticks = clock_ticks or os.sysconf("SC_CLK_TCK")

    def _to_ticks(self, seconds: float) -> int:
        return round(seconds * self._clock_ticks)

    def process_stat(self, pid: int) -> ProcessStat:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                times = proc.cpu_times()
                name = proc.name()
                status = proc.status()
                try:
                    cmdline = proc.cmdline()
                except psutil.ZombieProcess:
                    cmdline = []
        except psutil.NoSuchProcess as e:
            raise ProcessNotFound(pid) from e
        except psutil.AccessDenied as e:
            raise PermissionDenied(pid) from e

        return ProcessStat(
            ticks=self._to_ticks(times.user + times.system),
            command=command_name(cmdline, name),
            state=state_code(status),
        )

    def system_ticks(self) -> int:
        times = psutil.cpu_times()
        return self._to_ticks(times.user + times.nice + times.system + times.idle)

    def memory_pss_mb(self, pid: int) -> float:
        try:
            info = psutil.Process(pid).memory_full_info()
        except psutil.ZombieProcess:
            # Zombies have no mapped memory left
            return 0.0
        except psutil.NoSuchProcess as e:
            raise ProcessNotFound(pid) from e
        except psutil.AccessDenied as e:
            raise PermissionDenied(pid) from e
        return getattr(info, "pss", 0) / BYTES_PER_MB

    def children(self, pid: int) -> list[int]:
        try:
            return [child.pid for child in psutil.Process(pid).children()]
        except psutil.NoSuchProcess as e:
            raise ProcessNotFound(pid) from e

    def logical_cores(self) -> int:
        return psutil.cpu_count(logical=True) or 1
