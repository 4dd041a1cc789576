"""CPU and memory accounting over a two-point measurement window."""

import structlog

from treetop.enforcer import ThresholdEnforcer
from treetop.errors import ProcessNotFound
from treetop.kernel import KernelMetricsReader
from treetop.models import Snapshot

log = structlog.get_logger()


def cpu_percent(process_ticks: int, total_ticks: int, cores: int) -> float:
    """
    Convert a process tick delta into a single-core normalized percentage.

    The system-wide delta is summed over all cores, so multiplying by the
    core count lets a process saturating one core report 100.0.

    >>> cpu_percent(50, 200, 4)
    100.0
    """
    if total_ticks <= 0:
        return 0.0
    return cores * process_ticks * 1e2 / total_ticks


class Accountant:
    """Closes the tick windows of a snapshot and accumulates CPU percentages."""

    def __init__(self, reader: KernelMetricsReader, enforcer: ThresholdEnforcer) -> None:
        self._reader = reader
        self._enforcer = enforcer
        self._cores = reader.logical_cores()

    @property
    def cores(self) -> int:
        return self._cores

    def finalize(self, snapshot: Snapshot) -> Snapshot:
        """
        Compute per-process and total CPU for a discovered snapshot.

        Processes that exited since discovery are dropped from the snapshot,
        along with their memory contribution. The CPU ceiling is checked
        after every process.
        """
        snapshot.system_ticks.end = self._reader.system_ticks()
        total_ticks = snapshot.system_ticks.delta or 0
        snapshot.total_cpu_percent = 0.0

        for pid, sample in list(snapshot.samples.items()):
            try:
                stat = self._reader.process_stat(pid)
            except ProcessNotFound:
                log.debug("process_vanished", pid=pid, phase="accounting")
                del snapshot.samples[pid]
                snapshot.total_memory_mb -= sample.memory_mb
                continue

            sample.command = stat.command
            sample.state = stat.state
            sample.cpu_ticks.end = stat.ticks
            sample.cpu_percent = cpu_percent(sample.cpu_ticks.delta, total_ticks, self._cores)
            snapshot.total_cpu_percent += sample.cpu_percent

            self._enforcer.check_cpu(snapshot)

        return snapshot
