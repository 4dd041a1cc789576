"""Resource ceiling enforcement for the observed process tree."""

import os
import signal
from typing import Protocol

import psutil
import structlog

from treetop.errors import LimitExceeded
from treetop.models import Limits, Snapshot

log = structlog.get_logger()


class SignalSender(Protocol):
    """Delivers a termination signal to a single pid."""

    def send(self, pid: int) -> None:
        """Signal a pid. Must not raise when the pid is already gone."""
        ...


class PsutilSignalSender:
    """Sends a kill signal through psutil, ignoring processes that already exited."""

    def __init__(self, sig: int = signal.SIGKILL) -> None:
        self._signal = sig

    def send(self, pid: int) -> None:
        try:
            psutil.Process(pid).send_signal(self._signal)
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            log.debug("signal_failed", pid=pid, error=type(e).__name__)


class ThresholdEnforcer:
    """
    Compares running totals of a snapshot against the configured limits.

    On a breach every pid currently in the snapshot is signalled, not only
    the offending one, and LimitExceeded is raised to end the run. The
    monitor's own pid is never signalled.
    """

    def __init__(
        self,
        limits: Limits,
        sender: SignalSender | None = None,
        own_pid: int | None = None,
    ) -> None:
        self._limits = limits
        self._sender = sender or PsutilSignalSender()
        self._own_pid = own_pid if own_pid is not None else os.getpid()

    @property
    def limits(self) -> Limits:
        """Get the configured limits."""
        return self._limits

    def check_growth(self, snapshot: Snapshot) -> None:
        """Check pid count and memory after a process joined the tree."""
        limits = self._limits
        if limits.pid_count > 0 and len(snapshot.samples) > limits.pid_count:
            self.terminate(snapshot, "pid count", len(snapshot.samples), limits.pid_count)
        if limits.memory_mb > 0 and snapshot.total_memory_mb > limits.memory_mb:
            self.terminate(snapshot, "memory", snapshot.total_memory_mb, limits.memory_mb)

    def check_cpu(self, snapshot: Snapshot) -> None:
        """Check the running CPU total after a process's percentage was computed."""
        limit = self._limits.cpu_percent
        if limit > 0 and snapshot.total_cpu_percent > limit:
            self.terminate(snapshot, "cpu", snapshot.total_cpu_percent, limit)

    def terminate(self, snapshot: Snapshot, resource: str, value: float, limit: float) -> None:
        """Signal every sampled pid and raise LimitExceeded."""
        # The monitor may sit inside the observed tree; it exits by raising instead
        pids = [pid for pid in snapshot.samples if pid != self._own_pid]
        log.warning("limit_exceeded", resource=resource, value=round(value, 2), limit=limit, pids=pids)
        for pid in pids:
            self._sender.send(pid)
        raise LimitExceeded(resource, value, limit)
