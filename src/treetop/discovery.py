"""Discovery of the observed process subtree."""

from collections.abc import Iterator

import structlog

from treetop.enforcer import ThresholdEnforcer
from treetop.errors import PermissionDenied, ProcessNotFound, RootProcessNotFound, TreetopError
from treetop.kernel import KernelMetricsReader
from treetop.models import Limits, ProcessSample, Snapshot, TickWindow

log = structlog.get_logger()


class TreeDiscoverer:
    """
    Expands a root pid into its reachable descendants.

    Every discovered process gets a sample holding its memory and the start
    of its CPU tick window. The walk is depth-first in kernel child order and
    uses an explicit stack, so deep trees do not grow the call stack.
    """

    def __init__(
        self,
        reader: KernelMetricsReader,
        enforcer: ThresholdEnforcer,
        recurse: bool = True,
    ) -> None:
        """
        Initialize the TreeDiscoverer.

        Args:
            reader: Source of kernel metrics.
            enforcer: Checks pid count and memory after each insertion.
            recurse: Expand the root's descendants. When False only the root is sampled.
        """
        self._reader = reader
        self._enforcer = enforcer
        self._recurse = recurse

    @property
    def limits(self) -> Limits:
        return self._enforcer.limits

    def discover(self, snapshot: Snapshot) -> Snapshot:
        """
        Populate the snapshot with the root and its descendants.

        Raises:
            RootProcessNotFound: The root pid does not exist.
            PermissionDenied: A memory map was unreadable and errors are not ignored.
            LimitExceeded: The pid count or memory ceiling was breached.
        """
        root = snapshot.root_pid
        try:
            self.add_process(snapshot, root)
        except ProcessNotFound as e:
            raise RootProcessNotFound(root) from e

        # An excluded root is still observed, but only as a leaf
        if not self._recurse or root in self.limits.exclude_pids:
            return snapshot

        stack: list[Iterator[int]] = [iter(self._children(root))]
        while stack:
            pid = next(stack[-1], None)
            if pid is None:
                stack.pop()
                continue
            if pid == root or pid in snapshot.samples or pid in self.limits.exclude_pids:
                continue
            try:
                self.add_process(snapshot, pid)
            except ProcessNotFound:
                log.debug("process_vanished", pid=pid, phase="discovery")
                continue
            stack.append(iter(self._children(pid)))

        return snapshot

    def add_process(self, snapshot: Snapshot, pid: int) -> ProcessSample:
        """
        Insert a fresh sample for pid and update the running totals.

        A pid that vanishes during the reads is removed again before
        the error propagates.
        """
        sample = ProcessSample(pid=pid)
        snapshot.samples[pid] = sample
        try:
            sample.memory_mb = self._memory(pid)
            stat = self._reader.process_stat(pid)
        except TreetopError:
            del snapshot.samples[pid]
            raise

        sample.command = stat.command
        sample.state = stat.state
        sample.cpu_ticks = TickWindow(start=stat.ticks)
        snapshot.total_memory_mb += sample.memory_mb
        snapshot.name_width = max(snapshot.name_width, len(stat.command))

        self._enforcer.check_growth(snapshot)
        return sample

    def _children(self, pid: int) -> list[int]:
        try:
            return self._reader.children(pid)
        except ProcessNotFound:
            return []

    def _memory(self, pid: int) -> float:
        try:
            return self._reader.memory_pss_mb(pid)
        except PermissionDenied:
            if not self.limits.ignore_permission_errors:
                raise
            log.debug("permission_denied_ignored", pid=pid)
            return 0.0
