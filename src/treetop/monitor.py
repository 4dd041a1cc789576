"""Sampling loop and background monitor for treetop."""

import threading
import time
from collections.abc import Callable
from queue import Queue

import structlog

from treetop.accounting import Accountant
from treetop.discovery import TreeDiscoverer
from treetop.enforcer import SignalSender, ThresholdEnforcer
from treetop.kernel import KernelMetricsReader, PsutilReader
from treetop.models import CycleReport, Limits, ProcessReport, Snapshot, TickWindow

log = structlog.get_logger()


def build_report(snapshot: Snapshot, elapsed_ms: float) -> CycleReport:
    """Freeze a finished snapshot into a report for the formatters."""
    processes = tuple(
        ProcessReport(
            pid=sample.pid,
            command=sample.command,
            memory_mb=sample.memory_mb,
            cpu_percent=sample.cpu_percent,
            state=sample.state,
        )
        for sample in snapshot.samples.values()
    )
    return CycleReport(
        root_pid=snapshot.root_pid,
        elapsed_ms=elapsed_ms,
        child_count=snapshot.child_count,
        total_memory_mb=snapshot.total_memory_mb,
        total_cpu_percent=snapshot.total_cpu_percent,
        processes=processes,
        name_width=snapshot.name_width,
    )


class SamplingLoop:
    """
    Runs discover, pace, account and enforce cycles over one process tree.

    Each cycle starts from an empty snapshot. With a pacing delay the cycle
    sleeps until at least delay_ms have passed since it started, so the CPU
    measurement window has a predictable minimum length.
    """

    def __init__(
        self,
        root_pid: int = 1,
        limits: Limits | None = None,
        *,
        recurse: bool = True,
        delay_ms: int = 0,
        repeat: bool = False,
        reader: KernelMetricsReader | None = None,
        sender: SignalSender | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the SamplingLoop.

        Args:
            root_pid: Root of the observed subtree.
            limits: Resource ceilings and exclusions.
            recurse: Sample descendants of the root.
            delay_ms: Minimum cycle duration in milliseconds. 0 disables pacing.
            repeat: Keep cycling after the first report.
            reader: Kernel metrics source. Defaults to PsutilReader.
            sender: Signal sender used on a limit breach.
            clock: Monotonic clock returning seconds.
            sleep: Blocking sleep taking seconds.
        """
        self._root_pid = root_pid
        self._limits = limits or Limits()
        self._delay_ms = max(0, delay_ms)
        self._repeat = repeat
        self._reader = reader or PsutilReader()
        self._clock = clock
        self._sleep = sleep

        self._enforcer = ThresholdEnforcer(self._limits, sender)
        self._discoverer = TreeDiscoverer(self._reader, self._enforcer, recurse=recurse)
        self._accountant = Accountant(self._reader, self._enforcer)
        self._cycles = 0

    @property
    def root_pid(self) -> int:
        return self._root_pid

    @property
    def repeat(self) -> bool:
        return self._repeat

    @property
    def cycles(self) -> int:
        """Number of completed cycles."""
        return self._cycles

    def run_cycle(self) -> CycleReport:
        """Run one full sampling cycle and return its report."""
        started = self._clock()
        snapshot = Snapshot(
            root_pid=self._root_pid,
            system_ticks=TickWindow(start=self._reader.system_ticks()),
        )

        self._discoverer.discover(snapshot)

        if self._delay_ms > 0:
            elapsed = self._clock() - started
            remaining = self._delay_ms / 1e3 - elapsed
            if remaining > 0:
                self._sleep(remaining)

        self._accountant.finalize(snapshot)

        elapsed_ms = (self._clock() - started) * 1e3
        self._cycles += 1
        log.debug(
            "cycle_complete",
            cycle=self._cycles,
            processes=len(snapshot.samples),
            elapsed_ms=round(elapsed_ms, 2),
        )
        return build_report(snapshot, elapsed_ms)

    def run(
        self,
        emit: Callable[[CycleReport], None],
        stop_event: threading.Event | None = None,
    ) -> None:
        """
        Run cycles and hand each report to emit.

        Runs exactly once unless repeat is enabled, in which case it keeps
        going until stop_event is set or an exception ends the run.
        """
        while True:
            emit(self.run_cycle())
            if not self._repeat:
                break
            if stop_event is not None and stop_event.is_set():
                break


class TreeMonitor:
    """
    Runs a SamplingLoop in a daemon thread and pushes results to a Queue.

    The queue receives a CycleReport per cycle. An exception that ends the
    loop (a limit breach or a fatal error) is pushed as the final item.
    """

    def __init__(
        self,
        loop: SamplingLoop,
        update_queue: "Queue[CycleReport | Exception]",
    ) -> None:
        self._loop = loop
        self._queue = update_queue
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="TreeMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread after its current cycle.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        try:
            self._loop.run(self._queue.put, self._stop_event)
        except Exception as e:
            self._queue.put(e)
