"""treetop - live Textual view used in repeat mode."""

from enum import Enum
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from treetop.errors import TreetopError
from treetop.formatting import HEADER, ROOT_MARK
from treetop.models import CycleReport, ProcessReport
from treetop.monitor import SamplingLoop, TreeMonitor


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    NAME = "name"


def format_memory(memory_mb: float) -> str:
    """Format megabytes as human-readable string."""
    if memory_mb >= 1024:
        return f"{memory_mb / 1024:6.2f}G"
    return f"{memory_mb:6.1f}M"


class TreeSummary(Static):
    """Header widget showing the aggregate row of the last cycle."""

    DEFAULT_CSS = """
    TreeSummary {
        height: auto;
        min-height: 3;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize TreeSummary."""
        super().__init__("Sampling...", *args, **kwargs)
        self._report: CycleReport | None = None

    def update_report(self, report: CycleReport) -> None:
        """Update the summary from a cycle report."""
        self._report = report
        self.update(self.render_summary())

    def render_summary(self) -> str:
        """Get summary display."""
        report = self._report
        if report is None:
            return "Sampling..."
        return (
            f"[bold]PID {report.root_pid}[/bold] and {report.child_count} childs  "
            f"Mem [cyan]{format_memory(report.total_memory_mb)}[/cyan]  "
            f"CPU [green]{report.total_cpu_percent:6.1f}%[/green]  "
            f"[dim]{report.elapsed_ms:.1f} ms / {report.frequency_hz:.2f} Hz[/dim]"
        )


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: list[int] = []
        self._root_pid: int | None = None
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        current_index = keys.index(self._sort_key)
        self._sort_key = keys[(current_index + 1) % len(keys)]
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("S", key="state", width=3)
        table.add_column("PID", key="pid", width=8)
        table.add_column("Command", key="command")
        table.add_column("MEM", key="mem", width=9)
        table.add_column("CPU%", key="cpu", width=8)

    def update_processes(self, report: CycleReport) -> None:
        """
        Update the process table with a new report.

        Rows are rebuilt only when the set or order of pids changed;
        otherwise cells are updated in place.
        """
        table = self.query_one("#process-table", DataTable)
        self._root_pid = report.root_pid
        processes = self.sort_processes(list(report.processes))
        pids = [proc.pid for proc in processes]

        if pids != self._current_pids:
            table.clear()
            for proc in processes:
                table.add_row(*self._cells(proc), key=str(proc.pid))
            self._current_pids = pids
            return

        for proc in processes:
            row_key = str(proc.pid)
            for column, value in zip(("state", "pid", "command", "mem", "cpu"), self._cells(proc)):
                table.update_cell(row_key, column, value)

    def sort_processes(self, processes: list[ProcessReport]) -> list[ProcessReport]:
        """Sort processes based on the current sort key."""
        key_func = {
            SortKey.CPU: lambda p: p.cpu_percent,
            SortKey.MEM: lambda p: p.memory_mb,
            SortKey.PID: lambda p: p.pid,
            SortKey.NAME: lambda p: p.command.lower(),
        }
        return sorted(processes, key=key_func[self._sort_key], reverse=self._sort_reverse)

    def _cells(self, proc: ProcessReport) -> tuple[str, ...]:
        mark = ROOT_MARK if proc.pid == self._root_pid else proc.state
        return (
            mark,
            str(proc.pid),
            proc.command[:50],
            format_memory(proc.memory_mb),
            f"{proc.cpu_percent:6.1f}",
        )


class TreetopApp(App):
    """Live view of a sampled process tree."""

    TITLE = HEADER
    SUB_TITLE = "Process Tree Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #tree-summary {
        dock: top;
        height: auto;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(self, loop: SamplingLoop, refresh_interval: float = 0.25) -> None:
        """
        Initialize the TreetopApp.

        Args:
            loop: Sampling loop to run in the background.
            refresh_interval: How often to drain the update queue (seconds).
        """
        super().__init__()
        self._update_queue: Queue[CycleReport | Exception] = Queue()
        self._monitor = TreeMonitor(loop, self._update_queue)
        self._refresh_interval = refresh_interval
        self.last_report: CycleReport | None = None
        self.exit_error: Exception | None = None

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield TreeSummary(id="tree-summary")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the tree monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(self._refresh_interval, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent report."""
        report = None
        while True:
            try:
                item = self._update_queue.get_nowait()
            except Empty:
                break
            if isinstance(item, Exception):
                self._finish(item)
                return
            report = item

        if report is not None:
            self.show_report(report)

    def show_report(self, report: CycleReport) -> None:
        """Update the widgets with a cycle report."""
        self.last_report = report
        self.query_one("#tree-summary", TreeSummary).update_report(report)
        self.query_one(ProcessTable).update_processes(report)

    def _finish(self, error: Exception) -> None:
        """Exit after the monitor loop ended with an exception."""
        self.exit_error = error
        self._monitor.stop(timeout=0)
        return_code = error.exit_code if isinstance(error, TreetopError) else 1
        self.exit(return_code=return_code)

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        process_table = self.query_one(ProcessTable)
        new_sort_key = process_table.cycle_sort()
        if self.last_report is not None:
            process_table.update_processes(self.last_report)
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def on_unmount(self) -> None:
        """Stop the monitor thread when the app shuts down."""
        self._monitor.stop(timeout=0)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop(timeout=0)
        self.exit()
