"""Text and JSON renderings of a cycle report."""

import json

from treetop import __version__
from treetop.models import CycleReport

HEADER = f"treetop v{__version__}"
TOTAL_MARK = "+"
ROOT_MARK = "*"


def format_line(pid: int, command: str, memory_mb: float, cpu: float, mark: str, width: int) -> str:
    """Format one fixed-width table row."""
    return f"{mark} {pid:>8} {command:<{width}} {round(memory_mb, 2):>8} M {round(cpu, 2):>6} %"


def format_header(report: CycleReport) -> str:
    """Format the title line with timing and child count."""
    childs = f" and {report.child_count} childs" if report.child_count > 0 else ""
    return (
        f"=== {HEADER} - "
        f"({round(report.elapsed_ms, 2)} ms / {round(report.frequency_hz, 3)} Hz)"
        f" PID {report.root_pid}{childs} ==="
    )


def render_text(report: CycleReport) -> str:
    """Render a report as a header, a total row and one row per process."""
    width = report.name_width
    lines = [
        format_header(report),
        format_line(
            report.root_pid,
            "total",
            report.total_memory_mb,
            report.total_cpu_percent,
            TOTAL_MARK,
            width,
        ),
    ]
    for proc in report.processes:
        mark = ROOT_MARK if proc.pid == report.root_pid else proc.state
        lines.append(
            format_line(proc.pid, proc.command, proc.memory_mb, proc.cpu_percent, mark, width)
        )
    return "\n".join(lines) + "\n"


def render_json(report: CycleReport) -> str:
    """
    Render a report as a compact JSON array.

    Layout: [elapsed_ms, child_count, total_memory, total_cpu, [[pid, command, memory, cpu], ...]]
    """
    data = [
        round(report.elapsed_ms, 2),
        report.child_count,
        round(report.total_memory_mb, 2),
        round(report.total_cpu_percent, 2),
        [
            [proc.pid, proc.command, round(proc.memory_mb, 2), round(proc.cpu_percent, 2)]
            for proc in report.processes
        ],
    ]
    return json.dumps(data, separators=(",", ":"))
