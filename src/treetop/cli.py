"""Command line interface for treetop."""

from pathlib import Path

import click

from treetop import __version__
from treetop.errors import LimitExceeded, RootProcessNotFound, TreetopError
from treetop.formatting import HEADER, render_json, render_text


def _fail(error: TreetopError) -> None:
    """Print a labelled diagnostic and exit with the error's code."""
    click.echo(HEADER, err=True)
    click.echo(f"{click.style('Error', fg='red')}: {error}", err=True)
    raise SystemExit(error.exit_code)


def _handle(error: TreetopError, json_output: bool) -> None:
    if isinstance(error, LimitExceeded):
        click.echo(f"{HEADER}: {error}, process tree terminated", err=True)
        raise SystemExit(0)
    if isinstance(error, RootProcessNotFound) and json_output:
        raise SystemExit(0)
    _fail(error)


@click.command()
@click.argument("pid", type=int, required=False)
@click.option(
    "--memory-limit", "-m", "memory_mb", type=click.IntRange(min=0),
    help="Kill the tree when its memory exceeds this many MB",
)
@click.option(
    "--cpu-limit", "-c", "cpu_percent", type=click.FloatRange(min=0),
    help="Kill the tree when its CPU usage exceeds this percentage",
)
@click.option(
    "--pid-limit", "-p", "pid_count", type=click.IntRange(min=0),
    help="Kill the tree when it holds more than this many processes",
)
@click.option("--single", "-s", is_flag=True, help="Only sample the root process")
@click.option(
    "--delay", "-t", "delay_ms", type=click.IntRange(min=0),
    help="Minimum cycle duration in milliseconds",
)
@click.option("--ignore-errors", "-i", is_flag=True, help="Count unreadable memory maps as 0 MB")
@click.option("--exclude", "-x", type=int, multiple=True, help="Do not descend into this pid")
@click.option("--repeat", "-r", is_flag=True, help="Keep sampling until interrupted")
@click.option("--json", "-j", "json_output", is_flag=True, help="Emit compact JSON arrays")
@click.option(
    "--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
    help="Path to config file",
)
@click.option("--verbose", "-v", count=True, help="Log more (repeatable)")
@click.version_option(__version__, prog_name="treetop")
def main(
    pid: int | None,
    memory_mb: int | None,
    cpu_percent: float | None,
    pid_count: int | None,
    single: bool,
    delay_ms: int | None,
    ignore_errors: bool,
    exclude: tuple[int, ...],
    repeat: bool,
    json_output: bool,
    config_path: Path | None,
    verbose: int,
) -> None:
    """Sample CPU and memory of PID (default 1) and its descendants."""
    from treetop import log
    from treetop.config import Config
    from treetop.monitor import SamplingLoop

    log.configure(verbose)

    try:
        config = Config.load(config_path).with_overrides(
            root_pid=pid,
            memory_mb=memory_mb,
            cpu_percent=cpu_percent,
            pid_count=pid_count,
            recurse=False if single else None,
            delay_ms=delay_ms,
            ignore_permission_errors=True if ignore_errors else None,
            exclude_pids=exclude or None,
            repeat=True if repeat else None,
            json=True if json_output else None,
        )
        config.validate()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    sampling = config.sampling
    json_output = config.output.json
    loop = SamplingLoop(
        sampling.root_pid,
        config.to_limits(),
        recurse=sampling.recurse,
        delay_ms=config.effective_delay_ms,
        repeat=sampling.repeat,
    )

    if sampling.repeat and not json_output:
        _run_live(loop)
        return

    def emit(report) -> None:
        if json_output:
            click.echo(render_json(report))
        else:
            click.echo(render_text(report), nl=False)

    try:
        loop.run(emit)
    except TreetopError as e:
        _handle(e, json_output)


def _run_live(loop) -> None:
    """Run the live view and translate how it ended into an exit status."""
    from treetop.app import TreetopApp

    app = TreetopApp(loop)
    app.run()
    if isinstance(app.exit_error, TreetopError):
        _handle(app.exit_error, json_output=False)
    elif app.exit_error is not None:
        raise app.exit_error
    if app.return_code:
        raise SystemExit(app.return_code)


if __name__ == "__main__":
    main()
