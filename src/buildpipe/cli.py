from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import yaml

from .core import CompositionCycle, InvalidTaskTable, Registry, UnknownTask
from .logging import LEVEL_ENV, configure, get_logger
from .runner import Executor, Outcome, PipelineRun
from .tasks import build_registry


# Reserved exit codes (sysexits.h EX_USAGE / EX_SOFTWARE).
EXIT_UNKNOWN_TASK = 64
EXIT_COMPOSITION_CYCLE = 70
EXIT_INVALID_TABLE = 70

app = typer.Typer(add_completion=False, help="Build lifecycle task runner")
log = get_logger("buildpipe.cli")


def _list(registry: Registry) -> None:
    width = max(len(n) for n in registry.names())
    for name in registry.names():
        spec = registry.get(name)
        marker = " (default)" if name == registry.default else ""
        typer.echo(f"{name.ljust(width)}  {spec.help}{marker}")


def _report(pipeline_run: PipelineRun) -> None:
    for result in pipeline_run.advisories:
        typer.echo(
            f"warning: {result.step.display()} reported findings "
            f"(exit code {result.returncode})",
            err=True,
        )
    if pipeline_run.outcome is Outcome.FAILED:
        failure = pipeline_run.failure
        typer.echo(
            f"error: task {pipeline_run.invoked_task} failed at step {failure.index + 1}"
            f"/{len(pipeline_run.steps)} ({failure.step.collaborator}): "
            f"{failure.step.display()} exited with {failure.returncode}",
            err=True,
        )
    elif pipeline_run.outcome is Outcome.ABORTED:
        typer.echo(f"error: task {pipeline_run.invoked_task} aborted", err=True)


@app.command()
def main(
    task_name: Optional[str] = typer.Argument(
        None, metavar="TASK", help="Task to run (default: build)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Print the commands without running them"
    ),
    list_tasks: bool = typer.Option(False, "--list", "-l", help="List tasks and exit"),
    show: bool = typer.Option(False, "--show", help="Dump the task table as YAML and exit"),
    workspace: Path = typer.Option(
        Path("."),
        "--workspace",
        "-C",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
        help="Directory to run collaborators in",
    ),
    log_level: Optional[str] = typer.Option(
        None, envvar=LEVEL_ENV, help="Log level for orchestrator diagnostics"
    ),
    log_file: Optional[Path] = typer.Option(None, help="Also write logs to this file"),
):
    """Run a build lifecycle task."""
    configure(level=log_level, log_file=log_file)

    try:
        registry = build_registry()
    except UnknownTask as e:
        log.error("Invalid task table: %s", e)
        raise typer.Exit(code=EXIT_UNKNOWN_TASK)
    except CompositionCycle as e:
        log.error("Invalid task table: %s", e)
        raise typer.Exit(code=EXIT_COMPOSITION_CYCLE)
    except InvalidTaskTable as e:
        log.error("Invalid task table: %s", e)
        raise typer.Exit(code=EXIT_INVALID_TABLE)

    if list_tasks:
        _list(registry)
        raise typer.Exit(code=0)
    if show:
        typer.echo(yaml.safe_dump(registry.to_dict(), sort_keys=False), nl=False)
        raise typer.Exit(code=0)

    name = registry.default if task_name is None else task_name
    try:
        steps = registry.resolve(name)
    except UnknownTask as e:
        typer.echo(f"error: {e}. Known tasks: {', '.join(registry.names())}", err=True)
        raise typer.Exit(code=EXIT_UNKNOWN_TASK)

    if dry_run:
        for step in steps:
            suffix = "" if step.fatal else "  # failure ignored"
            typer.echo(f"{step.display()}{suffix}")

    executor = Executor(workspace=workspace, dry_run=dry_run)
    pipeline_run = executor.execute(name, steps)
    _report(pipeline_run)
    raise typer.Exit(code=pipeline_run.exit_code)


def run():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    run()
