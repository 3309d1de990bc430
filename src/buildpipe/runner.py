"""Sequential step execution with halt-on-first-fatal-failure semantics."""

from __future__ import annotations

import enum
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from .core import Command, StepFailure
from .logging import get_logger


# Exit status conventionally reported by shells for a missing program.
EXIT_NOT_FOUND = 127
EXIT_INTERRUPTED = 130

Invoker = Callable[[Command, Path], int]


def run_command(step: Command, cwd: Path) -> int:
    """Run a collaborator with inherited stdio and return its exit status."""
    try:
        proc = subprocess.run(list(step.argv), cwd=cwd, check=False)
    except FileNotFoundError:
        get_logger("buildpipe.runner").error(
            "Collaborator not found on PATH: %s", step.argv[0]
        )
        return EXIT_NOT_FOUND
    if proc.returncode < 0:
        return 128 - proc.returncode
    return proc.returncode


class Status(str, enum.Enum):
    OK = "ok"
    FAILED = "failed"
    ADVISORY = "advisory"
    SKIPPED = "skipped"


class Outcome(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class StepResult:
    index: int
    step: Command
    status: Status
    returncode: int | None = None


@dataclass
class PipelineRun:
    invoked_task: str
    steps: list[Command]
    results: list[StepResult] = field(default_factory=list)
    outcome: Outcome = Outcome.SUCCESS
    failure: StepFailure | None = None

    @property
    def failed_index(self) -> int | None:
        return self.failure.index if self.failure else None

    @property
    def advisories(self) -> list[StepResult]:
        return [r for r in self.results if r.status is Status.ADVISORY]

    @property
    def exit_code(self) -> int:
        if self.outcome is Outcome.SUCCESS:
            return 0
        if self.outcome is Outcome.ABORTED:
            return EXIT_INTERRUPTED
        # A collaborator that reports failure always exits non-zero.
        return self.failure.returncode if self.failure else 1


class Executor:
    def __init__(
        self,
        workspace: Path | str | None = None,
        invoke: Invoker | None = None,
        dry_run: bool = False,
    ):
        self.workspace = Path(workspace) if workspace else Path(os.getcwd())
        self.invoke = invoke or run_command
        self.dry_run = dry_run

    def execute(self, task_name: str, steps: Sequence[Command]) -> PipelineRun:
        pipeline_run = PipelineRun(invoked_task=task_name, steps=list(steps))
        logger = get_logger(f"buildpipe.run.{task_name}")
        total = len(pipeline_run.steps)
        logger.info(
            "Selected steps: %s",
            " → ".join(s.display() for s in pipeline_run.steps) or "(none)",
        )

        for index, step in enumerate(pipeline_run.steps):
            if self.dry_run:
                logger.info("Would run [%d/%d]: %s", index + 1, total, step.display())
                pipeline_run.results.append(StepResult(index, step, Status.SKIPPED))
                continue

            logger.info("Run [%d/%d] %s: %s", index + 1, total, step.collaborator, step.display())
            try:
                returncode = self.invoke(step, self.workspace)
            except KeyboardInterrupt:
                logger.error("Interrupted during step %d: %s", index, step.display())
                pipeline_run.outcome = Outcome.ABORTED
                return pipeline_run

            if returncode == 0:
                pipeline_run.results.append(StepResult(index, step, Status.OK, 0))
                continue

            if not step.fatal:
                logger.warning(
                    "%s reported findings (exit code %d); continuing",
                    step.collaborator,
                    returncode,
                )
                pipeline_run.results.append(
                    StepResult(index, step, Status.ADVISORY, returncode)
                )
                continue

            pipeline_run.results.append(StepResult(index, step, Status.FAILED, returncode))
            pipeline_run.failure = StepFailure(index, step, returncode)
            pipeline_run.outcome = Outcome.FAILED
            logger.error("Task %s failed: %s", task_name, pipeline_run.failure)
            return pipeline_run

        logger.info("Task %s finished: %d step(s)", task_name, total)
        return pipeline_run
