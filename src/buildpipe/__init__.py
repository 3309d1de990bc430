"""Build lifecycle orchestrator.

Provides Task and Step primitives, a validated task registry, a sequential
step executor, and a Typer CLI.
"""

from .core import (  # re-export for convenience
    Command,
    CompositionCycle,
    InvalidTaskTable,
    PipelineError,
    Registry,
    StepFailure,
    TaskRef,
    TaskSpec,
    UnknownTask,
    task,
)
from .runner import Executor, Outcome, PipelineRun

__all__ = [
    "Command",
    "CompositionCycle",
    "Executor",
    "InvalidTaskTable",
    "Outcome",
    "PipelineError",
    "PipelineRun",
    "Registry",
    "StepFailure",
    "TaskRef",
    "TaskSpec",
    "UnknownTask",
    "task",
]
