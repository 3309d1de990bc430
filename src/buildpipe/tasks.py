"""The project's build lifecycle, declared as a fixed task table."""

from __future__ import annotations

from .core import Registry, TaskSpec, ref, run, task


FORMATTER = "formatter"
ANALYZER = "analyzer"
AUDITOR = "auditor"
COMPILER = "compiler"
TEST_RUNNER = "test-runner"
INSTALLER = "installer"
CLEANER = "cleaner"


TASKS: list[TaskSpec] = [
    task(
        "fix",
        run(ANALYZER, "cargo", "fix", "--allow-staged", "--all-targets"),
        run(ANALYZER, "cargo", "clippy", "--all-targets", "--fix", "--allow-staged"),
        help="Apply compiler and clippy auto-fixes",
    ),
    task(
        "fmt",
        run(FORMATTER, "cargo", "fmt", "--all"),
        help="Format the whole workspace",
    ),
    task(
        "lint",
        run(FORMATTER, "cargo", "fmt", "--all", "--", "--check"),
        run(ANALYZER, "cargo", "clippy", "--all-targets", "--", "-D", "warnings"),
        run(AUDITOR, "cargo", "audit", fatal=False),
        help="Check formatting, deny clippy warnings, audit dependencies",
    ),
    task(
        "check",
        run(COMPILER, "cargo", "check"),
        help="Type-check without producing artifacts",
    ),
    task(
        "build",
        run(COMPILER, "cross", "build"),
        default=True,
        help="Debug build (cross-target capable)",
    ),
    task(
        "release",
        run(COMPILER, "cross", "build", "--release"),
        help="Optimized build (cross-target capable)",
    ),
    task(
        "test",
        run(TEST_RUNNER, "cargo", "test"),
        help="Run the full test suite",
    ),
    task(
        "pre-commit",
        ref("lint"),
        ref("test"),
        ref("release"),
        help="lint, then test, then release",
    ),
    task(
        "install",
        run(INSTALLER, "cargo", "install", "--force", "--path", "."),
        help="Install the release binary, replacing any previous install",
    ),
    task(
        "clean",
        run(CLEANER, "cargo", "clean"),
        help="Remove build output",
    ),
]


def build_registry(tasks: list[TaskSpec] | None = None) -> Registry:
    return Registry(TASKS if tasks is None else tasks)
