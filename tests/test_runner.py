"""Tests for the step executor: ordering, halting, non-fatal steps, exit codes."""

import subprocess

import pytest

from buildpipe import runner
from buildpipe.core import run
from buildpipe.runner import Executor, Outcome, Status, run_command
from buildpipe.tasks import build_registry

FMT_CHECK = "cargo fmt --all -- --check"
CLIPPY = "cargo clippy --all-targets -- -D warnings"
AUDIT = "cargo audit"
RELEASE = "cross build --release"


def _execute(name, invoker, tmp_path, **kwargs):
    steps = build_registry().resolve(name)
    return Executor(workspace=tmp_path, invoke=invoker, **kwargs).execute(name, steps)


class TestLint:
    def test_all_pass(self, fake_invoker, tmp_path):
        inv = fake_invoker()
        result = _execute("lint", inv, tmp_path)
        assert result.outcome is Outcome.SUCCESS
        assert inv.calls == [FMT_CHECK, CLIPPY, AUDIT]
        assert result.exit_code == 0

    def test_formatter_check_failure_halts_at_step_zero(self, fake_invoker, tmp_path):
        inv = fake_invoker(failures={FMT_CHECK: 1})
        result = _execute("lint", inv, tmp_path)
        assert result.outcome is Outcome.FAILED
        assert result.failed_index == 0
        assert inv.calls == [FMT_CHECK]
        assert result.exit_code == 1

    def test_audit_findings_do_not_fail(self, fake_invoker, tmp_path):
        inv = fake_invoker(failures={AUDIT: 1})
        result = _execute("lint", inv, tmp_path)
        assert result.outcome is Outcome.SUCCESS
        assert result.exit_code == 0
        assert [r.step.display() for r in result.advisories] == [AUDIT]
        assert result.results[-1].status is Status.ADVISORY

    def test_audit_findings_are_logged(self, fake_invoker, tmp_path, caplog):
        inv = fake_invoker(failures={AUDIT: 1})
        with caplog.at_level("WARNING"):
            _execute("lint", inv, tmp_path)
        assert "auditor reported findings" in caplog.text

    def test_analyzer_failure_skips_audit(self, fake_invoker, tmp_path):
        inv = fake_invoker(failures={CLIPPY: 101})
        result = _execute("lint", inv, tmp_path)
        assert result.failed_index == 1
        assert result.exit_code == 101
        assert AUDIT not in inv.calls


class TestPreCommit:
    def test_release_failure_index(self, fake_invoker, tmp_path):
        inv = fake_invoker(failures={RELEASE: 2})
        result = _execute("pre-commit", inv, tmp_path)
        assert result.outcome is Outcome.FAILED
        # lint contributes three steps and test one, so release sits at index 4.
        assert result.failed_index == 4
        assert result.failure.step.display() == RELEASE
        assert result.exit_code == 2
        assert "cargo install --force --path ." not in inv.calls

    def test_lint_failure_leaves_no_release_artifact(self, fake_invoker, tmp_path):
        artifact = tmp_path / "target" / "release" / "app"

        def write_artifact(cwd):
            artifact.parent.mkdir(parents=True)
            artifact.write_text("binary")

        inv = fake_invoker(failures={CLIPPY: 1}, effects={RELEASE: write_artifact})
        result = _execute("pre-commit", inv, tmp_path)
        assert result.failed_index == 1
        assert not artifact.exists()
        assert inv.calls == [FMT_CHECK, CLIPPY]

    def test_full_pass_runs_everything_in_order(self, fake_invoker, tmp_path):
        artifact = tmp_path / "built"
        inv = fake_invoker(effects={RELEASE: lambda cwd: (cwd / "built").write_text("x")})
        result = _execute("pre-commit", inv, tmp_path)
        assert result.outcome is Outcome.SUCCESS
        assert inv.calls == [FMT_CHECK, CLIPPY, AUDIT, "cargo test", RELEASE]
        assert artifact.exists()


class TestExecutor:
    def test_no_retry(self, fake_invoker, tmp_path):
        inv = fake_invoker(failures={"cargo test": 1})
        _execute("test", inv, tmp_path)
        assert inv.calls == ["cargo test"]

    def test_dry_run_invokes_nothing(self, fake_invoker, tmp_path):
        inv = fake_invoker()
        result = _execute("pre-commit", inv, tmp_path, dry_run=True)
        assert inv.calls == []
        assert result.outcome is Outcome.SUCCESS
        assert all(r.status is Status.SKIPPED for r in result.results)

    def test_interrupt_aborts(self, tmp_path):
        calls = []

        def interrupted(step, cwd):
            calls.append(step.display())
            raise KeyboardInterrupt

        result = _execute("lint", interrupted, tmp_path)
        assert result.outcome is Outcome.ABORTED
        assert result.exit_code == 130
        assert calls == [FMT_CHECK]

    def test_workspace_passed_to_invoker(self, tmp_path):
        seen = []
        Executor(workspace=tmp_path, invoke=lambda s, cwd: seen.append(cwd) or 0).execute(
            "x", [run("x", "true")]
        )
        assert seen == [tmp_path]

    def test_empty_sequence_succeeds(self, tmp_path):
        result = Executor(workspace=tmp_path, invoke=lambda s, c: 1).execute("empty", [])
        assert result.outcome is Outcome.SUCCESS

    def test_default_invoker_is_run_command(self, tmp_path):
        assert Executor(workspace=tmp_path).invoke is run_command


class TestRunCommand:
    def test_passes_argv_and_cwd(self, tmp_path, monkeypatch):
        captured = {}

        def fake_run(args, cwd, check):
            captured.update(args=args, cwd=cwd)
            return subprocess.CompletedProcess(args, 3)

        monkeypatch.setattr(runner.subprocess, "run", fake_run)
        code = run_command(run("compiler", "cargo", "check"), tmp_path)
        assert code == 3
        assert captured == {"args": ["cargo", "check"], "cwd": tmp_path}

    def test_missing_program(self, tmp_path, monkeypatch):
        def fake_run(args, cwd, check):
            raise FileNotFoundError(args[0])

        monkeypatch.setattr(runner.subprocess, "run", fake_run)
        assert run_command(run("compiler", "cross", "build"), tmp_path) == 127

    def test_killed_by_signal(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            runner.subprocess,
            "run",
            lambda args, cwd, check: subprocess.CompletedProcess(args, -9),
        )
        assert run_command(run("test-runner", "cargo", "test"), tmp_path) == 137


@pytest.mark.parametrize("name", ["fix", "fmt", "check", "build", "release", "install", "clean"])
def test_single_task_success(fake_invoker, tmp_path, name):
    inv = fake_invoker()
    result = _execute(name, inv, tmp_path)
    assert result.outcome is Outcome.SUCCESS
    assert inv.calls == [s.display() for s in build_registry().resolve(name)]
