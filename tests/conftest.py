from __future__ import annotations

from pathlib import Path

import pytest

from buildpipe.core import Command


class FakeInvoker:
    """Stands in for every collaborator; records calls instead of spawning processes."""

    def __init__(self, failures: dict[str, int] | None = None, effects=None):
        self.failures = failures or {}
        self.effects = effects or {}
        self.calls: list[str] = []

    def __call__(self, step: Command, cwd: Path) -> int:
        cmd = step.display()
        self.calls.append(cmd)
        code = self.failures.get(cmd, 0)
        if code == 0 and cmd in self.effects:
            self.effects[cmd](cwd)
        return code


@pytest.fixture
def fake_invoker():
    return FakeInvoker
