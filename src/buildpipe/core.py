from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Union, List


class PipelineError(RuntimeError):
    """Base class for orchestration failures."""


class UnknownTask(PipelineError, KeyError):
    def __init__(self, name: str, referrer: str | None = None):
        self.name = name
        self.referrer = referrer
        if referrer:
            msg = f"Task {referrer!r} references unknown task {name!r}"
        else:
            msg = f"Unknown task: {name!r}"
        PipelineError.__init__(self, msg)

    def __str__(self) -> str:
        return self.args[0]


class InvalidTaskTable(PipelineError, ValueError):
    """The task table breaks a naming or default-task rule."""


class CompositionCycle(PipelineError):
    def __init__(self, path: list[str]):
        self.path = list(path)
        super().__init__("Composition cycle: " + " -> ".join(self.path))


class StepFailure(PipelineError):
    """A fatal step exited with a non-zero status."""

    def __init__(self, index: int, step: "Command", returncode: int):
        self.index = index
        self.step = step
        self.returncode = returncode
        super().__init__(
            f"Step {index} ({step.collaborator}) failed with exit code {returncode}: "
            f"{step.display()}"
        )


@dataclass(frozen=True)
class Command:
    """A single collaborator invocation with a fixed argument list."""

    collaborator: str
    argv: tuple[str, ...]
    fatal: bool = True

    def display(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True)
class TaskRef:
    """Composition step: expands to another task's resolved steps."""

    name: str


Step = Union[Command, TaskRef]


@dataclass
class TaskSpec:
    name: str
    steps: List[Step] = field(default_factory=list)
    default: bool = False
    help: str = ""


def run(collaborator: str, *argv: str, fatal: bool = True) -> Command:
    return Command(collaborator=collaborator, argv=tuple(argv), fatal=fatal)


def ref(name: str) -> TaskRef:
    return TaskRef(name=name)


def task(name: str, *steps: Step, default: bool = False, help: str = "") -> TaskSpec:
    """Declare a task from an ordered list of steps."""
    return TaskSpec(name=name, steps=list(steps), default=default, help=help)


def topo_sort(nodes: Iterable[str], edges: Iterable[tuple[str, str]]) -> list[str]:
    nodes = list(nodes)
    incoming = {n: set() for n in nodes}
    outgoing = {n: set() for n in nodes}
    for u, v in edges:
        if u not in incoming:
            raise UnknownTask(u)
        if v not in incoming:
            raise UnknownTask(v, referrer=u)
        outgoing[u].add(v)
        incoming[v].add(u)
    ordered: list[str] = []
    roots = [n for n in nodes if not incoming[n]]
    while roots:
        n = roots.pop()
        ordered.append(n)
        for m in list(outgoing[n]):
            incoming[m].discard(n)
            outgoing[n].discard(m)
            if not incoming[m]:
                roots.append(m)
    stuck = [n for n in nodes if incoming[n]]
    if stuck:
        raise CompositionCycle(_find_cycle(stuck, incoming))
    return ordered


def _find_cycle(stuck: list[str], incoming: dict[str, set[str]]) -> list[str]:
    # Nodes left after Kahn's pass all keep a predecessor among themselves,
    # so walking predecessors must revisit a node.
    path = [stuck[0]]
    while True:
        prev = sorted(incoming[path[-1]])[0]
        if prev in path:
            cycle = path[path.index(prev):] + [prev]
            return list(reversed(cycle))
        path.append(prev)


class Registry:
    """Fixed mapping of task names to steps, validated once on construction."""

    def __init__(self, tasks: Iterable[TaskSpec]):
        self.tasks: dict[str, TaskSpec] = {}
        for spec in tasks:
            if spec.name in self.tasks:
                raise InvalidTaskTable(f"Duplicate task name: {spec.name}")
            self.tasks[spec.name] = spec
        defaults = [s.name for s in self.tasks.values() if s.default]
        if len(defaults) > 1:
            raise InvalidTaskTable(f"More than one default task: {', '.join(defaults)}")
        self._default = defaults[0] if defaults else None
        self._resolved: dict[str, list[Command]] = {}
        self.order = self.validate()

    def validate(self) -> list[str]:
        """Check every reference exists and the composition graph is acyclic."""
        edges = [
            (spec.name, step.name)
            for spec in self.tasks.values()
            for step in spec.steps
            if isinstance(step, TaskRef)
        ]
        return topo_sort(self.tasks.keys(), edges)

    @property
    def default(self) -> str | None:
        return self._default

    def names(self) -> list[str]:
        return list(self.tasks)

    def get(self, name: str) -> TaskSpec:
        if name not in self.tasks:
            raise UnknownTask(name)
        return self.tasks[name]

    def __contains__(self, name: str) -> bool:
        return name in self.tasks

    def resolve(self, name: str) -> list[Command]:
        """Flatten ``name`` into the primitive commands it runs, in order."""
        if name not in self._resolved:
            self._resolved[name] = self._resolve(name, [], None)
        return list(self._resolved[name])

    def _resolve(self, name: str, stack: list[str], referrer: str | None) -> list[Command]:
        if name in stack:
            raise CompositionCycle(stack[stack.index(name):] + [name])
        if name not in self.tasks:
            raise UnknownTask(name, referrer=referrer)
        stack.append(name)
        out: list[Command] = []
        for step in self.tasks[name].steps:
            if isinstance(step, TaskRef):
                out.extend(self._resolve(step.name, stack, name))
            else:
                out.append(step)
        stack.pop()
        return out

    def to_dict(self) -> dict:
        view: dict = {}
        for name, spec in self.tasks.items():
            steps: list = []
            for step in spec.steps:
                if isinstance(step, TaskRef):
                    steps.append({"task": step.name})
                else:
                    entry: dict = {
                        "collaborator": step.collaborator,
                        "command": step.display(),
                    }
                    if not step.fatal:
                        entry["fatal"] = False
                    steps.append(entry)
            view[name] = {"help": spec.help, "default": spec.default, "steps": steps}
        return view
