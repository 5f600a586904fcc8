# model.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from . import settings

EVENT_TYPES = ("push", "pull_request")


@dataclass(frozen=True)
class Step:
    """A single action inside a CI job."""
    name: str
    run: str | None = None
    cwd: str | None = None
    kind: str = "sh"
    data: Mapping[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class Toolchain:
    """Execution environment of a job: compiler toolchain + optional extra target."""
    version: str = "stable"
    target: str | None = None


@dataclass(frozen=True)
class RefFilter:
    """
    Per-job trigger predicate, kept as data.

    `refs` / `refs_ignore` are glob patterns matched against the short ref
    name (branch or tag name, without refs/heads/ or refs/tags/).
    `push_refs_ignore` and `push_ignore_releases` only apply to push events;
    a pull request is never excluded by them.
    """
    events: Tuple[str, ...] = EVENT_TYPES
    refs: Optional[Tuple[str, ...]] = None       # allow-list, None = any ref
    refs_ignore: Tuple[str, ...] = ()
    ignore_tags: bool = False
    push_refs_ignore: Tuple[str, ...] = ()
    push_ignore_releases: bool = False           # vMAJOR.MINOR.PATCH tags


@dataclass(frozen=True)
class Trigger:
    """Pipeline-level trigger surface (repository events + path filter)."""
    events: Tuple[str, ...] = EVENT_TYPES
    paths_ignore: Tuple[str, ...] = ("docs/**",)
    push_refs: Optional[Tuple[str, ...]] = None  # push allow-list, None = any ref


@dataclass(frozen=True)
class Job:
    """
    A CI job: an ordered sequence of steps run in its own workspace.

    Jobs are immutable and carry no state between runs; `required=False`
    marks best-effort jobs whose failure does not fail the pipeline.
    """
    name: str
    steps: Tuple[Step, ...]
    toolchain: Toolchain | None = None
    when: RefFilter = field(default_factory=RefFilter)
    env: Mapping[str, str] = field(default_factory=dict, compare=False)
    secrets: Tuple[str, ...] = ()
    required: bool = True


@dataclass(frozen=True)
class Pipeline:
    name: str
    jobs: Tuple[Job, ...]
    trigger: Trigger = field(default_factory=Trigger)

    def __post_init__(self) -> None:
        names = [j.name for j in self.jobs]
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate job names found: {dupes}")

    def job(self, name: str) -> Job:
        for j in self.jobs:
            if j.name == name:
                return j
        raise KeyError(f"Unknown job '{name}'. Known jobs: {[j.name for j in self.jobs]}")


@dataclass(frozen=True)
class TriggerEvent:
    """A repository event: push or pull_request, its ref and the changed paths."""
    event_type: str
    ref: str
    paths_changed: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Unsupported event type {self.event_type!r}; expected one of {EVENT_TYPES}")
        object.__setattr__(self, "paths_changed", tuple(self.paths_changed))


# ----------------------------------------------------------------------
# Step execution: explicit results threaded through a job
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class StepResult:
    """
    What a step hands to the steps after it in the same job.

      bindings: env-style key/values (e.g. PROTOC=/path/to/protoc)
      path:     directories to put in front of PATH
      details:  free-form facts for reporting (not exported)
    """
    bindings: Mapping[str, str] = field(default_factory=dict)
    path: Tuple[str, ...] = ()
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StepContext:
    job: Job
    workdir: Path
    bindings: Mapping[str, str] = field(default_factory=dict)
    path: Tuple[str, ...] = ()
    completed: Tuple[str, ...] = ()  # kinds of the steps that already succeeded

    def advance(self, step: Step, result: StepResult) -> StepContext:
        bindings = dict(self.bindings)
        bindings.update(result.bindings)
        return StepContext(
            job=self.job,
            workdir=self.workdir,
            bindings=bindings,
            path=tuple(result.path) + self.path,
            completed=self.completed + (step.kind,),
        )

    def cwd_for(self, step: Step, default: str | None = None) -> Path:
        cwd = (self.workdir / (step.cwd or default or ".")).resolve()
        if not cwd.exists():
            raise FileNotFoundError(f"[{self.job.name}] step '{step.name}' cwd not found: {cwd}")
        return cwd

    def environ(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        base = os.environ if base is None else base
        env = {
            k: v for k, v in base.items()
            if k not in settings.SECRET_ENV or k in self.job.secrets
        }
        env.update(self.job.env or {})
        env.update(self.bindings)
        if self.path:
            env["PATH"] = os.pathsep.join([*self.path, env.get("PATH", "")])
        return env


@dataclass(frozen=True)
class StepOutcome:
    name: str
    kind: str
    status: str  # "ok" | "failed" | "not-run"


@dataclass(frozen=True)
class JobResult:
    name: str
    status: str  # "ok" | "failed"
    steps: Tuple[StepOutcome, ...] = ()
    error: str | None = None
    required: bool = True
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def step(self, name: str) -> StepOutcome:
        for s in self.steps:
            if s.name == name:
                return s
        raise KeyError(name)
