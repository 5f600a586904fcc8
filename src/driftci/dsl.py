# src/driftci/dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from .model import Job, Pipeline, RefFilter, Step, Toolchain, Trigger
from .step_workflows.toolchain import provision


# ---------------------------------------------------------------------
# Step helper
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, cwd: str | None = None) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd)


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    steps_list: Optional[List[Step]] = None,  # allow: job("x", steps_list=[...])
    toolchain: str | None = None,
    target: str | None = None,
    when: RefFilter | None = None,
    env: Optional[Dict[str, str]] = None,
    secrets: Sequence[str] = (),
    required: bool = True,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Job:
    """
    Build a Job.

    Declaring `toolchain=` (and optionally `target=`) records the job's
    environment and prepends the matching provision step.
    """
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(list(steps_list))
    steps_final.extend(list(steps))

    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    if target is not None and toolchain is None:
        toolchain = "stable"

    tc = None
    if toolchain is not None:
        tc = Toolchain(version=toolchain, target=target)
        steps_final.insert(0, provision(tc.version, tc.target))

    return Job(
        name=name,
        steps=tuple(steps_final),
        toolchain=tc,
        when=when or RefFilter(),
        # force values to str for a stable subprocess env
        env={k: str(v) for k, v in (env or {}).items()},
        secrets=tuple(secrets),
        required=required,
    )


# ---------------------------------------------------------------------
# Predicate helpers
# ---------------------------------------------------------------------

def unless_primary_or_release(primary_branch: str = "main") -> RefFilter:
    """
    Predicate for jobs that should skip pushes to the primary branch and to
    release tags. Every other push, and every pull request, schedules them.
    """
    return RefFilter(push_refs_ignore=(primary_branch,), push_ignore_releases=True)


# ---------------------------------------------------------------------
# Pipeline helper (single-file story)
# ---------------------------------------------------------------------

def wf(
    *jobs: Job,
    name: str = "build",
    paths_ignore: Sequence[str] = ("docs/**",),
    push_refs: Optional[Sequence[str]] = None,
) -> Pipeline:
    """
    Pipeline definition helper.

    Users can write:
        from driftci import wf, job, sh

        def pipeline():
            return wf(
                job(...),
                job(...),
            )

    Or define PIPELINE directly:
        PIPELINE = wf(job(...), job(...))
    """
    trigger = Trigger(
        paths_ignore=tuple(paths_ignore),
        push_refs=tuple(push_refs) if push_refs is not None else None,
    )
    return Pipeline(name=name, jobs=tuple(jobs), trigger=trigger)
