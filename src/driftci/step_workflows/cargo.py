# step_workflows/cargo.py
from __future__ import annotations

import shlex
from typing import List, Type

from ..errors import BuildError, CIError, VerifyError
from ..model import Step, StepContext, StepResult
from .shell import output_tail, run_command

# Full workspace build; shared by the native build job and the verifier
BUILD_ALL = "build-all"


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def cargo(command: str, *, name: str | None = None, cwd: str | None = None, program: str = "cargo") -> Step:
    """Create a build step: `cargo <command>`."""
    return Step(
        name=name or f"{program} {command}",
        run=f"{program} {command}",
        cwd=cwd,
        kind="cargo",
        data={"program": program, "command": command},
    )


def verify(command: str = BUILD_ALL, *, name: str | None = None, program: str = "cargo") -> Step:
    """
    Create the consistency check: a full build of the regenerated tree.

    Must follow a regenerate step in the same job.
    """
    return Step(
        name=name or "Ensure that generated proto definitions compile",
        run=f"{program} {command}",
        kind="verify",
        data={"program": program, "command": command},
    )


# ---------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------

def _argv(step: Step) -> List[str]:
    program = step.data.get("program") or "cargo"
    return [program, *shlex.split(step.data.get("command") or "")]


def _build(step: Step, ctx: StepContext, error: Type[BuildError]) -> StepResult:
    argv = _argv(step)
    try:
        proc = run_command(argv, ctx.cwd_for(step), ctx.environ())
    except FileNotFoundError:
        raise CIError(
            job=ctx.job.name,
            step=step.name,
            message=f"{argv[0]} is not available",
            details={"hint": "Install a Rust toolchain with rustup or fix PATH."},
            kind="tool_unavailable",
        )
    if proc.returncode != 0:
        raise error(
            job=ctx.job.name,
            step=step.name,
            message="build failed",
            cmd=" ".join(argv),
            exit_code=proc.returncode,
            output=output_tail(proc),
        )
    return StepResult()


def run_step(step: Step, ctx: StepContext) -> StepResult:
    return _build(step, ctx, BuildError)


def run_verify(step: Step, ctx: StepContext) -> StepResult:
    if "regenerate" not in ctx.completed:
        raise CIError(
            job=ctx.job.name,
            step=step.name,
            message="consistency check must run after a successful regenerate step in the same job",
            kind="ordering",
        )
    return _build(step, ctx, VerifyError)
