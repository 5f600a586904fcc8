# step_workflows/shell.py
from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Mapping, Sequence, Union

from ..errors import StepFailure
from ..model import Step, StepContext, StepResult

Command = Union[str, Sequence[str]]

# Keep the tail only; full logs are the platform's job
OUTPUT_TAIL = 4000


def run_command(cmd: Command, cwd: Path, env: Mapping[str, str]) -> subprocess.CompletedProcess:
    """Run a shell string or an argv list, capturing output."""
    return subprocess.run(
        cmd,
        shell=isinstance(cmd, str),
        cwd=str(cwd),
        env=dict(env),
        text=True,
        capture_output=True,
    )


def command_text(cmd: Command) -> str:
    return cmd if isinstance(cmd, str) else " ".join(cmd)


def output_tail(proc: subprocess.CompletedProcess) -> str:
    return ((proc.stdout or "") + (proc.stderr or ""))[-OUTPUT_TAIL:]


def run_step(step: Step, ctx: StepContext) -> StepResult:
    if not step.run:
        raise ValueError(f"[{ctx.job.name}] step '{step.name}' has no command")

    proc = run_command(step.run, ctx.cwd_for(step), ctx.environ())
    if proc.returncode != 0:
        raise StepFailure(
            job=ctx.job.name,
            step=step.name,
            message="command failed",
            cmd=step.run,
            exit_code=proc.returncode,
            output=output_tail(proc),
        )
    return StepResult()
