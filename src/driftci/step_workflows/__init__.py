from __future__ import annotations

from typing import Callable, Dict

from ..model import Step, StepContext, StepResult
from . import cargo, cleanup, protoc, regenerate, shell, toolchain

StepRunner = Callable[[Step, StepContext], StepResult]

# step.kind -> runner
RUNNERS: Dict[str, StepRunner] = {
    "sh": shell.run_step,
    "toolchain": toolchain.run_step,
    "fetch": protoc.run_step,
    "regenerate": regenerate.run_step,
    "cargo": cargo.run_step,
    "verify": cargo.run_verify,
    "cleanup-runs": cleanup.run_step,
}


def run_step(step: Step, ctx: StepContext) -> StepResult:
    runner = RUNNERS.get(step.kind)
    if runner is None:
        raise ValueError(f"[{ctx.job.name}] step '{step.name}' has unknown kind {step.kind!r}")
    return runner(step, ctx)
