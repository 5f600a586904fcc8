# step_workflows/regenerate.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from ..errors import DriftError, RegenerationError
from ..fingerprint import TreeDigest, changed_files, tree_digest
from ..model import Step, StepContext, StepResult
from ..ui.console import get_console
from .shell import Command, command_text, output_tail, run_command

DRIFT_POLICIES = ("off", "warn", "fail")


# ---------------------------------------------------------------------
# Regenerate step helper
# ---------------------------------------------------------------------

def regenerate(
    cmd: Command = "cargo run",
    *,
    cwd: str | None = "tools/proto-compiler",
    schema_root: str | None = None,
    generated: Sequence[str] = (),
    compiler_binding: str = "PROTOC",
    drift: str = "warn",
    name: str = "Regenerate proto definitions",
) -> Step:
    """
    Create a step that reruns the code generator in place.

    `generated` lists the repository paths the generator writes; they are
    fingerprinted before and after so drift can be reported per `drift`
    policy ("off" | "warn" | "fail").
    """
    if drift not in DRIFT_POLICIES:
        raise ValueError(f"drift must be one of {DRIFT_POLICIES}, got {drift!r}")
    return Step(
        name=name,
        run=command_text(cmd),
        cwd=cwd,
        kind="regenerate",
        data={
            "cmd": cmd,
            "schema_root": schema_root,
            "generated": tuple(generated),
            "compiler_binding": compiler_binding,
            "drift": drift,
        },
    )


# ---------------------------------------------------------------------
# Regeneration
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class RegenerationReport:
    before: TreeDigest
    after: TreeDigest
    changed: tuple

    @property
    def drifted(self) -> bool:
        return bool(self.changed)


def run_regenerator(
    cmd: Command,
    *,
    repo_root: Path,
    cwd: Path,
    env: Mapping[str, str],
    generated: Sequence[str] = (),
) -> RegenerationReport:
    """Run the generator once, overwriting the generated tree in place."""
    before = tree_digest(repo_root, generated)

    proc = run_command(cmd, cwd, env)
    if proc.returncode != 0:
        raise RegenerationError(
            job="",
            step=None,
            message=f"generator exited with {proc.returncode}",
            details={"cmd": command_text(cmd), "output": output_tail(proc)},
        )

    after = tree_digest(repo_root, generated)
    return RegenerationReport(before=before, after=after, changed=changed_files(before, after))


# ---------------------------------------------------------------------
# Regenerate step execution
# ---------------------------------------------------------------------

def run_step(step: Step, ctx: StepContext) -> StepResult:
    data = step.data
    binding = data.get("compiler_binding") or "PROTOC"
    if binding not in ctx.bindings:
        raise RegenerationError(
            job=ctx.job.name,
            step=step.name,
            message=f"no schema compiler bound to {binding}; fetch it in an earlier step of this job",
        )

    schema_root = data.get("schema_root")
    if schema_root and not (ctx.workdir / schema_root).is_dir():
        raise RegenerationError(
            job=ctx.job.name,
            step=step.name,
            message=f"schema source tree not found: {schema_root}",
        )

    report = run_regenerator(
        data.get("cmd") or step.run,
        repo_root=ctx.workdir,
        cwd=ctx.cwd_for(step),
        env=ctx.environ(),
        generated=data.get("generated") or (),
    )

    policy = data.get("drift") or "warn"
    if report.drifted and policy != "off":
        if policy == "fail":
            raise DriftError(
                job=ctx.job.name,
                step=step.name,
                message=f"regenerated output differs from the committed tree ({len(report.changed)} files)",
                details={"changed": ", ".join(report.changed)},
            )
        get_console().print_warning(
            ctx.job.name,
            f"regenerated output differs from the committed tree: {', '.join(report.changed)}",
        )

    return StepResult(details={"generated_digest": report.after.digest, "changed": report.changed})
