# step_workflows/toolchain.py
from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from typing import Callable, Dict, List

from ..errors import ProvisionError
from ..model import Step, StepContext, StepResult

_RUSTUP_LOCK = threading.Lock()

TOOL_HINTS = {
    "rustup": "Install rustup (https://rustup.rs) or fix PATH.",
    "cargo": "Install a Rust toolchain with rustup or fix PATH.",
}


# ---------------------------------------------------------------------
# Provision step helper
# ---------------------------------------------------------------------

def provision(toolchain: str = "stable", target: str | None = None, *, name: str | None = None) -> Step:
    """Create a step that installs a toolchain (and optional extra target)."""
    if name is None:
        name = f"Install {toolchain} toolchain"
        if target:
            name += f" ({target})"
    return Step(name=name, kind="toolchain", data={"toolchain": toolchain, "target": target})


# ---------------------------------------------------------------------
# Provisioner
# ---------------------------------------------------------------------

class Provisioner:
    """Installs a Rust toolchain through rustup; the job selects it with RUSTUP_TOOLCHAIN."""

    def __init__(self, rustup: str = "rustup", run: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.rustup = rustup
        self._run = run

    def _check_available(self) -> None:
        try:
            self._run([self.rustup, "--version"], capture_output=True, check=True)
        except (subprocess.CalledProcessError, FileNotFoundError):
            raise ProvisionError(
                job="",
                step=None,
                message=f"{self.rustup} is not available",
                details={"hint": TOOL_HINTS["rustup"], "tool": self.rustup},
                kind="tool_unavailable",
            )

    def _rustup(self, args: List[str], cwd: Path) -> None:
        cmd = [self.rustup, *args]
        proc = self._run(cmd, cwd=str(cwd), text=True, capture_output=True)
        if proc.returncode != 0:
            raise ProvisionError(
                job="",
                step=None,
                message=f"rustup {' '.join(args)} failed",
                details={"exit_code": proc.returncode, "stderr": (proc.stderr or "")[-2000:]},
            )

    def provision(self, version: str, extra_target: str | None = None, *, cwd: Path) -> Dict[str, str]:
        """
        Install `version` (and `extra_target`) and return the bindings that
        select it for later steps of the job. Nothing is pinned on disk.
        """
        self._check_available()
        # ~/.rustup is shared by every job of the run
        with _RUSTUP_LOCK:
            self._rustup(["toolchain", "install", version, "--profile", "minimal"], cwd)
            if extra_target:
                self._rustup(["target", "add", extra_target, "--toolchain", version], cwd)
        return {"RUSTUP_TOOLCHAIN": version}


# ---------------------------------------------------------------------
# Provision step execution
# ---------------------------------------------------------------------

def run_step(step: Step, ctx: StepContext) -> StepResult:
    version = step.data.get("toolchain") or "stable"
    target = step.data.get("target")
    bindings = Provisioner().provision(version, target, cwd=ctx.workdir)
    return StepResult(bindings=bindings, details={"toolchain": version, "target": target})
