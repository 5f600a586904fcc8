# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - per-job failure reporting
      - debugging without full tracebacks

    Step runners may raise with an empty `job`; the runner fills in the
    job and step names before reporting.
    """
    job: str
    step: str | None
    message: str
    details: dict = field(default_factory=dict)
    kind: str = "ci"

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.job:
            lines.append(f"job={self.job}")
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


# ----------------------------------------------------------------------
# Provisioning (toolchain install, tool download)
# ----------------------------------------------------------------------

@dataclass
class ProvisionError(CIError):
    kind: str = "provision"


@dataclass
class FetchError(ProvisionError):
    kind: str = "fetch"


# ----------------------------------------------------------------------
# Regeneration
# ----------------------------------------------------------------------

@dataclass
class RegenerationError(CIError):
    kind: str = "regeneration"


@dataclass
class DriftError(RegenerationError):
    kind: str = "drift"


# ----------------------------------------------------------------------
# Command failures (build / verify)
# ----------------------------------------------------------------------

@dataclass
class StepFailure(CIError):
    cmd: str = ""
    exit_code: int = 1
    output: str = ""
    kind: str = "step_failed"

    def __str__(self) -> str:
        where = f"[{self.job}] " if self.job else ""
        return f"{where}step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


@dataclass
class BuildError(StepFailure):
    kind: str = "build"


@dataclass
class VerifyError(BuildError):
    kind: str = "verify"


# ----------------------------------------------------------------------
# Housekeeping
# ----------------------------------------------------------------------

@dataclass
class CleanupError(CIError):
    kind: str = "housekeeping"
