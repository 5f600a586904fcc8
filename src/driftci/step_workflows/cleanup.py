# step_workflows/cleanup.py
from __future__ import annotations

from ..errors import CleanupError
from ..github.api_client import APIClient, APIError
from ..github.cleanup import cancel_stale_runs
from ..model import Step, StepContext, StepResult

REQUIRED_ENV = ("GITHUB_TOKEN", "GITHUB_REPOSITORY", "GITHUB_RUN_ID")


def cleanup_runs(*, name: str = "Cancel stale runs") -> Step:
    """Create the housekeeping step that cancels superseded runs of this change."""
    return Step(name=name, kind="cleanup-runs")


def run_step(step: Step, ctx: StepContext) -> StepResult:
    env = ctx.environ()
    missing = [k for k in REQUIRED_ENV if not env.get(k)]
    if missing:
        raise CleanupError(
            job=ctx.job.name,
            step=step.name,
            message="missing GitHub context",
            details={"missing": ", ".join(missing)},
        )

    try:
        run_id = int(env["GITHUB_RUN_ID"])
    except ValueError:
        raise CleanupError(job=ctx.job.name, step=step.name, message=f"bad GITHUB_RUN_ID {env['GITHUB_RUN_ID']!r}")

    client = APIClient(env["GITHUB_TOKEN"], env.get("GITHUB_API_URL"))
    try:
        cancelled = cancel_stale_runs(client, env["GITHUB_REPOSITORY"], run_id)
    except APIError as e:
        raise CleanupError(job=ctx.job.name, step=step.name, message=str(e)) from e
    return StepResult(details={"cancelled": cancelled})
