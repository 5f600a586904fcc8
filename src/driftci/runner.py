# runner.py
from __future__ import annotations

import dataclasses
import os
import runpy
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from . import settings
from .errors import CIError, StepFailure
from .model import Job, JobResult, Pipeline, StepContext, StepOutcome, TriggerEvent
from .step_workflows import run_step
from .triggers import plan, skip_reason
from .ui.console import get_console
from .workspace import discard_workspace, prepare_workspace


# ----------------------------------------------------------------------
# Pipeline loading (local file)
# ----------------------------------------------------------------------

def load_pipeline(path: str | Path) -> Pipeline:
    """
    Load a pipeline from a python file path.

    The file must define either:
      - pipeline() -> Pipeline
      - PIPELINE = Pipeline(...)
    """
    pl_path = Path(path).expanduser().resolve()
    if not pl_path.exists():
        raise FileNotFoundError(f"Pipeline file not found: {pl_path}")
    if pl_path.suffix != ".py":
        raise ValueError(f"Pipeline must be a .py file, got: {pl_path.name}")

    module_name = f"driftci_pipeline_{pl_path.stem}"
    globals_dict = runpy.run_path(str(pl_path), run_name=module_name)

    result = None
    if "pipeline" in globals_dict and callable(globals_dict["pipeline"]):
        result = globals_dict["pipeline"]()
    elif "PIPELINE" in globals_dict:
        result = globals_dict["PIPELINE"]

    if not isinstance(result, Pipeline):
        raise TypeError(
            "Pipeline file must return/define a Pipeline. "
            "Define pipeline() -> Pipeline (see driftci.wf) or PIPELINE = wf(...)."
        )
    return result


# ----------------------------------------------------------------------
# Planning
# ----------------------------------------------------------------------

def select_jobs(event: TriggerEvent, pipeline: Pipeline, *, print_plan: bool = True) -> List[Job]:
    selected = plan(event, pipeline)
    if print_plan:
        console = get_console()
        chosen = {j.name for j in selected}
        for j in pipeline.jobs:
            if j.name in chosen:
                console.print_plan_job(j.name, "scheduled")
            else:
                console.print_plan_job_skipped(j.name, skip_reason(event, pipeline, j) or "not selected")
    return selected


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _attribute(err: Exception, job: Job, step_name: str) -> Exception:
    """Fill in job/step on errors raised by step runners."""
    if isinstance(err, CIError) and (not err.job or not err.step):
        return dataclasses.replace(err, job=err.job or job.name, step=err.step or step_name)
    return err


def _run_job(job: Job, workdir: Path) -> JobResult:
    """
    Run a job's steps strictly in order. The first failure stops the job;
    later steps are reported as not-run. Never raises for step errors.
    """
    console = get_console()
    start = time.monotonic()
    ctx = StepContext(job=job, workdir=workdir)
    outcomes: List[StepOutcome] = []

    for idx, step in enumerate(job.steps):
        console.print_step(job.name, step.name)
        try:
            result = run_step(step, ctx)
        except Exception as e:
            err = _attribute(e, job, step.name)
            console.print_failure(
                job.name,
                step.name,
                str(err),
                exit_code=err.exit_code if isinstance(err, StepFailure) else None,
                hint=err.details.get("hint") if isinstance(err, CIError) else None,
                output=err.output if isinstance(err, StepFailure) else None,
            )
            outcomes.append(StepOutcome(step.name, step.kind, "failed"))
            outcomes.extend(StepOutcome(s.name, s.kind, "not-run") for s in job.steps[idx + 1:])
            return JobResult(
                name=job.name,
                status="failed",
                steps=tuple(outcomes),
                error=str(err),
                required=job.required,
                duration=time.monotonic() - start,
            )
        outcomes.append(StepOutcome(step.name, step.kind, "ok"))
        ctx = ctx.advance(step, result)

    return JobResult(
        name=job.name,
        status="ok",
        steps=tuple(outcomes),
        required=job.required,
        duration=time.monotonic() - start,
    )


def _execute(
    job: Job,
    *,
    source_root: Path,
    run_root: Path,
    isolate: bool,
    keep_workspaces: bool,
) -> JobResult:
    console = get_console()
    console.print_job_start(job.name)
    start = time.monotonic()

    workdir = source_root
    try:
        if isolate:
            workdir = prepare_workspace(source_root, run_root / job.name)
        result = _run_job(job, workdir)
    except Exception as e:
        console.print_exception(e)
        result = JobResult(
            name=job.name,
            status="failed",
            steps=tuple(StepOutcome(s.name, s.kind, "not-run") for s in job.steps),
            error=f"workspace: {e}",
            required=job.required,
            duration=time.monotonic() - start,
        )
    finally:
        if isolate and not keep_workspaces:
            discard_workspace(run_root / job.name)

    console.print_job_done(job.name, result.status, result.duration)
    return result


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_pipeline(
    jobs: Iterable[Job],
    *,
    source_root: str | Path = ".",
    work_root: str | Path | None = None,
    isolate: bool = True,
    keep_workspaces: bool = False,
    max_workers: int | None = None,
    run_id: str | None = None,
) -> Dict[str, JobResult]:
    """
    Run every job concurrently, each in its own workspace.

    Jobs are independent: a failure in one never cancels or blocks another.
    Returns name -> JobResult in job order.
    """
    jobs = list(jobs)
    if not jobs:
        return {}

    source = Path(source_root).resolve()
    root = Path(work_root) if work_root is not None else source / settings.WORK_ROOT
    run_root = root.resolve() / (run_id or uuid.uuid4().hex[:12])

    if max_workers is None:
        max_workers = len(jobs)

    results: Dict[str, JobResult] = {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = {
            pool.submit(
                _execute,
                job,
                source_root=source,
                run_root=run_root,
                isolate=isolate,
                keep_workspaces=keep_workspaces,
            ): job.name
            for job in jobs
        }
        for fut in as_completed(futures):
            results[futures[fut]] = fut.result()

    if isolate and not keep_workspaces and run_root.exists():
        discard_workspace(run_root)

    return {j.name: results[j.name] for j in jobs}


def run_event(
    event: TriggerEvent,
    pipeline: Pipeline,
    *,
    only: Optional[Iterable[str]] = None,
    print_plan: bool = True,
    **kwargs,
) -> Dict[str, JobResult]:
    """Plan for `event`, then run the scheduled jobs (optionally a named subset)."""
    jobs = select_jobs(event, pipeline, print_plan=print_plan)
    if only:
        wanted = set(only)
        unknown = wanted - {j.name for j in pipeline.jobs}
        if unknown:
            raise ValueError(f"Unknown job(s): {sorted(unknown)}")
        jobs = [j for j in jobs if j.name in wanted]
    return run_pipeline(jobs, **kwargs)


def pipeline_ok(results: Mapping[str, JobResult]) -> bool:
    """Overall outcome: every required job passed."""
    return all(r.ok for r in results.values() if r.required)


if __name__ == "__main__":
    # Local smoke run: push of the current HEAD with no path filter
    from .git_facts.git import get_current_ref

    pl = load_pipeline(os.environ.get("DRIFTCI_PIPELINE", "driftci_pipeline.py"))
    res = run_event(TriggerEvent("push", get_current_ref()), pl)
    raise SystemExit(0 if pipeline_ok(res) else 1)
