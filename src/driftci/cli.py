# cli.py
from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Sequence

import click

from driftci.git_facts.git import get_current_ref, get_remote_url, local_changed_files
from driftci.github.events import event_from_github
from driftci.model import EVENT_TYPES, TriggerEvent
from driftci.runner import load_pipeline, pipeline_ok, run_event, select_jobs
from driftci.ui.console import Console, get_console, set_console

DEFAULT_PIPELINE = "driftci_pipeline.py"


def find_pipeline_files() -> list[Path]:
    """Pipeline files in the current directory: driftci_pipeline.py, then *_pipeline.py."""
    current_dir = Path(".")
    files = []

    default = current_dir / DEFAULT_PIPELINE
    if default.exists():
        files.append(default)

    for path in current_dir.glob("*_pipeline.py"):
        if path != default:
            files.append(path)

    return sorted(files)


def discover_pipeline(pipeline_arg: str | None) -> Path:
    """
    Resolve the pipeline file from the --pipeline argument or by discovery.

    Raises:
        SystemExit: If no pipeline (or more than one) is found
    """
    console = get_console()

    if pipeline_arg:
        path = Path(pipeline_arg)
        if not path.exists() and path.suffix != ".py":
            path = Path(str(path) + ".py")
        if not path.exists():
            console.print_error(
                "Pipeline file not found",
                f"Could not find pipeline file: {pipeline_arg}",
                suggestion="Create a pipeline file or specify a different path:\n  driftci run --pipeline my_pipeline.py",
            )
            sys.exit(1)
        return path

    files = find_pipeline_files()

    if len(files) == 0:
        console.print_error(
            "No pipeline file found",
            "Could not find any pipeline files.",
            details=["Looked for:", f"  {DEFAULT_PIPELINE}", "  *_pipeline.py"],
            suggestion=f"Create {DEFAULT_PIPELINE}, or specify one explicitly:\n  driftci run --pipeline my_pipeline.py",
        )
        sys.exit(1)

    if len(files) > 1:
        console.print_error(
            "Multiple pipeline files found",
            "Found multiple pipeline files. Please specify which one to use:",
            details=["\n".join(f"  {f}" for f in files)],
            suggestion=f"Specify a pipeline explicitly:\n  driftci run --pipeline {DEFAULT_PIPELINE}",
        )
        sys.exit(1)

    return files[0]


def resolve_event(
    event: str,
    ref: str | None,
    changed: Sequence[str],
    git_diff: bool,
    compare_ref: str,
    github: bool,
) -> TriggerEvent:
    """Build the trigger event from CLI flags, the local repo or the GitHub Actions env."""
    if github:
        return event_from_github()

    if ref is None:
        ref = get_current_ref()

    paths = list(changed)
    if not paths and git_diff:
        paths = local_changed_files(compare_ref)

    return TriggerEvent(event_type=event, ref=ref, paths_changed=tuple(paths))


def event_options(f):
    options = [
        click.option("--pipeline", "pipeline_file", default=None,
                     help=f"Pipeline file path (defaults to {DEFAULT_PIPELINE} if present)"),
        click.option("--event", type=click.Choice(EVENT_TYPES), default="push", show_default=True,
                     help="Repository event to simulate"),
        click.option("--ref", default=None, help="Git ref (defaults to the current branch)"),
        click.option("--changed", multiple=True, help="Changed path (repeatable)"),
        click.option("--git-diff/--no-git-diff", default=False,
                     help="Take changed paths from git when --changed is not given"),
        click.option("--compare-ref", default="origin/main", show_default=True, help="Git ref to diff against"),
        click.option("--github", is_flag=True, default=False,
                     help="Read the event from the GitHub Actions environment"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _fail(exc: Exception) -> None:
    get_console().print_exception(exc)
    sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and command output)",
)
@click.pass_context
def cli(ctx, debug):
    """driftci: parallel CI jobs with a schema regeneration gate."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@event_options
@click.pass_context
def plan(ctx, pipeline_file, event, ref, changed, git_diff, compare_ref, github):
    """Show which jobs an event would schedule, without running anything."""
    console = get_console()
    path = discover_pipeline(pipeline_file)

    try:
        pipeline = load_pipeline(path)
        trigger_event = resolve_event(event, ref, changed, git_diff, compare_ref, github)
    except (subprocess.CalledProcessError, FileNotFoundError, ValueError, TypeError) as e:
        _fail(e)

    console.print_info(f"{pipeline.name}: {trigger_event.event_type} {trigger_event.ref}")
    jobs = select_jobs(trigger_event, pipeline, print_plan=True)
    console.print_info(f"\n{len(jobs)} job(s) scheduled")


@cli.command()
@event_options
@click.option("--job", "only", multiple=True, help="Run only this job (repeatable)")
@click.option("--workers", default=None, type=int, help="Number of parallel workers (default: one per job)")
@click.option("--work-dir", default=None, help="Root for per-job workspaces")
@click.option("--isolate/--in-place", default=True, show_default=True,
              help="Give every job its own checkout, or run all jobs in the current tree")
@click.option("--keep-workspaces", is_flag=True, default=False, help="Do not delete job workspaces afterwards")
@click.pass_context
def run(ctx, pipeline_file, event, ref, changed, git_diff, compare_ref, github,
        only, workers, work_dir, isolate, keep_workspaces):
    """Run the jobs a pipeline schedules for an event."""
    console = get_console()
    path = discover_pipeline(pipeline_file)

    try:
        try:
            repo_url = get_remote_url("origin")
            repo_name = repo_url.rstrip("/").split("/")[-1].replace(".git", "")
        except (subprocess.CalledProcessError, FileNotFoundError):
            repo_name = Path(".").resolve().name

        pipeline = load_pipeline(path)
        trigger_event = resolve_event(event, ref, changed, git_diff, compare_ref, github)

        console.print_run_started(
            repository=repo_name,
            pipeline=f"{pipeline.name} ({path.name})",
            event=trigger_event.event_type,
            ref=trigger_event.ref,
            job_count=len(pipeline.jobs),
        )

        results = run_event(
            trigger_event,
            pipeline,
            only=only or None,
            source_root=".",
            work_root=work_dir,
            isolate=isolate,
            keep_workspaces=keep_workspaces,
            max_workers=workers,
        )

        if not results:
            console.print_info("No jobs scheduled for this event.")
            return

        console.print_results(results)

        if not pipeline_ok(results):
            sys.exit(1)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except (subprocess.CalledProcessError, FileNotFoundError, ValueError, TypeError) as e:
        _fail(e)


if __name__ == "__main__":
    cli()
