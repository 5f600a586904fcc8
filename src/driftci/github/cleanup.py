# github/cleanup.py
from __future__ import annotations

from typing import List

from ..ui.console import get_console
from .api_client import APIClient

STALE_STATUSES = ("queued", "in_progress")


def cancel_stale_runs(client: APIClient, repository: str, run_id: int) -> List[int]:
    """
    Cancel older queued / in-progress runs of the same workflow on the same
    branch as `run_id`. Returns the ids that were cancelled.
    """
    console = get_console()
    current = client.get_run(repository, run_id)
    if not current.head_branch:
        console.print_debug(f"run {run_id} has no head branch; nothing to clean up")
        return []

    stale = {}
    for status in STALE_STATUSES:
        for run in client.list_runs(repository, current.workflow_id, branch=current.head_branch, status=status):
            if run.id != current.id and run.run_number < current.run_number:
                stale[run.id] = run

    cancelled: List[int] = []
    for rid in sorted(stale):
        client.cancel_run(repository, rid)
        console.print_info(f"cancelled stale run {rid} (#{stale[rid].run_number}) on {current.head_branch}")
        cancelled.append(rid)
    return cancelled
