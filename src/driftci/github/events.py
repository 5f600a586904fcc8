# github/events.py
from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..git_facts.git import branch_changed_files, changed_files
from ..model import TriggerEvent
from ..ui.console import get_console
from .models import PullRequestPayload, PushPayload

# all-zero sha: GitHub's "before" for a newly created branch
NULL_SHA = "0" * 40


def _diff(base: Optional[str], head: Optional[str], diff: Callable[[str, str], List[str]]) -> Tuple[str, ...]:
    if not base or not head or base == NULL_SHA:
        return ()
    try:
        return tuple(diff(base, head))
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        # unknown change set: run everything
        get_console().print_debug(f"could not diff {base}..{head}: {e}")
        return ()


def event_from_github(
    environ: Mapping[str, str] | None = None,
    *,
    diff: Callable[[str, str], List[str]] = changed_files,
    pr_diff: Callable[[str, str], List[str]] = branch_changed_files,
) -> TriggerEvent:
    """
    Build a TriggerEvent from the GitHub Actions environment:
      GITHUB_EVENT_NAME, GITHUB_REF and the JSON payload at GITHUB_EVENT_PATH.

    A push diffs before..after. A pull request diffs base...head, so only
    what the branch itself changed counts, not later commits on the base.
    """
    env = os.environ if environ is None else environ
    name = env.get("GITHUB_EVENT_NAME", "")
    ref = env.get("GITHUB_REF", "")
    if not name or not ref:
        raise ValueError("GITHUB_EVENT_NAME and GITHUB_REF must be set")

    payload = {}
    event_path = env.get("GITHUB_EVENT_PATH")
    if event_path and Path(event_path).is_file():
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))

    paths: Tuple[str, ...] = ()
    try:
        if name == "push" and payload:
            push = PushPayload.model_validate(payload)
            paths = _diff(push.before, push.after, diff)
        elif name == "pull_request" and payload:
            pr = PullRequestPayload.model_validate(payload).pull_request
            paths = _diff(pr.base.sha, pr.head.sha, pr_diff)
    except ValidationError as e:
        get_console().print_debug(f"unexpected {name} payload: {e}")

    return TriggerEvent(event_type=name, ref=ref, paths_changed=paths)
