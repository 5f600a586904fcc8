# triggers.py
"""
Trigger evaluation.

Everything in here is a pure function of (event, predicate data): no git,
no subprocess, no environment. The orchestrator calls `plan()` once per
event and gets back the jobs to run.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from fnmatch import fnmatch
from typing import Iterable, List, Optional, Sequence

from .model import Job, Pipeline, RefFilter, Trigger, TriggerEvent

RELEASE_TAG_RE = re.compile(r"^v\d+\.\d+\.\d+$")


@dataclass(frozen=True)
class Ref:
    kind: str  # "branch" | "tag" | "pull"
    name: str


def parse_ref(ref: str) -> Ref:
    """
    Classify a git ref.

      refs/heads/main      -> branch main
      refs/tags/v1.2.3     -> tag v1.2.3
      refs/pull/42/merge   -> pull 42
      v1.2.3               -> tag v1.2.3 (bare release-shaped name)
      feature/x            -> branch feature/x
    """
    ref = ref.strip()
    if ref.startswith("refs/heads/"):
        return Ref("branch", ref[len("refs/heads/"):])
    if ref.startswith("refs/tags/"):
        return Ref("tag", ref[len("refs/tags/"):])
    if ref.startswith("refs/pull/"):
        return Ref("pull", ref[len("refs/pull/"):].split("/", 1)[0])
    if RELEASE_TAG_RE.match(ref):
        return Ref("tag", ref)
    return Ref("branch", ref)


def is_release_tag(ref: str) -> bool:
    r = parse_ref(ref)
    return r.kind == "tag" and bool(RELEASE_TAG_RE.match(r.name))


def _matches_any(value: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch(value, p) for p in patterns)


def paths_ignored(paths: Sequence[str], patterns: Sequence[str]) -> bool:
    """True when there are changes and every one of them is ignored."""
    if not paths or not patterns:
        return False
    return all(_matches_any(p, patterns) for p in paths)


def _ref_allowed(name: str, allow: Optional[Sequence[str]]) -> bool:
    if allow is None:
        return True
    return _matches_any(name, allow)


def should_trigger(event: TriggerEvent, trigger: Trigger) -> bool:
    """Does this event start the pipeline at all?"""
    if event.event_type not in trigger.events:
        return False
    if paths_ignored(event.paths_changed, trigger.paths_ignore):
        return False
    if event.event_type == "push":
        return _ref_allowed(parse_ref(event.ref).name, trigger.push_refs)
    return True


def should_run(event: TriggerEvent, predicate: RefFilter) -> bool:
    """Does a single job's predicate accept this event?"""
    if event.event_type not in predicate.events:
        return False
    ref = parse_ref(event.ref)
    if predicate.ignore_tags and ref.kind == "tag":
        return False
    if _matches_any(ref.name, predicate.refs_ignore):
        return False
    if event.event_type == "push":
        if predicate.push_ignore_releases and ref.kind == "tag" and RELEASE_TAG_RE.match(ref.name):
            return False
        if ref.kind != "tag" and _matches_any(ref.name, predicate.push_refs_ignore):
            return False
    return _ref_allowed(ref.name, predicate.refs)


def skip_reason(event: TriggerEvent, pipeline: Pipeline, job: Job) -> str | None:
    """Human readable reason a job is not scheduled, or None if it is."""
    if event.event_type not in pipeline.trigger.events:
        return f"event {event.event_type} not handled"
    if paths_ignored(event.paths_changed, pipeline.trigger.paths_ignore):
        return f"only ignored paths changed {list(pipeline.trigger.paths_ignore)}"
    if not should_trigger(event, pipeline.trigger):
        return f"ref {event.ref} not in push allow-list"
    if not should_run(event, job.when):
        return f"ref {event.ref} excluded by job predicate"
    return None


def plan(event: TriggerEvent, pipeline: Pipeline) -> List[Job]:
    if not should_trigger(event, pipeline.trigger):
        return []
    return [j for j in pipeline.jobs if should_run(event, j.when)]
