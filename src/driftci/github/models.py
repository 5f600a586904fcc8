# github/models.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

# -------------------- Actions API --------------------

class WorkflowRun(BaseModel):
    id: int
    run_number: int = 0
    workflow_id: int
    status: Optional[str] = None      # queued | in_progress | completed | ...
    head_branch: Optional[str] = None
    head_sha: Optional[str] = None
    event: Optional[str] = None
    created_at: Optional[datetime] = None


class WorkflowRunList(BaseModel):
    total_count: int = 0
    workflow_runs: list[WorkflowRun] = Field(default_factory=list)


# -------------------- Event payloads --------------------

class PushPayload(BaseModel):
    ref: str
    before: Optional[str] = None
    after: Optional[str] = None


class PullRequestSide(BaseModel):
    ref: str
    sha: str


class PullRequest(BaseModel):
    number: int
    base: PullRequestSide
    head: PullRequestSide


class PullRequestPayload(BaseModel):
    number: int
    pull_request: PullRequest
