import io
import json
import subprocess
import urllib.error

import pytest

from driftci.errors import CleanupError
from driftci.github.api_client import APIClient, APIError
from driftci.github.cleanup import cancel_stale_runs
from driftci.github.events import NULL_SHA, event_from_github
from driftci.github.models import WorkflowRun
from driftci.model import Job, StepContext
from driftci.step_workflows import cleanup as cleanup_step


def _run(id, number, branch="feature/x", workflow_id=9):
    return WorkflowRun(id=id, run_number=number, workflow_id=workflow_id, head_branch=branch)


class FakeClient:
    def __init__(self, current, runs_by_status):
        self.current = current
        self.runs_by_status = runs_by_status
        self.cancelled = []
        self.queries = []

    def get_run(self, repository, run_id):
        return self.current

    def list_runs(self, repository, workflow_id, *, branch, status):
        self.queries.append((workflow_id, branch, status))
        return self.runs_by_status.get(status, [])

    def cancel_run(self, repository, run_id):
        self.cancelled.append(run_id)


class TestCancelStaleRuns:
    def test_cancels_older_runs_of_same_branch(self):
        current = _run(50, 5)
        client = FakeClient(current, {
            "queued": [_run(51, 6), _run(48, 4)],
            "in_progress": [_run(49, 3), current],
        })

        cancelled = cancel_stale_runs(client, "octo/repo", 50)

        assert cancelled == [48, 49]
        assert client.cancelled == [48, 49]
        assert client.queries == [(9, "feature/x", "queued"), (9, "feature/x", "in_progress")]

    def test_nothing_to_do_without_branch(self):
        client = FakeClient(_run(50, 5, branch=None), {"queued": [_run(48, 4)]})

        assert cancel_stale_runs(client, "octo/repo", 50) == []
        assert client.cancelled == []


class FakeOpener:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, req, timeout=None):
        self.requests.append(req)
        body = self.responses.pop(0)
        if isinstance(body, Exception):
            raise body
        return io.BytesIO(json.dumps(body).encode() if body is not None else b"")


class TestAPIClient:
    def test_get_run(self):
        opener = FakeOpener([{"id": 50, "run_number": 5, "workflow_id": 9, "head_branch": "main"}])
        client = APIClient("tok", "https://api.example.test", opener=opener)

        run = client.get_run("octo/repo", 50)

        assert run.id == 50 and run.head_branch == "main"
        req = opener.requests[0]
        assert req.full_url == "https://api.example.test/repos/octo/repo/actions/runs/50"
        assert req.get_header("Authorization") == "Bearer tok"
        assert req.get_method() == "GET"

    def test_list_runs_query(self):
        opener = FakeOpener([{"total_count": 1, "workflow_runs": [{"id": 1, "run_number": 1, "workflow_id": 9}]}])
        client = APIClient("tok", "https://api.example.test", opener=opener)

        runs = client.list_runs("octo/repo", 9, branch="feature/x", status="queued")

        assert [r.id for r in runs] == [1]
        assert opener.requests[0].full_url.endswith(
            "/repos/octo/repo/actions/workflows/9/runs?branch=feature%2Fx&status=queued&per_page=100"
        )

    def test_cancel_run_posts(self):
        opener = FakeOpener([None])
        client = APIClient("tok", "https://api.example.test", opener=opener)

        client.cancel_run("octo/repo", 48)

        assert opener.requests[0].get_method() == "POST"
        assert opener.requests[0].full_url.endswith("/actions/runs/48/cancel")

    def test_http_error(self):
        err = urllib.error.HTTPError("https://api.example.test", 403, "Forbidden", hdrs=None, fp=None)
        client = APIClient("tok", "https://api.example.test", opener=FakeOpener([err]))

        with pytest.raises(APIError, match="403"):
            client.get_run("octo/repo", 1)


class TestCleanupStep:
    def _ctx(self, env):
        step = cleanup_step.cleanup_runs()
        job = Job(name="cleanup-runs", steps=(step,), env=env, secrets=("GITHUB_TOKEN",))
        return step, StepContext(job=job, workdir=".")

    def test_missing_context(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_RUN_ID", raising=False)
        step, ctx = self._ctx({"GITHUB_REPOSITORY": "octo/repo"})

        with pytest.raises(CleanupError) as excinfo:
            cleanup_step.run_step(step, ctx)

        assert excinfo.value.details["missing"] == "GITHUB_TOKEN, GITHUB_RUN_ID"

    def test_cancels_through_the_api(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "tok")
        seen = {}

        def fake_cancel(client, repository, run_id):
            seen.update(token=client.token, repository=repository, run_id=run_id)
            return [48]

        monkeypatch.setattr(cleanup_step, "cancel_stale_runs", fake_cancel)
        step, ctx = self._ctx({"GITHUB_REPOSITORY": "octo/repo", "GITHUB_RUN_ID": "50"})

        result = cleanup_step.run_step(step, ctx)

        assert result.details == {"cancelled": [48]}
        assert seen == {"token": "tok", "repository": "octo/repo", "run_id": 50}

    def test_api_errors_become_cleanup_errors(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "tok")

        def failing(client, repository, run_id):
            raise APIError("API request failed: 403 Forbidden.")

        monkeypatch.setattr(cleanup_step, "cancel_stale_runs", failing)
        step, ctx = self._ctx({"GITHUB_REPOSITORY": "octo/repo", "GITHUB_RUN_ID": "50"})

        with pytest.raises(CleanupError, match="403"):
            cleanup_step.run_step(step, ctx)


class TestEventFromGithub:
    def _env(self, tmp_path, name, ref, payload):
        path = tmp_path / "event.json"
        path.write_text(json.dumps(payload))
        return {"GITHUB_EVENT_NAME": name, "GITHUB_REF": ref, "GITHUB_EVENT_PATH": str(path)}

    def test_push(self, tmp_path):
        env = self._env(tmp_path, "push", "refs/heads/main", {"ref": "refs/heads/main", "before": "a" * 40, "after": "b" * 40})
        diffs = []

        def diff(base, head):
            diffs.append((base, head))
            return ["docs/readme.md"]

        event = event_from_github(env, diff=diff)

        assert event.event_type == "push"
        assert event.ref == "refs/heads/main"
        assert event.paths_changed == ("docs/readme.md",)
        assert diffs == [("a" * 40, "b" * 40)]

    def test_pull_request(self, tmp_path):
        payload = {
            "number": 7,
            "pull_request": {
                "number": 7,
                "base": {"ref": "main", "sha": "c" * 40},
                "head": {"ref": "feature/x", "sha": "d" * 40},
            },
        }
        env = self._env(tmp_path, "pull_request", "refs/pull/7/merge", payload)

        event = event_from_github(env, pr_diff=lambda base, head: ["src/lib.rs"])

        assert event.event_type == "pull_request"
        assert event.paths_changed == ("src/lib.rs",)

    def test_new_branch_has_unknown_change_set(self, tmp_path):
        env = self._env(tmp_path, "push", "refs/heads/new", {"ref": "refs/heads/new", "before": NULL_SHA, "after": "b" * 40})

        event = event_from_github(env, diff=lambda base, head: pytest.fail("should not diff"))

        assert event.paths_changed == ()

    def test_diff_failure_means_unknown_change_set(self, tmp_path):
        env = self._env(tmp_path, "push", "refs/heads/main", {"ref": "refs/heads/main", "before": "a" * 40, "after": "b" * 40})

        def diff(base, head):
            raise subprocess.CalledProcessError(128, ["git", "diff"])

        assert event_from_github(env, diff=diff).paths_changed == ()

    def test_requires_event_and_ref(self):
        with pytest.raises(ValueError):
            event_from_github({"GITHUB_EVENT_NAME": "push"})
