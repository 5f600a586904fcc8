# github/api_client.py
from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Callable, List, Optional
from urllib.parse import urlencode, urljoin

from .. import settings
from .models import WorkflowRun, WorkflowRunList


class APIError(Exception):
    """Raised when API requests fail."""
    pass


class APIClient:
    """HTTP client for the GitHub Actions runs API."""

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        *,
        timeout: int = 30,
        opener: Callable = urllib.request.urlopen,
    ):
        """
        Initialize API client.

        Args:
            token: GitHub token with actions:write on the repository
            base_url: API base URL (defaults to settings.GITHUB_API_URL)
            timeout: Per-request timeout in seconds
            opener: urlopen-compatible callable (tests inject a fake)
        """
        self.base_url = (base_url or settings.GITHUB_API_URL).rstrip("/")
        self.token = token
        self.timeout = timeout
        self._open = opener

    def _request(self, method: str, path: str, query: Optional[dict] = None) -> dict:
        """
        Make an HTTP request to the API.

        Returns:
            Parsed JSON response as dictionary ({} for empty bodies)

        Raises:
            APIError: If the request fails
        """
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        if query:
            url = f"{url}?{urlencode(query)}"

        req_headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        req = urllib.request.Request(url, headers=req_headers, method=method)

        try:
            with self._open(req, timeout=self.timeout) as response:
                response_data = response.read().decode("utf-8")
                if response_data:
                    return json.loads(response_data)
                return {}
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise APIError(f"API request failed: {e.code} {e.reason}. {error_body}") from e
        except urllib.error.URLError as e:
            raise APIError(f"Network error: {e.reason}") from e
        except json.JSONDecodeError as e:
            raise APIError(f"Invalid JSON response: {e}") from e

    def get_run(self, repository: str, run_id: int) -> WorkflowRun:
        return WorkflowRun.model_validate(self._request("GET", f"/repos/{repository}/actions/runs/{run_id}"))

    def list_runs(self, repository: str, workflow_id: int, *, branch: str, status: str) -> List[WorkflowRun]:
        data = self._request(
            "GET",
            f"/repos/{repository}/actions/workflows/{workflow_id}/runs",
            query={"branch": branch, "status": status, "per_page": 100},
        )
        return WorkflowRunList.model_validate(data).workflow_runs

    def cancel_run(self, repository: str, run_id: int) -> None:
        self._request("POST", f"/repos/{repository}/actions/runs/{run_id}/cancel")
