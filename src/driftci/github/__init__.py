from .api_client import APIClient, APIError
from .cleanup import cancel_stale_runs
from .events import event_from_github

__all__ = ["APIClient", "APIError", "cancel_stale_runs", "event_from_github"]
