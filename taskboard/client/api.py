"""Blocking JSON client for the taskboard HTTP API.

Every response is validated through the snapshot models in
taskboard.events, so a task from an RPC result and a task from a broadcast
event have the same shape and can replace each other in a replica.

Errors:
  400 -> ValidationError, 404 -> NotFoundError, other 4xx/5xx -> TaskboardError,
  transport failure (connection refused, timeout, ...) -> NetworkError,
  a 2xx body that is not JSON or not the expected shape -> TaskboardError (502).
No retries.
"""

import logging
import os

import requests
from pydantic import ValidationError as SchemaError

from taskboard.errors import NetworkError, NotFoundError, TaskboardError, ValidationError
from taskboard.events import BoardSnapshot, ColumnSnapshot, MoveResult, TaskSnapshot, UserSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10  # seconds


def _error_for(response):
    try:
        message = response.json().get("error") or response.reason
    except (ValueError, AttributeError):
        message = response.text or f"HTTP {response.status_code}"

    if response.status_code == 400:
        return ValidationError(message)
    if response.status_code == 404:
        return NotFoundError(message)
    return TaskboardError(message, status_code=response.status_code)


def _parse(model, data):
    """Validate one entity from a response body into its snapshot dict."""
    try:
        return model.model_validate(data).model_dump()
    except SchemaError as e:
        raise TaskboardError(
            f"Unexpected {model.__name__} from server: {e.error_count()} errors",
            status_code=502,
        )


def _parse_list(model, data):
    if not isinstance(data, list):
        raise TaskboardError(f"Expected a list of {model.__name__} from server", status_code=502)
    return [_parse(model, item) for item in data]


class TaskboardAPI:
    """Thin wrapper over the /api routes for one user identity."""

    def __init__(self, base_url=None, user_id=None, session=None, timeout=DEFAULT_TIMEOUT):
        self.base_url = (base_url or os.environ.get("TASKBOARD_URL", "http://localhost:5001")).rstrip("/")
        self.user_id = user_id
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method, path, payload=None):
        headers = {"Accept": "application/json"}
        if self.user_id:
            headers["Authorization"] = f"Bearer {self.user_id}"

        try:
            response = self.session.request(
                method,
                f"{self.base_url}/api{path}",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise NetworkError(f"Could not reach taskboard server: {e}")

        if response.status_code >= 400:
            error = _error_for(response)
            logger.info(f"{method} {path} -> {response.status_code}: {error.message}")
            raise error
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"{method} {path} returned a non-JSON body: {e}")
            raise TaskboardError(f"Invalid JSON from taskboard server: {e}", status_code=502)

    # ─── Tasks ───────────────────────────────────────────────────

    def list_tasks(self, board_id):
        data = self._request("GET", f"/boards/{board_id}/tasks")
        return _parse_list(TaskSnapshot, data)

    def create_task(self, board_id, column_id, title, **fields):
        payload = {"board_id": board_id, "column_id": column_id, "title": title, **fields}
        data = self._request("POST", "/tasks", payload)
        return _parse(TaskSnapshot, data)

    def update_task(self, task_id, changes):
        data = self._request("PUT", f"/tasks/{task_id}", changes)
        return _parse(TaskSnapshot, data)

    def delete_task(self, task_id):
        return self._request("DELETE", f"/tasks/{task_id}")

    def move_task(self, task_id, source_column_id, dest_column_id, source_index, dest_index):
        data = self._request("PUT", f"/tasks/{task_id}/move", {
            "source_column_id": source_column_id,
            "dest_column_id": dest_column_id,
            "source_index": source_index,
            "dest_index": dest_index,
        })
        return _parse(MoveResult, data)

    # ─── Boards and columns ──────────────────────────────────────

    def list_boards(self):
        return _parse_list(BoardSnapshot, self._request("GET", "/boards"))

    def get_board(self, board_id):
        return _parse(BoardSnapshot, self._request("GET", f"/boards/{board_id}"))

    def create_board(self, title, description=None, member_ids=None):
        data = self._request("POST", "/boards", {
            "title": title,
            "description": description,
            "member_ids": member_ids or [],
        })
        return _parse(BoardSnapshot, data)

    def update_board(self, board_id, changes):
        data = self._request("PUT", f"/boards/{board_id}", changes)
        return _parse(BoardSnapshot, data)

    def delete_board(self, board_id):
        return self._request("DELETE", f"/boards/{board_id}")

    def create_column(self, board_id, title):
        data = self._request("POST", f"/boards/{board_id}/columns", {"title": title})
        return _parse(ColumnSnapshot, data)

    def update_column(self, column_id, changes):
        data = self._request("PUT", f"/columns/{column_id}", changes)
        return _parse(ColumnSnapshot, data)

    def delete_column(self, column_id):
        return self._request("DELETE", f"/columns/{column_id}")

    def reorder_columns(self, board_id, column_ids):
        data = self._request("PUT", f"/boards/{board_id}/columns/reorder", {"column_ids": column_ids})
        return _parse(BoardSnapshot, data)

    # ─── Users ───────────────────────────────────────────────────

    def list_users(self):
        return _parse_list(UserSnapshot, self._request("GET", "/users"))

    def create_user(self, name, email, avatar_url=None):
        data = self._request("POST", "/users", {"name": name, "email": email, "avatar_url": avatar_url})
        return _parse(UserSnapshot, data)

    def health(self):
        return self._request("GET", "/health")
