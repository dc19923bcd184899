"""Google Tasks API client implementation."""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from urllib.parse import quote

import requests

from gtasks_cli.config import DEFAULT_MAX_LISTS, DEFAULT_MAX_TASKS, TASKS_API_URL
from gtasks_cli.exceptions import TasksAPIError
from gtasks_cli.google.transport import AuthenticatedTransport

logger = logging.getLogger(__name__)

STATUS_NEEDS_ACTION = "needsAction"
STATUS_COMPLETED = "completed"


@dataclass
class TaskList:
    """Represents a Google Tasks list."""

    id: str
    title: str
    updated: datetime | None = None


@dataclass
class Task:
    """Represents a Google Task."""

    id: str
    title: str
    status: str  # "needsAction" or "completed"
    notes: str | None = None
    due: date | None = None
    completed: datetime | None = None

    @property
    def is_completed(self) -> bool:
        """Check if task is completed."""
        return self.status == STATUS_COMPLETED


class TasksClient:
    """Read-only Google Tasks API client.

    Usage:
        client = TasksClient(transport)

        # List task lists
        lists = client.list_task_lists()

        # List tasks in a list
        tasks = client.list_tasks(lists[0].id)
    """

    def __init__(
        self,
        transport: AuthenticatedTransport,
        max_lists: int = DEFAULT_MAX_LISTS,
        max_tasks: int = DEFAULT_MAX_TASKS,
        base_url: str = TASKS_API_URL,
    ) -> None:
        """Initialize Tasks client.

        Args:
            transport: Authenticated transport used for every request.
            max_lists: Maximum number of task lists to fetch.
            max_tasks: Maximum number of tasks to fetch per list.
            base_url: Tasks API base URL.
        """
        self.transport = transport
        self.max_lists = max_lists
        self.max_tasks = max_tasks
        self.base_url = base_url.rstrip("/")

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET a Tasks API resource and decode the JSON body.

        Raises:
            TasksAPIError: On network failures or non-2xx responses.
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.transport.get(url, params=params)
        except requests.RequestException as e:
            raise TasksAPIError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            raise TasksAPIError(
                f"Tasks API error {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise TasksAPIError(
                f"Invalid JSON from Tasks API: {e}", status_code=response.status_code
            ) from e

    # =========================================================================
    # Task Lists
    # =========================================================================

    def list_task_lists(self, max_results: int | None = None) -> list[TaskList]:
        """List the user's task lists.

        Args:
            max_results: Maximum number of lists. Defaults to ``max_lists``.

        Returns:
            List of TaskList objects.
        """
        results = self._get(
            "/users/@me/lists",
            {"maxResults": max_results or self.max_lists},
        )
        items = results.get("items", [])

        return [self._parse_task_list(item) for item in items]

    def _parse_task_list(self, data: dict) -> TaskList:
        """Parse task list from API response."""
        updated = None
        if data.get("updated"):
            with contextlib.suppress(ValueError):
                updated = datetime.fromisoformat(data["updated"].replace("Z", "+00:00"))

        return TaskList(
            id=data["id"],
            title=data.get("title", ""),
            updated=updated,
        )

    # =========================================================================
    # Tasks
    # =========================================================================

    def list_tasks(self, tasklist_id: str, max_results: int | None = None) -> list[Task]:
        """List tasks in a task list.

        Args:
            tasklist_id: Task list ID.
            max_results: Maximum number of tasks. Defaults to ``max_tasks``.

        Returns:
            List of Task objects.
        """
        results = self._get(
            f"/lists/{quote(tasklist_id, safe='@')}/tasks",
            {"maxResults": max_results or self.max_tasks},
        )
        items = results.get("items", [])

        return [self._parse_task(item) for item in items]

    def _parse_task(self, data: dict) -> Task:
        """Parse task from API response."""
        due = None
        if data.get("due"):
            with contextlib.suppress(ValueError):
                # Due date is in RFC 3339 format
                due = date.fromisoformat(data["due"].split("T")[0])

        completed = None
        if data.get("completed"):
            with contextlib.suppress(ValueError):
                completed = datetime.fromisoformat(data["completed"].replace("Z", "+00:00"))

        return Task(
            id=data.get("id", ""),
            title=data.get("title", ""),
            status=data.get("status", STATUS_NEEDS_ACTION),
            notes=data.get("notes"),
            due=due,
            completed=completed,
        )


def _error_message(response: requests.Response) -> str:
    """Extract the message from a Google API error body."""
    try:
        body = response.json()
    except ValueError:
        return response.reason or "unknown error"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return response.reason or "unknown error"
