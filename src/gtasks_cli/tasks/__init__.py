"""Read-only Google Tasks API client.

Usage:
    from gtasks_cli.tasks import TasksClient

    client = TasksClient(transport)

    # List task lists
    lists = client.list_task_lists()

    # List tasks in a list
    tasks = client.list_tasks(lists[0].id)
"""

from __future__ import annotations

from gtasks_cli.tasks.client import Task, TaskList, TasksClient

__all__ = ["TasksClient", "Task", "TaskList"]
