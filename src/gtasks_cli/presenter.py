"""Console rendering of task lists and tasks."""

from __future__ import annotations

import sys
from typing import TextIO

from gtasks_cli.tasks.client import STATUS_COMPLETED, Task, TaskList


def status_symbol(status: str) -> str:
    """Checkbox marker for a task status."""
    if status == STATUS_COMPLETED:
        return "X"
    return " "


class Presenter:
    """Writes task lists and tasks to a text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def _line(self, text: str = "") -> None:
        print(text, file=self.stream)

    def client_ready(self) -> None:
        self._line("Google Tasks API client created successfully!")

    def heading(self) -> None:
        self._line()
        self._line("--- Your task lists ---")

    def no_task_lists(self) -> None:
        self._line("No task lists found.")

    def task_list(self, task_list: TaskList) -> None:
        self._line(f"- {task_list.title} ({task_list.id})")
        self._line(f"  --- Tasks in '{task_list.title}' ---")

    def tasks(self, tasks: list[Task]) -> None:
        if not tasks:
            self._line("    No tasks in this list.")
        for task in tasks:
            self._line(f"    - [{status_symbol(task.status)}] {task.title}")
        self._line()
