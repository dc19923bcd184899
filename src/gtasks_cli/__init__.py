"""gtasks-cli - list Google Tasks from the terminal.

Authorizes once with OAuth 2.0, caches the token next to the client
credentials and refreshes it transparently on later runs.

Usage:
    from gtasks_cli import Settings, build_context

    with build_context(Settings()) as ctx:
        for task_list in ctx.tasks.list_task_lists():
            print(task_list.title)
"""

from gtasks_cli.config import Settings
from gtasks_cli.context import AppContext, build_context

__version__ = "0.1.0"

__all__ = ["AppContext", "Settings", "build_context", "__version__"]
