"""CLI for gtasks - list Google Tasks from the terminal.

Usage:
    gtasks                      # Authorize if needed, then list task lists and tasks
    gtasks list                 # Same as above
    gtasks status               # Show cached token status
    gtasks --browser            # Also open the consent URL in a browser
    gtasks --auth-timeout 300   # Give up waiting for the authorization code after 5 minutes
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from collections.abc import Callable
from pathlib import Path

from gtasks_cli.config import Settings, load_env_file
from gtasks_cli.exceptions import (
    AuthorizationError,
    ConfigurationError,
    TasksAPIError,
    TokenCacheError,
    TokenNotFoundError,
)
from gtasks_cli.presenter import Presenter
from gtasks_cli.tasks.client import TasksClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def show_task_lists(client: TasksClient, presenter: Presenter) -> None:
    """Print every task list with its tasks.

    A failure to list the task lists propagates. A failure to list the
    tasks of one list is logged and the remaining lists are still shown.

    Raises:
        TasksAPIError: If the task lists cannot be retrieved.
    """
    task_lists = client.list_task_lists()

    if not task_lists:
        presenter.no_task_lists()
        return

    presenter.heading()
    for task_list in task_lists:
        presenter.task_list(task_list)
        try:
            tasks = client.list_tasks(task_list.id)
        except TasksAPIError as e:
            logger.error(f"Error retrieving tasks for list '{task_list.title}': {e}")
            continue
        presenter.tasks(tasks)


def cmd_list(settings: Settings, prompt: Callable[[str], str] = input) -> int:
    """Authorize if needed, then list task lists and their tasks."""
    from gtasks_cli.context import build_context

    with build_context(settings, prompt=prompt) as ctx:
        presenter = Presenter()
        presenter.client_ready()
        show_task_lists(ctx.tasks, presenter)

    return EXIT_OK


def cmd_status(settings: Settings) -> int:
    """Show cached token status without contacting Google."""
    from gtasks_cli.google.credentials import load_token, token_info

    mark = "[x]" if settings.credentials_path.exists() else "[ ]"
    print(f"Credentials : {mark} {settings.credentials_path}")

    try:
        record = load_token(settings.token_path)
    except TokenNotFoundError:
        print(f"Token       : [ ] {settings.token_path}")
        print("No token found - run 'gtasks' to authorize")
        return EXIT_FAILURE

    info = token_info(record)
    print(f"Token       : [x] {settings.token_path}")
    print(f"Status      : {info['status']}")
    print(f"Expires     : {info['expiry'] or 'never'}")
    print(f"Expires in  : {info['expires_in']}")
    print(f"Refreshable : {'yes' if info['has_refresh_token'] else 'no'}")

    if info["status"] == "expired" and not info["has_refresh_token"]:
        print("Token cannot be refreshed - delete it and run 'gtasks' to re-authorize")
        return EXIT_FAILURE
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="gtasks",
        description="List Google Tasks task lists and their tasks",
    )
    parser.add_argument(
        "--credentials",
        type=str,
        default=None,
        help="Path to OAuth client credentials (default: credentials.json)",
    )
    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help="Path to the token cache (default: token.json)",
    )
    parser.add_argument(
        "--max-lists",
        type=int,
        default=None,
        help="Maximum number of task lists to show (default: 10)",
    )
    parser.add_argument(
        "--max-tasks",
        type=int,
        default=None,
        help="Maximum number of tasks per list (default: 20)",
    )
    parser.add_argument(
        "--auth-timeout",
        type=float,
        default=None,
        help="Seconds to wait for the authorization code (default: wait forever)",
    )
    parser.add_argument(
        "--browser",
        action="store_true",
        help="Open the consent URL in a browser",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show informational log messages",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")
    subparsers.add_parser("list", help="List task lists and tasks (default)")
    subparsers.add_parser("status", help="Show cached token status")

    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment settings with command-line overrides applied."""
    settings = Settings.from_env()
    overrides: dict = {}
    if args.credentials:
        overrides["credentials_path"] = Path(args.credentials).expanduser()
    if args.token:
        overrides["token_path"] = Path(args.token).expanduser()
    if args.max_lists is not None:
        overrides["max_lists"] = args.max_lists
    if args.max_tasks is not None:
        overrides["max_tasks"] = args.max_tasks
    if args.auth_timeout is not None:
        overrides["auth_timeout"] = args.auth_timeout
    if args.browser:
        overrides["open_browser"] = True
    return dataclasses.replace(settings, **overrides)


def main(argv: list[str] | None = None, prompt: Callable[[str], str] = input) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    load_env_file()

    try:
        settings = _settings_from_args(args)
        if args.command == "status":
            return cmd_status(settings)
        return cmd_list(settings, prompt=prompt)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except TokenCacheError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except AuthorizationError as e:
        print(f"Authorization failed: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except TasksAPIError as e:
        print(f"Unable to retrieve task lists: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
