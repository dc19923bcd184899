"""Application context shared by the CLI commands.

The context owns the OAuth client configuration, the authenticated
transport and the Tasks client for one run. It is built explicitly and
passed around instead of living in module globals.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from gtasks_cli.config import Settings
from gtasks_cli.google.credentials import ClientConfig, load_client_config
from gtasks_cli.google.oauth import obtain_token
from gtasks_cli.google.transport import AuthenticatedTransport
from gtasks_cli.tasks.client import TasksClient

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Objects shared by a single CLI run."""

    settings: Settings
    client_config: ClientConfig
    transport: AuthenticatedTransport
    tasks: TasksClient

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> AppContext:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def build_context(settings: Settings, prompt: Callable[[str], str] = input) -> AppContext:
    """Load credentials, authorize if needed and wire up the Tasks client.

    Args:
        settings: Run settings.
        prompt: Line reader for the authorization code.

    Raises:
        ConfigurationError: If the client secret file is missing or invalid.
        AuthorizationError: If the consent flow fails.
        TokenCacheError: If a new token cannot be cached.
    """
    client_config = load_client_config(settings.credentials_path)
    token = obtain_token(
        client_config,
        settings.token_path,
        prompt=prompt,
        open_browser=settings.open_browser,
        timeout=settings.auth_timeout,
    )

    transport = AuthenticatedTransport(client_config, token, settings.token_path)
    tasks = TasksClient(
        transport,
        max_lists=settings.max_lists,
        max_tasks=settings.max_tasks,
    )
    logger.info(f"Using client {client_config.client_id[:12]}... with token {settings.token_path}")
    return AppContext(
        settings=settings,
        client_config=client_config,
        transport=transport,
        tasks=tasks,
    )
