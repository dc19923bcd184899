"""Runtime configuration.

Files are looked up relative to the working directory by default:
    .env              - optional GTASKS_* overrides
    credentials.json  - Google OAuth client credentials
    token.json        - cached OAuth token (created on first login)

Environment variables take precedence over values in .env, and command-line
flags take precedence over both.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from gtasks_cli.exceptions import ConfigurationError

# Credential file paths
ENV_FILE = Path(".env")
GOOGLE_CREDENTIALS = Path("credentials.json")
GOOGLE_TOKEN = Path("token.json")

# Google endpoints and scope
TASKS_API_URL = "https://tasks.googleapis.com/tasks/v1"
TASKS_READONLY_SCOPE = "https://www.googleapis.com/auth/tasks.readonly"
DEFAULT_REDIRECT_URI = "http://localhost"

# Listing limits
DEFAULT_MAX_LISTS = 10
DEFAULT_MAX_TASKS = 20

# Seconds before the recorded expiry at which a token counts as expired
EXPIRY_LEEWAY = 10

HTTP_TIMEOUT = 30


def load_env_file(env_path: Path = ENV_FILE) -> dict[str, str]:
    """Load environment variables from a file.

    Args:
        env_path: Path to .env file.

    Returns:
        Dictionary of loaded variables.
    """
    loaded: dict[str, str] = {}
    if not env_path.exists():
        return loaded

    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            # Remove surrounding quotes
            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            # Only set if not already in environment (env vars take precedence)
            if key and key not in os.environ:
                os.environ[key] = value
                loaded[key] = value

    return loaded


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got {value}")
    return value


def _positive_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be greater than 0, got {value:g}")
    return value


@dataclass(frozen=True)
class Settings:
    """Settings for a single run of the CLI."""

    credentials_path: Path = GOOGLE_CREDENTIALS
    token_path: Path = GOOGLE_TOKEN
    max_lists: int = DEFAULT_MAX_LISTS
    max_tasks: int = DEFAULT_MAX_TASKS
    auth_timeout: float | None = None
    open_browser: bool = False

    def __post_init__(self):
        if self.max_lists < 1:
            raise ConfigurationError(f"max_lists must be at least 1, got {self.max_lists}")
        if self.max_tasks < 1:
            raise ConfigurationError(f"max_tasks must be at least 1, got {self.max_tasks}")
        if self.auth_timeout is not None and self.auth_timeout <= 0:
            raise ConfigurationError(
                f"auth_timeout must be greater than 0, got {self.auth_timeout:g}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from GTASKS_* environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Raises:
            ConfigurationError: If a numeric variable is malformed.
        """
        env = os.environ if environ is None else environ

        kwargs: dict = {}
        if env.get("GTASKS_CREDENTIALS"):
            kwargs["credentials_path"] = Path(env["GTASKS_CREDENTIALS"]).expanduser()
        if env.get("GTASKS_TOKEN"):
            kwargs["token_path"] = Path(env["GTASKS_TOKEN"]).expanduser()
        if env.get("GTASKS_MAX_LISTS"):
            kwargs["max_lists"] = _positive_int("GTASKS_MAX_LISTS", env["GTASKS_MAX_LISTS"])
        if env.get("GTASKS_MAX_TASKS"):
            kwargs["max_tasks"] = _positive_int("GTASKS_MAX_TASKS", env["GTASKS_MAX_TASKS"])
        if env.get("GTASKS_AUTH_TIMEOUT"):
            kwargs["auth_timeout"] = _positive_float(
                "GTASKS_AUTH_TIMEOUT", env["GTASKS_AUTH_TIMEOUT"]
            )

        return cls(**kwargs)
