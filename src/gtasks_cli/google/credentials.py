"""Local storage for OAuth client credentials and cached tokens.

The client secret file is the JSON downloaded from Google Cloud Console.
The token cache is written by this package:

    {
      "access_token": "...",
      "token_type": "Bearer",
      "refresh_token": "...",
      "expiry": "2026-01-25T10:00:00Z"
    }

The token cache holds a long-lived refresh token, so it is always written
with owner-only permissions and replaced atomically.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from gtasks_cli.config import DEFAULT_REDIRECT_URI, EXPIRY_LEEWAY, TASKS_READONLY_SCOPE
from gtasks_cli.exceptions import (
    CredentialsNotFoundError,
    CredentialsParseError,
    TokenCacheError,
    TokenNotFoundError,
)

logger = logging.getLogger(__name__)

# Zero time written by some OAuth clients for tokens without an expiry; any
# year-1 timestamp is treated the same way
_ZERO_TIME = "0001-01-01T00:00:00Z"
_FRACTION = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class ClientConfig:
    """OAuth client registration loaded from the client secret file."""

    client_id: str
    client_secret: str
    auth_uri: str
    token_uri: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scope: str = TASKS_READONLY_SCOPE

    def __repr__(self) -> str:
        return (
            f"ClientConfig(client_id='{self.client_id[:12]}...', client_secret='***', "
            f"auth_uri='{self.auth_uri}', token_uri='{self.token_uri}', "
            f"redirect_uri='{self.redirect_uri}', scope='{self.scope}')"
        )


@dataclass
class TokenRecord:
    """Cached OAuth token."""

    access_token: str
    refresh_token: str | None = None
    expiry: datetime | None = None
    token_type: str = "Bearer"

    def __repr__(self) -> str:
        refresh = "'***'" if self.refresh_token else None
        return (
            f"TokenRecord(access_token='***', refresh_token={refresh}, "
            f"expiry={self.expiry!r}, token_type='{self.token_type}')"
        )

    @property
    def can_refresh(self) -> bool:
        """Whether the token can be renewed without user consent."""
        return bool(self.refresh_token)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if the access token is expired (or about to expire).

        Tokens without an expiry never expire.
        """
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        # Same whole-second expires_at the Authlib session checks against
        return int(self.expiry.timestamp()) - EXPIRY_LEEWAY <= now.timestamp()

    def to_dict(self) -> dict[str, Any]:
        """Convert to the token cache JSON shape."""
        data: dict[str, Any] = {
            "access_token": self.access_token,
            "token_type": self.token_type,
        }
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        if self.expiry is not None:
            data["expiry"] = _format_expiry(self.expiry)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenRecord:
        """Create a TokenRecord from the token cache JSON shape.

        Raises:
            ValueError: If access_token is missing or expiry is malformed.
        """
        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise ValueError("missing access_token")

        expiry = data.get("expiry")
        if expiry is not None and not isinstance(expiry, str):
            raise ValueError(f"invalid expiry {expiry!r}")

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expiry=_parse_expiry(expiry) if expiry else None,
            token_type=data.get("token_type") or "Bearer",
        )

    def to_oauth_token(self) -> dict[str, Any]:
        """Convert to the token dict used by Authlib sessions."""
        token: dict[str, Any] = {
            "access_token": self.access_token,
            "token_type": self.token_type,
        }
        if self.refresh_token:
            token["refresh_token"] = self.refresh_token
        if self.expiry is not None:
            token["expires_at"] = int(self.expiry.timestamp())
        return token

    @classmethod
    def from_oauth_token(
        cls, token: dict[str, Any], refresh_token: str | None = None
    ) -> TokenRecord:
        """Create a TokenRecord from a token endpoint response.

        Args:
            token: Authlib token dict (``expires_at`` or ``expires_in``).
            refresh_token: Refresh token to keep when the response has none.

        Raises:
            ValueError: If the response lacks an access token or has a bad expiry.
        """
        access_token = token.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise ValueError("token response has no access_token")

        expiry = None
        try:
            if token.get("expires_at"):
                expiry = datetime.fromtimestamp(float(token["expires_at"]), tz=timezone.utc)
            elif token.get("expires_in"):
                expiry = datetime.fromtimestamp(
                    time.time() + float(token["expires_in"]), tz=timezone.utc
                )
        except (TypeError, ValueError, OverflowError, OSError) as e:
            raise ValueError(f"token response has an invalid expiry: {e}") from None

        return cls(
            access_token=access_token,
            refresh_token=token.get("refresh_token") or refresh_token,
            expiry=expiry,
            token_type=token.get("token_type") or "Bearer",
        )


def _format_expiry(expiry: datetime) -> str:
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_expiry(value: str) -> datetime | None:
    """Parse an RFC 3339 timestamp, including nanosecond fractions."""
    if value == _ZERO_TIME:
        return None
    value = value.strip().replace("Z", "+00:00").replace("z", "+00:00")
    # datetime only keeps microseconds
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    dt = datetime.fromisoformat(value)
    if dt.year == 1:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def load_client_config(
    path: str | Path, scope: str = TASKS_READONLY_SCOPE
) -> ClientConfig:
    """Load OAuth client credentials from a client secret file.

    Handles both "installed" and "web" credential formats.

    Args:
        path: Path to credentials.json.
        scope: OAuth scope to request.

    Returns:
        Parsed ClientConfig.

    Raises:
        CredentialsNotFoundError: If the file does not exist.
        CredentialsParseError: If the file is not valid JSON or lacks a
            required field.
    """
    path = Path(path)
    if not path.exists():
        raise CredentialsNotFoundError(str(path))

    try:
        with open(path) as f:
            creds = json.load(f)
    except json.JSONDecodeError as e:
        raise CredentialsParseError(str(path), f"invalid JSON: {e}") from e
    except OSError as e:
        raise CredentialsParseError(str(path), str(e)) from e

    if not isinstance(creds, dict):
        raise CredentialsParseError(str(path), "expected a JSON object")

    if "installed" in creds:
        app_creds = creds["installed"]
    elif "web" in creds:
        app_creds = creds["web"]
    else:
        raise CredentialsParseError(str(path), "expected 'installed' or 'web' key")

    if not isinstance(app_creds, dict):
        raise CredentialsParseError(str(path), "credentials entry is not an object")

    missing = [
        key
        for key in ("client_id", "client_secret", "auth_uri", "token_uri")
        if not isinstance(app_creds.get(key), str) or not app_creds[key]
    ]
    if missing:
        raise CredentialsParseError(str(path), f"missing {', '.join(missing)}")

    redirect_uris = app_creds.get("redirect_uris") or []
    redirect_uri = redirect_uris[0] if redirect_uris else DEFAULT_REDIRECT_URI

    return ClientConfig(
        client_id=app_creds["client_id"],
        client_secret=app_creds["client_secret"],
        auth_uri=app_creds["auth_uri"],
        token_uri=app_creds["token_uri"],
        redirect_uri=redirect_uri,
        scope=scope,
    )


def load_token(path: str | Path) -> TokenRecord:
    """Load a cached token.

    Raises:
        TokenNotFoundError: If no token has been cached yet.
        TokenCacheError: If the cache exists but cannot be parsed.
    """
    path = Path(path)
    if not path.exists():
        raise TokenNotFoundError(str(path))

    try:
        with open(path) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        record = TokenRecord.from_dict(data)
    except (OSError, ValueError, OverflowError) as e:
        raise TokenCacheError(f"Unable to read cached token from {path}: {e}") from e

    logger.info(f"Loaded cached token from {path}")
    return record


def save_token(path: str | Path, record: TokenRecord) -> None:
    """Write the token cache, readable by the owner only.

    The file is replaced atomically so an interrupted write never leaves a
    truncated cache behind.

    Raises:
        TokenCacheError: If the cache cannot be written.
    """
    path = Path(path)
    print(f"Saving credential file to: {path}")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # mkstemp creates the file with mode 0600
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(record.to_dict(), f, indent=2)
                f.write("\n")
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise TokenCacheError(f"Unable to cache oauth token at {path}: {e}") from e

    logger.info(f"Token cached at {path}")


def token_info(record: TokenRecord, now: datetime | None = None) -> dict[str, Any]:
    """Get information about a cached token.

    Returns:
        Dictionary with token status, expiry and refresh capability.
    """
    now = now or datetime.now(timezone.utc)

    if record.expiry is not None:
        expires_in = (record.expiry - now).total_seconds()
        expires_str = str(timedelta(seconds=int(max(0, expires_in))))
        expiry_str = _format_expiry(record.expiry)
    else:
        expires_str = "unknown"
        expiry_str = None

    return {
        "status": "expired" if record.is_expired(now) else "valid",
        "expiry": expiry_str,
        "expires_in": expires_str,
        "has_refresh_token": record.can_refresh,
        "token_type": record.token_type,
    }
