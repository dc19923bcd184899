"""HTTP transport that keeps the OAuth bearer token valid.

Every request goes through ``ensure_valid_token`` first. An expired token is
refreshed with its refresh token and the new token is cached before the
request is sent, so callers never see a 401 caused by expiry.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import requests
from authlib.integrations.base_client import OAuthError
from authlib.integrations.requests_client import OAuth2Session
from authlib.oauth2 import OAuth2Error

from gtasks_cli.config import HTTP_TIMEOUT
from gtasks_cli.exceptions import AuthorizationRequired, TokenError
from gtasks_cli.google.credentials import ClientConfig, TokenRecord, save_token
from gtasks_cli.google.oauth import create_session

logger = logging.getLogger(__name__)


class AuthenticatedTransport:
    """Authlib session wrapper with refresh-on-demand and token caching.

    Usage:
        transport = AuthenticatedTransport(config, token, "token.json")
        response = transport.get("https://tasks.googleapis.com/tasks/v1/users/@me/lists")
    """

    def __init__(
        self,
        config: ClientConfig,
        token: TokenRecord,
        token_path: str | Path,
        session: OAuth2Session | None = None,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        self.config = config
        self.token = token
        self.token_path = Path(token_path)
        self.timeout = timeout
        self.session = session or create_session(config, token)
        self.refresh_count = 0

    def __enter__(self) -> AuthenticatedTransport:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def ensure_valid_token(self) -> TokenRecord:
        """Refresh the access token if it has expired.

        Returns:
            The current, unexpired token.

        Raises:
            AuthorizationRequired: If the token expired and has no refresh token.
            TokenError: If the refresh round-trip fails.
            TokenCacheError: If the refreshed token cannot be cached.
        """
        if not self.token.is_expired():
            return self.token

        if not self.token.can_refresh:
            raise AuthorizationRequired()

        return self.refresh()

    def refresh(self) -> TokenRecord:
        """Exchange the refresh token for a new access token and cache it."""
        logger.info("Token expired, refreshing...")
        refresh_token = self.token.refresh_token
        try:
            new_token = self.session.refresh_token(
                self.config.token_uri,
                refresh_token=refresh_token,
            )
        except OAuth2Error as e:
            raise TokenError(f"Failed to refresh token: {e}") from e
        except requests.RequestException as e:
            raise TokenError(f"Failed to reach token endpoint: {e}") from e

        try:
            record = TokenRecord.from_oauth_token(new_token, refresh_token=refresh_token)
        except ValueError as e:
            raise TokenError(f"Malformed refresh response: {e}") from e
        save_token(self.token_path, record)

        self.token = record
        self.session.token = record.to_oauth_token()
        self.refresh_count += 1
        logger.info(f"Token refreshed, expires {record.expiry}")
        return record

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Send a request with a valid bearer token.

        Raises:
            AuthorizationError: If no valid token can be obtained, or the
                session refuses the token it holds.
            requests.RequestException: On network failures.
        """
        self.ensure_valid_token()
        kwargs.setdefault("timeout", self.timeout)
        logger.debug(f"{method} {url}")
        try:
            return self.session.request(method, url, **kwargs)
        except OAuthError as e:
            raise TokenError(f"Session rejected the cached token: {e}") from e

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        """Send a GET request with a valid bearer token."""
        return self.request("GET", url, **kwargs)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
