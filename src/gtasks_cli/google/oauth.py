"""Google OAuth consent flow using Authlib.

This module drives the interactive part of the three-legged flow:
- Build a consent URL requesting offline access (so a refresh token is issued)
- Read the authorization code pasted back by the user
- Exchange the code for a token and cache it locally

Example:
    >>> config = load_client_config("credentials.json")
    >>> token = obtain_token(config, "token.json")
"""

from __future__ import annotations

import logging
import queue
import threading
import webbrowser
from collections.abc import Callable
from pathlib import Path

import requests
from authlib.integrations.requests_client import OAuth2Session
from authlib.oauth2 import OAuth2Error

from gtasks_cli.config import EXPIRY_LEEWAY
from gtasks_cli.exceptions import (
    AuthorizationTimeoutError,
    ExchangeError,
    TokenCacheError,
    TokenNotFoundError,
)
from gtasks_cli.google.credentials import (
    ClientConfig,
    TokenRecord,
    load_token,
    save_token,
)

logger = logging.getLogger(__name__)

CODE_PROMPT = "Authorization code: "


def create_session(config: ClientConfig, token: TokenRecord | None = None) -> OAuth2Session:
    """Create an Authlib session for the configured OAuth client."""
    return OAuth2Session(
        client_id=config.client_id,
        client_secret=config.client_secret,
        scope=config.scope,
        redirect_uri=config.redirect_uri,
        token=token.to_oauth_token() if token else None,
        token_endpoint=config.token_uri,
        token_endpoint_auth_method="client_secret_post",
        leeway=EXPIRY_LEEWAY,
    )


def read_authorization_code(
    prompt: str = CODE_PROMPT,
    timeout: float | None = None,
    input_fn: Callable[[str], str] = input,
) -> str:
    """Read one line from the console.

    Args:
        prompt: Prompt shown before reading.
        timeout: Seconds to wait. None blocks until a line is entered.
        input_fn: Line reader, ``input`` by default.

    Raises:
        AuthorizationTimeoutError: If nothing was entered within ``timeout``.
        EOFError: If the console was closed.
    """
    if timeout is None:
        return input_fn(prompt)

    result: queue.Queue = queue.Queue(maxsize=1)

    def _reader() -> None:
        try:
            result.put((input_fn(prompt), None))
        except BaseException as e:  # handed to the waiting thread
            result.put((None, e))

    # Daemon thread: a reader still blocked on stdin must not keep the process alive
    threading.Thread(target=_reader, name="auth-code-reader", daemon=True).start()

    try:
        line, error = result.get(timeout=timeout)
    except queue.Empty:
        raise AuthorizationTimeoutError(timeout) from None

    if error is not None:
        raise error
    return line


class AuthorizationFlow:
    """Interactive OAuth consent flow.

    Example:
        >>> flow = AuthorizationFlow(config)
        >>> print(flow.authorization_url())
        >>> token = flow.exchange(input("Authorization code: "))
    """

    def __init__(self, config: ClientConfig, session: OAuth2Session | None = None):
        self.config = config
        self.session = session or create_session(config)
        self.state: str | None = None

    def authorization_url(self) -> str:
        """Build the consent URL.

        Returns:
            Authorization URL for the user to visit.
        """
        url, state = self.session.create_authorization_url(
            self.config.auth_uri,
            access_type="offline",
            prompt="consent",
        )
        self.state = state
        return url

    def exchange(self, response: str) -> TokenRecord:
        """Exchange an authorization code for a token.

        Args:
            response: The authorization code, or the full redirect URL
                containing it. A redirect URL must carry the state issued
                by ``authorization_url``.

        Returns:
            The fetched token.

        Raises:
            ExchangeError: If the input is empty, the state does not match,
                or the token endpoint rejects the code.
        """
        response = response.strip()
        if not response:
            raise ExchangeError("No authorization code provided")

        try:
            if "code=" in response and "://" in response:
                token = self.session.fetch_token(
                    self.config.token_uri,
                    authorization_response=response,
                    state=self.state,
                )
            else:
                token = self.session.fetch_token(
                    self.config.token_uri,
                    grant_type="authorization_code",
                    code=response,
                )
        except OAuth2Error as e:
            raise ExchangeError(f"Unable to retrieve token from web: {e}") from e
        except requests.RequestException as e:
            raise ExchangeError(f"Unable to reach token endpoint: {e}") from e

        try:
            record = TokenRecord.from_oauth_token(token)
        except ValueError as e:
            raise ExchangeError(f"Malformed token response: {e}") from e
        if not record.can_refresh:
            logger.warning("No refresh token issued; consent will be needed again on expiry")
        return record

    def run(
        self,
        prompt: Callable[[str], str] = input,
        open_browser: bool = False,
        timeout: float | None = None,
    ) -> TokenRecord:
        """Run the full consent flow on the console.

        Args:
            prompt: Line reader used for the authorization code.
            open_browser: Also open the consent URL in a browser.
            timeout: Seconds to wait for the code. None waits forever.

        Raises:
            ExchangeError: If no code is entered or the exchange fails.
            AuthorizationTimeoutError: If ``timeout`` elapses first.
        """
        url = self.authorization_url()
        print("Open the following link in your browser and enter the authorization code:")
        print(url)

        if open_browser:
            webbrowser.open(url)

        try:
            code = read_authorization_code(CODE_PROMPT, timeout=timeout, input_fn=prompt)
        except EOFError:
            raise ExchangeError("Unable to read authorization code: input closed") from None

        return self.exchange(code)


def obtain_token(
    config: ClientConfig,
    token_path: str | Path,
    prompt: Callable[[str], str] = input,
    open_browser: bool = False,
    timeout: float | None = None,
) -> TokenRecord:
    """Return a usable token, running the consent flow only when needed.

    A cached token is usable when it is still valid or can be refreshed.
    Otherwise the consent flow runs once and its token is cached.

    Raises:
        AuthorizationError: If the consent flow fails.
        TokenCacheError: If the new token cannot be cached.
    """
    try:
        record = load_token(token_path)
    except TokenNotFoundError:
        logger.info(f"No cached token at {token_path}")
    except TokenCacheError as e:
        logger.warning(f"Ignoring unreadable token cache: {e}")
    else:
        if not record.is_expired() or record.can_refresh:
            return record
        logger.warning("Cached token expired and has no refresh token")

    flow = AuthorizationFlow(config)
    record = flow.run(prompt=prompt, open_browser=open_browser, timeout=timeout)
    save_token(token_path, record)
    return record
