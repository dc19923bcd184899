"""Google OAuth authentication and token caching."""

from gtasks_cli.google.credentials import (
    ClientConfig,
    TokenRecord,
    load_client_config,
    load_token,
    save_token,
    token_info,
)
from gtasks_cli.google.oauth import AuthorizationFlow, obtain_token
from gtasks_cli.google.transport import AuthenticatedTransport

__all__ = [
    "AuthenticatedTransport",
    "AuthorizationFlow",
    "ClientConfig",
    "TokenRecord",
    "load_client_config",
    "load_token",
    "obtain_token",
    "save_token",
    "token_info",
]
