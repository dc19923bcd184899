"""gtasks-cli exceptions."""


class GTasksError(Exception):
    """Base exception for gtasks-cli errors."""

    pass


class ConfigurationError(GTasksError):
    """Raised when local configuration is missing or invalid."""

    pass


class CredentialsNotFoundError(ConfigurationError):
    """Raised when OAuth client credentials file is not found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Credentials file not found at {path}. "
            "Please download OAuth credentials from Google Cloud Console."
        )


class CredentialsParseError(ConfigurationError):
    """Raised when OAuth client credentials file cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to parse client secret file {path}: {reason}")


class TokenCacheError(GTasksError):
    """Raised when the token cache cannot be read or written."""

    pass


class TokenNotFoundError(TokenCacheError):
    """Raised when no cached token exists."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No cached token at {path}")


class AuthorizationError(GTasksError):
    """Base exception for consent, exchange and refresh failures."""

    pass


class ExchangeError(AuthorizationError):
    """Raised when an authorization code cannot be exchanged for a token."""

    pass


class AuthorizationTimeoutError(AuthorizationError):
    """Raised when no authorization code was entered in time."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"No authorization code entered within {timeout:g} seconds")


class TokenError(AuthorizationError):
    """Raised when there's an issue refreshing the OAuth token."""

    pass


class AuthorizationRequired(AuthorizationError):
    """Raised when the token expired and cannot be renewed without consent."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "Access token expired and no refresh token is cached. "
            "Delete the token file and run again to re-authorize."
        )


class TasksAPIError(GTasksError):
    """Raised when the Tasks API returns an error or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
