"""Shared fixtures for gtasks-cli tests."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from gtasks_cli.google.credentials import ClientConfig, TokenRecord


@pytest.fixture
def credentials_data():
    """Client secret file contents as downloaded from Google Cloud Console."""
    return {
        "installed": {
            "client_id": "test-client-id.apps.googleusercontent.com",
            "client_secret": "test-client-secret",
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": ["http://localhost"],
        }
    }


@pytest.fixture
def credentials_path(tmp_path, credentials_data):
    """Create a mock credentials file."""
    path = tmp_path / "credentials.json"
    with open(path, "w") as f:
        json.dump(credentials_data, f)
    return path


@pytest.fixture
def client_config():
    return ClientConfig(
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-client-secret",
        auth_uri="https://accounts.google.com/o/oauth2/auth",
        token_uri="https://oauth2.googleapis.com/token",
    )


@pytest.fixture
def valid_token():
    """Token that expires in an hour."""
    return TokenRecord(
        access_token="test-access-token",
        refresh_token="test-refresh-token",
        expiry=datetime.now(timezone.utc).replace(microsecond=0) + timedelta(hours=1),
    )


@pytest.fixture
def expired_token():
    """Token that expired an hour ago but can be refreshed."""
    return TokenRecord(
        access_token="expired-access-token",
        refresh_token="test-refresh-token",
        expiry=datetime.now(timezone.utc).replace(microsecond=0) - timedelta(hours=1),
    )


@pytest.fixture
def token_path(tmp_path):
    return tmp_path / "token.json"
