"""Tests for client credential loading and the token cache."""

import json
import math
import os
import stat
import time
from datetime import datetime, timedelta, timezone

import pytest

from gtasks_cli.config import EXPIRY_LEEWAY, TASKS_READONLY_SCOPE
from gtasks_cli.exceptions import (
    ConfigurationError,
    CredentialsNotFoundError,
    CredentialsParseError,
    TokenCacheError,
    TokenNotFoundError,
)
from gtasks_cli.google.credentials import (
    TokenRecord,
    load_client_config,
    load_token,
    save_token,
    token_info,
)


class TestLoadClientConfig:
    """Test loading the client secret file."""

    def test_load_installed_credentials(self, credentials_path):
        """Should load installed app credentials."""
        config = load_client_config(credentials_path)
        assert config.client_id == "test-client-id.apps.googleusercontent.com"
        assert config.client_secret == "test-client-secret"
        assert config.auth_uri == "https://accounts.google.com/o/oauth2/auth"
        assert config.token_uri == "https://oauth2.googleapis.com/token"
        assert config.redirect_uri == "http://localhost"
        assert config.scope == TASKS_READONLY_SCOPE

    def test_load_web_credentials(self, tmp_path):
        """Should load web app credentials."""
        creds = {
            "web": {
                "client_id": "web-client-id.apps.googleusercontent.com",
                "client_secret": "web-client-secret",
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
                "redirect_uris": ["https://example.com/callback", "http://localhost"],
            }
        }
        path = tmp_path / "credentials.json"
        with open(path, "w") as f:
            json.dump(creds, f)

        config = load_client_config(path)
        assert config.client_id == "web-client-id.apps.googleusercontent.com"
        assert config.redirect_uri == "https://example.com/callback"

    def test_default_redirect_uri(self, tmp_path, credentials_data):
        """Should fall back to localhost when no redirect URIs are listed."""
        del credentials_data["installed"]["redirect_uris"]
        path = tmp_path / "credentials.json"
        path.write_text(json.dumps(credentials_data))

        assert load_client_config(path).redirect_uri == "http://localhost"

    def test_credentials_not_found(self, tmp_path):
        """Should raise error when credentials file is missing."""
        with pytest.raises(CredentialsNotFoundError) as exc_info:
            load_client_config(tmp_path / "nonexistent.json")
        assert isinstance(exc_info.value, ConfigurationError)

    def test_invalid_json(self, tmp_path):
        """Should raise parse error for malformed JSON."""
        path = tmp_path / "credentials.json"
        path.write_text("{not json")

        with pytest.raises(CredentialsParseError, match="invalid JSON"):
            load_client_config(path)

    def test_unknown_format(self, tmp_path):
        """Should reject files without 'installed' or 'web'."""
        path = tmp_path / "credentials.json"
        path.write_text(json.dumps({"type": "service_account"}))

        with pytest.raises(CredentialsParseError, match="'installed' or 'web'"):
            load_client_config(path)

    @pytest.mark.parametrize("field", ["client_id", "client_secret", "auth_uri", "token_uri"])
    def test_missing_required_field(self, tmp_path, credentials_data, field):
        """Should reject credentials missing a required field."""
        del credentials_data["installed"][field]
        path = tmp_path / "credentials.json"
        path.write_text(json.dumps(credentials_data))

        with pytest.raises(CredentialsParseError, match=field):
            load_client_config(path)

    def test_repr_hides_secret(self, credentials_path):
        """Should never expose the client secret in repr."""
        config = load_client_config(credentials_path)
        assert "test-client-secret" not in repr(config)


class TestTokenCache:
    """Test reading and writing the token cache."""

    def test_round_trip(self, token_path, valid_token):
        """Saved token should load back unchanged."""
        save_token(token_path, valid_token)
        assert load_token(token_path) == valid_token

    def test_round_trip_with_microseconds(self, token_path):
        """Should keep sub-second expiry precision."""
        record = TokenRecord(
            access_token="a",
            refresh_token="r",
            expiry=datetime(2030, 5, 1, 12, 34, 56, 123456, tzinfo=timezone.utc),
            token_type="Bearer",
        )
        save_token(token_path, record)
        assert load_token(token_path) == record

    def test_round_trip_without_refresh_token(self, token_path):
        """Should omit the refresh token when there is none."""
        record = TokenRecord(access_token="a", expiry=datetime(2030, 1, 1, tzinfo=timezone.utc))
        save_token(token_path, record)

        data = json.loads(token_path.read_text())
        assert "refresh_token" not in data
        assert load_token(token_path) == record

    def test_file_format(self, token_path, valid_token):
        """Should write the documented JSON shape."""
        save_token(token_path, valid_token)
        data = json.loads(token_path.read_text())

        assert data["access_token"] == "test-access-token"
        assert data["refresh_token"] == "test-refresh-token"
        assert data["token_type"] == "Bearer"
        assert data["expiry"].endswith("Z")

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_owner_only_permissions(self, token_path, valid_token):
        """Token cache should not be group or world readable."""
        save_token(token_path, valid_token)
        mode = stat.S_IMODE(token_path.stat().st_mode)
        assert mode == 0o600

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_overwrite_tightens_permissions(self, token_path, valid_token):
        """Should replace an existing world-readable file with a private one."""
        token_path.write_text("{}")
        os.chmod(token_path, 0o644)

        save_token(token_path, valid_token)
        assert stat.S_IMODE(token_path.stat().st_mode) == 0o600
        assert load_token(token_path) == valid_token

    def test_no_temp_files_left(self, token_path, valid_token):
        """Should leave only the token file behind."""
        save_token(token_path, valid_token)
        assert [p.name for p in token_path.parent.iterdir()] == ["token.json"]

    def test_creates_parent_directory(self, tmp_path, valid_token):
        """Should create the cache directory when missing."""
        path = tmp_path / "nested" / "token.json"
        save_token(path, valid_token)
        assert path.exists()

    def test_prints_notice(self, token_path, valid_token, capsys):
        """Should tell the user where the token was cached."""
        save_token(token_path, valid_token)
        assert f"Saving credential file to: {token_path}" in capsys.readouterr().out

    def test_write_failure(self, tmp_path, valid_token):
        """Should raise TokenCacheError when the cache cannot be written."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        with pytest.raises(TokenCacheError, match="Unable to cache oauth token"):
            save_token(blocker / "token.json", valid_token)

    def test_load_missing(self, token_path):
        """Should signal a missing cache distinctly."""
        with pytest.raises(TokenNotFoundError):
            load_token(token_path)

    def test_load_corrupt(self, token_path):
        """Should raise TokenCacheError for unparseable caches."""
        token_path.write_text("not json")
        with pytest.raises(TokenCacheError):
            load_token(token_path)

    def test_load_missing_access_token(self, token_path):
        """Should reject a cache without an access token."""
        token_path.write_text(json.dumps({"refresh_token": "r"}))
        with pytest.raises(TokenCacheError, match="access_token"):
            load_token(token_path)

    def test_load_nanosecond_expiry(self, token_path):
        """Should accept RFC 3339 timestamps with nanoseconds and offsets."""
        token_path.write_text(
            json.dumps(
                {
                    "access_token": "a",
                    "token_type": "Bearer",
                    "refresh_token": "r",
                    "expiry": "2030-05-01T14:34:56.123456789+02:00",
                }
            )
        )

        record = load_token(token_path)
        assert record.expiry == datetime(2030, 5, 1, 12, 34, 56, 123456, tzinfo=timezone.utc)

    def test_load_zero_expiry(self, token_path):
        """Zero time means the token has no expiry."""
        token_path.write_text(
            json.dumps({"access_token": "a", "expiry": "0001-01-01T00:00:00Z"})
        )

        record = load_token(token_path)
        assert record.expiry is None
        assert record.is_expired() is False

    @pytest.mark.parametrize(
        "expiry",
        [
            "0001-01-01T00:00:05Z",
            "0001-01-01T00:00:00+00:00",
            "0001-01-01T00:00:00.000000001Z",
            "0001-01-01T00:00:00+05:00",
        ],
    )
    def test_load_year_one_expiry(self, token_path, expiry):
        """Any year-1 timestamp is an unset expiry, not a load failure."""
        token_path.write_text(json.dumps({"access_token": "a", "expiry": expiry}))

        record = load_token(token_path)
        assert record.expiry is None
        assert token_info(record)["status"] == "valid"


class TestTokenRecord:
    """Test token expiry and conversions."""

    def test_is_expired(self, valid_token, expired_token):
        assert valid_token.is_expired() is False
        assert expired_token.is_expired() is True

    def test_expiry_leeway(self):
        """Tokens about to expire count as expired."""
        record = TokenRecord(
            access_token="a",
            expiry=datetime.now(timezone.utc) + timedelta(seconds=5),
        )
        assert record.is_expired() is True

    def test_fractional_expiry_matches_session_check(self):
        """The whole-second expires_at handed to the session decides expiry."""
        whole = math.floor(time.time())
        record = TokenRecord(
            access_token="a",
            expiry=datetime.fromtimestamp(whole + EXPIRY_LEEWAY + 0.95, tz=timezone.utc),
        )

        assert record.to_oauth_token()["expires_at"] == whole + EXPIRY_LEEWAY
        assert record.is_expired() is True
        assert record.is_expired(datetime.fromtimestamp(whole - 1, tz=timezone.utc)) is False

    def test_from_oauth_token_expires_in(self):
        """Should compute expiry from expires_in."""
        before = datetime.now(timezone.utc)
        record = TokenRecord.from_oauth_token(
            {"access_token": "a", "token_type": "Bearer", "expires_in": 3600}
        )
        assert record.expiry >= before + timedelta(seconds=3599)
        assert record.refresh_token is None

    def test_from_oauth_token_keeps_refresh_token(self):
        """Should keep the previous refresh token when none is returned."""
        record = TokenRecord.from_oauth_token(
            {"access_token": "new", "expires_at": 1900000000},
            refresh_token="old-refresh",
        )
        assert record.refresh_token == "old-refresh"
        assert record.expiry == datetime.fromtimestamp(1900000000, tz=timezone.utc)

    @pytest.mark.parametrize(
        "token",
        [
            {"token_type": "Bearer", "expires_in": 3599},
            {"access_token": "", "expires_in": 3599},
            {"access_token": 42},
        ],
    )
    def test_from_oauth_token_without_access_token(self, token):
        with pytest.raises(ValueError, match="access_token"):
            TokenRecord.from_oauth_token(token)

    def test_from_oauth_token_bad_expiry(self):
        with pytest.raises(ValueError, match="invalid expiry"):
            TokenRecord.from_oauth_token({"access_token": "a", "expires_in": "soon"})

    def test_to_oauth_token(self, valid_token):
        token = valid_token.to_oauth_token()
        assert token["access_token"] == "test-access-token"
        assert token["refresh_token"] == "test-refresh-token"
        assert token["expires_at"] == int(valid_token.expiry.timestamp())

    def test_repr_hides_tokens(self, valid_token):
        assert "test-access-token" not in repr(valid_token)
        assert "test-refresh-token" not in repr(valid_token)


class TestTokenInfo:
    """Test token status reporting."""

    def test_valid(self, valid_token):
        info = token_info(valid_token)
        assert info["status"] == "valid"
        assert info["has_refresh_token"] is True

    def test_expired(self, expired_token):
        info = token_info(expired_token)
        assert info["status"] == "expired"
        assert info["expires_in"] == "0:00:00"

    def test_no_expiry(self):
        info = token_info(TokenRecord(access_token="a"))
        assert info["status"] == "valid"
        assert info["expires_in"] == "unknown"
        assert info["expiry"] is None
