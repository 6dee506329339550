"""Unit tests for environment-driven settings."""

from pathlib import Path

import pytest

from gdrive_mcp.config import (
    DEFAULT_AUTH_TIMEOUT_MS,
    DEFAULT_CREDS_DIR,
    DEFAULT_REDIRECT_URI,
    DEFAULT_REFRESH_INTERVAL_SECONDS,
    AuthSettings,
)


@pytest.mark.unit
class TestAuthSettingsFromEnv:
    """Tests for AuthSettings.from_env()."""

    def test_should_use_defaults_for_empty_environment(self) -> None:
        """Verify defaults apply when nothing is set."""
        settings = AuthSettings.from_env({})

        assert settings.creds_dir == DEFAULT_CREDS_DIR
        assert settings.service_account_path is None
        assert settings.use_service_account is False
        assert settings.client_id is None
        assert settings.redirect_uri == DEFAULT_REDIRECT_URI
        assert settings.auth_timeout_ms == DEFAULT_AUTH_TIMEOUT_MS == 30000
        assert settings.refresh_interval_seconds == DEFAULT_REFRESH_INTERVAL_SECONDS == 2700

    def test_should_read_creds_dir(self, tmp_path: Path) -> None:
        """Verify GDRIVE_CREDS_DIR sets the credentials directory."""
        settings = AuthSettings.from_env({"GDRIVE_CREDS_DIR": str(tmp_path)})

        assert settings.creds_dir == tmp_path
        assert settings.oauth_credentials_file == tmp_path / ".gdrive-server-credentials.json"
        assert settings.oauth_keys_file == tmp_path / "gcp-oauth.keys.json"
        assert settings.service_account_file == tmp_path / "service-account.json"

    def test_should_accept_creds_dir_alias(self, tmp_path: Path) -> None:
        """Verify CREDS_DIR is honoured when GDRIVE_CREDS_DIR is unset."""
        settings = AuthSettings.from_env({"CREDS_DIR": str(tmp_path)})

        assert settings.creds_dir == tmp_path

    def test_should_prefer_primary_name_over_alias(self, tmp_path: Path) -> None:
        """Verify GDRIVE_CREDS_DIR wins over CREDS_DIR."""
        settings = AuthSettings.from_env(
            {"GDRIVE_CREDS_DIR": str(tmp_path / "a"), "CREDS_DIR": str(tmp_path / "b")}
        )

        assert settings.creds_dir == tmp_path / "a"

    def test_should_override_service_account_path(self, tmp_path: Path) -> None:
        """Verify an explicit key path replaces the default location."""
        key = tmp_path / "keys" / "sa.json"
        settings = AuthSettings.from_env(
            {"GDRIVE_CREDS_DIR": str(tmp_path), "GDRIVE_SERVICE_ACCOUNT_PATH": str(key)}
        )

        assert settings.service_account_file == key

    @pytest.mark.parametrize("value", ["true", "TRUE", "True", " true "])
    def test_should_force_service_account_for_true(self, value: str) -> None:
        """Verify USE_SERVICE_ACCOUNT is case-insensitive."""
        settings = AuthSettings.from_env({"USE_SERVICE_ACCOUNT": value})

        assert settings.use_service_account is True

    @pytest.mark.parametrize("value", ["false", "1", "yes", ""])
    def test_should_not_force_service_account_otherwise(self, value: str) -> None:
        """Verify only "true" forces service account mode."""
        settings = AuthSettings.from_env({"USE_SERVICE_ACCOUNT": value})

        assert settings.use_service_account is False

    def test_should_read_client_credentials(self) -> None:
        """Verify CLIENT_ID and CLIENT_SECRET are picked up."""
        settings = AuthSettings.from_env(
            {"CLIENT_ID": "id", "CLIENT_SECRET": "secret"}  # pragma: allowlist secret
        )

        assert settings.client_id == "id"
        assert settings.client_secret == "secret"  # pragma: allowlist secret

    def test_should_read_numeric_overrides(self) -> None:
        """Verify timeout and interval can be tuned."""
        settings = AuthSettings.from_env(
            {"GDRIVE_AUTH_TIMEOUT_MS": "5000", "GDRIVE_REFRESH_INTERVAL": "60"}
        )

        assert settings.auth_timeout_ms == 5000
        assert settings.refresh_interval_seconds == 60

    @pytest.mark.parametrize("value", ["abc", "0", "-5"])
    def test_should_fall_back_on_invalid_numbers(self, value: str) -> None:
        """Verify unusable numeric values revert to defaults."""
        settings = AuthSettings.from_env({"GDRIVE_AUTH_TIMEOUT_MS": value})

        assert settings.auth_timeout_ms == DEFAULT_AUTH_TIMEOUT_MS
