"""Tests for configuration module."""

import json
import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from build_service.config import (
    ConfigMissingError,
    Credentials,
    Settings,
    get_settings,
    load_credentials,
    print_settings_json,
    read_credentials_document,
    redact_credentials,
    redact_secret,
    save_credentials,
)

FULL_DOCUMENT = {
    "appwriteEndpoint": "https://cloud.appwrite.io/v1",
    "appwriteProject": "proj123",
    "appwriteKey": "secret-api-key-9876",
    "appwriteBucket": "builds",
    "githubToken": "ghp_token_abcd",
    "githubRepo": "acme/mobile-app",
}


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a complete credential document."""
    path = tmp_path / "build-service.json"
    path.write_text(json.dumps(FULL_DOCUMENT))
    return path


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        settings = Settings()

        assert settings.config_path == Path.home() / ".build-service.json"
        assert settings.tmp_dir is None
        assert settings.log_level == "INFO"
        assert settings.default_profile == "production"
        assert settings.platform == "android"
        assert settings.event_type == "remote-build"
        assert settings.github_api_url == "https://api.github.com"
        assert settings.upload_chunk_size == 5 * 1024 * 1024

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "BUILD_SERVICE_LOG_LEVEL": "DEBUG",
                "BUILD_SERVICE_DEFAULT_PROFILE": "preview",
                "BUILD_SERVICE_CONFIG_PATH": "/tmp/test-build-service.json",
            },
        ):
            settings = Settings()
            assert settings.log_level == "DEBUG"
            assert settings.default_profile == "preview"
            assert settings.config_path == Path("/tmp/test-build-service.json")

    def test_get_settings_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        assert isinstance(get_settings(), Settings)

    def test_print_settings_json(self) -> None:
        """print_settings_json should return valid JSON."""
        parsed = json.loads(print_settings_json(Settings()))
        assert "config_path" in parsed
        assert "default_profile" in parsed
        assert "event_type" in parsed


class TestCredentials:
    """Test the Credentials model."""

    def test_validate_from_aliases(self) -> None:
        """Credentials should read the camelCase document keys."""
        credentials = Credentials.model_validate(FULL_DOCUMENT)
        assert credentials.endpoint == "https://cloud.appwrite.io/v1"
        assert credentials.project_id == "proj123"
        assert credentials.bucket_id == "builds"
        assert credentials.repo == "acme/mobile-app"
        assert credentials.missing_fields() == []

    def test_missing_fields_reports_aliases(self) -> None:
        """missing_fields should name empty fields by document key."""
        credentials = Credentials.model_validate(
            {"appwriteEndpoint": "https://x", "githubToken": "  "}
        )
        missing = credentials.missing_fields()
        assert "githubToken" in missing
        assert "appwriteKey" in missing
        assert "appwriteEndpoint" not in missing


class TestLoadCredentials:
    """Test load_credentials function."""

    def test_load_complete(self, config_file: Path) -> None:
        """Should load a complete document."""
        credentials = load_credentials(config_file)
        assert credentials.api_key == "secret-api-key-9876"
        assert credentials.ci_token == "ghp_token_abcd"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Should raise ConfigMissingError when the file does not exist."""
        with pytest.raises(ConfigMissingError) as exc_info:
            load_credentials(tmp_path / "absent.json")
        assert exc_info.value.code == "config_missing"

    def test_missing_field(self, tmp_path: Path) -> None:
        """Should list every missing field."""
        path = tmp_path / "partial.json"
        document = dict(FULL_DOCUMENT)
        del document["githubRepo"]
        document["appwriteBucket"] = ""
        path.write_text(json.dumps(document))

        with pytest.raises(ConfigMissingError) as exc_info:
            load_credentials(path)

        assert set(exc_info.value.missing) == {"githubRepo", "appwriteBucket"}

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Should raise ConfigMissingError for unparseable documents."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(ConfigMissingError) as exc_info:
            load_credentials(path)
        assert exc_info.value.code == "config_invalid"

    def test_non_string_value(self, tmp_path: Path) -> None:
        """Should reject documents whose values are not strings."""
        path = tmp_path / "typed.json"
        path.write_text(json.dumps({**FULL_DOCUMENT, "appwriteProject": 42}))

        with pytest.raises(ConfigMissingError) as exc_info:
            load_credentials(path)
        assert exc_info.value.code == "config_invalid"


class TestSaveCredentials:
    """Test save_credentials function."""

    def test_creates_document(self, tmp_path: Path) -> None:
        """Should create the document with only the given keys."""
        path = tmp_path / "nested" / "config.json"
        save_credentials({"githubRepo": "acme/app"}, path)

        assert json.loads(path.read_text()) == {"githubRepo": "acme/app"}
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_merges_existing(self, config_file: Path) -> None:
        """Should keep existing keys and skip empty updates."""
        save_credentials({"githubRepo": "acme/other", "appwriteKey": ""}, config_file)

        data = read_credentials_document(config_file)
        assert data["githubRepo"] == "acme/other"
        assert data["appwriteKey"] == "secret-api-key-9876"


class TestRedaction:
    """Test secret redaction."""

    def test_redact_secret(self) -> None:
        """Should keep only the last four characters."""
        assert redact_secret("ghp_token_abcd") == "***abcd"

    def test_redact_credentials(self) -> None:
        """Should mask API key and token and leave other fields untouched."""
        redacted = redact_credentials(FULL_DOCUMENT)
        assert redacted["appwriteKey"] == "***9876"
        assert redacted["githubToken"] == "***abcd"
        assert redacted["githubRepo"] == "acme/mobile-app"
        assert FULL_DOCUMENT["appwriteKey"] == "secret-api-key-9876"

    def test_redact_absent_secrets(self) -> None:
        """Should not add keys that are absent."""
        assert redact_credentials({"githubRepo": "acme/app"}) == {
            "githubRepo": "acme/app"
        }
