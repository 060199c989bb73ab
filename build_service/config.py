"""Configuration settings and stored credentials for build_service.

Uses pydantic-settings for operational settings parsed from environment
variables and defaults, and a pydantic model for the on-disk credential
document. Configuration precedence: CLI flags > env vars > defaults.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Secrets are shown as "***" followed by this many trailing characters
REDACT_VISIBLE_CHARS = 4

SECRET_FIELDS = ("appwriteKey", "githubToken")


def _default_config_path() -> Path:
    """Return the default credential document path."""
    return Path.home() / ".build-service.json"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the BUILD_SERVICE_
    prefix. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="BUILD_SERVICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    config_path: Path = Field(
        default_factory=_default_config_path,
        description="Path of the JSON credential document",
    )
    tmp_dir: Path | None = Field(
        default=None,
        description="Temporary directory for archives (uses system default if not set)",
    )

    # Operational
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    default_profile: str = Field(
        default="production",
        description="Build profile used when none is given",
    )
    platform: str = Field(
        default="android",
        description="Target platform sent with the build trigger",
    )

    # Remote endpoints
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL",
    )
    github_web_url: str = Field(
        default="https://github.com",
        description="GitHub web base URL used for monitoring links",
    )
    event_type: str = Field(
        default="remote-build",
        description="repository_dispatch event type",
    )

    # Network
    request_timeout: float = Field(
        default=300.0,
        gt=0,
        description="Timeout in seconds for upload and dispatch requests",
    )
    upload_chunk_size: int = Field(
        default=5 * 1024 * 1024,
        ge=1024 * 1024,
        description="Chunk size in bytes for storage uploads",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


class ConfigMissingError(Exception):
    """Raised when the credential document is absent or incomplete."""

    def __init__(
        self,
        message: str,
        missing: list[str] | None = None,
        code: str = "config_missing",
    ) -> None:
        super().__init__(message)
        self.missing = missing or []
        self.code = code


class Credentials(BaseModel):
    """Credentials for blob storage and CI dispatch.

    Field aliases match the keys of the on-disk JSON document.

    Attributes:
        endpoint: Appwrite API endpoint URL.
        project_id: Appwrite project ID.
        api_key: Appwrite API key.
        bucket_id: Appwrite storage bucket ID.
        ci_token: GitHub personal access token.
        repo: GitHub repository as ``owner/repo``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    endpoint: str = Field(default="", alias="appwriteEndpoint")
    project_id: str = Field(default="", alias="appwriteProject")
    api_key: str = Field(default="", alias="appwriteKey")
    bucket_id: str = Field(default="", alias="appwriteBucket")
    ci_token: str = Field(default="", alias="githubToken")
    repo: str = Field(default="", alias="githubRepo")

    def missing_fields(self) -> list[str]:
        """Return document keys whose values are empty."""
        missing = []
        for name, info in type(self).model_fields.items():
            if not getattr(self, name).strip():
                missing.append(info.alias or name)
        return missing


def read_credentials_document(path: Path) -> dict[str, Any]:
    """Read the raw credential document.

    Args:
        path: Path to the JSON document.

    Returns:
        Parsed document, or an empty dict if the file does not exist.

    Raises:
        ConfigMissingError: If the file is not a valid JSON object.
    """
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigMissingError(
            f"Failed to read configuration {path}: {e}", code="config_invalid"
        ) from e
    if not isinstance(data, dict):
        raise ConfigMissingError(
            f"Expected a JSON object in {path}, got {type(data).__name__}",
            code="config_invalid",
        )
    return data


def load_credentials(path: Path | None = None) -> Credentials:
    """Load and validate credentials from the on-disk document.

    Args:
        path: Document path; defaults to ``Settings.config_path``.

    Returns:
        Fully populated Credentials.

    Raises:
        ConfigMissingError: If the document is absent, invalid, or any
            required field is empty.
    """
    if path is None:
        path = get_settings().config_path

    if not path.exists():
        raise ConfigMissingError(
            f"Configuration not found at {path}. Run: build-service configure"
        )

    data = read_credentials_document(path)
    try:
        credentials = Credentials.model_validate(data)
    except ValidationError as e:
        raise ConfigMissingError(
            f"Invalid configuration in {path}: {e}", code="config_invalid"
        ) from e

    missing = credentials.missing_fields()
    if missing:
        raise ConfigMissingError(
            f"Missing configuration: {', '.join(missing)}. "
            "Run: build-service configure --help",
            missing=missing,
        )

    logger.debug("Loaded credentials from %s", path)
    return credentials


def save_credentials(updates: dict[str, str], path: Path | None = None) -> Path:
    """Merge updates into the credential document and write it back.

    Args:
        updates: Document keys (aliases) to set; empty values are skipped.
        path: Document path; defaults to ``Settings.config_path``.

    Returns:
        Path of the written document.
    """
    if path is None:
        path = get_settings().config_path

    data = read_credentials_document(path)
    data.update({k: v for k, v in updates.items() if v})

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.write("\n")
    os.chmod(path, 0o600)

    logger.info("Saved configuration to %s", path)
    return path


def redact_secret(value: str) -> str:
    """Mask a secret, keeping only its last few characters."""
    return "***" + value[-REDACT_VISIBLE_CHARS:]


def redact_credentials(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a credential document with secrets masked.

    Args:
        data: Raw credential document.

    Returns:
        Copy safe for display.
    """
    redacted = dict(data)
    for key in SECRET_FIELDS:
        value = redacted.get(key)
        if isinstance(value, str) and value:
            redacted[key] = redact_secret(value)
    return redacted


__all__ = [
    "ConfigMissingError",
    "Credentials",
    "Settings",
    "get_settings",
    "load_credentials",
    "print_settings_json",
    "read_credentials_document",
    "redact_credentials",
    "redact_secret",
    "save_credentials",
]
