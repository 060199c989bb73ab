"""Pydantic models for EAS-style build profiles.

This module defines the models used to read build profiles from a
project's ``eas.json``. Every field is optional: a profile may be empty,
and keys this tool does not interpret are accepted and ignored.

Field aliases match the camelCase keys of eas.json.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool

# Platform blocks this tool reads from a profile
PLATFORM_KEYS = ("android", "ios")


class PlatformBuildSchema(BaseModel):
    """Schema for a platform-specific profile block.

    Attributes:
        build_type: Output kind name (``apk`` or ``aab``).
        gradle_command: Explicit Gradle task; overrides derivation.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    build_type: str | None = Field(default=None, alias="buildType")
    gradle_command: str | None = Field(default=None, alias="gradleCommand")


class BuildProfileSchema(BaseModel):
    """Schema for one named build profile.

    Attributes:
        extends: Name of a base profile to inherit from.
        development_client: Build a development client (debug variant).
        distribution: Distribution channel (e.g. ``internal``, ``store``).
        android: Android-specific block.
        ios: iOS-specific block.
        env: Environment variables for the remote build.
        auto_increment: Auto-increment the version code (any truthy value).
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    extends: str | None = Field(default=None, description="Base profile name")
    development_client: StrictBool | None = Field(
        default=None, alias="developmentClient"
    )
    distribution: str | None = Field(default=None, description="Distribution channel")
    android: PlatformBuildSchema | None = Field(default=None)
    ios: PlatformBuildSchema | None = Field(default=None)
    env: dict[str, Any] | None = Field(default=None, description="Build environment")
    auto_increment: Any = Field(default=None, alias="autoIncrement")

    def platform_block(self, platform: str) -> PlatformBuildSchema | None:
        """Return the block for a platform, if the profile has one."""
        if platform not in PLATFORM_KEYS:
            return None
        block: PlatformBuildSchema | None = getattr(self, platform)
        return block


__all__ = [
    "PLATFORM_KEYS",
    "BuildProfileSchema",
    "PlatformBuildSchema",
]
