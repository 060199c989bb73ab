"""Build profile resolution.

This module maps a named profile from a project's eas.json into a
normalized BuildSpec. Resolution never fails: a missing document, an
unparseable document, an unknown profile name or a malformed field all
degrade to defaults and are reported as warnings.

Mapping rules are applied in a fixed order:
1. developmentClient true -> debug variant, otherwise release
2. distribution overwrites the default channel
3. platform buildType selects the output kind (apk / aab)
4. platform gradleCommand is kept verbatim as the explicit command
5. env is copied as-is
6. autoIncrement is coerced to its truthiness
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from build_service.profiles.io import (
    EAS_FILE_NAME,
    ProfileConfigError,
    flatten_profile,
    get_build_profiles,
    load_eas_document,
    parse_build_profile,
)
from build_service.profiles.schema import BuildProfileSchema
from build_service.types import DEFAULT_DISTRIBUTION, BuildSpec, OutputKind, Variant

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM = "android"


@dataclass
class ProfileResolution:
    """Outcome of resolving a named profile.

    Attributes:
        profile_name: Requested profile name.
        spec: Resolved build specification.
        found: True if the profile exists in the document.
        source: Path of the document read, if any.
        warnings: Non-fatal problems met while resolving.
    """

    profile_name: str
    spec: BuildSpec
    found: bool = False
    source: Path | None = None
    warnings: list[str] = field(default_factory=list)


def parse_output_kind(build_type: str) -> OutputKind:
    """Parse a profile ``buildType`` value.

    Args:
        build_type: Raw value, e.g. ``apk`` or ``aab``.

    Returns:
        Matching OutputKind.

    Raises:
        ProfileConfigError: If the value is not a recognized build type.
    """
    try:
        return OutputKind(build_type.strip().lower())
    except ValueError:
        valid = ", ".join(k.value for k in OutputKind)
        raise ProfileConfigError(
            f"Unsupported buildType '{build_type}' (expected one of: {valid})",
            code="invalid_build_type",
        ) from None


def map_profile_to_spec(
    profile: BuildProfileSchema | None,
    platform: str = DEFAULT_PLATFORM,
    warnings: list[str] | None = None,
) -> BuildSpec:
    """Map a parsed profile into a BuildSpec.

    Args:
        profile: Parsed profile, or None for defaults.
        platform: Platform whose block supplies buildType and gradleCommand.
        warnings: Optional list that receives warning messages.

    Returns:
        Fully populated BuildSpec.
    """
    if warnings is None:
        warnings = []
    if profile is None:
        return BuildSpec()

    variant = Variant.RELEASE
    if profile.development_client is True:
        variant = Variant.DEBUG
        logger.info("Development client enabled, using debug variant")

    distribution = DEFAULT_DISTRIBUTION
    if profile.distribution:
        distribution = profile.distribution

    output_kind = OutputKind.PACKAGE
    explicit_command = None
    block = profile.platform_block(platform)
    if block is not None:
        if block.build_type:
            try:
                output_kind = parse_output_kind(block.build_type)
                logger.info("Build type: %s", output_kind.value.upper())
            except ProfileConfigError as e:
                message = f"{e}; using {output_kind.value}"
                logger.warning(message)
                warnings.append(message)
        if block.gradle_command:
            explicit_command = block.gradle_command
            logger.info("Custom gradle command: %s", explicit_command)

    environment = dict(profile.env) if profile.env else {}
    if environment:
        logger.info("Environment variables: %d variables", len(environment))

    auto_increment = bool(profile.auto_increment)
    if auto_increment:
        logger.info("Auto-increment version code enabled")

    return BuildSpec(
        variant=variant,
        output_kind=output_kind,
        explicit_command=explicit_command,
        environment=environment,
        auto_increment_version=auto_increment,
        distribution_channel=distribution,
    )


def resolve_profile(
    project_root: Path,
    profile_name: str,
    platform: str = DEFAULT_PLATFORM,
) -> ProfileResolution:
    """Resolve a named profile from a project's eas.json.

    Args:
        project_root: Project directory.
        profile_name: Profile name under the document's ``build`` key.
        platform: Target platform.

    Returns:
        ProfileResolution; its spec is the default BuildSpec whenever the
        profile cannot be used.
    """
    resolution = ProfileResolution(profile_name=profile_name, spec=BuildSpec())
    warnings = resolution.warnings

    try:
        document = load_eas_document(project_root)
        if document is None:
            logger.info("%s not found, using default configuration", EAS_FILE_NAME)
            return resolution
        resolution.source = project_root / EAS_FILE_NAME
        profiles = get_build_profiles(document)
    except ProfileConfigError as e:
        message = f"{e}; using default configuration"
        logger.warning(message)
        warnings.append(message)
        return resolution

    raw = flatten_profile(profiles, profile_name, warnings)
    if raw is None:
        message = (
            f"Profile '{profile_name}' not found in {EAS_FILE_NAME}, using defaults"
        )
        logger.warning(message)
        warnings.append(message)
        return resolution

    logger.info("Loaded profile '%s' from %s", profile_name, EAS_FILE_NAME)
    resolution.found = True
    profile = parse_build_profile(raw, warnings)
    resolution.spec = map_profile_to_spec(profile, platform, warnings)
    return resolution


def resolve_build_spec(
    project_root: Path,
    profile_name: str,
    platform: str = DEFAULT_PLATFORM,
) -> BuildSpec:
    """Resolve a named profile into a BuildSpec.

    Never raises for profile problems; see resolve_profile().
    """
    return resolve_profile(project_root, profile_name, platform).spec


def list_profile_names(project_root: Path) -> list[str]:
    """List profile names defined in a project's eas.json.

    Args:
        project_root: Project directory.

    Returns:
        Profile names in document order (empty if there is no document).

    Raises:
        ProfileConfigError: If the document cannot be parsed.
    """
    document = load_eas_document(project_root)
    if document is None:
        return []
    return list(get_build_profiles(document))


__all__ = [
    "DEFAULT_PLATFORM",
    "ProfileResolution",
    "list_profile_names",
    "map_profile_to_spec",
    "parse_output_kind",
    "resolve_build_spec",
    "resolve_profile",
]
