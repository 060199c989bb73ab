"""Build-profile document loading.

This module provides helpers for reading a project's ``eas.json``,
resolving ``extends`` inheritance between profiles, and parsing a raw
profile leniently: malformed fields are dropped with a warning instead of
failing the whole profile.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from build_service.profiles.schema import PLATFORM_KEYS, BuildProfileSchema

logger = logging.getLogger(__name__)

EAS_FILE_NAME = "eas.json"

# Keys merged key-wise (rather than replaced) when a profile extends another
MERGED_KEYS = (*PLATFORM_KEYS, "env")


class ProfileConfigError(Exception):
    """Raised when a build-profile document or field cannot be used."""

    def __init__(self, message: str, code: str = "profile_config_error") -> None:
        super().__init__(message)
        self.code = code


def load_eas_document(project_root: Path) -> dict[str, Any] | None:
    """Load the build-profile document from a project root.

    Args:
        project_root: Project directory.

    Returns:
        Parsed document, or None if the project has no eas.json.

    Raises:
        ProfileConfigError: If the file cannot be read or is not a JSON object.
    """
    path = project_root / EAS_FILE_NAME
    if not path.is_file():
        return None

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProfileConfigError(
            f"Failed to parse {EAS_FILE_NAME}: {e}", code="profile_parse_error"
        ) from e

    if not isinstance(data, dict):
        raise ProfileConfigError(
            f"Expected a JSON object in {EAS_FILE_NAME}, got {type(data).__name__}",
            code="profile_parse_error",
        )
    return data


def get_build_profiles(document: dict[str, Any]) -> dict[str, Any]:
    """Return the profile collection (the ``build`` key) of a document.

    Args:
        document: Parsed eas.json.

    Returns:
        Mapping of profile name to raw profile; empty if there is none.

    Raises:
        ProfileConfigError: If ``build`` is present but not an object.
    """
    profiles = document.get("build")
    if profiles is None:
        return {}
    if not isinstance(profiles, dict):
        raise ProfileConfigError(
            f"Expected 'build' to be an object, got {type(profiles).__name__}",
            code="profile_parse_error",
        )
    return profiles


def merge_profiles(base: dict[str, Any], child: dict[str, Any]) -> dict[str, Any]:
    """Merge a child profile over its base.

    Platform blocks and ``env`` are merged key-wise when both sides are
    objects; every other key in the child replaces the base value.

    Args:
        base: Raw base profile.
        child: Raw child profile.

    Returns:
        New merged profile (``extends`` removed).
    """
    merged = {k: v for k, v in base.items() if k != "extends"}
    for key, value in child.items():
        if key == "extends":
            continue
        base_value = merged.get(key)
        if (
            key in MERGED_KEYS
            and isinstance(base_value, dict)
            and isinstance(value, dict)
        ):
            merged[key] = {**base_value, **value}
        else:
            merged[key] = value
    return merged


def flatten_profile(
    profiles: dict[str, Any],
    name: str,
    warnings: list[str] | None = None,
) -> dict[str, Any] | None:
    """Resolve a profile's ``extends`` chain into one raw profile.

    A missing base profile or an inheritance cycle stops the chain at that
    point with a warning.

    Args:
        profiles: Profile collection from the document.
        name: Profile to resolve.
        warnings: Optional list that receives warning messages.

    Returns:
        Flattened raw profile, or None if ``name`` is not in the collection.
    """
    if warnings is None:
        warnings = []

    raw = profiles.get(name)
    if raw is None:
        return None
    if not isinstance(raw, dict):
        _warn(warnings, f"Profile '{name}' is not an object, ignoring it")
        return {}

    chain = [raw]
    seen = {name}
    current = raw
    while isinstance(current.get("extends"), str):
        base_name = current["extends"]
        if base_name in seen:
            _warn(warnings, f"Profile '{name}' has an extends cycle at '{base_name}'")
            break
        base = profiles.get(base_name)
        if not isinstance(base, dict):
            _warn(
                warnings,
                f"Profile '{name}' extends unknown profile '{base_name}'",
            )
            break
        seen.add(base_name)
        chain.append(base)
        current = base

    flattened: dict[str, Any] = {}
    for profile in reversed(chain):
        flattened = merge_profiles(flattened, profile)
    return flattened


def parse_build_profile(
    data: dict[str, Any],
    warnings: list[str] | None = None,
) -> BuildProfileSchema:
    """Parse a raw profile, dropping fields that fail validation.

    Invalid nested fields inside a platform block are dropped on their own;
    any other invalid field is dropped whole.

    Args:
        data: Raw profile.
        warnings: Optional list that receives warning messages.

    Returns:
        Validated BuildProfileSchema (possibly empty).
    """
    if warnings is None:
        warnings = []

    data = {k: dict(v) if isinstance(v, dict) else v for k, v in data.items()}
    while True:
        try:
            return BuildProfileSchema.model_validate(data)
        except ValidationError as e:
            dropped = False
            for error in e.errors():
                loc = error["loc"]
                if not loc:
                    continue
                key = loc[0]
                if (
                    len(loc) > 1
                    and key in PLATFORM_KEYS
                    and isinstance(data.get(key), dict)
                    and loc[1] in data[key]
                ):
                    _warn(
                        warnings,
                        f"Ignoring invalid field '{key}.{loc[1]}': {error['msg']}",
                    )
                    del data[key][loc[1]]
                    dropped = True
                elif key in data:
                    _warn(warnings, f"Ignoring invalid field '{key}': {error['msg']}")
                    del data[key]
                    dropped = True
            if not dropped:
                _warn(warnings, f"Ignoring invalid profile: {e}")
                return BuildProfileSchema()


def _warn(warnings: list[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)


__all__ = [
    "EAS_FILE_NAME",
    "ProfileConfigError",
    "flatten_profile",
    "get_build_profiles",
    "load_eas_document",
    "merge_profiles",
    "parse_build_profile",
]
