"""Build profile module.

This module handles:
- Reading EAS-style build profiles from eas.json
- Profile inheritance via ``extends``
- Mapping a profile into a normalized BuildSpec
"""

from build_service.profiles.io import ProfileConfigError
from build_service.profiles.resolver import (
    ProfileResolution,
    resolve_build_spec,
    resolve_profile,
)
from build_service.profiles.schema import BuildProfileSchema, PlatformBuildSchema

__all__ = [
    "BuildProfileSchema",
    "PlatformBuildSchema",
    "ProfileConfigError",
    "ProfileResolution",
    "resolve_build_spec",
    "resolve_profile",
]
