"""Shared type definitions for build_service.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class Variant(str, Enum):
    """Build variant passed to the remote Gradle build."""

    DEBUG = "debug"
    RELEASE = "release"


class OutputKind(str, Enum):
    """Android output kind.

    Values are the ``buildType`` names used in eas.json and on the wire.
    """

    PACKAGE = "apk"
    BUNDLE = "aab"


class PipelineState(str, Enum):
    """State of a dispatch pipeline run."""

    IDLE = "idle"
    RESOLVING = "resolving"
    PACKAGING = "packaging"
    UPLOADING = "uploading"
    DISPATCHING = "dispatching"
    DONE = "done"
    FAILED = "failed"


DEFAULT_DISTRIBUTION = "internal"


@dataclass(frozen=True)
class BuildSpec:
    """Normalized build specification derived from a build profile."""

    variant: Variant = Variant.RELEASE
    output_kind: OutputKind = OutputKind.PACKAGE
    explicit_command: str | None = None
    environment: dict[str, str] = field(default_factory=dict)
    auto_increment_version: bool = False
    distribution_channel: str = DEFAULT_DISTRIBUTION


@dataclass(frozen=True)
class ArchiveInfo:
    """Information about a packaged project archive."""

    archive_id: str
    path: Path
    size_bytes: int
    entries: tuple[str, ...] = ()

    @property
    def work_dir(self) -> Path:
        """Private temporary directory holding the archive."""
        return self.path.parent


@dataclass
class DispatchResult:
    """Result of a completed dispatch pipeline run."""

    build_id: str
    artifact_id: str
    source_url: str
    command: str
    spec: BuildSpec
    archive_size: int
    monitor_url: str
    warnings: list[str] = field(default_factory=list)


__all__ = [
    "DEFAULT_DISTRIBUTION",
    "ArchiveInfo",
    "BuildSpec",
    "DispatchResult",
    "OutputKind",
    "PipelineState",
    "Variant",
]
