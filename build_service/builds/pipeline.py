"""Dispatch pipeline.

This module provides the high-level build API:
- DispatchPipeline.run(): resolve profile, package, upload, trigger
- DispatchPipeline.prepare(): resolve and package only (dry run)
- generate_build_id(): process-unique, time-based build identifiers

The pipeline moves strictly forward through
IDLE -> RESOLVING -> PACKAGING -> UPLOADING -> DISPATCHING -> DONE,
or to FAILED from packaging, uploading or dispatching. The temporary
archive is removed on every exit path once packaging has succeeded.
An archive that was uploaded before a dispatch failure stays in storage.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from build_service.builds.command import derive_command
from build_service.config import ConfigMissingError, get_settings
from build_service.dispatch import (
    DispatchError,
    GitHubDispatcher,
    build_dispatch_payload,
    monitor_url,
)
from build_service.packaging.archive import (
    ArchiveWriteError,
    PathError,
    package_project,
    remove_archive,
)
from build_service.packaging.ignore import IgnoreSet, resolve_ignore_set
from build_service.profiles.resolver import ProfileResolution, resolve_profile
from build_service.storage import AppwriteStorage, StorageError
from build_service.types import ArchiveInfo, DispatchResult, PipelineState

if TYPE_CHECKING:
    import httpx

    from build_service.config import Credentials, Settings
    from build_service.dispatch import CIDispatcher
    from build_service.storage import BlobStorage

logger = logging.getLogger(__name__)

_build_id_lock = threading.Lock()
_last_build_id = 0


def generate_build_id() -> str:
    """Generate a build ID from the current time in milliseconds.

    IDs are strictly increasing within the process, even when two builds
    start in the same millisecond or the clock steps back.
    """
    global _last_build_id
    with _build_id_lock:
        value = time.time_ns() // 1_000_000
        if value <= _last_build_id:
            value = _last_build_id + 1
        _last_build_id = value
    return str(value)


class PipelineError(Exception):
    """Raised when a pipeline phase fails.

    The original error is chained as ``__cause__``.
    """

    def __init__(
        self,
        phase: PipelineState,
        message: str,
        code: str = "pipeline_error",
    ) -> None:
        super().__init__(message)
        self.phase = phase
        self.code = code


@dataclass
class PreparedBuild:
    """Resolved profile and packaged archive, before upload."""

    resolution: ProfileResolution
    command: str
    ignore_set: IgnoreSet
    archive: ArchiveInfo


class DispatchPipeline:
    """Runs one remote build request end to end."""

    def __init__(
        self,
        credentials: Credentials | None = None,
        storage: BlobStorage | None = None,
        dispatcher: CIDispatcher | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize DispatchPipeline.

        Only prepare() works without credentials and collaborators.

        Args:
            credentials: Loaded credentials (repository and storage access).
            storage: Blob storage collaborator.
            dispatcher: CI dispatch collaborator.
            settings: Application settings; loaded from environment if None.
        """
        self.credentials = credentials
        self.storage = storage
        self.dispatcher = dispatcher
        self.settings = settings if settings is not None else get_settings()
        self._state = PipelineState.IDLE

    @classmethod
    def from_credentials(
        cls,
        credentials: Credentials,
        client: httpx.Client,
        settings: Settings | None = None,
    ) -> DispatchPipeline:
        """Create a pipeline using Appwrite Storage and GitHub Actions."""
        if settings is None:
            settings = get_settings()
        storage = AppwriteStorage.from_credentials(
            credentials, client, chunk_size=settings.upload_chunk_size
        )
        dispatcher = GitHubDispatcher(
            client, credentials.ci_token, api_url=settings.github_api_url
        )
        return cls(credentials, storage, dispatcher, settings)

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    def _transition(self, state: PipelineState) -> None:
        logger.debug("Pipeline %s -> %s", self._state.value, state.value)
        self._state = state

    def _fail(self, phase: PipelineState, error: Exception) -> PipelineError:
        self._transition(PipelineState.FAILED)
        logger.error("%s failed: %s", phase.value.capitalize(), error)
        return PipelineError(
            phase,
            f"{phase.value.capitalize()} failed: {error}",
            code=getattr(error, "code", "pipeline_error"),
        )

    def prepare(
        self,
        project_root: Path,
        profile_name: str,
        extra_patterns: Sequence[str] | None = None,
    ) -> PreparedBuild:
        """Resolve the profile and package the project.

        The caller owns the returned archive and must remove it.

        Args:
            project_root: Project directory.
            profile_name: Build profile name.
            extra_patterns: Additional ignore patterns.

        Returns:
            PreparedBuild with the spec, command and archive.

        Raises:
            PipelineError: If packaging fails (phase PACKAGING).
        """
        project_root = Path(project_root)

        self._transition(PipelineState.RESOLVING)
        resolution = resolve_profile(
            project_root, profile_name, platform=self.settings.platform
        )
        command = derive_command(resolution.spec)
        logger.info(
            "Profile '%s': variant=%s output=%s command=%s",
            profile_name,
            resolution.spec.variant.value,
            resolution.spec.output_kind.value,
            command,
        )

        self._transition(PipelineState.PACKAGING)
        try:
            ignore_set = resolve_ignore_set(project_root, extra_patterns)
            archive = package_project(
                project_root, ignore_set, tmp_dir=self.settings.tmp_dir
            )
        except (PathError, ArchiveWriteError, OSError, UnicodeDecodeError) as e:
            raise self._fail(PipelineState.PACKAGING, e) from e

        return PreparedBuild(
            resolution=resolution,
            command=command,
            ignore_set=ignore_set,
            archive=archive,
        )

    def run(
        self,
        project_root: Path,
        profile_name: str,
        extra_patterns: Sequence[str] | None = None,
    ) -> DispatchResult:
        """Run a remote build request.

        Args:
            project_root: Project directory.
            profile_name: Build profile name.
            extra_patterns: Additional ignore patterns.

        Returns:
            DispatchResult with the build ID and uploaded artifact ID.

        Raises:
            ConfigMissingError: If any credential is empty (before resolving).
            PipelineError: If packaging, uploading or dispatching fails.
        """
        if self.credentials is None:
            raise ConfigMissingError("No credentials configured")
        missing = self.credentials.missing_fields()
        if missing:
            raise ConfigMissingError(
                f"Missing configuration: {', '.join(missing)}", missing=missing
            )
        if self.storage is None or self.dispatcher is None:
            raise ValueError("run() requires storage and dispatcher collaborators")

        prepared = self.prepare(project_root, profile_name, extra_patterns)
        archive = prepared.archive
        spec = prepared.resolution.spec

        try:
            self._transition(PipelineState.UPLOADING)
            try:
                artifact_id = self.storage.upload(
                    archive.path.read_bytes(), archive.path.name
                )
            except (StorageError, OSError) as e:
                raise self._fail(PipelineState.UPLOADING, e) from e
            source_url = self.storage.download_reference(artifact_id)

            self._transition(PipelineState.DISPATCHING)
            build_id = generate_build_id()
            payload = build_dispatch_payload(
                source_url,
                build_id,
                spec,
                prepared.command,
                platform=self.settings.platform,
                event_type=self.settings.event_type,
            )
            try:
                self.dispatcher.trigger(self.credentials.repo, payload)
            except DispatchError as e:
                logger.warning("Uploaded artifact %s was not removed", artifact_id)
                raise self._fail(PipelineState.DISPATCHING, e) from e
        finally:
            remove_archive(archive)

        self._transition(PipelineState.DONE)
        return DispatchResult(
            build_id=build_id,
            artifact_id=artifact_id,
            source_url=source_url,
            command=prepared.command,
            spec=spec,
            archive_size=archive.size_bytes,
            monitor_url=monitor_url(
                self.credentials.repo, self.settings.github_web_url
            ),
            warnings=list(prepared.resolution.warnings),
        )


__all__ = [
    "DispatchPipeline",
    "PipelineError",
    "PreparedBuild",
    "generate_build_id",
]
