"""Project packaging into a reproducible tar.gz archive.

This module handles:
- Walking the project tree with directory pruning
- Ordering entries deterministically
- Writing a gzip-compressed tar archive into a private temp directory
- Cleaning up partial output and finished archives
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import tarfile
import tempfile
import time
from pathlib import Path

from build_service.packaging.ignore import IgnoreSet, resolve_ignore_set
from build_service.types import ArchiveInfo

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "build-"
ARCHIVE_SUFFIX = ".tar.gz"
WORK_DIR_PREFIX = "build-service-"


class PathError(Exception):
    """Raised when the project root is missing or not a directory."""

    def __init__(self, path: Path, message: str, code: str = "path_error") -> None:
        super().__init__(message)
        self.path = path
        self.code = code


class ArchiveWriteError(Exception):
    """Raised when the archive cannot be written."""

    def __init__(self, message: str, code: str = "archive_io_error") -> None:
        super().__init__(message)
        self.code = code


def generate_archive_id() -> str:
    """Return a millisecond timestamp identifier for an archive."""
    return str(time.time_ns() // 1_000_000)


def _normalize_tarinfo(tarinfo: tarfile.TarInfo) -> tarfile.TarInfo:
    """Strip host-specific ownership from an archive entry."""
    tarinfo.uid = 0
    tarinfo.gid = 0
    tarinfo.uname = ""
    tarinfo.gname = ""
    return tarinfo


def collect_entries(project_root: Path, ignore_set: IgnoreSet) -> list[str]:
    """Collect project-relative paths of all files to package.

    Excluded directories are pruned before descending, so nothing beneath
    them is visited. Symlinks are kept as entries and never followed.

    Args:
        project_root: Project directory.
        ignore_set: Effective exclusion patterns.

    Returns:
        Lexicographically sorted POSIX paths relative to project_root.
    """
    entries: list[str] = []

    for root, dirs, files in os.walk(project_root):
        root_path = Path(root)
        rel_root = root_path.relative_to(project_root).as_posix()
        prefix = "" if rel_root == "." else rel_root + "/"

        kept_dirs = []
        for name in sorted(dirs):
            rel_path = prefix + name
            if (root_path / name).is_symlink():
                if not ignore_set.matches(rel_path):
                    entries.append(rel_path)
                continue
            if ignore_set.matches(rel_path, is_dir=True):
                logger.debug("Pruned directory: %s", rel_path)
                continue
            kept_dirs.append(name)
        dirs[:] = kept_dirs

        for name in files:
            rel_path = prefix + name
            if ignore_set.matches(rel_path):
                continue
            entries.append(rel_path)

    return sorted(entries)


def write_archive(project_root: Path, entries: list[str], archive_path: Path) -> None:
    """Write entries into a gzip-compressed tar archive.

    The gzip header carries no timestamp or file name and entry ownership is
    normalized, so identical trees produce identical entry sets and order.

    Args:
        project_root: Project directory the entries are relative to.
        entries: Relative paths to add, in archive order.
        archive_path: Destination file.
    """
    with (
        open(archive_path, "wb") as raw,
        gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as gz,
        tarfile.open(fileobj=gz, mode="w") as tar,
    ):
        for rel_path in entries:
            tar.add(
                project_root / rel_path,
                arcname=rel_path,
                recursive=False,
                filter=_normalize_tarinfo,
            )


def package_project(
    project_root: Path,
    ignore_set: IgnoreSet | None = None,
    tmp_dir: Path | None = None,
) -> ArchiveInfo:
    """Package a project tree into a tar.gz archive.

    Args:
        project_root: Project directory to package.
        ignore_set: Exclusion patterns; resolved from project_root if None.
        tmp_dir: Parent for the private work directory (system default if None).

    Returns:
        ArchiveInfo describing the written archive.

    Raises:
        PathError: If project_root does not exist or is not a directory.
        ArchiveWriteError: If the archive cannot be written. No partial
            output is left behind.
    """
    if not project_root.exists():
        raise PathError(project_root, f"Project path not found: {project_root}")
    if not project_root.is_dir():
        raise PathError(
            project_root,
            f"Project path is not a directory: {project_root}",
            code="path_not_dir",
        )

    if ignore_set is None:
        ignore_set = resolve_ignore_set(project_root)

    archive_id = generate_archive_id()
    try:
        work_dir = Path(
            tempfile.mkdtemp(prefix=f"{WORK_DIR_PREFIX}{archive_id}-", dir=tmp_dir)
        )
    except OSError as e:
        raise ArchiveWriteError(f"Failed to create work directory: {e}") from e

    archive_path = work_dir / f"{ARCHIVE_PREFIX}{archive_id}{ARCHIVE_SUFFIX}"

    try:
        entries = collect_entries(project_root, ignore_set)
        logger.debug("Packaging %d files from %s", len(entries), project_root)
        write_archive(project_root, entries, archive_path)
        size_bytes = archive_path.stat().st_size
    except (OSError, tarfile.TarError) as e:
        shutil.rmtree(work_dir, ignore_errors=True)
        raise ArchiveWriteError(f"Failed to write archive {archive_path}: {e}") from e

    logger.info(
        "Package created: %.2f MB (%d files)",
        size_bytes / 1024 / 1024,
        len(entries),
    )
    return ArchiveInfo(
        archive_id=archive_id,
        path=archive_path,
        size_bytes=size_bytes,
        entries=tuple(entries),
    )


def remove_archive(archive: ArchiveInfo) -> bool:
    """Remove an archive and its private work directory.

    Best effort: failures are logged, not raised.

    Args:
        archive: Archive to remove.

    Returns:
        True if the work directory is gone afterwards.
    """
    try:
        shutil.rmtree(archive.work_dir)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("Failed to remove archive %s: %s", archive.work_dir, e)
        return False
    logger.debug("Removed archive %s", archive.path)
    return True


__all__ = [
    "ARCHIVE_SUFFIX",
    "ArchiveWriteError",
    "PathError",
    "collect_entries",
    "generate_archive_id",
    "package_project",
    "remove_archive",
    "write_archive",
]
