"""Project packaging module.

This module handles:
- Ignore-pattern resolution (.buildignore override or built-in defaults)
- Reproducible tar.gz archive creation
"""

from build_service.packaging.archive import (
    ArchiveWriteError,
    PathError,
    package_project,
    remove_archive,
)
from build_service.packaging.ignore import IgnoreSet, resolve_ignore_set

__all__ = [
    "ArchiveWriteError",
    "IgnoreSet",
    "PathError",
    "package_project",
    "remove_archive",
    "resolve_ignore_set",
]
