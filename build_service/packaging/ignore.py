"""Ignore-pattern policy for project packaging.

This module handles:
- Reading the project-local ``.buildignore`` override file
- Falling back to the built-in default exclusions
- Appending caller-supplied patterns
- Matching project-relative paths against the effective pattern set

Patterns are glob patterns matched against root-relative paths (compiled
with pathspec): every pattern is anchored at the project root, so ``*.log``
only matches top-level log files and ``**/*.log`` matches them at any depth.
``**`` spans path segments, matching is case-sensitive, and dot-prefixed
entries are only excluded when a pattern names them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path

from pathspec import GitIgnoreSpec

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".buildignore"

DEFAULTS_SOURCE = "defaults"

# Dependency dirs, VCS metadata, build outputs, logs, editor metadata and
# native folders left behind by a prebuild.
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    "node_modules/**",
    ".git/**",
    ".expo/**",
    "dist/**",
    "build/**",
    ".vscode/**",
    "*.log",
    "android/app/build/**",
    "android/.gradle/**",
    "android/build/**",
    "ios/build/**",
    "ios/Pods/**",
)


@dataclass(frozen=True)
class IgnoreSet:
    """Ordered, effective set of exclusion patterns.

    Attributes:
        patterns: Patterns in priority order (base set, then caller extras).
        source: Path of the override file, or ``"defaults"``.
        extra_count: Number of caller-supplied patterns at the end.
    """

    patterns: tuple[str, ...]
    source: str = DEFAULTS_SOURCE
    extra_count: int = 0

    @cached_property
    def spec(self) -> GitIgnoreSpec:
        """Compiled matcher for the patterns, anchored at the project root."""
        return GitIgnoreSpec.from_lines(anchor_pattern(p) for p in self.patterns)

    @property
    def uses_override(self) -> bool:
        """True if the base patterns came from an override file."""
        return self.source != DEFAULTS_SOURCE

    def matches(self, rel_path: str, is_dir: bool = False) -> bool:
        """Check whether a project-relative path is excluded.

        A directory is excluded when the patterns match it as a directory,
        which also covers ``dir/**`` style patterns.

        Args:
            rel_path: POSIX path relative to the project root.
            is_dir: Whether the path is a directory.

        Returns:
            True if the path must not be packaged.
        """
        path = rel_path.strip("/")
        if not path:
            return False
        if is_dir:
            path += "/"
        return self.spec.match_file(path)


def normalize_pattern(pattern: str) -> str:
    """Turn a directory-style pattern into a recursive glob.

    Args:
        pattern: Raw pattern, e.g. ``build/``.

    Returns:
        ``build/**`` for directory patterns, the input otherwise.
    """
    if pattern.endswith("/"):
        return pattern + "**"
    return pattern


def anchor_pattern(pattern: str) -> str:
    """Anchor a glob pattern at the project root.

    Without anchoring, gitignore matching applies slash-free patterns such
    as ``*.log`` at every depth.

    Args:
        pattern: Normalized pattern, e.g. ``*.log``.

    Returns:
        ``/*.log``; negations keep their ``!`` prefix (``!/keep.log``).
    """
    negated = pattern.startswith("!")
    body = pattern[1:] if negated else pattern
    if not body.startswith("/"):
        body = "/" + body
    return ("!" if negated else "") + body


def parse_ignore_lines(lines: Iterable[str]) -> list[str]:
    """Parse ignore-file lines into patterns.

    Blank lines and ``#`` comments are skipped; entries ending with ``/``
    are normalized to match everything beneath the directory.

    Args:
        lines: Raw lines of an ignore file.

    Returns:
        List of patterns in file order.
    """
    patterns = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(normalize_pattern(line))
    return patterns


def read_ignore_file(path: Path) -> list[str]:
    """Read and parse an ignore file.

    Args:
        path: Path to the ignore file.

    Returns:
        List of patterns.
    """
    with open(path, encoding="utf-8") as f:
        return parse_ignore_lines(f.read().splitlines())


def resolve_ignore_set(
    project_root: Path,
    extra_patterns: Sequence[str] | None = None,
) -> IgnoreSet:
    """Resolve the effective ignore patterns for a packaging run.

    The project-local ``.buildignore`` replaces the built-in defaults when it
    exists; caller patterns are appended to whichever base set was chosen.

    Args:
        project_root: Project directory.
        extra_patterns: Additional caller-supplied patterns.

    Returns:
        IgnoreSet with the effective patterns.
    """
    ignore_file = project_root / IGNORE_FILE_NAME
    extras = [normalize_pattern(p) for p in extra_patterns or ()]

    if ignore_file.is_file():
        base = read_ignore_file(ignore_file)
        source = str(ignore_file)
        logger.info("Using %s (%d patterns)", IGNORE_FILE_NAME, len(base))
        if not base:
            logger.warning(
                "%s has no patterns; built-in defaults are not applied",
                ignore_file,
            )
    else:
        base = list(DEFAULT_IGNORE_PATTERNS)
        source = DEFAULTS_SOURCE
        logger.debug("No %s found, using default patterns", IGNORE_FILE_NAME)

    if extras:
        logger.debug("Appending %d caller patterns", len(extras))

    return IgnoreSet(
        patterns=tuple(base + extras),
        source=source,
        extra_count=len(extras),
    )


__all__ = [
    "DEFAULTS_SOURCE",
    "DEFAULT_IGNORE_PATTERNS",
    "IGNORE_FILE_NAME",
    "IgnoreSet",
    "anchor_pattern",
    "normalize_pattern",
    "parse_ignore_lines",
    "read_ignore_file",
    "resolve_ignore_set",
]
