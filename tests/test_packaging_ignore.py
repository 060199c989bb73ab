"""Tests for packaging/ignore.py module.

Tests ignore-pattern resolution and path matching.
"""

import logging
from pathlib import Path

import pytest

from build_service.packaging.ignore import (
    DEFAULT_IGNORE_PATTERNS,
    DEFAULTS_SOURCE,
    IGNORE_FILE_NAME,
    IgnoreSet,
    anchor_pattern,
    normalize_pattern,
    parse_ignore_lines,
    resolve_ignore_set,
)


@pytest.fixture
def default_set() -> IgnoreSet:
    """IgnoreSet with the built-in defaults."""
    return IgnoreSet(patterns=DEFAULT_IGNORE_PATTERNS)


class TestNormalizePattern:
    """Tests for normalize_pattern function."""

    def test_directory_pattern(self):
        """Should turn trailing-slash entries into recursive globs."""
        assert normalize_pattern("build/") == "build/**"
        assert normalize_pattern("android/app/build/") == "android/app/build/**"

    def test_file_pattern_unchanged(self):
        """Should leave other patterns alone."""
        assert normalize_pattern("*.log") == "*.log"
        assert normalize_pattern("secrets/**") == "secrets/**"


class TestAnchorPattern:
    """Tests for anchor_pattern function."""

    def test_anchors_at_root(self):
        """Should prefix patterns with the root separator."""
        assert anchor_pattern("*.log") == "/*.log"
        assert anchor_pattern("node_modules/**") == "/node_modules/**"

    def test_already_anchored(self):
        """Should leave anchored patterns alone."""
        assert anchor_pattern("/dist/**") == "/dist/**"

    def test_negation(self):
        """Should anchor after the negation marker."""
        assert anchor_pattern("!keep.log") == "!/keep.log"


class TestParseIgnoreLines:
    """Tests for parse_ignore_lines function."""

    def test_skips_blank_and_comments(self):
        """Should skip blank lines and # comments."""
        lines = ["# build outputs", "", "   ", "dist/", "*.keystore", "  # indented"]
        assert parse_ignore_lines(lines) == ["dist/**", "*.keystore"]

    def test_strips_whitespace(self):
        """Should strip surrounding whitespace."""
        assert parse_ignore_lines(["  coverage/  ", "\t*.tmp\t"]) == [
            "coverage/**",
            "*.tmp",
        ]

    def test_preserves_order(self):
        """Should keep file order."""
        assert parse_ignore_lines(["b", "a", "c"]) == ["b", "a", "c"]


class TestResolveIgnoreSet:
    """Tests for resolve_ignore_set function."""

    def test_defaults_without_override(self, tmp_path: Path):
        """Should use the built-in defaults when no .buildignore exists."""
        ignore_set = resolve_ignore_set(tmp_path)

        assert ignore_set.patterns == DEFAULT_IGNORE_PATTERNS
        assert ignore_set.source == DEFAULTS_SOURCE
        assert not ignore_set.uses_override
        assert ignore_set.extra_count == 0

    def test_override_replaces_defaults(self, tmp_path: Path):
        """A .buildignore should fully replace the defaults."""
        (tmp_path / IGNORE_FILE_NAME).write_text("# mine\nsecrets.json\ncache/\n")

        ignore_set = resolve_ignore_set(tmp_path)

        assert ignore_set.patterns == ("secrets.json", "cache/**")
        assert ignore_set.uses_override
        assert ignore_set.source == str(tmp_path / IGNORE_FILE_NAME)
        assert not ignore_set.matches("node_modules", is_dir=True)
        assert not ignore_set.matches(".git", is_dir=True)

    def test_extras_appended_to_defaults(self, tmp_path: Path):
        """Caller patterns should come after the default set."""
        ignore_set = resolve_ignore_set(tmp_path, ["*.mp4", "assets/raw/"])

        assert ignore_set.patterns[: len(DEFAULT_IGNORE_PATTERNS)] == (
            DEFAULT_IGNORE_PATTERNS
        )
        assert ignore_set.patterns[-2:] == ("*.mp4", "assets/raw/**")
        assert ignore_set.extra_count == 2

    def test_extras_appended_to_override(self, tmp_path: Path):
        """Caller patterns should be appended to the override set too."""
        (tmp_path / IGNORE_FILE_NAME).write_text("secrets.json\n")

        ignore_set = resolve_ignore_set(tmp_path, ["*.mp4"])

        assert ignore_set.patterns == ("secrets.json", "*.mp4")

    def test_empty_override_warns(self, tmp_path: Path, caplog):
        """A .buildignore without patterns should still replace the defaults."""
        (tmp_path / IGNORE_FILE_NAME).write_text("# nothing excluded\n\n")

        with caplog.at_level(
            logging.WARNING, logger="build_service.packaging.ignore"
        ):
            ignore_set = resolve_ignore_set(tmp_path)

        assert ignore_set.patterns == ()
        assert not ignore_set.matches("node_modules", is_dir=True)
        assert "no patterns" in caplog.text


class TestIgnoreSetMatches:
    """Tests for IgnoreSet.matches."""

    def test_dependency_and_vcs_dirs(self, default_set: IgnoreSet):
        """Should exclude node_modules and .git directories."""
        assert default_set.matches("node_modules", is_dir=True)
        assert default_set.matches(".git", is_dir=True)
        assert default_set.matches(".expo", is_dir=True)

    def test_files_beneath_excluded_dir(self, default_set: IgnoreSet):
        """Should match files beneath an excluded directory."""
        assert default_set.matches("node_modules/react/index.js")
        assert default_set.matches("android/app/build/outputs/app.apk")

    def test_anchored_build_outputs(self, default_set: IgnoreSet):
        """Nested build outputs should match but sources should not."""
        assert default_set.matches("android/app/build", is_dir=True)
        assert default_set.matches("ios/Pods", is_dir=True)
        assert not default_set.matches("android/app", is_dir=True)
        assert not default_set.matches("android/app/src/main/AndroidManifest.xml")

    def test_log_files_top_level_only(self, default_set: IgnoreSet):
        """Slash-free patterns should only match at the project root."""
        assert default_set.matches("npm-debug.log")
        assert not default_set.matches("logs/app.log")
        assert not default_set.matches("src/debug/metro.log")
        assert not default_set.matches("src/logger.ts")

    def test_slash_free_name_top_level_only(self):
        """A bare file name should not exclude same-named nested files."""
        ignore_set = IgnoreSet(patterns=("config.json",))
        assert ignore_set.matches("config.json")
        assert not ignore_set.matches("src/settings/config.json")

    def test_explicit_any_depth(self):
        """A leading **/ should match at any depth."""
        ignore_set = IgnoreSet(patterns=("**/*.log",))
        assert ignore_set.matches("top.log")
        assert ignore_set.matches("logs/app.log")

    def test_hidden_files_included(self, default_set: IgnoreSet):
        """Dot-prefixed entries should only be excluded by explicit patterns."""
        assert not default_set.matches(".env")
        assert not default_set.matches(".eslintrc.js")
        assert not default_set.matches(".github", is_dir=True)

    def test_case_sensitive(self, default_set: IgnoreSet):
        """Matching should be case-sensitive."""
        assert not default_set.matches("Node_Modules", is_dir=True)
        assert not default_set.matches("crash.LOG")

    def test_double_star_spans_segments(self):
        """** should match across path segments."""
        ignore_set = IgnoreSet(patterns=("assets/**/*.psd",))
        assert ignore_set.matches("assets/icons/raw/logo.psd")
        assert ignore_set.matches("assets/logo.psd")
        assert not ignore_set.matches("src/logo.psd")

    def test_empty_path_never_matches(self, default_set: IgnoreSet):
        """The project root itself should never be excluded."""
        assert not default_set.matches("")
        assert not default_set.matches("/", is_dir=True)
