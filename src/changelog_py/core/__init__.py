"""Core business logic for changelog-py.

This module contains the pipeline stages:
- History walking and tag bucketing
- Conventional commit parsing
- Rule-based classification
- Release assembly
- Template rendering
"""

from __future__ import annotations

from changelog_py.core.changelog import (
    collect_releases,
    generate_changelog,
    prepend_changelog,
    resolve_range,
)
from changelog_py.core.classifier import classify, classify_commits
from changelog_py.core.commits import (
    ConventionalCommit,
    Footer,
    ParsedCommit,
    parse_commits,
    parse_conventional,
    preprocess,
)
from changelog_py.core.history import Bucket, History, HistoryWalker
from changelog_py.core.release import Release, ReleaseGroup, build_releases
from changelog_py.core.render import Renderer
from changelog_py.core.version import SemVer, parse_semver

__all__ = [
    # History
    "Bucket",
    # Commits
    "ConventionalCommit",
    "Footer",
    "History",
    "HistoryWalker",
    "ParsedCommit",
    # Release
    "Release",
    "ReleaseGroup",
    # Rendering
    "Renderer",
    "SemVer",
    "build_releases",
    "classify",
    "classify_commits",
    "collect_releases",
    # Changelog
    "generate_changelog",
    "parse_commits",
    "parse_conventional",
    "parse_semver",
    "prepend_changelog",
    "preprocess",
    "resolve_range",
]
