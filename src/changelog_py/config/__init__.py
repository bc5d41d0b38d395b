"""Configuration management for changelog-py."""

from __future__ import annotations

from changelog_py.config.loader import load_config
from changelog_py.config.models import (
    ChangelogConfig,
    ChangelogPyConfig,
    CommitParser,
    GitConfig,
    GitHubConfig,
    LinkParser,
    Preprocessor,
    ReleasesConfig,
    SortOrder,
)

__all__ = [
    "ChangelogConfig",
    "ChangelogPyConfig",
    "CommitParser",
    "GitConfig",
    "GitHubConfig",
    "LinkParser",
    "Preprocessor",
    "ReleasesConfig",
    "SortOrder",
    "load_config",
]
