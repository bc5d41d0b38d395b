"""Version control access."""

from __future__ import annotations

from changelog_py.vcs.git import Commit, GitRepository, Tag

__all__ = ["Commit", "GitRepository", "Tag"]
