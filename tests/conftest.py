"""Shared fixtures for changelog-py tests."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from changelog_py.exceptions import ReferenceResolutionError
from changelog_py.vcs.git import Commit, Tag

if TYPE_CHECKING:
    from pathlib import Path


class FakeStore:
    """In-memory object store.

    ``commits`` are given in the order a real store would return them.
    Refs resolve through ``refs`` (e.g. ``HEAD``), tag names, and full
    or abbreviated commit ids.
    """

    def __init__(
        self,
        commits: list[Commit],
        tags: list[Tag] | None = None,
        refs: dict[str, str] | None = None,
    ) -> None:
        self._commits = list(commits)
        self._by_sha = {c.sha: c for c in commits}
        self._tags = list(tags or [])
        self.refs = dict(refs or {})
        if commits and "HEAD" not in self.refs:
            self.refs["HEAD"] = commits[0].sha

    def resolve(self, ref: str) -> str:
        if ref in self.refs:
            return self.refs[ref]
        for tag in self._tags:
            if tag.name == ref:
                return tag.sha
        matches = [sha for sha in self._by_sha if sha.startswith(ref)]
        if len(matches) == 1:
            return matches[0]
        raise ReferenceResolutionError(f"Cannot resolve reference '{ref}'")

    def _ancestors(self, sha: str) -> set[str]:
        seen: set[str] = set()
        stack = [sha]
        while stack:
            current = stack.pop()
            if current in seen or current not in self._by_sha:
                continue
            seen.add(current)
            stack.extend(self._by_sha[current].parents)
        return seen

    def commits(
        self,
        end: str,
        start: str | None = None,
        include_paths: list[str] | None = None,
        exclude_paths: list[str] | None = None,
    ) -> list[Commit]:
        reachable = self._ancestors(end)
        if start is not None:
            reachable -= self._ancestors(start)
        return [c for c in self._commits if c.sha in reachable]

    def tags(self) -> list[Tag]:
        return list(self._tags)


def make_commit(
    sha: str,
    message: str,
    parents: tuple[str, ...] = (),
    timestamp: int = 1_700_000_000,
    author: str = "Test",
) -> Commit:
    """Build a Commit with sensible defaults."""
    return Commit(
        sha=sha,
        message=message,
        author_name=author,
        author_email=f"{author.lower()}@example.com",
        date=datetime.fromtimestamp(timestamp, tz=UTC),
        parents=parents,
    )


def linear_history(messages: list[str], start_time: int = 1_700_000_000) -> list[Commit]:
    """Build a linear history, newest first, from oldest-first messages.

    Commit ids are ``c1``, ``c2``, ... in creation order and each commit
    is one hour newer than its parent.
    """
    commits = []
    parent: tuple[str, ...] = ()
    for i, message in enumerate(messages, start=1):
        sha = f"c{i}"
        commits.append(make_commit(sha, message, parent, start_time + i * 3600))
        parent = (sha,)
    commits.reverse()
    return commits


@pytest.fixture
def release_store() -> FakeStore:
    """Two releases (v1.0.0, v1.1.0) and one unreleased commit."""
    commits = linear_history(
        [
            "feat: initial api",
            "fix: handle empty input",
            "chore(release): prepare for v1.0.0",
            "feat(parser): support footers",
            "fix: off-by-one in tokenizer",
            "docs: describe the config file",
        ]
    )
    tags = [Tag("v1.0.0", "c3"), Tag("v1.1.0", "c5")]
    return FakeStore(commits, tags)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def temp_project(tmp_path: Path) -> Path:
    """A project directory with a minimal pyproject.toml."""
    (tmp_path / "pyproject.toml").write_text(
        """\
[project]
name = "test-project"
version = "1.0.0"
"""
    )
    return tmp_path
