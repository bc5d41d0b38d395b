"""Read-only access to a git repository.

The repository is queried through the ``git`` executable. Only
reads are performed: listing commits in a range, listing tags and
reading remote configuration.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from changelog_py.exceptions import GitError, ReferenceResolutionError

logger = logging.getLogger(__name__)

# Field and record separators for `git log --format`
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"

_LOG_FORMAT = _FIELD_SEP.join(["%H", "%P", "%an", "%ae", "%ct", "%B"]) + _RECORD_SEP

# git@github.com:owner/repo.git, https://github.com/owner/repo(.git)
_GITHUB_REMOTE = re.compile(r"github\.com[:/](?P<slug>[^/\s]+/[^/\s]+?)(?:\.git)?/?$")


@dataclass(frozen=True)
class Commit:
    """A commit as read from the object store."""

    sha: str
    message: str
    author_name: str
    author_email: str
    date: datetime
    parents: tuple[str, ...] = field(default=())

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass(frozen=True)
class Tag:
    """A tag and the commit it points to (annotated tags are peeled)."""

    name: str
    sha: str


class GitRepository:
    """A git working tree or bare repository."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        try:
            self._run("rev-parse", "--git-dir")
        except GitError as e:
            if e.stderr is None:
                raise
            raise GitError(f"Not a git repository: {self.path}", stderr=e.stderr) from e

    def _run(self, *args: str) -> str:
        try:
            result = subprocess.run(
                ["git", *args],
                capture_output=True,
                text=True,
                check=True,
                cwd=self.path,
            )
        except FileNotFoundError as e:
            raise GitError("git executable not found") from e
        except subprocess.CalledProcessError as e:
            raise GitError(
                f"git {args[0]} failed with exit code {e.returncode}",
                stderr=e.stderr,
            ) from e
        return result.stdout

    def resolve(self, ref: str) -> str:
        """Resolve a ref, tag or abbreviated id to a full commit sha.

        Raises:
            ReferenceResolutionError: If the ref does not name a commit
        """
        try:
            return self._run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}").strip()
        except GitError as e:
            raise ReferenceResolutionError(f"Cannot resolve reference '{ref}'") from e

    def commits(
        self,
        end: str,
        start: str | None = None,
        include_paths: list[str] | None = None,
        exclude_paths: list[str] | None = None,
    ) -> list[Commit]:
        """List commits reachable from ``end`` but not from ``start``.

        Commits are returned in git's default arrival order; callers
        impose their own ordering.

        Args:
            end: Commit id the walk starts from (inclusive)
            start: Commit id whose ancestors are excluded
            include_paths: Only commits touching these pathspecs
            exclude_paths: Skip commits touching only these pathspecs

        Returns:
            Commits in the range
        """
        rev_range = f"{start}..{end}" if start else end
        args = ["log", f"--format={_LOG_FORMAT}", rev_range]

        pathspecs = list(include_paths or [])
        pathspecs.extend(f":(exclude){p}" for p in exclude_paths or [])
        if pathspecs:
            if not include_paths:
                pathspecs.insert(0, ".")
            args.extend(["--", *pathspecs])

        output = self._run(*args)
        commits = [_parse_log_record(rec) for rec in output.split(_RECORD_SEP) if rec.strip()]
        logger.debug("Read %d commits for range %s", len(commits), rev_range)
        return commits

    def tags(self) -> list[Tag]:
        """List all tags with the commit each one points to."""
        output = self._run(
            "for-each-ref",
            "--format=%(refname:short)%1f%(objectname)%1f%(*objectname)",
            "refs/tags",
        )
        tags = []
        for line in output.splitlines():
            if not line.strip():
                continue
            name, sha, peeled = line.split(_FIELD_SEP)
            tags.append(Tag(name=name, sha=peeled or sha))
        return tags

    def remote_url(self, remote: str = "origin") -> str | None:
        """Return the URL of a remote, or None when it is not configured."""
        try:
            return self._run("config", "--get", f"remote.{remote}.url").strip() or None
        except GitError:
            return None

    def github_slug(self, remote: str = "origin") -> str | None:
        """Return ``owner/repo`` when the remote points at GitHub."""
        url = self.remote_url(remote)
        if url is None:
            return None
        match = _GITHUB_REMOTE.search(url)
        return match.group("slug") if match else None


def _parse_log_record(record: str) -> Commit:
    sha, parents, author_name, author_email, timestamp, message = record.lstrip("\n").split(
        _FIELD_SEP, 5
    )
    return Commit(
        sha=sha,
        message=message.strip("\n"),
        author_name=author_name,
        author_email=author_email,
        date=datetime.fromtimestamp(int(timestamp), tz=UTC),
        parents=tuple(parents.split()),
    )
