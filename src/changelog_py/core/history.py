"""History walking and tag bucketing.

The walker asks the object store for the commits in a range, puts
them in a most-recent-first order and splits them into one bucket
per release tag. Ordering is computed here from the parent links
rather than delegated to the store, so both orders behave the same
for any store implementation.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from changelog_py.config.models import SortOrder

if TYPE_CHECKING:
    import re
    from collections.abc import Sequence

    from changelog_py.config.models import GitConfig
    from changelog_py.vcs.git import Commit, Tag

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    """What the walker needs from version control."""

    def resolve(self, ref: str) -> str: ...

    def commits(
        self,
        end: str,
        start: str | None = None,
        include_paths: list[str] | None = None,
        exclude_paths: list[str] | None = None,
    ) -> list[Commit]: ...

    def tags(self) -> list[Tag]: ...


@dataclass(frozen=True)
class History:
    """Ordered commits of a range and the release tags inside it."""

    commits: tuple[Commit, ...]
    tags: dict[str, Tag] = field(default_factory=dict)
    base_tag: Tag | None = None


@dataclass
class Bucket:
    """Commits whose nearest following tag is ``tag``.

    ``tag`` is None for commits newer than every tag (Unreleased).
    """

    tag: Tag | None
    commits: list[Commit] = field(default_factory=list)


def topological_order(commits: Sequence[Commit]) -> list[Commit]:
    """Order commits so that every commit comes before its parents.

    Among commits that are ready at the same time, the one the store
    returned first is emitted first. Parents outside the given set are
    ignored.
    """
    index = {commit.sha: i for i, commit in enumerate(commits)}
    waiting_children = [0] * len(commits)
    for commit in commits:
        for parent in commit.parents:
            if parent in index:
                waiting_children[index[parent]] += 1

    ready = [i for i, count in enumerate(waiting_children) if count == 0]
    heapq.heapify(ready)
    ordered: list[Commit] = []
    while ready:
        i = heapq.heappop(ready)
        ordered.append(commits[i])
        for parent in commits[i].parents:
            j = index.get(parent)
            if j is None:
                continue
            waiting_children[j] -= 1
            if waiting_children[j] == 0:
                heapq.heappush(ready, j)

    if len(ordered) != len(commits):
        # Only reachable with a cyclic (corrupt) graph
        seen = {c.sha for c in ordered}
        ordered.extend(c for c in commits if c.sha not in seen)
    return ordered


def date_order(commits: Sequence[Commit]) -> list[Commit]:
    """Order commits by commit timestamp, newest first.

    Equal timestamps keep their topological rank.
    """
    rank = {commit.sha: i for i, commit in enumerate(topological_order(commits))}
    return sorted(commits, key=lambda c: (-c.date.timestamp(), rank[c.sha]))


class HistoryWalker:
    """Enumerates and buckets the commits of a range."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        order: SortOrder = SortOrder.TOPOLOGICAL,
        tag_pattern: re.Pattern[str] | None = None,
        skip_tags: re.Pattern[str] | None = None,
        ignore_tags: re.Pattern[str] | None = None,
        limit: int | None = None,
        include_paths: list[str] | None = None,
        exclude_paths: list[str] | None = None,
    ) -> None:
        self.store = store
        self.order = order
        self.tag_pattern = tag_pattern
        self.skip_tags = skip_tags
        self.ignore_tags = ignore_tags
        self.limit = limit
        self.include_paths = include_paths or []
        self.exclude_paths = exclude_paths or []

    @classmethod
    def from_config(
        cls,
        store: ObjectStore,
        config: GitConfig,
        *,
        order: SortOrder | None = None,
    ) -> HistoryWalker:
        return cls(
            store,
            order=order or config.order,
            tag_pattern=config.tag_pattern,
            skip_tags=config.skip_tags,
            ignore_tags=config.ignore_tags,
            limit=config.limit_commits,
            include_paths=config.include_paths,
            exclude_paths=config.exclude_paths,
        )

    def release_tags(self) -> dict[str, Tag]:
        """Map commit sha to the tag that marks a release boundary there.

        Tags not matching ``tag_pattern`` and tags matching
        ``ignore_tags`` are not boundaries. When several tags point
        at one commit, the last one listed by the store wins.
        """
        tags: dict[str, Tag] = {}
        for tag in self.store.tags():
            if self.tag_pattern is not None and not self.tag_pattern.search(tag.name):
                continue
            if self.ignore_tags is not None and self.ignore_tags.search(tag.name):
                logger.debug("Ignoring tag %s", tag.name)
                continue
            if tag.sha in tags:
                logger.debug("Tag %s replaces %s on %s", tag.name, tags[tag.sha].name, tag.sha)
            tags[tag.sha] = tag
        return tags

    def sort(self, commits: Sequence[Commit]) -> list[Commit]:
        if self.order == SortOrder.DATE:
            return date_order(commits)
        return topological_order(commits)

    def walk(self, start: str | None = None, end: str = "HEAD") -> History:
        """Collect the commits reachable from ``end`` but not from ``start``.

        Args:
            start: Exclusive lower bound (ref, tag or commit id)
            end: Inclusive upper bound

        Returns:
            Most-recent-first commits with the release tags in range

        Raises:
            ReferenceResolutionError: If either ref cannot be resolved
        """
        end_sha = self.store.resolve(end)
        start_sha = self.store.resolve(start) if start else None

        commits = self.sort(
            self.store.commits(
                end_sha,
                start_sha,
                include_paths=self.include_paths or None,
                exclude_paths=self.exclude_paths or None,
            )
        )
        if self.limit is not None:
            commits = commits[: self.limit]

        all_tags = self.release_tags()
        in_range = {c.sha for c in commits}
        tags = {sha: tag for sha, tag in all_tags.items() if sha in in_range}
        base_tag = all_tags.get(start_sha) if start_sha else None

        logger.info(
            "Walked %d commits (%s order) with %d tags", len(commits), self.order, len(tags)
        )
        return History(commits=tuple(commits), tags=tags, base_tag=base_tag)

    def tags_in_order(self, end: str = "HEAD") -> list[Tag]:
        """Release tags reachable from ``end``, most recent first."""
        history = self.walk(end=end)
        return [history.tags[c.sha] for c in history.commits if c.sha in history.tags]

    def bucket(self, history: History) -> list[Bucket]:
        """Split a walked history into per-tag buckets, most recent first.

        A commit belongs to the nearest tag that follows it in the walk
        order. Commits newer than every tag form the Unreleased bucket,
        which exists only when there are such commits. Buckets of tags
        matching ``skip_tags`` are dropped.

        Placement follows the walk order, not tag reachability. Under
        date order a branch commit dated before a tag but merged after
        it lands in that tag's bucket although the tag does not contain
        it.
        """
        buckets: list[Bucket] = []
        current = Bucket(tag=None)
        for commit in reversed(history.commits):
            current.commits.append(commit)
            tag = history.tags.get(commit.sha)
            if tag is not None:
                current.tag = tag
                current.commits.reverse()
                buckets.append(current)
                current = Bucket(tag=None)
        if current.commits:
            current.commits.reverse()
            buckets.append(current)
        buckets.reverse()

        if self.skip_tags is not None:
            kept = []
            for b in buckets:
                if b.tag is not None and self.skip_tags.search(b.tag.name):
                    logger.debug("Skipping %d commits of tag %s", len(b.commits), b.tag.name)
                    continue
                kept.append(b)
            buckets = kept
        return buckets
