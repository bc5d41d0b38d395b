"""Release assembly.

Turns tag buckets of classified commits into the ordered release
sequence handed to the renderer. Releases are immutable once built.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal

from changelog_py.core.version import SemVer, parse_semver

if TYPE_CHECKING:
    from collections.abc import Sequence

    from changelog_py.config.models import ReleasesConfig
    from changelog_py.core.commits import ParsedCommit
    from changelog_py.vcs.git import Tag

logger = logging.getLogger(__name__)

UNRELEASED = "Unreleased"

# "<!-- 0 -->Features" and "1. Features" style ordering prefixes
GROUP_PREFIX: re.Pattern[str] = re.compile(r"^(?:<!--\s*\d+\s*-->\s*|\d+\.\s+)")


def strip_group_prefix(group: str) -> str:
    return GROUP_PREFIX.sub("", group)


@dataclass(frozen=True)
class ReleaseGroup:
    """Commits of one release that share a group label."""

    name: str
    display_name: str
    commits: tuple[ParsedCommit, ...]


@dataclass(frozen=True)
class Release:
    """One section of the changelog.

    ``version`` is the tag name, or None for unreleased work.
    ``previous`` and ``next`` hold labels of neighbouring releases.
    """

    version: str | None
    timestamp: datetime
    commits: tuple[ParsedCommit, ...] = ()
    groups: tuple[ReleaseGroup, ...] = ()
    commit_id: str | None = None
    semver: SemVer | None = None
    previous: str | None = None
    next: str | None = None

    @property
    def label(self) -> str:
        return self.version or UNRELEASED

    @property
    def is_unreleased(self) -> bool:
        return self.version is None

    @property
    def commit_count(self) -> int:
        return len(self.commits)


@dataclass
class _Draft:
    version: str | None
    timestamp: datetime
    commit_id: str | None
    commits: list[ParsedCommit]
    groups: list[ReleaseGroup]
    emitted: bool

    @property
    def label(self) -> str:
        return self.version or UNRELEASED


def filter_commits(commits: Sequence[ParsedCommit], config: ReleasesConfig) -> list[ParsedCommit]:
    """Drop skipped commits and commits of excluded groups."""
    kept = []
    for commit in commits:
        if commit.skip:
            continue
        if config.include_groups is not None and commit.group not in config.include_groups:
            continue
        if commit.group in config.exclude_groups:
            continue
        kept.append(commit)
    return kept


def _group_ranks(groups: Sequence[str], order: Sequence[str]) -> dict[str, int]:
    """Rank groups by the configured order, then by first appearance."""
    ranks = {name: i for i, name in enumerate(order)}
    for group in groups:
        ranks.setdefault(group, len(ranks))
    return ranks


def group_commits(
    commits: Sequence[ParsedCommit],
    config: ReleasesConfig,
) -> tuple[list[ParsedCommit], list[ReleaseGroup]]:
    """Sort commits by group and build the group views.

    The sort is stable, so commits keep their incoming order within a
    group. With ``breaking_group`` set, breaking commits are listed in
    that group as well; both entries are the same commit object.

    Returns:
        ``(sorted_commits, groups)``
    """
    names = [c.group or "" for c in commits]
    ranks = _group_ranks(names, config.group_order)
    ordered = sorted(commits, key=lambda c: ranks[c.group or ""])

    by_group: dict[str, list[ParsedCommit]] = {}
    for commit in ordered:
        by_group.setdefault(commit.group or "", []).append(commit)

    breaking = config.breaking_group
    if breaking and breaking not in config.exclude_groups and (
        config.include_groups is None or breaking in config.include_groups
    ):
        extra = [
            c for c in ordered if c.is_breaking and c not in by_group.get(breaking, [])
        ]
        if extra:
            by_group.setdefault(breaking, []).extend(extra)
            ranks.setdefault(breaking, -1)

    groups = [
        ReleaseGroup(
            name=name,
            display_name=config.group_names.get(name) or strip_group_prefix(name),
            commits=tuple(members),
        )
        for name, members in sorted(by_group.items(), key=lambda item: ranks[item[0]])
    ]
    return ordered, groups


def build_releases(
    buckets: Sequence[tuple[Tag | None, Sequence[ParsedCommit]]],
    config: ReleasesConfig,
    *,
    sort_commits: Literal["newest", "oldest"] = "newest",
    now: datetime | None = None,
    base_tag: Tag | None = None,
    tag_override: str | None = None,
) -> list[Release]:
    """Build the release sequence from classified tag buckets.

    Args:
        buckets: ``(tag, commits)`` pairs, most recent first; a None
            tag marks the Unreleased bucket
        config: Grouping, filtering and empty-release policy
        sort_commits: ``newest`` keeps the walk order, ``oldest``
            reverses it within each release
        now: Timestamp for unreleased work (defaults to the current time)
        base_tag: Tag the range starts from; the oldest release links
            to it as its previous release
        tag_override: Version label given to the Unreleased bucket

    Returns:
        Releases, most recent first
    """
    now = now or datetime.now(UTC)
    drafts: list[_Draft] = []

    for tag, bucket_commits in buckets:
        if tag is not None:
            tag_commit = next((c for c in bucket_commits if c.sha == tag.sha), None)
            timestamp = tag_commit.date if tag_commit and tag_commit.date else now
            version, commit_id = tag.name, tag.sha
        else:
            timestamp, version = now, tag_override
            commit_id = bucket_commits[0].sha if bucket_commits else None

        survivors = filter_commits(bucket_commits, config)
        if sort_commits == "oldest":
            survivors.reverse()
        commits, groups = group_commits(survivors, config)

        emitted = bool(commits) or not config.omit_empty_releases
        if not emitted:
            logger.info("Omitting empty release %s", version or UNRELEASED)
        drafts.append(_Draft(version, timestamp, commit_id, commits, groups, emitted))

    linked = drafts if config.link_omitted_releases else [d for d in drafts if d.emitted]
    neighbours: dict[int, tuple[str | None, str | None]] = {}
    for i, draft in enumerate(linked):
        newer = linked[i - 1].label if i > 0 else None
        older = linked[i + 1].label if i + 1 < len(linked) else None
        if older is None and base_tag is not None:
            older = base_tag.name
        neighbours[id(draft)] = (older, newer)

    releases = []
    for draft in drafts:
        if not draft.emitted:
            continue
        previous, next_ = neighbours[id(draft)]
        releases.append(
            Release(
                version=draft.version,
                timestamp=draft.timestamp,
                commits=tuple(draft.commits),
                groups=tuple(draft.groups),
                commit_id=draft.commit_id,
                semver=parse_semver(draft.version),
                previous=previous,
                next=next_,
            )
        )
    return releases
