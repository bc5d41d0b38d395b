"""Changelog generation pipeline.

Wires the history walker, commit parser, classifier, release builder
and renderer into a single synchronous pass. Output is produced in
memory and returned whole; callers write it only after success.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from changelog_py.core.classifier import classify_commits
from changelog_py.core.commits import ParsedCommit, parse_commits
from changelog_py.core.history import HistoryWalker
from changelog_py.core.release import build_releases
from changelog_py.core.render import Renderer
from changelog_py.exceptions import ChangelogError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from changelog_py.config.models import ChangelogPyConfig, GitConfig, SortOrder
    from changelog_py.core.history import History, ObjectStore
    from changelog_py.core.release import Release
    from changelog_py.core.render import RemoteMetadata
    from changelog_py.vcs.git import Commit, Tag

logger = logging.getLogger(__name__)


class Enrichment(Protocol):
    """A background fetch of remote metadata keyed by commit id."""

    def start(self, commits: Sequence[Commit]) -> None: ...

    def result(self) -> Mapping[str, RemoteMetadata]: ...


def resolve_range(
    walker: HistoryWalker,
    *,
    unreleased: bool = False,
    latest: bool = False,
    current: bool = False,
    range_spec: str | None = None,
    end: str = "HEAD",
) -> tuple[str | None, str]:
    """Turn range options into ``(start, end)`` references.

    Args:
        walker: Walker used to list release tags
        unreleased: Commits after the most recent tag
        latest: Commits of the most recent tag only
        current: Like ``latest``, but the tag must point at ``end``
        range_spec: Explicit ``A..B`` range (``A`` may be empty)
        end: Default upper bound

    Raises:
        ChangelogError: If ``current`` is used and ``end`` is not tagged
    """
    if range_spec:
        start, sep, stop = range_spec.partition("..")
        if not sep:
            return None, range_spec
        return start or None, stop or end

    if not (unreleased or latest or current):
        return None, end

    tags = walker.tags_in_order(end)
    if unreleased:
        return (tags[0].name if tags else None), end

    if current and (not tags or tags[0].sha != walker.store.resolve(end)):
        raise ChangelogError(f"No tag exists for {end}")
    if not tags:
        return None, end
    return (tags[1].name if len(tags) > 1 else None), tags[0].name


def _classified_buckets(
    walker: HistoryWalker,
    history: History,
    config: GitConfig,
    extra_messages: Sequence[str] = (),
) -> list[tuple[Tag | None, list[ParsedCommit]]]:
    buckets: list[tuple[Tag | None, list[ParsedCommit]]] = []
    for bucket in walker.bucket(history):
        parsed = classify_commits(parse_commits(bucket.commits, config), config)
        buckets.append((bucket.tag, parsed))

    if extra_messages:
        if not buckets or buckets[0][0] is not None:
            buckets.insert(0, (None, []))
        extra = classify_commits([ParsedCommit.from_message(m) for m in extra_messages], config)
        buckets[0][1][:0] = extra
    return buckets


def collect_releases(
    store: ObjectStore,
    config: ChangelogPyConfig,
    *,
    start: str | None = None,
    end: str = "HEAD",
    order: SortOrder | None = None,
    now: datetime | None = None,
    tag: str | None = None,
    extra_messages: Sequence[str] = (),
    enrichment: Enrichment | None = None,
) -> list[Release]:
    """Walk, parse, classify and group commits into releases.

    When ``enrichment`` is given it is started as soon as the commits
    are known and runs while the rest of the pipeline proceeds.

    Raises:
        ReferenceResolutionError: If ``start`` or ``end`` is unknown
    """
    walker = HistoryWalker.from_config(store, config.git, order=order)
    history = walker.walk(start, end)
    if enrichment is not None:
        enrichment.start(history.commits)

    buckets = _classified_buckets(walker, history, config.git, extra_messages)
    if tag and buckets and buckets[0][0] is not None:
        logger.warning("Tag %s ignored: %s is already tagged", tag, buckets[0][0].name)

    return build_releases(
        buckets,
        config.releases,
        sort_commits=config.git.sort_commits,
        now=now,
        base_tag=history.base_tag,
        tag_override=tag,
    )


def make_renderer(
    config: ChangelogPyConfig,
    *,
    enrichment: Enrichment | None = None,
    metadata: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> Renderer:
    remote = enrichment.result() if enrichment is not None else {}
    return Renderer(
        config.changelog,
        config.git.link_parsers,
        remote=remote,
        metadata=metadata,
        now=now,
    )


def generate_changelog(
    store: ObjectStore,
    config: ChangelogPyConfig,
    *,
    start: str | None = None,
    end: str = "HEAD",
    order: SortOrder | None = None,
    now: datetime | None = None,
    tag: str | None = None,
    extra_messages: Sequence[str] = (),
    metadata: Mapping[str, Any] | None = None,
    enrichment: Enrichment | None = None,
) -> str:
    """Generate changelog text for a range of history.

    Args:
        store: Object store (usually a GitRepository)
        config: Validated configuration
        start: Exclusive lower bound of the range
        end: Inclusive upper bound of the range
        order: Overrides the configured traversal order
        now: Timestamp used for unreleased work and the context
        tag: Version label for unreleased commits
        extra_messages: Commit messages added to the newest release
        metadata: Repository metadata exposed as ``repository``
        enrichment: Optional remote metadata fetch

    Returns:
        Complete changelog text

    Raises:
        ReferenceResolutionError: If a reference cannot be resolved
        RenderError: If the template fails; no partial text is returned
    """
    # Compile templates first so a broken template fails before the walk
    Renderer(config.changelog, config.git.link_parsers)

    releases = collect_releases(
        store,
        config,
        start=start,
        end=end,
        order=order,
        now=now,
        tag=tag,
        extra_messages=extra_messages,
        enrichment=enrichment,
    )
    renderer = make_renderer(config, enrichment=enrichment, metadata=metadata, now=now)
    return renderer.render(releases)


def prepend_changelog(new: str, existing: str, header: str | None = None) -> str:
    """Put freshly generated text above an existing changelog.

    The existing file's copy of ``header`` is dropped, since the new
    text already starts with it.
    """
    if header and existing.startswith(header.strip()):
        existing = existing[len(header.strip()) :].lstrip("\n")
    if not existing.strip():
        return new
    return new.rstrip("\n") + "\n\n" + existing
