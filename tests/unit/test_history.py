"""Tests for history walking and tag bucketing."""

from __future__ import annotations

import re

import pytest
from conftest import FakeStore, linear_history, make_commit

from changelog_py.config.models import GitConfig, SortOrder
from changelog_py.core.history import HistoryWalker, date_order, topological_order
from changelog_py.exceptions import ReferenceResolutionError
from changelog_py.vcs.git import Tag


@pytest.fixture
def merge_store() -> FakeStore:
    """A feature branch merged back into main.

    ::

        c1 -- c2 ------- m5
          \\            /
           f3 -- f4 --
    """
    commits = [
        make_commit("m5", "Merge branch 'feature'", ("c2", "f4"), 1_700_000_500),
        make_commit("f4", "feat: part two", ("f3",), 1_700_000_400),
        make_commit("c2", "fix: main work", ("c1",), 1_700_000_300),
        make_commit("f3", "feat: part one", ("c1",), 1_700_000_200),
        make_commit("c1", "feat: root", (), 1_700_000_100),
    ]
    return FakeStore(commits)


# =============================================================================
# Ordering
# =============================================================================


class TestTopologicalOrder:
    """Tests for topological_order()."""

    def test_children_before_parents(self, merge_store: FakeStore):
        """Every commit is listed before all of its parents."""
        ordered = topological_order(merge_store.commits("m5"))
        position = {c.sha: i for i, c in enumerate(ordered)}

        for commit in ordered:
            for parent in commit.parents:
                assert position[commit.sha] < position[parent]

    def test_arrival_order_breaks_ties(self):
        """Commits ready at the same time keep the store's order."""
        commits = [
            make_commit("b", "b", ("root",)),
            make_commit("a", "a", ("root",)),
            make_commit("root", "root"),
        ]

        assert [c.sha for c in topological_order(commits)] == ["b", "a", "root"]

    def test_reorders_out_of_order_input(self):
        """A parent returned before its child is moved after it."""
        commits = [make_commit("p", "p"), make_commit("c", "c", ("p",))]

        assert [c.sha for c in topological_order(commits)] == ["c", "p"]

    def test_parents_outside_range_ignored(self):
        """Parents not in the input do not block emission."""
        commits = [make_commit("c", "c", ("outside",))]

        assert [c.sha for c in topological_order(commits)] == ["c"]


class TestDateOrder:
    """Tests for date_order()."""

    def test_newest_first(self, merge_store: FakeStore):
        """Commit timestamps are non-increasing."""
        ordered = date_order(merge_store.commits("m5"))

        assert [c.sha for c in ordered] == ["m5", "f4", "c2", "f3", "c1"]

    def test_equal_timestamps_keep_topological_rank(self):
        """Ties are broken by topological position."""
        commits = [
            make_commit("root", "root", (), 100),
            make_commit("b", "b", ("root",), 200),
            make_commit("a", "a", ("b",), 200),
        ]

        assert [c.sha for c in date_order(commits)] == ["a", "b", "root"]


# =============================================================================
# Walking
# =============================================================================


class TestWalk:
    """Tests for HistoryWalker.walk()."""

    def test_full_history(self, release_store: FakeStore):
        """Walking from HEAD returns every commit, most recent first."""
        history = HistoryWalker(release_store).walk()

        assert [c.sha for c in history.commits] == ["c6", "c5", "c4", "c3", "c2", "c1"]
        assert set(history.tags) == {"c3", "c5"}
        assert history.base_tag is None

    def test_range_excludes_start(self, release_store: FakeStore):
        """Commits reachable from start are excluded."""
        history = HistoryWalker(release_store).walk(start="v1.0.0")

        assert [c.sha for c in history.commits] == ["c6", "c5", "c4"]
        assert set(history.tags) == {"c5"}
        assert history.base_tag == Tag("v1.0.0", "c3")

    def test_unknown_reference_raises(self, release_store: FakeStore):
        """Unresolvable refs raise ReferenceResolutionError."""
        with pytest.raises(ReferenceResolutionError, match="v9.9.9"):
            HistoryWalker(release_store).walk(start="v9.9.9")

    def test_limit(self, release_store: FakeStore):
        """Only the most recent commits are kept."""
        history = HistoryWalker(release_store, limit=3).walk()

        assert [c.sha for c in history.commits] == ["c6", "c5", "c4"]
        assert set(history.tags) == {"c5"}

    def test_date_order(self, merge_store: FakeStore):
        """The walker applies the configured order."""
        history = HistoryWalker(merge_store, order=SortOrder.DATE).walk()

        assert [c.sha for c in history.commits] == ["m5", "f4", "c2", "f3", "c1"]

    def test_from_config(self, release_store: FakeStore):
        """Walker settings come from the git config section."""
        config = GitConfig(order="date", limit_commits=2, tag_pattern="^v1\\.1")

        walker = HistoryWalker.from_config(release_store, config)

        assert walker.order == SortOrder.DATE
        assert walker.limit == 2
        assert list(walker.release_tags().values()) == [Tag("v1.1.0", "c5")]


class TestReleaseTags:
    """Tests for tag filtering."""

    def test_tag_pattern(self):
        """Tags not matching tag_pattern are not boundaries."""
        store = FakeStore(
            linear_history(["a", "b"]),
            [Tag("v1.0.0", "c1"), Tag("nightly", "c2")],
        )

        tags = HistoryWalker(store, tag_pattern=re.compile(r"^v\d")).release_tags()

        assert tags == {"c1": Tag("v1.0.0", "c1")}

    def test_ignore_tags(self):
        """Ignored tags are not boundaries."""
        store = FakeStore(
            linear_history(["a", "b"]),
            [Tag("v1.0.0", "c1"), Tag("v1.1.0-rc.1", "c2")],
        )

        tags = HistoryWalker(store, ignore_tags=re.compile("rc")).release_tags()

        assert tags == {"c1": Tag("v1.0.0", "c1")}

    def test_last_tag_on_commit_wins(self):
        """With two tags on one commit the later listed one is used."""
        store = FakeStore(linear_history(["a"]), [Tag("v1.0.0", "c1"), Tag("v1.0.1", "c1")])

        assert HistoryWalker(store).release_tags() == {"c1": Tag("v1.0.1", "c1")}

    def test_tags_in_order(self, release_store: FakeStore):
        """Reachable release tags are listed most recent first."""
        tags = HistoryWalker(release_store).tags_in_order()

        assert [t.name for t in tags] == ["v1.1.0", "v1.0.0"]


# =============================================================================
# Bucketing
# =============================================================================


class TestBucket:
    """Tests for HistoryWalker.bucket()."""

    def test_buckets_most_recent_first(self, release_store: FakeStore):
        """Unreleased commits come first, then tags newest to oldest."""
        walker = HistoryWalker(release_store)
        buckets = walker.bucket(walker.walk())

        assert [b.tag.name if b.tag else None for b in buckets] == [None, "v1.1.0", "v1.0.0"]
        assert [[c.sha for c in b.commits] for b in buckets] == [
            ["c6"],
            ["c5", "c4"],
            ["c3", "c2", "c1"],
        ]
        assert buckets[1].commits[0].sha == buckets[1].tag.sha

    def test_buckets_follow_walk_order(self):
        """A branch commit dated before a tag but merged after it joins that tag in date order."""
        store = FakeStore(
            [
                make_commit("m", "Merge branch 'topic'", parents=("c2", "b1"), timestamp=3000),
                make_commit("b1", "feat: topic work", parents=("c1",), timestamp=1500),
                make_commit("c2", "fix: release fix", parents=("c1",), timestamp=2000),
                make_commit("c1", "feat: root", timestamp=1000),
            ],
            tags=[Tag("v1.0.0", "c2")],
        )

        def shas(order: SortOrder) -> list[list[str]]:
            walker = HistoryWalker(store, order=order)
            return [[c.sha for c in b.commits] for b in walker.bucket(walker.walk())]

        assert shas(SortOrder.TOPOLOGICAL) == [["m", "b1"], ["c2", "c1"]]
        assert shas(SortOrder.DATE) == [["m"], ["c2", "b1", "c1"]]

    def test_every_commit_in_exactly_one_bucket(self, release_store: FakeStore):
        """Buckets partition the walked commits."""
        walker = HistoryWalker(release_store)
        history = walker.walk()

        flattened = [c.sha for b in walker.bucket(history) for c in b.commits]

        assert sorted(flattened) == sorted(c.sha for c in history.commits)
        assert len(flattened) == len(set(flattened))

    def test_no_unreleased_bucket_when_head_tagged(self):
        """No Unreleased bucket exists when HEAD is tagged."""
        store = FakeStore(linear_history(["a", "b"]), [Tag("v1.0.0", "c2")])
        walker = HistoryWalker(store)

        buckets = walker.bucket(walker.walk())

        assert len(buckets) == 1
        assert buckets[0].tag == Tag("v1.0.0", "c2")

    def test_untagged_history(self):
        """Without tags every commit is unreleased."""
        store = FakeStore(linear_history(["a", "b"]))
        walker = HistoryWalker(store)

        buckets = walker.bucket(walker.walk())

        assert len(buckets) == 1
        assert buckets[0].tag is None
        assert [c.sha for c in buckets[0].commits] == ["c2", "c1"]

    def test_empty_range(self, release_store: FakeStore):
        """An empty range yields no buckets."""
        walker = HistoryWalker(release_store)

        assert walker.bucket(walker.walk(start="HEAD")) == []

    def test_skip_tags_drops_bucket(self, release_store: FakeStore):
        """Commits of skipped tags are dropped with the tag."""
        walker = HistoryWalker(release_store, skip_tags=re.compile(r"v1\.1\.0"))

        buckets = walker.bucket(walker.walk())

        assert [b.tag.name if b.tag else None for b in buckets] == [None, "v1.0.0"]
        assert "c4" not in [c.sha for b in buckets for c in b.commits]

    def test_ignored_tag_merges_into_next(self, release_store: FakeStore):
        """Commits of an ignored tag fall into the following release."""
        walker = HistoryWalker(release_store, ignore_tags=re.compile(r"v1\.0\.0"))

        buckets = walker.bucket(walker.walk())

        assert [b.tag.name if b.tag else None for b in buckets] == [None, "v1.1.0"]
        assert [c.sha for c in buckets[1].commits] == ["c5", "c4", "c3", "c2", "c1"]
