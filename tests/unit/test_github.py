"""Tests for GitHub metadata enrichment."""

from __future__ import annotations

import asyncio

import httpx
import pytest
from conftest import FakeStore, linear_history, make_commit

from changelog_py.config.models import ChangelogConfig, ChangelogPyConfig, GitHubConfig
from changelog_py.core.changelog import generate_changelog
from changelog_py.exceptions import EnrichmentError
from changelog_py.remote.github import (
    EnrichmentTask,
    GitHubClient,
    RemoteCommit,
    create_enrichment,
    resolve_token,
)
from changelog_py.vcs.git import Commit


def github_api(request: httpx.Request) -> httpx.Response:
    """Fake GitHub API: commit ``bad`` fails, everything else succeeds."""
    parts = request.url.path.strip("/").split("/")
    sha = parts[4]
    if sha == "bad":
        return httpx.Response(500)
    if parts[-1] == "pulls":
        return httpx.Response(
            200,
            json=[{"number": 7, "title": f"PR for {sha}", "labels": [{"name": "bug"}]}],
        )
    return httpx.Response(200, json={"sha": sha, "author": {"login": f"user-{sha}"}})


def make_client(handler=github_api, **kwargs) -> GitHubClient:
    return GitHubClient("octo/demo", transport=httpx.MockTransport(handler), **kwargs)


class TestGitHubClient:
    """Tests for GitHubClient."""

    def test_fetch(self):
        """Author and pull request data are collected per commit."""
        result = asyncio.run(make_client().fetch(["abc", "def"]))

        assert result["abc"] == RemoteCommit(
            username="user-abc", pr_numbers=(7,), pr_title="PR for abc", pr_labels=("bug",)
        )
        assert set(result) == {"abc", "def"}

    def test_headers(self):
        """The token is sent as a bearer token."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return github_api(request)

        asyncio.run(make_client(handler, token="secret").fetch(["abc"]))

        assert seen[0].headers["Authorization"] == "Bearer secret"
        assert seen[0].headers["Accept"] == "application/vnd.github+json"
        assert seen[0].url.path == "/repos/octo/demo/commits/abc"

    def test_commit_without_pull_request(self):
        """Commits pushed directly have no PR data."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/pulls"):
                return httpx.Response(200, json=[])
            return httpx.Response(200, json={"author": None})

        result = asyncio.run(make_client(handler).fetch(["abc"]))

        assert result["abc"] == RemoteCommit()

    def test_partial_failure(self):
        """Failed lookups are left out of the result."""
        result = asyncio.run(make_client().fetch(["abc", "bad"]))

        assert set(result) == {"abc"}

    def test_all_failed(self):
        """EnrichmentError when no lookup succeeded."""
        with pytest.raises(EnrichmentError, match="octo/demo"):
            asyncio.run(make_client().fetch(["bad"]))

    def test_no_commits(self):
        """Nothing is requested for an empty list."""
        assert asyncio.run(make_client().fetch([])) == {}

    def test_malformed_payloads(self):
        """Unexpected JSON shapes are read as missing data."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/pulls"):
                return httpx.Response(200, json=[{"number": 1, "title": None, "labels": None}])
            return httpx.Response(200, json={"author": ["not", "a", "dict"]})

        result = asyncio.run(make_client(handler).fetch(["abc"]))

        assert result["abc"] == RemoteCommit(pr_numbers=(1,))

    def test_unexpected_error_drops_commit(self):
        """A commit whose lookup breaks in any way is left out."""

        def handler(request: httpx.Request) -> httpx.Response:
            if "broken" in request.url.path:
                raise RuntimeError("unexpected failure")
            return github_api(request)

        result = asyncio.run(make_client(handler).fetch(["abc", "broken"]))

        assert set(result) == {"abc"}

    def test_all_pull_requests(self):
        """Every associated pull request number is kept."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/pulls"):
                return httpx.Response(
                    200,
                    json=[{"number": 3, "title": "First", "labels": []}, {"number": 9}],
                )
            return httpx.Response(200, json={"author": {"login": "octocat"}})

        result = asyncio.run(make_client(handler).fetch(["abc"]))

        assert result["abc"].pr_numbers == (3, 9)
        assert result["abc"].pr_number == 3
        assert result["abc"].pr_title == "First"

    def test_pull_request_suffix(self):
        """A (#N) suffix names the pull request without listing them."""
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            if request.url.path.endswith("/pulls/42"):
                return httpx.Response(
                    200, json={"number": 42, "title": "Squashed", "labels": [{"name": "x"}]}
                )
            return httpx.Response(200, json={"author": {"login": "octocat"}})

        commit = make_commit("abc", "feat: squashed change (#42)", author="Ann")
        result = asyncio.run(make_client(handler).fetch([commit]))

        assert result["abc"] == RemoteCommit(
            username="octocat", pr_numbers=(42,), pr_title="Squashed", pr_labels=("x",)
        )
        assert paths == ["/repos/octo/demo/commits/abc", "/repos/octo/demo/pulls/42"]

    def test_username_cached_by_email(self):
        """Commits by the same author share one username lookup."""
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return github_api(request)

        commits = [make_commit("abc", "feat: a"), make_commit("def", "fix: b")]
        result = asyncio.run(make_client(handler).fetch(commits))

        assert result["abc"].username == result["def"].username == "user-abc"
        assert paths.count("/repos/octo/demo/commits/abc") == 1
        assert "/repos/octo/demo/commits/def" not in paths

    def test_coauthors_from_pull_request(self):
        """Co-authors with unknown emails are resolved through the PR's commits."""

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path.endswith("/pulls/5/commits"):
                return httpx.Response(
                    200,
                    json=[
                        {"author": {"login": "octocat"}},
                        {"author": {"login": "hubot"}},
                        {"author": None},
                        {"author": {"login": "hubot"}},
                    ],
                )
            if path.endswith("/pulls"):
                return httpx.Response(200, json=[{"number": 5}])
            return httpx.Response(200, json={"author": {"login": "octocat"}})

        commit = make_commit(
            "abc", "feat: pair work\n\nCo-authored-by: Hu Bot <hubot@example.com>"
        )
        result = asyncio.run(make_client(handler).fetch([commit]))

        assert result["abc"].coauthors == ("hubot",)
        assert result["abc"].authors == ("octocat", "hubot")

    def test_coauthors_from_known_emails(self):
        """Co-authors whose email was already resolved need no PR lookup."""
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return github_api(request)

        first = make_commit("abc", "feat: solo")
        second = Commit(
            sha="def",
            message="fix: pair\n\nCo-authored-by: Test <test@example.com>",
            author_name="Other",
            author_email="other@example.com",
            date=first.date,
        )
        client = make_client(handler, max_concurrency=1)
        result = asyncio.run(client.fetch([first, second]))

        assert result["def"].username == "user-def"
        assert result["def"].coauthors == ("user-abc",)
        assert not any(path.endswith("/commits") for path in paths)

class TestEnrichmentTask:
    """Tests for EnrichmentTask."""

    def test_result(self):
        """The joined result maps commit ids to remote data."""
        task = EnrichmentTask(make_client())
        task.start(["abc"])

        assert task.result()["abc"].username == "user-abc"

    def test_failure_yields_empty_mapping(self):
        """Failures are logged and produce no data."""
        task = EnrichmentTask(make_client())
        task.start(["bad"])

        assert task.result() == {}

    def test_timeout_yields_empty_mapping(self):
        """A slow API is abandoned after the timeout."""

        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return github_api(request)

        task = EnrichmentTask(make_client(slow), timeout=0.1)
        task.start(["abc"])

        assert task.result() == {}

    def test_not_started(self):
        """An unstarted task has no data."""
        assert EnrichmentTask(make_client()).result() == {}

    def test_unexpected_exception_yields_empty_mapping(self):
        """Errors of any kind raised by the fetch are absorbed."""

        class BrokenClient(GitHubClient):
            async def fetch(self, commits):
                raise TypeError("unexpected reply")

        task = EnrichmentTask(BrokenClient("octo/demo"))
        task.start(["abc"])

        assert task.result() == {}

    def test_malformed_reply_does_not_abort_generation(self):
        """A changelog is produced even when GitHub replies with odd data."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/pulls"):
                return httpx.Response(200, json=[{"number": 1, "labels": None}])
            return httpx.Response(200, json=["unexpected"])

        store = FakeStore(linear_history(["feat: first", "feat: second"]))
        config = ChangelogPyConfig(
            changelog=ChangelogConfig(
                header=None,
                footer=None,
                body="{% for c in commits %}{{ c.id }}:{{ c.remote.pr_number }} {% endfor %}",
            )
        )

        output = generate_changelog(
            store, config, enrichment=EnrichmentTask(make_client(handler))
        )

        assert output.split() == ["c2:1", "c1:1"]


class TestCreateEnrichment:
    """Tests for create_enrichment() and resolve_token()."""

    def test_token_from_config(self, monkeypatch: pytest.MonkeyPatch):
        """A configured token wins over the environment."""
        monkeypatch.setenv("GITHUB_TOKEN", "from-env")

        assert resolve_token(GitHubConfig(token="from-config")) == "from-config"

    def test_token_from_environment(self, monkeypatch: pytest.MonkeyPatch):
        """The tool-specific variable is preferred."""
        monkeypatch.setenv("GITHUB_TOKEN", "generic")
        monkeypatch.setenv("CHANGELOG_PY_GITHUB_TOKEN", "specific")

        assert resolve_token(GitHubConfig()) == "specific"

    def test_no_token(self, monkeypatch: pytest.MonkeyPatch):
        """Without any token requests are anonymous."""
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("CHANGELOG_PY_GITHUB_TOKEN", raising=False)

        assert resolve_token(GitHubConfig()) is None

    def test_requires_repository(self):
        """No task is created when the repository is unknown."""
        assert create_enrichment(GitHubConfig(enabled=True)) is None

    def test_overrides(self):
        """Repository and token overrides are applied."""
        task = create_enrichment(
            GitHubConfig(owner="a", repo="b", timeout=2.0), repo="octo/demo", token="t"
        )

        assert task is not None
        assert task.client.repo == "octo/demo"
        assert task.client.token == "t"
        assert task.timeout == 6.0
