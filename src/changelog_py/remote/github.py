"""GitHub metadata enrichment.

Fetches the GitHub username of each commit's author, the pull
requests that introduced it and the GitHub logins of its co-authors.
This is a best-effort side channel: any failure or timeout leaves the
affected commits without remote data and the changelog is rendered
anyway.

Requests are shared within one fetch: usernames are looked up once
per author email and pull request authors once per pull request.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from changelog_py import __version__
from changelog_py.core.commits import parse_coauthors
from changelog_py.exceptions import EnrichmentError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from changelog_py.config.models import GitHubConfig
    from changelog_py.vcs.git import Commit

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("CHANGELOG_PY_GITHUB_TOKEN", "GITHUB_TOKEN")

# "Subject line (#123)" as written by squash merges
PR_SUFFIX_PATTERN = re.compile(r"\s\(#(\d+)\)$", re.MULTILINE)


@dataclass(frozen=True)
class RemoteCommit:
    """GitHub data attached to one commit."""

    username: str | None = None
    pr_numbers: tuple[int, ...] = ()
    pr_title: str | None = None
    pr_labels: tuple[str, ...] = ()
    coauthors: tuple[str, ...] = ()

    @property
    def pr_number(self) -> int | None:
        return self.pr_numbers[0] if self.pr_numbers else None

    @property
    def authors(self) -> tuple[str, ...]:
        """The author's username followed by the co-authors' logins."""
        head = (self.username,) if self.username else ()
        return head + self.coauthors

    def as_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "pr_number": self.pr_number,
            "pr_numbers": list(self.pr_numbers),
            "pr_title": self.pr_title,
            "pr_labels": list(self.pr_labels),
            "coauthors": list(self.coauthors),
            "authors": list(self.authors),
        }


# =============================================================================
# Payload access
# =============================================================================


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _string(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _author_login(payload: Any) -> str | None:
    """``author.login`` of a commit object; None for unlinked authors."""
    return _string(_as_dict(_as_dict(payload).get("author")).get("login"))


def _pull_numbers(pulls: list[Any]) -> tuple[int, ...]:
    numbers = (_as_dict(pull).get("number") for pull in pulls)
    return tuple(n for n in numbers if isinstance(n, int) and not isinstance(n, bool))


def _pull_details(pull: Any) -> tuple[str | None, tuple[str, ...]]:
    pull = _as_dict(pull)
    labels = (_string(_as_dict(label).get("name")) for label in _as_list(pull.get("labels")))
    return _string(pull.get("title")), tuple(name for name in labels if name)


def _describe(commit: Commit | str) -> tuple[str, str, str]:
    """``(sha, message, author_email)``; bare ids carry no message or email."""
    if isinstance(commit, str):
        return commit, "", ""
    return commit.sha, commit.message, commit.author_email


@dataclass
class _Lookups:
    """Requests shared between the commits of a single fetch."""

    usernames: dict[str, asyncio.Task[str | None]] = field(default_factory=dict)
    pr_authors: dict[int, asyncio.Task[tuple[str, ...]]] = field(default_factory=dict)
    logins: dict[str, str] = field(default_factory=dict)

    async def once(
        self,
        tasks: dict[Any, asyncio.Task[Any]],
        key: Any,
        request: Callable[[], Awaitable[Any]],
    ) -> Any:
        if key not in tasks:
            tasks[key] = asyncio.ensure_future(request())
        return await tasks[key]


class GitHubClient:
    """Minimal async client for the commit and pull request endpoints."""

    def __init__(
        self,
        repo: str,
        *,
        token: str | None = None,
        api_url: str = "https://api.github.com",
        timeout: float = 10.0,
        max_concurrency: int = 8,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.repo = repo
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"changelog-py/{__version__}",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get(self, client: httpx.AsyncClient, path: str) -> Any:
        response = await client.get(f"/repos/{self.repo}{path}")
        response.raise_for_status()
        return response.json()

    async def fetch_username(self, client: httpx.AsyncClient, sha: str) -> str | None:
        return _author_login(await self._get(client, f"/commits/{sha}"))

    async def fetch_pr_authors(self, client: httpx.AsyncClient, number: int) -> tuple[str, ...]:
        """Logins of the authors of every commit in a pull request."""
        commits = _as_list(await self._get(client, f"/pulls/{number}/commits"))
        return tuple(login for login in map(_author_login, commits) if login)

    async def fetch_commit(
        self,
        client: httpx.AsyncClient,
        commit: Commit | str,
        lookups: _Lookups | None = None,
    ) -> RemoteCommit:
        """Fetch author, pull request and co-author data for one commit.

        A ``(#N)`` suffix in the message names the pull request
        directly; otherwise the pull requests associated with the
        commit are listed.
        """
        lookups = lookups if lookups is not None else _Lookups()
        sha, message, email = _describe(commit)

        if email:
            username = await lookups.once(
                lookups.usernames, email, lambda: self.fetch_username(client, sha)
            )
            if username:
                lookups.logins[email] = username
        else:
            username = await self.fetch_username(client, sha)

        suffix = PR_SUFFIX_PATTERN.search(message)
        if suffix:
            number = int(suffix.group(1))
            pr_numbers: tuple[int, ...] = (number,)
            title, labels = _pull_details(await self._get(client, f"/pulls/{number}"))
        else:
            pulls = _as_list(await self._get(client, f"/commits/{sha}/pulls"))
            pr_numbers = _pull_numbers(pulls)
            title, labels = _pull_details(pulls[0] if pulls else None)

        coauthors = await self._coauthors(client, message, username, pr_numbers, lookups)
        return RemoteCommit(
            username=username,
            pr_numbers=pr_numbers,
            pr_title=title,
            pr_labels=labels,
            coauthors=coauthors,
        )

    async def _coauthors(
        self,
        client: httpx.AsyncClient,
        message: str,
        username: str | None,
        pr_numbers: tuple[int, ...],
        lookups: _Lookups,
    ) -> tuple[str, ...]:
        authors = parse_coauthors(message)
        if not authors:
            return ()

        known = [lookups.logins.get(author.email) for author in authors]
        if all(known):
            logins = list(known)
        else:
            # Unknown emails: take the authors of the pull requests' commits
            logins = []
            for number in pr_numbers:
                logins.extend(
                    await lookups.once(
                        lookups.pr_authors,
                        number,
                        lambda n=number: self.fetch_pr_authors(client, n),
                    )
                )
        return tuple(dict.fromkeys(login for login in logins if login and login != username))

    async def fetch(self, commits: Sequence[Commit | str]) -> dict[str, RemoteCommit]:
        """Fetch metadata for many commits with bounded concurrency.

        Commits may be given as commit objects or bare ids. Commits
        whose lookups fail for any reason are left out of the result.

        Raises:
            EnrichmentError: If every lookup failed
        """
        if not commits:
            return {}
        semaphore = asyncio.Semaphore(self.max_concurrency)
        lookups = _Lookups()

        async with httpx.AsyncClient(
            base_url=self.api_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self._transport,
        ) as client:

            async def one(commit: Commit | str) -> tuple[str, RemoteCommit | None]:
                sha = _describe(commit)[0]
                async with semaphore:
                    try:
                        return sha, await self.fetch_commit(client, commit, lookups)
                    except Exception as e:
                        logger.debug("GitHub lookup failed for %s: %r", sha, e)
                        return sha, None

            results = await asyncio.gather(*(one(commit) for commit in commits))

        found = {sha: data for sha, data in results if data is not None}
        if not found:
            raise EnrichmentError(f"All {len(commits)} GitHub lookups failed for {self.repo}")
        if len(found) < len(commits):
            logger.warning(
                "GitHub data missing for %d of %d commits",
                len(commits) - len(found),
                len(commits),
            )
        return found


class EnrichmentTask:
    """Runs a GitHub fetch in a worker thread with an overall timeout.

    ``start`` returns immediately; ``result`` joins the worker and
    always returns a mapping, empty when anything went wrong.
    """

    def __init__(self, client: GitHubClient, timeout: float = 30.0) -> None:
        self.client = client
        self.timeout = timeout
        self._executor: ThreadPoolExecutor | None = None
        self._future: Future[dict[str, RemoteCommit]] | None = None

    async def _run(self, commits: list[Commit | str]) -> dict[str, RemoteCommit]:
        return await asyncio.wait_for(self.client.fetch(commits), timeout=self.timeout)

    def start(self, commits: Sequence[Commit | str]) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="github-enrichment")
        self._future = self._executor.submit(asyncio.run, self._run(list(commits)))
        logger.debug("Started GitHub enrichment for %d commits", len(commits))

    def result(self) -> dict[str, RemoteCommit]:
        if self._future is None or self._executor is None:
            return {}
        try:
            # The coroutine enforces the timeout; the margin covers thread startup
            return self._future.result(timeout=self.timeout + 5)
        except Exception as e:
            logger.warning("GitHub enrichment unavailable: %s", e or type(e).__name__)
            return {}
        finally:
            self._executor.shutdown(wait=False, cancel_futures=True)


def resolve_token(config: GitHubConfig) -> str | None:
    if config.token:
        return config.token
    for name in TOKEN_ENV_VARS:
        if os.environ.get(name):
            return os.environ[name]
    return None


def create_enrichment(
    config: GitHubConfig,
    repo: str | None = None,
    token: str | None = None,
) -> EnrichmentTask | None:
    """Build an enrichment task, or None when it cannot run.

    Args:
        config: GitHub section of the configuration
        repo: ``owner/repo`` override (e.g. from the git remote)
        token: Token override (e.g. from the command line)
    """
    slug = repo or config.slug
    if slug is None:
        logger.warning("GitHub enrichment enabled but no repository is known")
        return None
    client = GitHubClient(
        slug,
        token=token or resolve_token(config),
        api_url=config.api_url,
        timeout=config.timeout,
        max_concurrency=config.max_concurrency,
    )
    return EnrichmentTask(client, timeout=config.timeout * 3)
