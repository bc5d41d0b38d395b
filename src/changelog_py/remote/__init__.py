"""Optional remote metadata enrichment."""

from __future__ import annotations

from changelog_py.remote.github import (
    EnrichmentTask,
    GitHubClient,
    RemoteCommit,
    create_enrichment,
)

__all__ = ["EnrichmentTask", "GitHubClient", "RemoteCommit", "create_enrichment"]
