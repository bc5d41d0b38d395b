"""Template context assembly and rendering.

The context handed to templates has this shape::

    {
        "releases": [ {release}, ... ],     # most recent first
        "now": datetime,
        "repository": {...},                # caller-supplied metadata
    }

Each release carries ``commits`` (group-sorted) and ``groups``
(``name``, ``display_name``, ``commits``). The body template is
rendered once per release with the release keys merged over the
global ones; header and footer see the global context only.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from changelog_py.core.links import LinkSubstituter
from changelog_py.core.template import Template

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from changelog_py.config.models import ChangelogConfig, LinkParser
    from changelog_py.core.commits import ParsedCommit
    from changelog_py.core.release import Release

logger = logging.getLogger(__name__)


class RemoteMetadata(Protocol):
    def as_dict(self) -> dict[str, Any]: ...


class Renderer:
    """Renders releases through the configured templates.

    Templates are compiled on construction, so syntax errors surface
    before any release is rendered.
    """

    def __init__(
        self,
        config: ChangelogConfig,
        link_parsers: Sequence[LinkParser] = (),
        *,
        remote: Mapping[str, RemoteMetadata] | None = None,
        metadata: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> None:
        self.config = config
        self.links = LinkSubstituter(link_parsers, config.link_format)
        self.remote = remote or {}
        self.metadata = dict(metadata or {})
        self.now = now or datetime.now(UTC)

        self.header = Template(config.header, "header") if config.header else None
        self.body = Template(config.body, "body")
        self.footer = Template(config.footer, "footer") if config.footer else None

    def commit_context(self, commit: ParsedCommit) -> dict[str, Any]:
        """Build the template view of one commit, links substituted."""
        links = self.links.find(commit.description)

        body = commit.body
        if body is not None:
            body, found = self.links.substitute(body)
            links.extend(found)

        footers = []
        conv = commit.conventional
        for footer in conv.footers if conv else ():
            value, found = self.links.substitute(footer.value)
            links.extend(found)
            footers.append(
                {
                    "token": footer.token,
                    "separator": footer.separator,
                    "value": value,
                    "breaking": footer.breaking,
                }
            )

        remote = self.remote.get(commit.sha)
        return {
            "id": commit.sha,
            "short_id": commit.short_sha,
            "message": commit.description,
            "raw_message": commit.message,
            "body": body,
            "footers": footers,
            "group": commit.group,
            "scope": commit.scope,
            "type": commit.commit_type,
            "breaking": commit.is_breaking,
            "breaking_description": conv.breaking_description if conv else None,
            "conventional": commit.is_conventional,
            "author": {
                "name": commit.author_name,
                "email": commit.author_email,
                "timestamp": int(commit.date.timestamp()) if commit.date else None,
            },
            "coauthors": [{"name": a.name, "email": a.email} for a in commit.coauthors],
            "links": [{"text": link.text, "href": link.href} for link in links],
            "remote": remote.as_dict() if remote is not None else None,
        }

    def release_context(
        self,
        release: Release,
        commit_views: dict[int, dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Build the template view of one release.

        A commit listed under several groups maps to one shared dict.
        """
        views = commit_views if commit_views is not None else {}

        def view(commit: ParsedCommit) -> dict[str, Any]:
            key = id(commit)
            if key not in views:
                views[key] = self.commit_context(commit)
            return views[key]

        return {
            "version": release.version,
            "label": release.label,
            "semver": release.semver.as_dict() if release.semver else None,
            "timestamp": int(release.timestamp.timestamp()),
            "date": release.timestamp.strftime("%Y-%m-%d"),
            "commit_id": release.commit_id,
            "commits": [view(c) for c in release.commits],
            "groups": [
                {
                    "name": group.name,
                    "display_name": group.display_name,
                    "commits": [view(c) for c in group.commits],
                }
                for group in release.groups
            ],
            "commit_count": release.commit_count,
            "previous": release.previous,
            "next": release.next,
        }

    def context(self, releases: Sequence[Release]) -> dict[str, Any]:
        """Build the full template context."""
        views: dict[int, dict[str, Any]] = {}
        return {
            "releases": [self.release_context(r, views) for r in releases],
            "now": self.now,
            "repository": self.metadata,
        }

    def render(self, releases: Sequence[Release]) -> str:
        """Render the complete changelog.

        Raises:
            RenderError: If any template fails; nothing is returned then
        """
        context = self.context(releases)

        pieces: list[str] = []
        if self.header is not None:
            pieces.append(self.header.render(context))
        for release_context in context["releases"]:
            pieces.append(self.body.render({**context, **release_context}))
        if self.footer is not None:
            pieces.append(self.footer.render(context))

        logger.debug("Rendered %d releases", len(releases))
        if self.config.trim:
            return "\n\n".join(p.strip() for p in pieces if p.strip()) + "\n"
        return "".join(pieces)
