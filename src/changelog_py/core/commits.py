"""Conventional commit parsing.

A raw commit message goes through two steps:

1. Preprocessors: ``(pattern, replace)`` pairs applied in declared
   order. A pattern that does not match leaves the message alone.
2. Grammar: ``type(scope)!: description``, an optional body after a
   blank line, and an optional trailing block of footers
   (``Token: value`` or ``Token #value``). ``!`` or a
   ``BREAKING CHANGE`` footer marks the commit as breaking.

A message that does not match the grammar is not an error; the
commit keeps its raw message and ``conventional`` stays ``None``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from changelog_py.config.models import GitConfig, Preprocessor
    from changelog_py.vcs.git import Commit

HEADER_PATTERN: re.Pattern[str] = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)"
    r"(?:\((?P<scope>[^()\r\n]*)\))?"
    r"(?P<breaking>!)?"
    r":[ \t]+"
    r"(?P<description>\S.*?)\s*$",
)

FOOTER_PATTERN: re.Pattern[str] = re.compile(
    r"^(?P<token>BREAKING[ -]CHANGE|[A-Za-z][\w-]*)"
    r"(?P<separator>:[ \t]|[ \t]#)"
    r"(?P<value>.*)$",
)

BREAKING_TOKENS = frozenset({"BREAKING CHANGE", "BREAKING-CHANGE"})

CO_AUTHOR_PATTERN: re.Pattern[str] = re.compile(
    r"^Co-authored-by:\s*(?P<name>[^<\n]+?)\s*<(?P<email>[^>\n]+)>",
    re.MULTILINE | re.IGNORECASE,
)

_PARAGRAPH_SPLIT = re.compile(r"\n[ \t]*\n")


@dataclass(frozen=True)
class Footer:
    """A conventional commit footer (git trailer)."""

    token: str
    separator: str
    value: str

    @property
    def breaking(self) -> bool:
        return self.token in BREAKING_TOKENS


@dataclass(frozen=True)
class ConventionalCommit:
    """Structured fields of a message that matched the grammar."""

    type: str
    scope: str | None
    description: str
    body: str | None = None
    footers: tuple[Footer, ...] = ()
    breaking: bool = False

    @property
    def breaking_description(self) -> str | None:
        """Text describing the breaking change, if any.

        Taken from the first breaking footer, else the description
        when the header carried ``!``.
        """
        for footer in self.footers:
            if footer.breaking:
                return footer.value
        return self.description if self.breaking else None


@dataclass(frozen=True)
class Author:
    name: str
    email: str


def parse_coauthors(message: str) -> tuple[Author, ...]:
    """Collect ``Co-authored-by:`` trailers in order of appearance."""
    return tuple(
        Author(m["name"].strip(), m["email"].strip()) for m in CO_AUTHOR_PATTERN.finditer(message)
    )


def preprocess(message: str, preprocessors: Sequence[Preprocessor]) -> str:
    """Apply preprocessors to a message in declared order."""
    for preprocessor in preprocessors:
        message = preprocessor.pattern.sub(preprocessor.replace, message)
    return message


def _parse_footers(paragraph: str) -> tuple[Footer, ...] | None:
    """Parse a paragraph as a footer block.

    Returns None when the paragraph does not start with a trailer.
    Lines that are not trailers continue the previous footer's value.
    """
    lines = paragraph.splitlines()
    if not lines or not FOOTER_PATTERN.match(lines[0]):
        return None

    footers: list[list[str]] = []
    for line in lines:
        match = FOOTER_PATTERN.match(line)
        if match:
            footers.append([match["token"], match["separator"], match["value"]])
        else:
            footers[-1][2] += "\n" + line

    return tuple(Footer(token, sep, value.strip()) for token, sep, value in footers)


def parse_conventional(message: str) -> ConventionalCommit | None:
    """Parse a message against the conventional commit grammar.

    Args:
        message: Full commit message (header, body, footers)

    Returns:
        Structured fields, or None when the header does not match
    """
    message = message.strip()
    header, _, rest = message.partition("\n")
    match = HEADER_PATTERN.match(header)
    if not match:
        return None

    # The body must be separated from the header by a blank line
    if rest and rest.lstrip(" \t").partition("\n")[0].strip():
        return None

    paragraphs = [p.strip("\n") for p in _PARAGRAPH_SPLIT.split(rest.strip("\n")) if p.strip()]
    footers: tuple[Footer, ...] = ()
    if paragraphs:
        parsed = _parse_footers(paragraphs[-1])
        if parsed is not None:
            footers = parsed
            paragraphs = paragraphs[:-1]
    body = "\n\n".join(paragraphs) or None

    breaking = bool(match["breaking"]) or any(f.breaking for f in footers)
    return ConventionalCommit(
        type=match["type"],
        scope=match["scope"] or None,
        description=match["description"],
        body=body,
        footers=footers,
        breaking=breaking,
    )


@dataclass(eq=False)
class ParsedCommit:
    """A commit after preprocessing and grammar parsing.

    ``group``, ``scope_override``, ``default_scope`` and ``skip`` are
    set by the classifier and are the only fields changed after
    construction. Equality is identity: a commit listed under two
    groups is one object.
    """

    sha: str
    message: str
    author_name: str = ""
    author_email: str = ""
    date: datetime | None = None
    raw_message: str = ""
    conventional: ConventionalCommit | None = None
    coauthors: tuple[Author, ...] = ()
    group: str | None = None
    scope_override: str | None = None
    default_scope: str | None = None
    skip: bool = False

    @classmethod
    def from_commit(
        cls,
        commit: Commit,
        preprocessors: Sequence[Preprocessor] = (),
        *,
        conventional: bool = True,
    ) -> ParsedCommit:
        """Parse a raw commit.

        Args:
            commit: Commit read from the object store
            preprocessors: Applied to the message before parsing
            conventional: Attempt the conventional grammar

        Returns:
            Parsed commit; ``conventional`` is None on grammar mismatch
        """
        message = preprocess(commit.message, preprocessors)
        return cls(
            sha=commit.sha,
            message=message,
            author_name=commit.author_name,
            author_email=commit.author_email,
            date=commit.date,
            raw_message=commit.message,
            conventional=parse_conventional(message) if conventional else None,
            coauthors=parse_coauthors(message),
        )

    @classmethod
    def from_message(cls, message: str, sha: str = "") -> ParsedCommit:
        """Build a commit from a bare message (no repository object)."""
        return cls(
            sha=sha,
            message=message,
            raw_message=message,
            conventional=parse_conventional(message),
        )

    @property
    def is_conventional(self) -> bool:
        return self.conventional is not None

    @property
    def is_breaking(self) -> bool:
        return self.conventional is not None and self.conventional.breaking

    @property
    def commit_type(self) -> str | None:
        return self.conventional.type if self.conventional else None

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def header(self) -> str:
        return self.message.strip().partition("\n")[0]

    @property
    def description(self) -> str:
        """The conventional description, or the message's first line."""
        if self.conventional:
            return self.conventional.description
        return self.header

    @property
    def body(self) -> str | None:
        """The conventional body, or everything after the first line."""
        if self.conventional:
            return self.conventional.body
        rest = self.message.strip().partition("\n")[2].strip()
        return rest or None

    @property
    def scope(self) -> str | None:
        """Effective scope: rule override, then parsed scope, then rule default."""
        if self.scope_override:
            return self.scope_override
        if self.conventional and self.conventional.scope:
            return self.conventional.scope
        return self.default_scope


def parse_commits(commits: Iterable[Commit], config: GitConfig) -> list[ParsedCommit]:
    """Parse commits with the configured preprocessors, preserving order."""
    return [
        ParsedCommit.from_commit(
            commit,
            config.commit_preprocessors,
            conventional=config.conventional_commits,
        )
        for commit in commits
    ]
