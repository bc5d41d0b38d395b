"""Configuration models for changelog-py.

All models are frozen: rule sets are read-only for the duration of
a run. Regex fields are typed ``re.Pattern`` so malformed patterns
are rejected while the configuration is validated, before any
commit is processed.
"""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# $1 / ${name} references (the cliff.toml convention) in link templates
_DOLLAR_REF = re.compile(r"\$(?:\{(\w+)\}|(\d+))")

# Escapes of a Python replacement template: \g<name>, \12 or one character
_TEMPLATE_ESCAPE = re.compile(
    r"\\(?:g<(?P<named>[^>]*)>|(?P<number>[1-9]\d?)|(?P<char>.))",
    re.DOTALL,
)


class SortOrder(StrEnum):
    """Traversal order of the history walk."""

    TOPOLOGICAL = "topological"
    DATE = "date"


def to_python_template(template: str) -> str:
    """Convert ``$1`` / ``${name}`` references to ``\\g<...>`` form.

    Python-style ``\\1`` and ``\\g<name>`` references pass through.
    """
    return _DOLLAR_REF.sub(lambda m: rf"\g<{m.group(1) or m.group(2)}>", template)


def check_references(pattern: re.Pattern[str], template: str) -> None:
    """Validate a replacement template against the groups of ``pattern``.

    Raises:
        ValueError: If the template references a group the pattern does
            not define or contains an escape ``re.sub`` rejects
    """
    for match in _TEMPLATE_ESCAPE.finditer(template):
        ref = match["named"] if match["named"] is not None else match["number"]
        if ref is None:
            char = match["char"]
            if char == "g" or (char.isascii() and char.isalpha() and char not in "abfnrtv"):
                raise ValueError(f"Bad escape \\{char} in template {template!r}")
            continue
        if ref.isdigit():
            valid = int(ref) <= pattern.groups
        else:
            valid = ref in pattern.groupindex
        if not valid:
            raise ValueError(
                f"Template {template!r} references group {ref!r}, "
                f"which pattern {pattern.pattern!r} does not define"
            )


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# =============================================================================
# Rule sets
# =============================================================================


class Preprocessor(_Frozen):
    """Find/replace applied to the raw message before parsing."""

    pattern: re.Pattern[str]
    replace: str = ""

    @field_validator("replace")
    @classmethod
    def _convert_references(cls, v: str) -> str:
        return to_python_template(v)

    @model_validator(mode="after")
    def _check_references(self) -> Preprocessor:
        check_references(self.pattern, self.replace)
        return self


class CommitParser(_Frozen):
    """A classification rule.

    The rule matches when ``message`` matches the commit message or
    ``body`` matches the commit body. A rule without either pattern
    never matches.
    """

    message: re.Pattern[str] | None = None
    body: re.Pattern[str] | None = None
    group: str | None = None
    scope: str | None = None
    default_scope: str | None = None
    skip: bool = False


class LinkParser(_Frozen):
    """Turns matching text into a link.

    ``href`` and ``text`` are expansion templates over the match.
    """

    pattern: re.Pattern[str]
    href: str
    text: str | None = None

    @field_validator("href", "text")
    @classmethod
    def _convert_references(cls, v: str | None) -> str | None:
        return to_python_template(v) if v is not None else None

    @model_validator(mode="after")
    def _check_references(self) -> LinkParser:
        check_references(self.pattern, self.href)
        if self.text is not None:
            check_references(self.pattern, self.text)
        return self


DEFAULT_COMMIT_PARSERS: list[CommitParser] = [
    CommitParser(message=re.compile(r"^feat"), group="Features"),
    CommitParser(message=re.compile(r"^fix"), group="Bug Fixes"),
    CommitParser(message=re.compile(r"^doc"), group="Documentation"),
    CommitParser(message=re.compile(r"^perf"), group="Performance"),
    CommitParser(message=re.compile(r"^refactor"), group="Refactor"),
    CommitParser(message=re.compile(r"^style"), group="Styling"),
    CommitParser(message=re.compile(r"^test"), group="Testing"),
    CommitParser(message=re.compile(r"^chore\(release\): prepare for"), skip=True),
    CommitParser(message=re.compile(r"^chore"), group="Miscellaneous Tasks"),
    CommitParser(body=re.compile(r".*security"), group="Security"),
    CommitParser(message=re.compile(r"^revert"), group="Revert"),
]

DEFAULT_GROUP_ORDER: list[str] = [
    "Breaking Changes",
    "Features",
    "Bug Fixes",
    "Security",
    "Performance",
    "Refactor",
    "Documentation",
    "Styling",
    "Testing",
    "Miscellaneous Tasks",
    "Revert",
]


# =============================================================================
# Templates
# =============================================================================

DEFAULT_HEADER = """\
# Changelog

All notable changes to this project will be documented in this file.
"""

DEFAULT_BODY = """\
{% if version -%}
## [{{ version | trim_start_matches("v") }}] - {{ timestamp | date }}
{%- else -%}
## [Unreleased]
{%- endif %}
{% for group in groups %}
### {{ group.display_name }}
{% for commit in group.commits %}
- {% if commit.scope %}*({{ commit.scope }})* {% endif %}\
{% if commit.breaking %}[**breaking**] {% endif %}\
{{ commit.message | upper_first }}
{%- endfor %}
{% endfor %}
"""

DEFAULT_FOOTER = """\
<!-- generated by changelog-py -->
"""


# =============================================================================
# Sections
# =============================================================================


class ChangelogConfig(_Frozen):
    """Template settings ([changelog] section)."""

    header: str | None = DEFAULT_HEADER
    body: str = DEFAULT_BODY
    footer: str | None = DEFAULT_FOOTER
    trim: bool = True
    link_format: str = "[{text}]({href})"
    output: Path | None = None


class GitConfig(_Frozen):
    """Commit extraction and classification ([git] section)."""

    conventional_commits: bool = True
    filter_unconventional: bool = True
    filter_commits: bool = False
    protect_breaking_commits: bool = False
    default_group: str = "Other"
    commit_preprocessors: list[Preprocessor] = Field(default_factory=list)
    commit_parsers: list[CommitParser] = Field(
        default_factory=lambda: list(DEFAULT_COMMIT_PARSERS)
    )
    link_parsers: list[LinkParser] = Field(default_factory=list)
    tag_pattern: re.Pattern[str] | None = None
    skip_tags: re.Pattern[str] | None = None
    ignore_tags: re.Pattern[str] | None = None
    order: SortOrder = SortOrder.TOPOLOGICAL
    sort_commits: Literal["newest", "oldest"] = "newest"
    limit_commits: int | None = Field(default=None, gt=0)
    include_paths: list[str] = Field(default_factory=list)
    exclude_paths: list[str] = Field(default_factory=list)


class ReleasesConfig(_Frozen):
    """Release grouping and filtering ([releases] section)."""

    group_order: list[str] = Field(default_factory=lambda: list(DEFAULT_GROUP_ORDER))
    group_names: dict[str, str] = Field(default_factory=dict)
    include_groups: list[str] | None = None
    exclude_groups: list[str] = Field(default_factory=list)
    breaking_group: str | None = None
    omit_empty_releases: bool = False
    link_omitted_releases: bool = False

    @model_validator(mode="after")
    def _check_group_filters(self) -> ReleasesConfig:
        if self.include_groups is not None:
            overlap = set(self.include_groups) & set(self.exclude_groups)
            if overlap:
                raise ValueError(
                    f"Groups both included and excluded: {', '.join(sorted(overlap))}"
                )
        return self


class GitHubConfig(_Frozen):
    """Optional remote enrichment ([github] section)."""

    enabled: bool = False
    owner: str | None = None
    repo: str | None = None
    token: str | None = None
    api_url: str = "https://api.github.com"
    timeout: float = Field(default=10.0, gt=0)
    max_concurrency: int = Field(default=8, gt=0)

    @property
    def slug(self) -> str | None:
        if self.owner and self.repo:
            return f"{self.owner}/{self.repo}"
        return None


class ChangelogPyConfig(_Frozen):
    """Root configuration."""

    changelog: ChangelogConfig = Field(default_factory=ChangelogConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    releases: ReleasesConfig = Field(default_factory=ReleasesConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
