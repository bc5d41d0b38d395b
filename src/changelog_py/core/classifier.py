"""Rule-based commit classification.

Rules are evaluated in declared order and the first match wins.
Rule lists are user-authored, so that order is the whole contract:
there is no scoring or specificity between rules.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from changelog_py.config.models import CommitParser, GitConfig
    from changelog_py.core.commits import ParsedCommit

logger = logging.getLogger(__name__)


def match_rule(commit: ParsedCommit, rule: CommitParser) -> bool:
    """Check a single rule against a commit's message and body."""
    if rule.message is not None and rule.message.search(commit.message):
        return True
    body = commit.body
    return rule.body is not None and body is not None and bool(rule.body.search(body))


def find_rule(commit: ParsedCommit, rules: Sequence[CommitParser]) -> CommitParser | None:
    """Return the first rule matching the commit, if any."""
    for rule in rules:
        if match_rule(commit, rule):
            return rule
    return None


def classify(
    commit: ParsedCommit,
    rules: Sequence[CommitParser],
    *,
    filter_unconventional: bool = True,
    filter_commits: bool = False,
    protect_breaking: bool = False,
    default_group: str = "Other",
) -> ParsedCommit:
    """Assign a group (or the skip flag) to a commit.

    Args:
        commit: Parsed commit, modified in place
        rules: Ordered classification rules
        filter_unconventional: Skip commits that did not parse
        filter_commits: Skip commits that match no rule
        protect_breaking: Never skip breaking commits through a rule
        default_group: Group for unparsed commits that match no rule

    Returns:
        The same commit, for chaining
    """
    if filter_unconventional and not commit.is_conventional:
        commit.skip = True
        return commit

    rule = find_rule(commit, rules)
    if rule is None:
        if filter_commits:
            commit.skip = True
        else:
            commit.group = commit.commit_type or default_group
        return commit

    if rule.skip and not (protect_breaking and commit.is_breaking):
        commit.skip = True
        return commit

    # Protected breaking commits hit by a group-less skip rule fall back to their type
    commit.group = rule.group or commit.commit_type or default_group
    commit.scope_override = rule.scope
    commit.default_scope = rule.default_scope
    return commit


def classify_commits(commits: Iterable[ParsedCommit], config: GitConfig) -> list[ParsedCommit]:
    """Classify commits with the configured rules, preserving order."""
    classified = [
        classify(
            commit,
            config.commit_parsers,
            filter_unconventional=config.conventional_commits and config.filter_unconventional,
            filter_commits=config.filter_commits,
            protect_breaking=config.protect_breaking_commits,
            default_group=config.default_group,
        )
        for commit in commits
    ]
    skipped = sum(1 for c in classified if c.skip)
    logger.debug("Classified %d commits, %d skipped", len(classified), skipped)
    return classified
