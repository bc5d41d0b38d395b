"""Implementation of the 'generate' command.

The generate command renders the changelog for a range of history
and writes it to stdout, a file, or the top of an existing file.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from changelog_py.config import SortOrder, load_config
from changelog_py.config.loader import get_project_name, get_project_version
from changelog_py.core.changelog import (
    collect_releases,
    generate_changelog,
    make_renderer,
    prepend_changelog,
    resolve_range,
)
from changelog_py.core.history import HistoryWalker
from changelog_py.exceptions import ChangelogPyError, ConfigError, GitError
from changelog_py.remote.github import create_enrichment
from changelog_py.vcs import GitRepository

if TYPE_CHECKING:
    from rich.console import Console

    from changelog_py.config.models import ChangelogPyConfig
    from changelog_py.remote.github import EnrichmentTask


@dataclass(frozen=True)
class GenerateOptions:
    """Command line options of ``generate``."""

    repository: str | None = None
    config: str | None = None
    output: str | None = None
    prepend: str | None = None
    unreleased: bool = False
    latest: bool = False
    current: bool = False
    range_spec: str | None = None
    tag: str | None = None
    date_order: bool = False
    sort: str | None = None
    body: str | None = None
    strip: str | None = None
    context: bool = False
    with_commit: tuple[str, ...] = field(default=())
    github_repo: str | None = None
    github_token: str | None = None


def apply_overrides(config: ChangelogPyConfig, options: GenerateOptions) -> ChangelogPyConfig:
    """Apply command line overrides to the loaded configuration."""
    changelog: dict[str, Any] = {}
    if options.body is not None:
        changelog["body"] = options.body
    if options.strip in ("header", "all"):
        changelog["header"] = None
    if options.strip in ("footer", "all") or options.prepend:
        changelog["footer"] = None

    git: dict[str, Any] = {}
    if options.sort is not None:
        git["sort_commits"] = options.sort
    if options.date_order:
        git["order"] = SortOrder.DATE

    return config.model_copy(
        update={
            "changelog": config.changelog.model_copy(update=changelog),
            "git": config.git.model_copy(update=git),
        }
    )


def write_atomic(path: Path, content: str) -> None:
    """Write a file so readers never observe partial content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _metadata(project_path: Path, repo: GitRepository, github_repo: str | None) -> dict[str, Any]:
    try:
        name = get_project_name(project_path)
    except ConfigError:
        name = project_path.resolve().name
    try:
        version = get_project_version(project_path)
    except ConfigError:
        version = None
    return {
        "name": name,
        "version": version,
        "path": str(repo.path.resolve()),
        "remote_url": repo.remote_url(),
        "github": github_repo or repo.github_slug(),
    }


def _enrichment(
    config: ChangelogPyConfig,
    repo: GitRepository,
    options: GenerateOptions,
) -> EnrichmentTask | None:
    if not (config.github.enabled or options.github_repo or options.github_token):
        return None
    slug = options.github_repo or config.github.slug or repo.github_slug()
    return create_enrichment(config.github, repo=slug, token=options.github_token)


def run_generate(options: GenerateOptions, console: Console, err_console: Console) -> None:
    """Run the generate command.

    Args:
        options: Parsed command line options
        console: Console for standard output
        err_console: Console for status and error output
    """
    project_path = Path(options.repository) if options.repository else Path.cwd()

    # Load configuration
    try:
        config = load_config(
            project_path,
            Path(options.config) if options.config else None,
        )
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/] {e}")
        raise SystemExit(1) from e
    config = apply_overrides(config, options)

    if options.prepend and not (
        options.unreleased or options.latest or options.current or options.range_spec
    ):
        err_console.print(
            "[red]Error:[/] --prepend needs one of [cyan]--unreleased[/], "
            "[cyan]--latest[/], [cyan]--current[/] or [cyan]--range[/]"
        )
        raise SystemExit(1)

    # Initialize git repository
    try:
        repo = GitRepository(project_path)
    except GitError as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise SystemExit(1) from e

    try:
        walker = HistoryWalker.from_config(repo, config.git)
        start, end = resolve_range(
            walker,
            unreleased=options.unreleased,
            latest=options.latest,
            current=options.current,
            range_spec=options.range_spec,
        )
        metadata = _metadata(project_path, repo, options.github_repo)
        enrichment = _enrichment(config, repo, options)

        if options.context:
            releases = collect_releases(
                repo,
                config,
                start=start,
                end=end,
                tag=options.tag,
                extra_messages=options.with_commit,
                enrichment=enrichment,
            )
            renderer = make_renderer(config, enrichment=enrichment, metadata=metadata)
            content = json.dumps(renderer.context(releases), indent=2, default=str) + "\n"
        else:
            content = generate_changelog(
                repo,
                config,
                start=start,
                end=end,
                tag=options.tag,
                extra_messages=options.with_commit,
                metadata=metadata,
                enrichment=enrichment,
            )
    except ChangelogPyError as e:
        err_console.print(f"[red]Error generating changelog:[/] {e}")
        raise SystemExit(1) from e

    # Write output
    if options.prepend:
        target = Path(options.prepend)
        existing = target.read_text(encoding="utf-8") if target.exists() else ""
        write_atomic(target, prepend_changelog(content, existing, config.changelog.header))
        err_console.print(f"  [green]✓[/] Prepended to {target}")
    elif options.output or config.changelog.output:
        target = Path(options.output) if options.output else project_path / config.changelog.output
        write_atomic(target, content)
        err_console.print(f"  [green]✓[/] Wrote {target}")
    else:
        console.out(content, end="", highlight=False)
