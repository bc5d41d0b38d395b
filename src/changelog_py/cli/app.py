"""Click application for changelog-py.

Commands are thin wrappers: option parsing lives here, behaviour in
``changelog_py.cli.commands``.
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from changelog_py import __version__
from changelog_py.cli.commands.generate import GenerateOptions, run_generate
from changelog_py.cli.commands.init import run_init

console = Console()
err_console = Console(stderr=True)


def configure_logging(verbose: int) -> None:
    """Send log records to stderr through rich."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(__version__, prog_name="changelog-py")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v, -vv).")
def cli(verbose: int) -> None:
    """Generate changelogs from conventional commits."""
    configure_logging(verbose)


@cli.command()
@click.option("-r", "--repository", type=click.Path(file_okay=False), help="Repository path.")
@click.option("-c", "--config", type=click.Path(dir_okay=False), help="Configuration file.")
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Write to this file.")
@click.option(
    "-p", "--prepend", type=click.Path(dir_okay=False), help="Prepend to an existing changelog."
)
@click.option("-u", "--unreleased", is_flag=True, help="Only commits after the latest tag.")
@click.option("-l", "--latest", is_flag=True, help="Only the latest tagged release.")
@click.option("--current", is_flag=True, help="Only the release tagged at HEAD.")
@click.option("--range", "range_spec", metavar="A..B", help="Explicit commit range.")
@click.option("-t", "--tag", help="Version label for unreleased commits.")
@click.option("--date-order", is_flag=True, help="Order commits by date, not topology.")
@click.option(
    "-s", "--sort", type=click.Choice(["newest", "oldest"]), help="Commit order in releases."
)
@click.option("-b", "--body", help="Template for each release body.")
@click.option(
    "--strip", type=click.Choice(["header", "footer", "all"]), help="Drop header/footer."
)
@click.option("-x", "--context", is_flag=True, help="Print the template context as JSON.")
@click.option(
    "--with-commit", multiple=True, metavar="MESSAGE", help="Extra commit for the newest release."
)
@click.option("--github-repo", metavar="OWNER/REPO", help="Repository for GitHub enrichment.")
@click.option("--github-token", help="GitHub API token (default: $GITHUB_TOKEN).")
def generate(**kwargs: object) -> None:
    """Generate the changelog."""
    options = GenerateOptions(**kwargs)  # type: ignore[arg-type]
    if sum([options.unreleased, options.latest, options.current, bool(options.range_spec)]) > 1:
        raise click.UsageError(
            "--unreleased, --latest, --current and --range are mutually exclusive"
        )
    run_generate(options, console, err_console)


@cli.command()
@click.option("-d", "--directory", type=click.Path(file_okay=False), help="Target directory.")
@click.option("-f", "--force", is_flag=True, help="Overwrite an existing file.")
def init(directory: str | None, force: bool) -> None:
    """Write a starter changelog.toml."""
    run_init(directory, force, console, err_console)


def main() -> None:
    """Console script entry point."""
    cli()
