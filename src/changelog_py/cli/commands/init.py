"""Implementation of the 'init' command.

Writes a starter ``changelog.toml`` with the default rules and
template spelled out, ready to be edited.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from changelog_py.config.loader import CONFIG_FILENAME

if TYPE_CHECKING:
    from rich.console import Console

DEFAULT_CONFIG_TOML = """\
# changelog-py configuration

[changelog]
header = '''
# Changelog

All notable changes to this project will be documented in this file.
'''
body = '''
{% if version -%}
## [{{ version | trim_start_matches("v") }}] - {{ timestamp | date }}
{%- else -%}
## [Unreleased]
{%- endif %}
{% for group in groups %}
### {{ group.display_name }}
{% for commit in group.commits %}
- {% if commit.scope %}*({{ commit.scope }})* {% endif %}{% if commit.breaking %}[**breaking**] {% endif %}{{ commit.message | upper_first }}
{%- endfor %}
{% endfor %}
'''
trim = true

[git]
conventional_commits = true
filter_unconventional = true
filter_commits = false
protect_breaking_commits = false
order = "topological"
sort_commits = "newest"
tag_pattern = "^v?[0-9]+\\\\.[0-9]+\\\\.[0-9]+"
commit_preprocessors = [
    # { pattern = '\\((\\w+\\s)?#([0-9]+)\\)', replace = "" },
]
commit_parsers = [
    { message = "^feat", group = "Features" },
    { message = "^fix", group = "Bug Fixes" },
    { message = "^doc", group = "Documentation" },
    { message = "^perf", group = "Performance" },
    { message = "^refactor", group = "Refactor" },
    { message = "^style", group = "Styling" },
    { message = "^test", group = "Testing" },
    { message = "^chore\\\\(release\\\\): prepare for", skip = true },
    { message = "^chore", group = "Miscellaneous Tasks" },
    { body = ".*security", group = "Security" },
    { message = "^revert", group = "Revert" },
]
link_parsers = [
    # { pattern = "#(\\\\d+)", href = "https://github.com/OWNER/REPO/issues/$1" },
]

[releases]
breaking_group = "Breaking Changes"
omit_empty_releases = false

[github]
enabled = false
"""


def run_init(path: str | None, force: bool, console: Console, err_console: Console) -> None:
    """Run the init command.

    Args:
        path: Directory to write the configuration into
        force: Overwrite an existing file
        console: Console for standard output
        err_console: Console for error output
    """
    target = (Path(path) if path else Path.cwd()) / CONFIG_FILENAME
    if target.exists() and not force:
        err_console.print(
            f"[red]Error:[/] {target} already exists. Use [cyan]--force[/] to overwrite it."
        )
        raise SystemExit(1)

    target.write_text(DEFAULT_CONFIG_TOML, encoding="utf-8")
    console.print(f"  [green]✓[/] Wrote {target}")
