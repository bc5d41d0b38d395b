"""Jinja2 template wrapper.

Templates are compiled with ``StrictUndefined``: referencing a name
that is not in the context is a render failure, never an empty string.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError

from changelog_py.core.release import strip_group_prefix
from changelog_py.exceptions import RenderError


def upper_first(value: str) -> str:
    """Uppercase the first character only."""
    return value[:1].upper() + value[1:]


def trim_start_matches(value: str, prefix: str) -> str:
    """Remove every leading repetition of ``prefix``."""
    if not prefix:
        return value
    while value.startswith(prefix):
        value = value[len(prefix) :]
    return value


def format_date(value: int | float | datetime, fmt: str = "%Y-%m-%d") -> str:
    """Format a datetime or a unix timestamp (UTC)."""
    if not isinstance(value, datetime):
        value = datetime.fromtimestamp(value, tz=UTC)
    return value.strftime(fmt)


def _environment() -> Environment:
    env = Environment(
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["upper_first"] = upper_first
    env.filters["trim_start_matches"] = trim_start_matches
    env.filters["strip_group_prefix"] = strip_group_prefix
    env.filters["date"] = format_date
    return env


class Template:
    """A compiled changelog template."""

    def __init__(self, source: str, name: str = "template") -> None:
        self.name = name
        try:
            self._template = _environment().from_string(source)
        except TemplateSyntaxError as e:
            raise RenderError(f"Failed to parse {name} (line {e.lineno}): {e.message}") from e

    def render(self, context: dict[str, Any]) -> str:
        """Render against a context.

        Raises:
            RenderError: On undefined variables or any template failure
        """
        try:
            return self._template.render(context)
        except Exception as e:
            # Filters and expressions raise plain Python errors
            raise RenderError(f"Failed to render {self.name}: {e}") from e
