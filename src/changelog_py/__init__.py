"""changelog-py: changelogs from conventional commits.

Walks git history between tags, classifies commits with ordered
rules, groups them into releases and renders them through a
Jinja2 template.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
