"""Configuration loading.

Configuration is read from, in order of preference:

1. An explicit file given by the caller (``--config``)
2. A ``changelog.toml`` in the project directory or one of its parents
3. The ``[tool.changelog-py]`` table of the nearest ``pyproject.toml``

When none exists the built-in defaults are used.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from changelog_py.config.models import ChangelogPyConfig
from changelog_py.exceptions import ConfigNotFoundError, ConfigValidationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "changelog.toml"
PYPROJECT_FILENAME = "pyproject.toml"
TOOL_KEY = "changelog-py"


def load_toml(path: Path) -> dict[str, Any]:
    """Read a TOML file.

    Raises:
        ConfigNotFoundError: If the file does not exist
        ConfigValidationError: If the file is not valid TOML
    """
    if not path.is_file():
        raise ConfigNotFoundError(f"Configuration file not found: {path}")
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigValidationError(f"Invalid TOML in {path}: {e}") from e


def _search_upwards(start: Path, filename: str) -> Path | None:
    current = start.resolve()
    for directory in (current, *current.parents):
        candidate = directory / filename
        if candidate.is_file():
            return candidate
    return None


def find_pyproject_toml(start: Path | None = None) -> Path:
    """Find the nearest pyproject.toml at or above ``start``.

    Raises:
        ConfigNotFoundError: If no pyproject.toml exists
    """
    start = start or Path.cwd()
    found = _search_upwards(start, PYPROJECT_FILENAME)
    if found is None:
        raise ConfigNotFoundError(f"No {PYPROJECT_FILENAME} found in {start} or its parents")
    return found


def find_config_file(start: Path | None = None) -> Path | None:
    """Find the configuration file that applies to ``start``.

    A dedicated ``changelog.toml`` wins over ``pyproject.toml``; a
    pyproject.toml only counts when it has a ``[tool.changelog-py]``
    table.
    """
    start = start or Path.cwd()
    dedicated = _search_upwards(start, CONFIG_FILENAME)
    if dedicated is not None:
        return dedicated
    pyproject = _search_upwards(start, PYPROJECT_FILENAME)
    if pyproject is not None and extract_tool_config(load_toml(pyproject)):
        return pyproject
    return None


def extract_tool_config(pyproject: dict[str, Any]) -> dict[str, Any]:
    """Return the ``[tool.changelog-py]`` table, or an empty dict."""
    return pyproject.get("tool", {}).get(TOOL_KEY, {})


def parse_config(data: dict[str, Any], source: str = "<config>") -> ChangelogPyConfig:
    """Validate raw configuration data.

    Raises:
        ConfigValidationError: If validation fails
    """
    try:
        return ChangelogPyConfig.model_validate(data)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigValidationError(f"Invalid configuration in {source}: {details}") from e


def load_config(
    project_path: Path | None = None,
    config_file: Path | None = None,
) -> ChangelogPyConfig:
    """Load configuration for a project.

    Args:
        project_path: Directory to search from (defaults to cwd)
        config_file: Explicit configuration file, must exist

    Returns:
        Validated configuration

    Raises:
        ConfigNotFoundError: If ``config_file`` does not exist
        ConfigValidationError: If the configuration is invalid
    """
    path = config_file or find_config_file(project_path)
    if path is None:
        logger.info("No configuration found, using defaults")
        return ChangelogPyConfig()

    data = load_toml(path)
    if path.name == PYPROJECT_FILENAME:
        data = extract_tool_config(data)
    logger.debug("Loaded configuration from %s", path)
    return parse_config(data, source=str(path))


def _project_table(project_path: Path | None) -> dict[str, Any]:
    return load_toml(find_pyproject_toml(project_path)).get("project", {})


def get_project_name(project_path: Path | None = None) -> str:
    """Get ``[project].name`` from pyproject.toml.

    Raises:
        ConfigValidationError: If the name is missing
    """
    name = _project_table(project_path).get("name")
    if not name:
        raise ConfigValidationError("pyproject.toml has no [project].name")
    return name


def get_project_version(project_path: Path | None = None) -> str:
    """Get ``[project].version`` from pyproject.toml.

    Raises:
        ConfigValidationError: If the version is missing
    """
    version = _project_table(project_path).get("version")
    if not version:
        raise ConfigValidationError("pyproject.toml has no [project].version")
    return version
