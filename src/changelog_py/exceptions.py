"""Exception hierarchy for changelog-py.

Only pipeline-level failures are raised. Per-commit conditions
(unparsable messages, skipped commits) are recorded on the commit
itself and never surface as exceptions.
"""

from __future__ import annotations


class ChangelogPyError(Exception):
    """Base class for all changelog-py errors."""


# =============================================================================
# Configuration
# =============================================================================


class ConfigError(ChangelogPyError):
    """Configuration could not be loaded."""


class ConfigNotFoundError(ConfigError):
    """A configuration file was requested but does not exist."""


class ConfigValidationError(ConfigError):
    """Configuration content is invalid (bad types, malformed patterns)."""


# =============================================================================
# Version control
# =============================================================================


class GitError(ChangelogPyError):
    """A git command failed."""

    def __init__(self, message: str, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        if self.stderr:
            return f"{base}: {self.stderr.strip()}"
        return base


class ReferenceResolutionError(GitError):
    """A ref, tag or commit id does not resolve to a commit."""


# =============================================================================
# Changelog generation
# =============================================================================


class ChangelogError(ChangelogPyError):
    """Changelog generation failed."""


class RenderError(ChangelogError):
    """The template failed to parse or to render."""


class EnrichmentError(ChangelogPyError):
    """Remote metadata could not be fetched.

    Never fatal: callers log it and render without remote data.
    """
