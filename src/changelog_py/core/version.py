"""Semantic version parsing for release labels."""

from __future__ import annotations

import re
from dataclasses import dataclass

# semver.org 2.0.0, with an optional non-numeric tag prefix ("v", "release-")
SEMVER_PATTERN: re.Pattern[str] = re.compile(
    r"^(?P<prefix>[^\d]*)"
    r"(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


@dataclass(frozen=True)
class SemVer:
    """A semantic version taken from a tag name."""

    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None

    def __str__(self) -> str:
        version = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            version += f"-{self.prerelease}"
        if self.build:
            version += f"+{self.build}"
        return version

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    def as_dict(self) -> dict[str, object]:
        return {
            "major": self.major,
            "minor": self.minor,
            "patch": self.patch,
            "prerelease": self.prerelease,
            "build": self.build,
            "string": str(self),
        }


def parse_semver(label: str | None) -> SemVer | None:
    """Parse a tag name such as ``v1.2.3-rc.1``.

    Returns None for labels that are not semantic versions.
    """
    if not label:
        return None
    match = SEMVER_PATTERN.match(label.strip())
    if not match:
        return None
    return SemVer(
        major=int(match["major"]),
        minor=int(match["minor"]),
        patch=int(match["patch"]),
        prerelease=match["prerelease"],
        build=match["build"],
    )
