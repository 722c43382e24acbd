"""Version of the token VM."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class SemanticVersion:
    """A major.minor.patch version."""

    major: int
    minor: int
    patch: int

    def __post_init__(self) -> None:
        for part in (self.major, self.minor, self.patch):
            if part < 0:
                raise ValueError("version components must not be negative")

    def __str__(self) -> str:
        return f"v{self.major}.{self.minor}.{self.patch}"


VERSION = SemanticVersion(major=0, minor=0, patch=1)