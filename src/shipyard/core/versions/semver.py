"""Semantic version values."""

import re
from dataclasses import dataclass
from typing import Literal

from shipyard.core.errors import InvalidVersion

IncrementKind = Literal["major", "minor", "patch"]
INCREMENT_KINDS: tuple[IncrementKind, ...] = ("major", "minor", "patch")

_SEMVER_RE = re.compile(r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")


@dataclass(frozen=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int

    @staticmethod
    def parse(text: str) -> "SemVer":
        """Parse ``MAJOR.MINOR.PATCH`` (a leading ``v`` is tolerated).

        Raises:
            InvalidVersion: If ``text`` is not a plain three-part version
        """
        match = _SEMVER_RE.match(text.strip())
        if match is None:
            raise InvalidVersion(f"Invalid version '{text}': expected MAJOR.MINOR.PATCH")
        major, minor, patch = (int(part) for part in match.groups())
        return SemVer(major=major, minor=minor, patch=patch)

    def bump(self, kind: IncrementKind) -> "SemVer":
        if kind == "major":
            return SemVer(self.major + 1, 0, 0)
        if kind == "minor":
            return SemVer(self.major, self.minor + 1, 0)
        if kind == "patch":
            return SemVer(self.major, self.minor, self.patch + 1)
        raise InvalidVersion(f"Unknown increment kind '{kind}' (expected major, minor or patch)")

    @property
    def line(self) -> tuple[int, int]:
        """The (major, minor) pair that must match across compatible components."""
        return (self.major, self.minor)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"
