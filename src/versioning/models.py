"""Data models for versioning and package resolution."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .ranges import VersionRange
from .version import NuGetVersion


class ResolutionMode(Enum):
    """Resolution strategy derived from the requested version."""
    EXACT = "exact"
    RANGE = "range"
    LATEST = "latest"


@dataclass(frozen=True)
class VersionConstraint:
    """Normalized representation of a version constraint."""
    raw: Optional[str]
    mode: ResolutionMode
    range: VersionRange = field(default_factory=VersionRange.all)

    @classmethod
    def unconstrained(cls) -> "VersionConstraint":
        return cls(raw=None, mode=ResolutionMode.LATEST)

    @classmethod
    def exact(cls, version: NuGetVersion) -> "VersionConstraint":
        return cls(raw=str(version), mode=ResolutionMode.EXACT, range=VersionRange.exact(version))

    @property
    def is_unconstrained(self) -> bool:
        return self.mode == ResolutionMode.LATEST

    @property
    def pins_prerelease(self) -> bool:
        """True for an exact constraint naming a prerelease version."""
        return (
            self.mode == ResolutionMode.EXACT
            and self.range.min_version is not None
            and self.range.min_version.is_prerelease
        )

    def satisfies(self, version: Optional[NuGetVersion]) -> bool:
        """Predicate over versions; unparseable (None) versions never satisfy."""
        if version is None:
            return False
        if self.is_unconstrained:
            return True
        return self.range.satisfies(version)

    def __str__(self) -> str:
        return self.raw if self.raw else "latest"


@dataclass(frozen=True)
class PackageRequest:
    """Resolution input across sources."""
    name: str
    constraint: VersionConstraint = field(default_factory=VersionConstraint.unconstrained)
    prerelease: bool = False
    source: str = "cli"  # "cli" | "manifest"
