"""NuGet-style version numbers.

NuGet versions allow one to four numeric parts plus an optional semver
prerelease label and build metadata (``1.2``, ``1.2.3.4``, ``2.0.0-preview.1``,
``1.0.0+sha.abc``). Ordering compares the numeric parts first and then the
prerelease labels using semantic-version precedence, so a prerelease always
sorts below its release. Labels compare case-insensitively and metadata is
ignored for equality and ordering.
"""

from __future__ import annotations

import functools
import re
from typing import Optional, Tuple

import semantic_version

_VERSION_RE = re.compile(
    r"^(?P<major>\d+)"
    r"(?:\.(?P<minor>\d+))?"
    r"(?:\.(?P<patch>\d+))?"
    r"(?:\.(?P<revision>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<metadata>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


def _precedence_labels(labels: Tuple[str, ...]) -> Tuple[str, ...]:
    """Labels as compared: lowercased, numeric parts without leading zeros ('beta.01' == 'beta.1')."""
    return tuple(str(int(label)) if label.isdigit() else label.lower() for label in labels)


@functools.total_ordering
class NuGetVersion:
    """A parsed, comparable NuGet version."""

    __slots__ = ("major", "minor", "patch", "revision", "release_labels", "metadata", "original", "_precedence")

    def __init__(
        self,
        major: int,
        minor: int = 0,
        patch: int = 0,
        revision: int = 0,
        release_labels: Tuple[str, ...] = (),
        metadata: Optional[str] = None,
        original: Optional[str] = None,
    ) -> None:
        self.major = major
        self.minor = minor
        self.patch = patch
        self.revision = revision
        self.release_labels = tuple(release_labels)
        self.metadata = metadata
        self.original = original
        # semantic_version only supplies the prerelease precedence rules here;
        # the numeric parts are compared separately because NuGet has four.
        self._precedence = semantic_version.Version(
            major=0,
            minor=0,
            patch=0,
            prerelease=_precedence_labels(self.release_labels),
        )

    @classmethod
    def parse(cls, text: str) -> "NuGetVersion":
        """Parse a version string, raising ValueError when it is malformed."""
        if text is None:
            raise ValueError("Version string is empty")
        raw = str(text).strip()
        match = _VERSION_RE.match(raw)
        if not match:
            raise ValueError(f"Invalid version string '{text}'")
        labels = tuple(match.group("prerelease").split(".")) if match.group("prerelease") else ()
        return cls(
            int(match.group("major")),
            int(match.group("minor") or 0),
            int(match.group("patch") or 0),
            int(match.group("revision") or 0),
            labels,
            match.group("metadata"),
            raw,
        )

    @property
    def release(self) -> Tuple[int, int, int, int]:
        """Numeric parts as a 4-tuple."""
        return (self.major, self.minor, self.patch, self.revision)

    @property
    def is_prerelease(self) -> bool:
        return bool(self.release_labels)

    @property
    def release_label(self) -> str:
        return ".".join(self.release_labels)

    @property
    def folder_name(self) -> str:
        """Numeric part only, as used for module version directories."""
        base = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            base = f"{base}.{self.revision}"
        return base

    @property
    def normalized(self) -> str:
        """Normalized string without build metadata."""
        if self.is_prerelease:
            return f"{self.folder_name}-{self.release_label}"
        return self.folder_name

    def _key(self) -> Tuple[Tuple[int, int, int, int], Tuple[str, ...]]:
        return (self.release, _precedence_labels(self.release_labels))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "NuGetVersion") -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        if self.release != other.release:
            return self.release < other.release
        return self._precedence < other._precedence

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.normalized

    def __repr__(self) -> str:
        return f"NuGetVersion('{self.normalized}')"


def version_from_str(text: Optional[str]) -> Optional[NuGetVersion]:
    """Safely parse a version string; None when it is missing or malformed."""
    if not text:
        return None
    try:
        return NuGetVersion.parse(text)
    except ValueError:
        return None
