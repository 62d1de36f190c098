"""NuGet version range notation.

Supported forms::

    1.0          minimum inclusive (1.0 <= x)
    [1.0]        exact (x == 1.0)
    [1.0,2.0)    1.0 <= x < 2.0
    (1.0,]       1.0 < x
    (,2.0]       x <= 2.0
    *            any version

Anything else raises ``ConstraintParseError``.
"""

from __future__ import annotations

from typing import Optional

from install.errors import ConstraintParseError
from .version import NuGetVersion


class VersionRange:
    """An interval over NuGet versions with inclusive/exclusive bounds."""

    __slots__ = ("min_version", "max_version", "include_min", "include_max", "raw")

    def __init__(
        self,
        min_version: Optional[NuGetVersion] = None,
        max_version: Optional[NuGetVersion] = None,
        include_min: bool = True,
        include_max: bool = False,
        raw: Optional[str] = None,
    ) -> None:
        self.min_version = min_version
        self.max_version = max_version
        self.include_min = include_min
        self.include_max = include_max
        self.raw = raw

    @classmethod
    def all(cls) -> "VersionRange":
        """Range matching every version."""
        return cls(raw="*")

    @classmethod
    def exact(cls, version: NuGetVersion) -> "VersionRange":
        """Single-point range: inclusive lower == inclusive upper."""
        return cls(version, version, True, True, raw=f"[{version}]")

    @classmethod
    def parse(cls, text: str) -> "VersionRange":
        """Parse NuGet range notation.

        Args:
            text: Range expression.

        Returns:
            VersionRange

        Raises:
            ConstraintParseError: On malformed syntax or an empty interval.
        """
        if text is None or not str(text).strip():
            raise ConstraintParseError("Version range is empty", constraint=text)
        spec = str(text).strip()

        if spec == "*":
            return cls.all()

        # Bare version means "minimum inclusive"
        if spec[0] not in "[(":
            if any(ch in spec for ch in "[](),"):
                raise ConstraintParseError(f"Malformed version range '{spec}'", constraint=spec)
            return cls(_parse_bound(spec, spec), None, True, False, raw=spec)

        if len(spec) < 2 or spec[-1] not in "])":
            raise ConstraintParseError(f"Unterminated version range '{spec}'", constraint=spec)

        include_min = spec[0] == "["
        include_max = spec[-1] == "]"
        inner = spec[1:-1].strip()

        if "," not in inner:
            # Only [x] is meaningful without a comma
            if not (include_min and include_max) or not inner:
                raise ConstraintParseError(f"Malformed version range '{spec}'", constraint=spec)
            version = _parse_bound(inner, spec)
            return cls(version, version, True, True, raw=spec)

        parts = inner.split(",")
        if len(parts) != 2:
            raise ConstraintParseError(f"Too many bounds in version range '{spec}'", constraint=spec)
        lower_text, upper_text = parts[0].strip(), parts[1].strip()
        if not lower_text and not upper_text:
            raise ConstraintParseError(f"Version range '{spec}' has no bounds", constraint=spec)

        lower = _parse_bound(lower_text, spec) if lower_text else None
        upper = _parse_bound(upper_text, spec) if upper_text else None

        if lower is not None and upper is not None:
            if lower > upper:
                raise ConstraintParseError(
                    f"Version range '{spec}' has minimum above maximum", constraint=spec
                )
            if lower == upper and not (include_min and include_max):
                raise ConstraintParseError(f"Version range '{spec}' is empty", constraint=spec)

        return cls(lower, upper, include_min, include_max, raw=spec)

    @property
    def is_exact(self) -> bool:
        return (
            self.min_version is not None
            and self.min_version == self.max_version
            and self.include_min
            and self.include_max
        )

    def satisfies(self, version: Optional[NuGetVersion]) -> bool:
        """True when ``version`` lies inside the interval. None never satisfies."""
        if version is None:
            return False
        if self.min_version is not None:
            if self.include_min and version < self.min_version:
                return False
            if not self.include_min and version <= self.min_version:
                return False
        if self.max_version is not None:
            if self.include_max and version > self.max_version:
                return False
            if not self.include_max and version >= self.max_version:
                return False
        return True

    def __str__(self) -> str:
        if self.min_version is None and self.max_version is None:
            return "*"
        if self.is_exact:
            return f"[{self.min_version}]"
        left = "[" if self.include_min else "("
        right = "]" if self.include_max else ")"
        lower = str(self.min_version) if self.min_version is not None else ""
        upper = str(self.max_version) if self.max_version is not None else ""
        return f"{left}{lower}, {upper}{right}"

    def __repr__(self) -> str:
        return f"VersionRange('{self}')"


def _parse_bound(text: str, spec: str) -> NuGetVersion:
    try:
        return NuGetVersion.parse(text)
    except ValueError as exc:
        raise ConstraintParseError(
            f"Invalid version '{text}' in range '{spec}'", constraint=spec
        ) from exc
