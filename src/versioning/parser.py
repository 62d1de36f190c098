"""Version constraint parsing utilities for package requests."""

from typing import Optional

from .models import PackageRequest, ResolutionMode, VersionConstraint
from .ranges import VersionRange
from .version import NuGetVersion


def parse_constraint(spec: Optional[str]) -> VersionConstraint:
    """Parse a user-supplied version string into a VersionConstraint.

    A plain version is an exact pin (unlike dependency ranges, where a plain
    version is a minimum). Empty or ``latest`` means unconstrained; anything
    else must be NuGet range notation.

    Raises:
        ConstraintParseError: When the text is neither a version nor a range.
    """
    if spec is None or spec.strip() == '' or spec.strip().lower() == 'latest':
        return VersionConstraint.unconstrained()

    text = spec.strip()
    try:
        version = NuGetVersion.parse(text)
    except ValueError:
        version = None
    if version is not None:
        return VersionConstraint(raw=text, mode=ResolutionMode.EXACT, range=VersionRange.exact(version))

    version_range = VersionRange.parse(text)
    if version_range.is_exact:
        return VersionConstraint(raw=text, mode=ResolutionMode.EXACT, range=version_range)
    if version_range.min_version is None and version_range.max_version is None:
        return VersionConstraint(raw=text, mode=ResolutionMode.LATEST, range=version_range)
    return VersionConstraint(raw=text, mode=ResolutionMode.RANGE, range=version_range)


def parse_request(
    name: str,
    version: Optional[str] = None,
    prerelease: bool = False,
    source: str = "cli",
) -> PackageRequest:
    """Construct a PackageRequest from a name and an optional version string."""
    return PackageRequest(
        name=name.strip(),
        constraint=parse_constraint(version),
        prerelease=prerelease,
        source=source,
    )
