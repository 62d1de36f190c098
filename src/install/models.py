"""Data models shared by the install engine."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from constants import Constants
from versioning.version import NuGetVersion


@dataclass(frozen=True)
class PackageDependency:
    """One declared dependency: id plus raw NuGet range text (None = any)."""
    id: str
    range_text: Optional[str] = None


@dataclass(frozen=True)
class DependencyGroup:
    """Dependencies declared for one target framework (None = any)."""
    target_framework: Optional[str] = None
    dependencies: Tuple[PackageDependency, ...] = ()


@dataclass
class PackageCandidate:
    """Metadata for one published version of a package, as returned by a feed."""
    id: str
    version: NuGetVersion
    dependency_groups: List[DependencyGroup] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    authors: Optional[str] = None
    owners: Optional[str] = None
    description: Optional[str] = None
    license_url: Optional[str] = None
    project_url: Optional[str] = None
    icon_url: Optional[str] = None
    published: Optional[str] = None
    require_license_acceptance: bool = False
    repository_name: Optional[str] = None
    repository_url: Optional[str] = None
    download_url: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        """Identity used for de-duplication: (lowercased id, normalized version)."""
        return (self.id.lower(), self.version.normalized.lower())

    @property
    def dependencies(self) -> List[PackageDependency]:
        """All declared dependencies across groups, first declaration per id."""
        seen = set()
        flat: List[PackageDependency] = []
        for group in self.dependency_groups:
            for dep in group.dependencies:
                if dep.id.lower() in seen:
                    continue
                seen.add(dep.id.lower())
                flat.append(dep)
        return flat

    def __str__(self) -> str:
        return f"{self.id} {self.version}"


@dataclass(frozen=True)
class Credential:
    """Username/password pair; the password never appears in repr()."""
    username: str
    password: str = field(default="", repr=False)

    def as_auth(self) -> Tuple[str, str]:
        return (self.username, self.password)


@dataclass(frozen=True)
class RepositoryEndpoint:
    """A configured package repository."""
    name: str
    url: str
    trusted: bool = False
    priority: int = Constants.DEFAULT_REPOSITORY_PRIORITY
    credential: Optional[Credential] = None


@dataclass(frozen=True)
class InstallOptions:
    """Switches that shape one install/update invocation."""
    prerelease: bool = False
    accept_license: bool = False
    quiet: bool = False
    reinstall: bool = False
    force: bool = False
    trust_repository: bool = False
    no_clobber: bool = False
    update: bool = False
    credential: Optional[Credential] = None
    max_download_workers: int = 1


class InstallPlan:
    """Ordered set of candidates keyed by (id, version).

    Adding a candidate whose key is already present is a no-op, so the plan
    never holds the same package version twice.
    """

    def __init__(self, candidates: Optional[List[PackageCandidate]] = None):
        self._items: "OrderedDict[Tuple[str, str], PackageCandidate]" = OrderedDict()
        for candidate in candidates or []:
            self.add(candidate)

    def add(self, candidate: Optional[PackageCandidate]) -> bool:
        """Append a candidate; returns False for None or duplicates."""
        if candidate is None or candidate.key in self._items:
            return False
        self._items[candidate.key] = candidate
        return True

    def remove(self, candidate: PackageCandidate) -> None:
        self._items.pop(candidate.key, None)

    def find(self, package_id: str) -> Optional[PackageCandidate]:
        """First candidate with this id (case-insensitive)."""
        wanted = package_id.lower()
        for candidate in self._items.values():
            if candidate.id.lower() == wanted:
                return candidate
        return None

    def __iter__(self) -> Iterator[PackageCandidate]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, candidate: object) -> bool:
        return isinstance(candidate, PackageCandidate) and candidate.key in self._items


@dataclass(frozen=True)
class InstalledPackage:
    """A package promoted into the permanent store."""
    id: str
    version: str
    kind: str
    repository: Optional[str]
    path: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "kind": self.kind,
            "repository": self.repository,
            "path": self.path,
        }


@dataclass
class StagingOutcome:
    """Result of one install_pkgs call against a single repository."""
    not_found: List[str] = field(default_factory=list)
    installed: List[InstalledPackage] = field(default_factory=list)
    already_satisfied: List[str] = field(default_factory=list)


@dataclass
class InstallResult:
    """Aggregate result across all repositories attempted."""
    installed: List[InstalledPackage] = field(default_factory=list)
    already_satisfied: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)
    repositories_tried: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.not_found

    def to_dict(self) -> Dict[str, Any]:
        return {
            "installed": [pkg.to_dict() for pkg in self.installed],
            "already_satisfied": list(self.already_satisfied),
            "not_found": list(self.not_found),
            "repositories_tried": list(self.repositories_tried),
        }
