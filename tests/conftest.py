"""Shared fixtures: an in-memory feed, a .nupkg builder and install roots."""

import os
import zipfile
from typing import Dict, List, Optional

import pytest

from install.models import DependencyGroup, PackageCandidate, PackageDependency, RepositoryEndpoint
from install.paths import InstallPaths
from registry.feed import FeedClient
from versioning.version import NuGetVersion


class FakeFeed(FeedClient):
    """Feed serving candidates registered with ``add``; records every call."""

    def __init__(self, repository: RepositoryEndpoint):
        super().__init__(repository)
        self.packages: Dict[tuple, tuple] = {}
        self.queries: List[str] = []
        self.downloads: List[str] = []

    def add(self, package_id, version, dependencies=(), tags=(), files=None, **fields) -> PackageCandidate:
        deps = tuple(PackageDependency(dep_id, dep_range) for dep_id, dep_range in dependencies)
        candidate = PackageCandidate(
            id=package_id,
            version=NuGetVersion.parse(version),
            dependency_groups=[DependencyGroup(None, deps)] if deps else [],
            tags=list(tags),
            repository_name=self.repository.name,
            repository_url=self.repository.url,
            **fields,
        )
        if files is None:
            files = {f"{package_id}.psd1": f"@{{ ModuleVersion = '{candidate.version.folder_name}' }}\n"}
        self.packages[candidate.key] = (candidate, files)
        return candidate

    def query_versions(self, package_id, include_prerelease, include_dependency_info_only=False, cancel_token=None):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(package_id)
        self.queries.append(package_id)
        found = [
            candidate
            for candidate, _ in self.packages.values()
            if candidate.id.lower() == package_id.lower()
            and (include_prerelease or not candidate.version.is_prerelease)
        ]
        return sorted(found, key=lambda c: c.version, reverse=True)

    def download(self, candidate, destination_dir, cancel_token=None):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(candidate.id)
        self.downloads.append(f"{candidate.id} {candidate.version}")
        _, files = self.packages[candidate.key]
        target = self.extraction_dir(candidate, destination_dir)
        os.makedirs(target, exist_ok=True)
        for name, content in files.items():
            path = os.path.join(target, name)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as handle:
                handle.write(content)
        return target


def build_nuspec(package_id, version, dependencies=(), tags=(), require_license=False, description="Test package"):
    deps = "".join(
        f'<dependency id="{dep_id}"' + (f' version="{dep_range}"' if dep_range else "") + " />"
        for dep_id, dep_range in dependencies
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<package xmlns="http://schemas.microsoft.com/packaging/2011/08/nuspec.xsd">'
        "<metadata>"
        f"<id>{package_id}</id>"
        f"<version>{version}</version>"
        "<authors>Test Author</authors>"
        f"<description>{description}</description>"
        f"<requireLicenseAcceptance>{'true' if require_license else 'false'}</requireLicenseAcceptance>"
        f"<tags>{' '.join(tags)}</tags>"
        f"<dependencies>{deps}</dependencies>"
        "</metadata>"
        "</package>"
    )


@pytest.fixture
def make_nupkg():
    """Factory writing a .nupkg with a nuspec, OPC metadata and payload files."""

    def _make(directory, package_id, version, dependencies=(), tags=(), files=None, require_license=False):
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(str(directory), f"{package_id}.{version}.nupkg")
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr(f"{package_id}.nuspec", build_nuspec(package_id, version, dependencies, tags, require_license))
            archive.writestr("[Content_Types].xml", "<Types />")
            archive.writestr("_rels/.rels", "<Relationships />")
            archive.writestr("package/services/metadata/core-properties/x.psmdcp", "<coreProperties />")
            payload = files if files is not None else {f"{package_id}.psd1": "@{}\n"}
            for name, content in payload.items():
                archive.writestr(name, content)
        return path

    return _make


@pytest.fixture
def repository():
    return RepositoryEndpoint(name="Test", url="https://feed.example.test/api/v2", trusted=True)


@pytest.fixture
def fake_feed(repository):
    return FakeFeed(repository)


@pytest.fixture
def feed_class():
    return FakeFeed


@pytest.fixture
def install_paths(tmp_path):
    return InstallPaths(root=str(tmp_path / "store"))


def install_module_on_disk(paths: InstallPaths, package_id: str, version: str, descriptor: Optional[str] = None):
    """Create ``<modules>/<id>/<version>/`` as if the package had been installed."""
    target = os.path.join(paths.modules_dir, package_id, version)
    os.makedirs(target, exist_ok=True)
    with open(os.path.join(target, f"{package_id}.psd1"), "w", encoding="utf-8") as handle:
        handle.write("@{}\n")
    if descriptor is not None:
        with open(os.path.join(target, "PSGetModuleInfo.xml"), "w", encoding="utf-8") as handle:
            handle.write(descriptor)
    return target


@pytest.fixture
def installed_module():
    return install_module_on_disk
