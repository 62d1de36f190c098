"""Reading and extracting .nupkg archives.

A .nupkg is a zip file with a ``<id>.nuspec`` manifest at its root plus OPC
packaging metadata. Extraction keeps the payload only and rejects entries
that would land outside the target directory.
"""

from __future__ import annotations

import logging
import os
import shutil
import urllib.parse
import zipfile
from typing import Dict, List, Optional
from xml.etree import ElementTree as ET

from common.logging_utils import extra_context, is_debug_enabled
from install.errors import InstallError
from install.models import DependencyGroup, PackageCandidate, PackageDependency
from versioning.version import NuGetVersion

logger = logging.getLogger(__name__)

# OPC / NuGet packaging entries that are not part of the payload
_DROPPED_NAMES = {"[content_types].xml"}
_DROPPED_DIRS = ("_rels/", "package/")
_DROPPED_SUFFIXES = (".nupkg", ".nupkg.metadata", ".sha512")


def _local(tag: str) -> str:
    """Element name without its XML namespace."""
    return tag.rsplit("}", 1)[-1]


def _child(parent: ET.Element, name: str) -> Optional[ET.Element]:
    for elem in parent:
        if _local(elem.tag) == name:
            return elem
    return None


def _child_text(parent: ET.Element, name: str) -> Optional[str]:
    elem = _child(parent, name)
    if elem is None or elem.text is None:
        return None
    value = elem.text.strip()
    return value or None


def parse_dependencies(deps_elem: Optional[ET.Element]) -> List[DependencyGroup]:
    """Nuspec <dependencies>: flat <dependency> entries or <group> blocks."""
    if deps_elem is None:
        return []
    groups: List[DependencyGroup] = []
    flat: List[PackageDependency] = []
    for elem in deps_elem:
        name = _local(elem.tag)
        if name == "dependency" and elem.get("id"):
            flat.append(PackageDependency(elem.get("id"), elem.get("version") or None))
        elif name == "group":
            members = tuple(
                PackageDependency(dep.get("id"), dep.get("version") or None)
                for dep in elem
                if _local(dep.tag) == "dependency" and dep.get("id")
            )
            groups.append(DependencyGroup(elem.get("targetFramework"), members))
    if flat:
        groups.insert(0, DependencyGroup(None, tuple(flat)))
    return groups


def candidate_from_nuspec(
    xml_text: bytes,
    repository_name: Optional[str] = None,
    repository_url: Optional[str] = None,
    download_url: Optional[str] = None,
) -> PackageCandidate:
    """Build a PackageCandidate from nuspec XML.

    Raises:
        ValueError: Missing id/version or malformed XML/version.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise ValueError(f"Malformed nuspec: {exc}") from exc
    metadata = _child(root, "metadata")
    if metadata is None:
        raise ValueError("nuspec has no <metadata> element")

    package_id = _child_text(metadata, "id")
    version_text = _child_text(metadata, "version")
    if not package_id or not version_text:
        raise ValueError("nuspec is missing id or version")

    require = (_child_text(metadata, "requireLicenseAcceptance") or "").lower() == "true"
    tags = (_child_text(metadata, "tags") or "").split()
    return PackageCandidate(
        id=package_id,
        version=NuGetVersion.parse(version_text),
        dependency_groups=parse_dependencies(_child(metadata, "dependencies")),
        tags=tags,
        authors=_child_text(metadata, "authors"),
        owners=_child_text(metadata, "owners"),
        description=_child_text(metadata, "description"),
        license_url=_child_text(metadata, "licenseUrl"),
        project_url=_child_text(metadata, "projectUrl"),
        icon_url=_child_text(metadata, "iconUrl"),
        published=_child_text(metadata, "published"),
        require_license_acceptance=require,
        repository_name=repository_name,
        repository_url=repository_url,
        download_url=download_url,
    )


def read_nuspec(nupkg_path: str) -> bytes:
    """Return the raw root-level .nuspec of a package.

    Raises:
        ValueError: Not a zip file or no nuspec at the root.
    """
    try:
        with zipfile.ZipFile(nupkg_path) as archive:
            for name in archive.namelist():
                if "/" not in name and name.lower().endswith(".nuspec"):
                    return archive.read(name)
    except zipfile.BadZipFile as exc:
        raise ValueError(f"{nupkg_path} is not a valid package archive") from exc
    raise ValueError(f"{nupkg_path} contains no .nuspec")


def _is_payload(name: str) -> bool:
    lower = name.lower()
    if lower in _DROPPED_NAMES or lower.startswith(_DROPPED_DIRS):
        return False
    if "/" not in lower and lower.endswith(".nuspec"):
        return False
    return not lower.endswith(_DROPPED_SUFFIXES)


def extract_nupkg(nupkg_path: str, dest_dir: str) -> str:
    """Extract the payload of ``nupkg_path`` into ``dest_dir``.

    Returns:
        str: ``dest_dir``.

    Raises:
        InstallError: The archive is unreadable or an entry escapes ``dest_dir``.
    """
    base = os.path.realpath(dest_dir)
    os.makedirs(base, exist_ok=True)
    extracted: Dict[str, int] = {"files": 0, "skipped": 0}
    try:
        with zipfile.ZipFile(nupkg_path) as archive:
            for info in archive.infolist():
                name = urllib.parse.unquote(info.filename).replace("\\", "/")
                if info.is_dir() or not _is_payload(name):
                    extracted["skipped"] += 1
                    continue
                target = os.path.realpath(os.path.join(base, *name.split("/")))
                if os.path.commonpath([base, target]) != base:
                    raise InstallError(f"Unsafe entry '{info.filename}' in {os.path.basename(nupkg_path)}")
                os.makedirs(os.path.dirname(target), exist_ok=True)
                with archive.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                extracted["files"] += 1
    except zipfile.BadZipFile as exc:
        raise InstallError(f"{os.path.basename(nupkg_path)} is not a valid package archive") from exc

    if is_debug_enabled(logger):
        logger.debug(
            "Extracted package",
            extra=extra_context(
                event="extract",
                component="nupkg",
                action="extract",
                count=extracted["files"],
                target=dest_dir,
            ),
        )
    return dest_dir
