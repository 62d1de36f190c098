"""Installed-package descriptor (PSGetModuleInfo.xml / <Id>_InstalledScriptInfo.xml)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
from xml.etree import ElementTree as ET

from constants import Constants, PackageKinds
from common.logging_utils import extra_context, is_debug_enabled
from install.models import PackageCandidate
from install.tags import TagInfo

logger = logging.getLogger(__name__)

ROOT_TAG = "PSRepositoryItemInfo"


@dataclass
class InstalledDescriptor:
    """Fields read back from an installed descriptor."""
    name: str
    version: str
    kind: Optional[str] = None
    repository: Optional[str] = None
    repository_source_location: Optional[str] = None
    installed_date: Optional[str] = None
    includes: Dict[str, List[str]] = field(default_factory=dict)
    dependencies: Dict[str, Optional[str]] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)

    @property
    def commands(self) -> List[str]:
        return self.includes.get("Command", [])


def descriptor_file_name(package_id: str, kind: str) -> str:
    """Conventional descriptor file name for a package kind."""
    if kind == PackageKinds.SCRIPT.value:
        return f"{package_id}{Constants.SCRIPT_DESCRIPTOR_SUFFIX}"
    return Constants.MODULE_DESCRIPTOR


def _text(parent: ET.Element, tag: str, value: Optional[object]) -> ET.Element:
    elem = ET.SubElement(parent, tag)
    if value is not None:
        elem.text = str(value)
    return elem


def build_descriptor(
    candidate: PackageCandidate,
    kind: str,
    tag_info: TagInfo,
    installed_date: Optional[datetime] = None,
) -> ET.Element:
    """Build the descriptor element tree for a staged candidate."""
    root = ET.Element(ROOT_TAG)
    _text(root, "Name", candidate.id)
    _text(root, "Version", candidate.version.normalized)
    _text(root, "Type", kind)
    _text(root, "Description", candidate.description)
    _text(root, "Author", candidate.authors)
    _text(root, "CompanyName", candidate.owners)
    _text(root, "PublishedDate", candidate.published)
    _text(root, "InstalledDate", (installed_date or datetime.now(timezone.utc)).isoformat())
    _text(root, "LicenseUri", candidate.license_url)
    _text(root, "ProjectUri", candidate.project_url)
    _text(root, "IconUri", candidate.icon_url)

    tags = ET.SubElement(root, "Tags")
    for tag in tag_info.filtered_tags:
        _text(tags, "Tag", tag)

    includes = ET.SubElement(root, "Includes")
    for include_kind, names in tag_info.includes.items():
        group = ET.SubElement(includes, include_kind)
        for name in names:
            _text(group, "Item", name)

    deps = ET.SubElement(root, "Dependencies")
    for dep in candidate.dependencies:
        dep_elem = ET.SubElement(deps, "Dependency", {"Name": dep.id})
        if dep.range_text:
            dep_elem.set("VersionRange", dep.range_text)

    _text(root, "RepositorySourceLocation", candidate.repository_url)
    _text(root, "Repository", candidate.repository_name)
    _text(root, "PowerShellGetFormatVersion", Constants.DESCRIPTOR_FORMAT_VERSION)
    return root


def write_descriptor(
    directory: str,
    candidate: PackageCandidate,
    kind: str,
    tag_info: TagInfo,
    installed_date: Optional[datetime] = None,
) -> str:
    """Write the descriptor for ``candidate`` into ``directory``.

    Returns:
        str: Path of the written file.
    """
    path = os.path.join(directory, descriptor_file_name(candidate.id, kind))
    tree = ET.ElementTree(build_descriptor(candidate, kind, tag_info, installed_date))
    tree.write(path, encoding="utf-8", xml_declaration=True)
    if is_debug_enabled(logger):
        logger.debug(
            "Wrote descriptor",
            extra=extra_context(
                event="descriptor_write",
                component="descriptor",
                action="write",
                package_id=candidate.id,
                version=candidate.version.normalized,
                target=path,
            ),
        )
    return path


def read_descriptor(path: str) -> Optional[InstalledDescriptor]:
    """Read a descriptor; None when missing or unreadable."""
    if not os.path.isfile(path):
        return None
    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as exc:
        logger.warning("Ignoring unreadable descriptor %s: %s", path, exc)
        return None

    name = (root.findtext("Name") or "").strip()
    version = (root.findtext("Version") or "").strip()
    if not name or not version:
        logger.warning("Ignoring descriptor without Name/Version: %s", path)
        return None

    includes: Dict[str, List[str]] = {}
    includes_elem = root.find("Includes")
    if includes_elem is not None:
        for group in includes_elem:
            includes[group.tag] = [item.text for item in group.findall("Item") if item.text]

    dependencies: Dict[str, Optional[str]] = {}
    deps_elem = root.find("Dependencies")
    if deps_elem is not None:
        for dep in deps_elem.findall("Dependency"):
            dep_name = dep.get("Name")
            if dep_name:
                dependencies[dep_name] = dep.get("VersionRange")

    tags_elem = root.find("Tags")
    tags = [t.text for t in tags_elem.findall("Tag") if t.text] if tags_elem is not None else []

    return InstalledDescriptor(
        name=name,
        version=version,
        kind=root.findtext("Type"),
        repository=root.findtext("Repository"),
        repository_source_location=root.findtext("RepositorySourceLocation"),
        installed_date=root.findtext("InstalledDate"),
        includes=includes,
        dependencies=dependencies,
        tags=tags,
    )
