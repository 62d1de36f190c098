"""Local inventory: point-in-time snapshot of installed packages.

Modules are discovered as ``<modules>/<Id>/<version>/`` directories, scripts
through ``<scripts>/InstalledScriptInfos/<Id>_InstalledScriptInfo.xml``.
Directory names that do not parse as versions are discarded, never treated
as installed. A module descriptor refines the folder version with its
prerelease label when both agree on the numeric part.

The snapshot is not refreshed from disk; concurrent external changes to the
store between snapshot and promotion go undetected (last write wins).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from constants import Constants, PackageKinds
from common.logging_utils import extra_context, is_debug_enabled
from install.descriptor import read_descriptor
from install.paths import InstallPaths
from versioning.models import VersionConstraint
from versioning.ranges import VersionRange
from versioning.version import NuGetVersion, version_from_str

logger = logging.getLogger(__name__)

Constraint = Union[VersionConstraint, VersionRange, None]


@dataclass
class LocalInventoryEntry:
    """Installed versions of one package id."""
    package_id: str
    kind: str = PackageKinds.MODULE.value
    versions: Set[NuGetVersion] = field(default_factory=set)
    commands: Set[str] = field(default_factory=set)


class LocalInventory:
    """Installed packages keyed by lowercased id."""

    def __init__(self, entries: Optional[Iterable[LocalInventoryEntry]] = None):
        self._entries: Dict[str, LocalInventoryEntry] = {}
        for entry in entries or []:
            self._entries[entry.package_id.lower()] = entry

    @classmethod
    def snapshot(cls, paths: InstallPaths) -> "LocalInventory":
        """Read the current install roots."""
        inventory = cls()
        inventory._scan_modules(paths.modules_dir)
        inventory._scan_scripts(paths.script_infos_dir)
        if is_debug_enabled(logger):
            logger.debug(
                "Local inventory snapshot",
                extra=extra_context(
                    event="inventory_snapshot",
                    component="inventory",
                    action="snapshot",
                    count=len(inventory._entries),
                    target=paths.root,
                ),
            )
        return inventory

    def _entry(self, package_id: str, kind: str) -> LocalInventoryEntry:
        key = package_id.lower()
        entry = self._entries.get(key)
        if entry is None:
            entry = LocalInventoryEntry(package_id=package_id, kind=kind)
            self._entries[key] = entry
        return entry

    def _scan_modules(self, modules_dir: str) -> None:
        if not os.path.isdir(modules_dir):
            return
        for id_entry in os.scandir(modules_dir):
            if not id_entry.is_dir() or id_entry.name.startswith("."):
                continue
            for version_entry in os.scandir(id_entry.path):
                if not version_entry.is_dir() or version_entry.name.startswith("."):
                    continue
                version = version_from_str(version_entry.name)
                if version is None:
                    if is_debug_enabled(logger):
                        logger.debug(
                            "Skipping non-version directory",
                            extra=extra_context(
                                event="inventory_skip",
                                component="inventory",
                                package_id=id_entry.name,
                                target=version_entry.path,
                            ),
                        )
                    continue
                descriptor = read_descriptor(os.path.join(version_entry.path, Constants.MODULE_DESCRIPTOR))
                commands: List[str] = []
                if descriptor is not None:
                    described = version_from_str(descriptor.version)
                    if described is not None and described.release == version.release:
                        version = described
                    commands = descriptor.commands
                entry = self._entry(id_entry.name, PackageKinds.MODULE.value)
                entry.versions.add(version)
                entry.commands.update(commands)

    def _scan_scripts(self, script_infos_dir: str) -> None:
        if not os.path.isdir(script_infos_dir):
            return
        for info in os.scandir(script_infos_dir):
            if not info.is_file() or not info.name.endswith(Constants.SCRIPT_DESCRIPTOR_SUFFIX):
                continue
            descriptor = read_descriptor(info.path)
            if descriptor is None:
                continue
            version = version_from_str(descriptor.version)
            if version is None:
                continue
            entry = self._entry(descriptor.name, PackageKinds.SCRIPT.value)
            entry.versions.add(version)
            entry.commands.update(descriptor.commands)

    def get(self, package_id: str) -> Optional[LocalInventoryEntry]:
        return self._entries.get(package_id.lower())

    def is_installed(self, package_id: str) -> bool:
        entry = self.get(package_id)
        return entry is not None and bool(entry.versions)

    def installed_versions(self, package_id: str) -> List[NuGetVersion]:
        """Installed versions of ``package_id``, ascending."""
        entry = self.get(package_id)
        return sorted(entry.versions) if entry else []

    def is_satisfied(self, package_id: str, constraint: Constraint = None) -> bool:
        """True when an installed version satisfies ``constraint`` (None = any)."""
        for version in self.installed_versions(package_id):
            if constraint is None or constraint.satisfies(version):
                return True
        return False

    def record(
        self,
        package_id: str,
        version: NuGetVersion,
        kind: str,
        commands: Iterable[str] = (),
    ) -> None:
        """Add a freshly promoted package to the in-memory snapshot."""
        entry = self._entry(package_id, kind)
        if kind == PackageKinds.SCRIPT.value:
            # A script has one installed copy; promotion replaced it
            entry.versions.clear()
        entry.versions.add(version)
        entry.commands.update(commands)

    def exported_commands(self, exclude_id: Optional[str] = None) -> Dict[str, Tuple[str, str]]:
        """Map lowercased command name -> (command, exporting package id)."""
        excluded = exclude_id.lower() if exclude_id else None
        commands: Dict[str, Tuple[str, str]] = {}
        for key, entry in self._entries.items():
            if key == excluded:
                continue
            for command in entry.commands:
                commands.setdefault(command.lower(), (command, entry.package_id))
        return commands

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, package_id: object) -> bool:
        return isinstance(package_id, str) and self.is_installed(package_id)
