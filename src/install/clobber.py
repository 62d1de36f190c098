"""No-clobber check: refuse packages exporting commands already on the system."""

import logging
from typing import Dict, Iterable, Optional, Tuple

from install.errors import CommandClobberError
from install.inventory import LocalInventory
from install.models import PackageCandidate

logger = logging.getLogger(__name__)


def check_no_clobber(
    candidate: PackageCandidate,
    commands: Iterable[str],
    inventory: LocalInventory,
    planned: Optional[Dict[str, Tuple[str, str]]] = None,
) -> None:
    """Raise CommandClobberError when ``commands`` overlap another package's.

    ``planned`` holds commands of packages staged earlier in the same plan
    (lowercased command -> (command, package id)). Commands exported by other
    versions of the same package id do not count.
    Comparison is case-insensitive.
    """
    existing = inventory.exported_commands(exclude_id=candidate.id)
    for key, owner in (planned or {}).items():
        if owner[1].lower() != candidate.id.lower():
            existing.setdefault(key, owner)
    conflicts = {}
    for command in commands:
        hit = existing.get(command.lower())
        if hit is not None:
            conflicts[command] = hit[1]
    if not conflicts:
        return

    owners = ", ".join(sorted(set(conflicts.values()), key=str.lower))
    names = ", ".join(sorted(conflicts, key=str.lower))
    logger.debug("Command clobber for %s: %s (owned by %s)", candidate.id, names, owners)
    raise CommandClobberError(
        f"Command(s) '{names}' already available on this system (from {owners}). "
        f"Installing '{candidate.id}' may override the existing command; "
        "remove --no-clobber to install anyway",
        commands=conflicts.keys(),
        package_id=candidate.id,
        repository=candidate.repository_name,
    )
