"""License acceptance gate for staged packages."""

from __future__ import annotations

import logging
import os
import re
from typing import Optional

from constants import Constants
from install.errors import LicenseNotAcceptedError, LicenseTextNotFoundError
from install.host import ConfirmResult, InstallHost
from install.models import PackageCandidate

logger = logging.getLogger(__name__)

_REQUIRE_RE = re.compile(r"RequireLicenseAcceptance\s*=\s*\$true", re.IGNORECASE)
_BLOCK_COMMENT_RE = re.compile(r"<#.*?#>", re.DOTALL)


def find_file(directory: str, name: str) -> Optional[str]:
    """Case-insensitive lookup of ``name`` directly inside ``directory``."""
    if not os.path.isdir(directory):
        return None
    wanted = name.lower()
    for entry in os.scandir(directory):
        if entry.is_file() and entry.name.lower() == wanted:
            return entry.path
    return None


def manifest_requires_license(staged_dir: str, package_id: str) -> bool:
    """True when ``<id>.psd1`` sets ``RequireLicenseAcceptance = $true`` outside comments."""
    manifest = find_file(staged_dir, f"{package_id}.psd1")
    if manifest is None:
        return False
    with open(manifest, "r", encoding="utf-8-sig", errors="replace") as handle:
        text = _BLOCK_COMMENT_RE.sub("", handle.read())
    for line in text.splitlines():
        code = line.split("#", 1)[0]
        if _REQUIRE_RE.search(code):
            return True
    return False


class LicenseGate:
    """Per-invocation license state; "yes to all" carries across packages."""

    def __init__(self, host: InstallHost, accept_license: bool = False):
        self.host = host
        self.accept_all = accept_license

    def check(self, candidate: PackageCandidate, staged_dir: str) -> None:
        """Raise unless the license (if any is required) has been accepted.

        Raises:
            LicenseTextNotFoundError: Acceptance required but no License.txt.
            LicenseNotAcceptedError: The host declined.
        """
        required = candidate.require_license_acceptance or manifest_requires_license(
            staged_dir, candidate.id
        )
        if not required or self.accept_all:
            return

        license_path = find_file(staged_dir, Constants.LICENSE_FILE)
        if license_path is None:
            raise LicenseTextNotFoundError(
                "License.txt not found. License.txt must be provided when user "
                "license acceptance is required",
                package_id=candidate.id,
                repository=candidate.repository_name,
            )

        with open(license_path, "r", encoding="utf-8-sig", errors="replace") as handle:
            license_text = handle.read()
        answer = self.host.confirm(
            f"{license_text}\nDo you accept the license terms for module '{candidate.id}'?",
            "License Acceptance",
        )
        if answer == ConfirmResult.YES_TO_ALL:
            self.accept_all = True
        if answer.accepted:
            logger.info("License accepted for %s", candidate.id)
            return
        raise LicenseNotAcceptedError(
            f"License acceptance is required for module '{candidate.id}'; "
            "specify --accept-license to perform this operation",
            package_id=candidate.id,
            repository=candidate.repository_name,
        )
