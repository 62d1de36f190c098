"""Scope -> filesystem roots for modules and scripts."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping, Optional

from constants import Constants, Scopes
from common.logging_utils import extra_context, is_debug_enabled
from install.errors import AdminPrivilegeRequiredError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallPaths:
    """Resolved install roots for one invocation."""
    root: str
    scope: str = Scopes.CURRENT_USER.value

    @property
    def modules_dir(self) -> str:
        return os.path.join(self.root, Constants.MODULES_DIR)

    @property
    def scripts_dir(self) -> str:
        return os.path.join(self.root, Constants.SCRIPTS_DIR)

    @property
    def script_infos_dir(self) -> str:
        return os.path.join(self.scripts_dir, Constants.INSTALLED_SCRIPT_INFOS_DIR)

    def ensure(self) -> None:
        """Create the module, script and script-info directories if missing."""
        for path in (self.modules_dir, self.scripts_dir, self.script_infos_dir):
            os.makedirs(path, exist_ok=True)


def is_elevated() -> bool:
    """True when running as Administrator (Windows) or root (POSIX)."""
    if sys.platform == "win32":
        import ctypes  # pylint: disable=import-outside-toplevel
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except (AttributeError, OSError):
            return False
    return hasattr(os, "geteuid") and os.geteuid() == 0


def default_root(scope: str) -> str:
    """Platform default root for a scope."""
    if scope == Scopes.ALL_USERS.value:
        if sys.platform == "win32":
            program_files = os.environ.get("ProgramFiles", r"C:\Program Files")
            return os.path.join(program_files, "PowerShell")
        return "/usr/local/share/powershell"
    if sys.platform == "win32":
        return os.path.join(os.path.expanduser("~"), "Documents", "PowerShell")
    return os.path.join(os.path.expanduser("~"), ".local", "share", "powershell")


def resolve_install_paths(
    scope: Optional[str] = None,
    root_override: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> InstallPaths:
    """Resolve install roots for a scope.

    Args:
        scope: "CurrentUser" (default) or "AllUsers", case-insensitive.
        root_override: Explicit root directory (``--install-root``).
        environ: Environment mapping, defaults to ``os.environ``.

    Returns:
        InstallPaths

    Raises:
        ValueError: Unknown scope.
        AdminPrivilegeRequiredError: AllUsers on a system root without elevation.
    """
    env = os.environ if environ is None else environ
    requested = (scope or Scopes.CURRENT_USER.value).strip()
    matched = next((s for s in Constants.SUPPORTED_SCOPES if s.lower() == requested.lower()), None)
    if matched is None:
        raise ValueError(f"Unsupported scope '{scope}'")

    override = root_override or env.get(Constants.ENV_INSTALL_ROOT)
    if override:
        root = os.path.abspath(os.path.expanduser(override))
    else:
        if matched == Scopes.ALL_USERS.value and not is_elevated():
            raise AdminPrivilegeRequiredError(
                "Installing for AllUsers requires administrator/root privileges; "
                "rerun elevated or use --scope CurrentUser"
            )
        root = default_root(matched)

    if is_debug_enabled(logger):
        logger.debug(
            "Resolved install paths",
            extra=extra_context(
                event="decision",
                component="paths",
                action="resolve",
                outcome=matched,
                target=root,
            ),
        )
    return InstallPaths(root=root, scope=matched)
