"""CLI configuration: overrides for runtime tunables and option building.

Kept out of psresget.py to keep the entrypoint slim. CLI values take the
highest precedence over environment and settings-file defaults.
"""

from __future__ import annotations

import getpass
import logging
import os
from typing import Mapping, Optional

from constants import Constants
from install.models import Credential, InstallOptions

logger = logging.getLogger(__name__)


def apply_cli_overrides(args) -> None:
    """Apply CLI overrides to ``Constants``."""
    timeout = getattr(args, "TIMEOUT", None)
    if timeout is not None:
        Constants.REQUEST_TIMEOUT = timeout  # type: ignore[attr-defined]
        logger.debug("Request timeout set to %ss", timeout)


def build_credential(
    username: Optional[str],
    interactive: bool = True,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[Credential]:
    """Credential for ``--credential USER``.

    The password comes from ``PSRESGET_PASSWORD``; when it is unset and the
    session is interactive the user is prompted for it.
    """
    if not username:
        return None
    env = os.environ if environ is None else environ
    password = env.get(Constants.ENV_PASSWORD)
    if password is None:
        if interactive:
            password = getpass.getpass(f"Password for {username}: ")
        else:
            logger.warning("%s is not set; using an empty password for '%s'", Constants.ENV_PASSWORD, username)
            password = ""
    return Credential(username=username, password=password)


def build_options(args, credential: Optional[Credential] = None) -> InstallOptions:
    """InstallOptions from parsed CLI arguments."""
    return InstallOptions(
        prerelease=bool(args.PRERELEASE),
        accept_license=bool(args.ACCEPT_LICENSE),
        quiet=bool(args.QUIET),
        reinstall=bool(args.REINSTALL),
        force=bool(args.FORCE),
        trust_repository=bool(args.TRUST_REPOSITORY),
        no_clobber=bool(args.NO_CLOBBER),
        update=args.action == "update",
        credential=credential,
        max_download_workers=max(1, int(args.MAX_DOWNLOAD_WORKERS)),
    )
