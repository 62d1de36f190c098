"""Atomic promotion of staged packages into the permanent store.

A module version directory is copied next to its final location under a
hidden name and then renamed into place, so readers of ``<modules>/<Id>/``
only ever see the old directory or the complete new one. An existing target
is renamed aside first and restored if the swap fails. Scripts follow the
same pattern per file.

Promotions for the same package id are serialized through a process-wide
lock table. Callers check cancellation before calling in; nothing here is
interruptible once a move has begun.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
import uuid
from typing import Dict, List, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled, Timer
from install.errors import PromotionError
from install.models import PackageCandidate

logger = logging.getLogger(__name__)

_LOCKS: Dict[str, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def package_lock(package_id: str) -> threading.Lock:
    """Process-wide lock for one package id (case-insensitive)."""
    key = package_id.lower()
    with _LOCKS_GUARD:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _LOCKS[key] = lock
        return lock


def match_entry(parent: str, name: str) -> Optional[str]:
    """Existing child of ``parent`` named ``name`` ignoring case, if any."""
    if not os.path.isdir(parent):
        return None
    exact = os.path.join(parent, name)
    if os.path.exists(exact):
        return exact
    wanted = name.lower()
    for entry in os.scandir(parent):
        if entry.name.lower() == wanted:
            return entry.path
    return None


def _remove_quietly(path: str) -> None:
    try:
        if os.path.isdir(path):
            shutil.rmtree(path)
        elif os.path.exists(path):
            os.remove(path)
    except OSError as exc:
        logger.warning("Could not remove leftover %s: %s", path, exc)


def promote_module(staged_version_dir: str, modules_dir: str, candidate: PackageCandidate) -> str:
    """Move a staged module version directory to ``<modules>/<Id>/<version>``.

    Returns:
        str: Final version directory.

    Raises:
        PromotionError: The store is left as it was before the call.
    """
    folder = candidate.version.folder_name
    with package_lock(candidate.id), Timer() as t:
        existing_id_dir = match_entry(modules_dir, candidate.id)
        id_dir = existing_id_dir or os.path.join(modules_dir, candidate.id)
        created_id_dir = existing_id_dir is None
        target = os.path.join(id_dir, folder)
        token = uuid.uuid4().hex
        partial = os.path.join(id_dir, f".{folder}.{token}.partial")
        backup = os.path.join(id_dir, f".{folder}.{token}.previous")
        moved_aside = False

        try:
            os.makedirs(id_dir, exist_ok=True)
            shutil.copytree(staged_version_dir, partial)
            if os.path.exists(target):
                os.replace(target, backup)
                moved_aside = True
            os.replace(partial, target)
        except (OSError, shutil.Error) as exc:
            if moved_aside and not os.path.exists(target):
                try:
                    os.replace(backup, target)
                except OSError as restore_exc:
                    logger.error(
                        "Could not restore %s from %s: %s", target, backup, restore_exc
                    )
            _remove_quietly(partial)
            if created_id_dir:
                _remove_quietly(id_dir)
            raise PromotionError(
                f"Failed to promote {candidate.id} {candidate.version} into {target}: {exc}",
                package_id=candidate.id,
                repository=candidate.repository_name,
            ) from exc

        if moved_aside:
            _remove_quietly(backup)

        if is_debug_enabled(logger):
            logger.debug(
                "Promoted module",
                extra=extra_context(
                    event="promote",
                    component="promotion",
                    action="module",
                    outcome="replaced" if moved_aside else "created",
                    package_id=candidate.id,
                    version=candidate.version.normalized,
                    duration_ms=t.duration_ms(),
                    target=target,
                ),
            )
        return target


def promote_files(moves: List[Tuple[str, str]], candidate: PackageCandidate) -> None:
    """Replace each ``dest`` with ``src`` all-or-nothing.

    Sources are copied next to their destinations first; existing
    destinations are backed up and restored when any replace fails.
    """
    token = uuid.uuid4().hex
    partials: List[Tuple[str, str]] = []
    backups: Dict[str, str] = {}
    committed: List[str] = []
    try:
        for src, dest in moves:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            partial = os.path.join(os.path.dirname(dest), f".{os.path.basename(dest)}.{token}.partial")
            shutil.copy2(src, partial)
            partials.append((partial, dest))
        for partial, dest in partials:
            if os.path.exists(dest):
                backup = os.path.join(os.path.dirname(dest), f".{os.path.basename(dest)}.{token}.previous")
                os.replace(dest, backup)
                backups[dest] = backup
            os.replace(partial, dest)
            committed.append(dest)
    except OSError as exc:
        for dest in committed:
            if dest not in backups:
                _remove_quietly(dest)
        for dest, backup in backups.items():
            try:
                os.replace(backup, dest)
            except OSError as restore_exc:
                logger.error("Could not restore %s from %s: %s", dest, backup, restore_exc)
        for partial, _ in partials:
            _remove_quietly(partial)
        raise PromotionError(
            f"Failed to promote {candidate.id} {candidate.version}: {exc}",
            package_id=candidate.id,
            repository=candidate.repository_name,
        ) from exc

    for backup in backups.values():
        _remove_quietly(backup)


def promote_script(
    staged_script: str,
    staged_descriptor: str,
    scripts_dir: str,
    script_infos_dir: str,
    candidate: PackageCandidate,
) -> str:
    """Place ``<Id>.ps1`` and its script-info descriptor.

    Returns:
        str: Final script path.
    """
    with package_lock(candidate.id):
        script_dest = match_entry(scripts_dir, f"{candidate.id}.ps1") or os.path.join(
            scripts_dir, f"{candidate.id}.ps1"
        )
        info_name = os.path.basename(staged_descriptor)
        info_dest = match_entry(script_infos_dir, info_name) or os.path.join(script_infos_dir, info_name)
        promote_files([(staged_script, script_dest), (staged_descriptor, info_dest)], candidate)
        if is_debug_enabled(logger):
            logger.debug(
                "Promoted script",
                extra=extra_context(
                    event="promote",
                    component="promotion",
                    action="script",
                    package_id=candidate.id,
                    version=candidate.version.normalized,
                    target=script_dest,
                ),
            )
        return script_dest
