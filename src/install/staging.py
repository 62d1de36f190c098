"""Staging and commit engine.

One ``install_pkgs`` call handles one repository. For every outstanding
name it resolves the top-level candidate, expands dependencies, prunes what
is already installed, then stages the whole plan in a private temporary
directory: download, kind detection, license gate, no-clobber check and
descriptor. Only when every candidate of the plan has been staged and
validated does promotion into the permanent store begin, so a failed check
leaves the store untouched.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from constants import Constants, PackageKinds
from common.logging_utils import extra_context, is_debug_enabled, Timer
from install.cancellation import CancellationToken
from install.clobber import check_no_clobber
from install.dependencies import DependencyGraphBuilder
from install.descriptor import write_descriptor
from install.errors import InstallError, ModuleNotInstalledForUpdateError, PackageNotFoundError
from install.host import InstallHost
from install.inventory import LocalInventory
from install.license import LicenseGate, find_file
from install.models import (
    InstallOptions,
    InstallPlan,
    InstalledPackage,
    PackageCandidate,
    RepositoryEndpoint,
    StagingOutcome,
)
from install.paths import InstallPaths
from install.promotion import promote_module, promote_script
from install.tags import TagInfo, parse_tags
from registry.feed import FeedClient, create_feed
from versioning.models import VersionConstraint
from versioning.resolver import VersionResolver

logger = logging.getLogger(__name__)

FeedFactory = Callable[[RepositoryEndpoint], FeedClient]


@dataclass
class StagedPackage:
    """A candidate downloaded and validated, ready for promotion."""
    candidate: PackageCandidate
    kind: str
    directory: str
    descriptor_path: str
    tag_info: TagInfo


def _remove_name(names: List[str], name: str) -> bool:
    """Remove ``name`` from ``names`` ignoring case; True if it was present."""
    for existing in names:
        if existing.lower() == name.lower():
            names.remove(existing)
            return True
    return False


class StagingEngine:
    """Resolve, stage and promote packages from one repository at a time."""

    def __init__(
        self,
        paths: InstallPaths,
        host: InstallHost,
        feed_factory: FeedFactory = create_feed,
        resolver: Optional[VersionResolver] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.paths = paths
        self.host = host
        self.feed_factory = feed_factory
        self.resolver = resolver or VersionResolver()
        self.cancel_token = cancel_token or CancellationToken()
        self._activity = 0

    def install_pkgs(
        self,
        repository: RepositoryEndpoint,
        outstanding: List[str],
        requested: List[str],
        constraint: VersionConstraint,
        options: InstallOptions,
    ) -> StagingOutcome:
        """Install what ``repository`` can provide of ``outstanding``.

        Args:
            repository: Repository to use for this attempt.
            outstanding: Names not yet installed by earlier repositories.
            requested: Every name of the invocation (used for pruning).
            constraint: Version constraint shared by all requested names.
            options: Invocation switches.

        Returns:
            StagingOutcome whose ``not_found`` lists names still outstanding.

        Raises:
            InstallError: Any failure other than "not found in this repository".
        """
        feed = self.feed_factory(repository)
        remaining = list(outstanding)
        outcome = StagingOutcome()
        license_gate = LicenseGate(self.host, options.accept_license)
        try:
            inventory = LocalInventory.snapshot(self.paths)
            staging_root = tempfile.mkdtemp(prefix=Constants.STAGING_PREFIX)
        except OSError as exc:
            raise InstallError(
                f"Could not prepare the install: {exc}", repository=repository.name
            ) from exc

        try:
            for name in list(outstanding):
                if not any(n.lower() == name.lower() for n in remaining):
                    # Installed or pruned as part of an earlier name's plan
                    continue
                plan = self._build_plan(feed, inventory, name, requested, remaining, constraint, options, outcome)
                if not plan:
                    continue

                area = os.path.join(staging_root, uuid.uuid4().hex)
                try:
                    staged = self._stage_plan(feed, plan, area, inventory, license_gate, options)
                    self._promote(staged, inventory, remaining, constraint, options, outcome)
                except OSError as exc:
                    raise InstallError(
                        f"Filesystem error while installing '{name}': {exc}",
                        package_id=name,
                        repository=repository.name,
                    ) from exc
                finally:
                    shutil.rmtree(area, ignore_errors=True)
        finally:
            shutil.rmtree(staging_root, ignore_errors=True)

        outcome.not_found = remaining
        return outcome

    # -- plan ------------------------------------------------------------

    def _build_plan(
        self,
        feed: FeedClient,
        inventory: LocalInventory,
        name: str,
        requested: List[str],
        remaining: List[str],
        constraint: VersionConstraint,
        options: InstallOptions,
        outcome: StagingOutcome,
    ) -> Optional[InstallPlan]:
        """Resolve ``name`` and its dependencies; None when not found here."""
        self.cancel_token.raise_if_cancelled(name)
        include_pre = options.prerelease or constraint.pins_prerelease
        candidates = feed.query_versions(name, include_pre, False, self.cancel_token)
        top = self.resolver.resolve(name, constraint, include_pre, candidates)
        if top is None:
            not_found = PackageNotFoundError(
                f"Package '{name}' with version '{constraint}' not found",
                package_id=name,
                repository=feed.repository.name,
                constraint=str(constraint),
            )
            logger.warning(
                "%s",
                not_found,
                extra=extra_context(
                    event="package_not_found",
                    component="staging",
                    outcome=not_found.kind,
                    package_id=name,
                    repository=feed.repository.name,
                ),
            )
            return None

        if options.update and not inventory.is_installed(name):
            raise ModuleNotInstalledForUpdateError(
                f"Package '{name}' is not installed, so it cannot be updated; use install instead",
                package_id=name,
                repository=feed.repository.name,
                constraint=str(constraint),
            )

        builder = DependencyGraphBuilder(feed, inventory, options, self.resolver, self.cancel_token)
        try:
            dependencies = builder.expand(top)
        except PackageNotFoundError as exc:
            logger.warning("%s; '%s' stays outstanding", exc, name)
            return None

        plan = InstallPlan([top] + dependencies)

        for req_name in requested:
            candidate = plan.find(req_name)
            if candidate is None:
                continue
            effective = constraint if not constraint.is_unconstrained else VersionConstraint.exact(candidate.version)
            if options.reinstall or options.force or not inventory.is_satisfied(req_name, effective):
                continue
            plan.remove(candidate)
            if _remove_name(remaining, req_name):
                outcome.already_satisfied.append(req_name)
                logger.info(
                    "Package '%s' with version '%s' is already installed",
                    candidate.id,
                    effective,
                )

        if is_debug_enabled(logger):
            logger.debug(
                "Install plan built",
                extra=extra_context(
                    event="plan",
                    component="staging",
                    action="build_plan",
                    package_id=name,
                    count=len(plan),
                    repository=feed.repository.name,
                ),
            )
        return plan

    # -- staging ---------------------------------------------------------

    def _download_all(
        self,
        feed: FeedClient,
        candidates: List[PackageCandidate],
        area: str,
        options: InstallOptions,
    ) -> Dict[Tuple[str, str], str]:
        """Download every candidate; concurrently when allowed."""
        os.makedirs(area, exist_ok=True)

        def fetch(candidate: PackageCandidate) -> Tuple[Tuple[str, str], str]:
            self.cancel_token.raise_if_cancelled(candidate.id)
            with Timer() as t:
                directory = feed.download(candidate, area, self.cancel_token)
            if is_debug_enabled(logger):
                logger.debug(
                    "Downloaded package",
                    extra=extra_context(
                        event="download",
                        component="staging",
                        package_id=candidate.id,
                        version=candidate.version.normalized,
                        duration_ms=t.duration_ms(),
                        repository=feed.repository.name,
                    ),
                )
            return candidate.key, directory

        workers = max(1, options.max_download_workers)
        if workers == 1 or len(candidates) < 2:
            return dict(fetch(c) for c in candidates)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(fetch, c) for c in candidates]
            try:
                return dict(f.result() for f in futures)
            finally:
                # Downloads not yet started are dropped once one fails
                for future in futures:
                    future.cancel()

    def _stage_plan(
        self,
        feed: FeedClient,
        plan: InstallPlan,
        area: str,
        inventory: LocalInventory,
        license_gate: LicenseGate,
        options: InstallOptions,
    ) -> List[StagedPackage]:
        candidates = list(plan)
        downloaded = self._download_all(feed, candidates, area, options)
        staged: List[StagedPackage] = []
        planned_commands: Dict[str, Tuple[str, str]] = {}
        for index, candidate in enumerate(candidates):
            directory = downloaded[candidate.key]
            tag_info = parse_tags(candidate.tags)
            kind = tag_info.kind
            if kind is None:
                kind = PackageKinds.SCRIPT.value if find_file(directory, f"{candidate.id}.ps1") else PackageKinds.MODULE.value
            if kind == PackageKinds.SCRIPT.value and find_file(directory, f"{candidate.id}.ps1") is None:
                raise InstallError(
                    f"Script package '{candidate.id}' does not contain {candidate.id}.ps1",
                    package_id=candidate.id,
                    repository=candidate.repository_name,
                )

            license_gate.check(candidate, directory)
            if options.no_clobber:
                check_no_clobber(candidate, tag_info.commands, inventory, planned_commands)
                for command in tag_info.commands:
                    planned_commands.setdefault(command.lower(), (command, candidate.id))

            descriptor_path = write_descriptor(directory, candidate, kind, tag_info)
            staged.append(StagedPackage(candidate, kind, directory, descriptor_path, tag_info))
            self._progress(options, f"Staged {candidate}", index + 1, len(candidates))
        return staged

    # -- promotion -------------------------------------------------------

    def _promote(
        self,
        staged: List[StagedPackage],
        inventory: LocalInventory,
        remaining: List[str],
        constraint: VersionConstraint,
        options: InstallOptions,
        outcome: StagingOutcome,
    ) -> None:
        self.paths.ensure()
        for item in staged:
            candidate = item.candidate
            self.cancel_token.raise_if_cancelled(candidate.id)
            if item.kind == PackageKinds.SCRIPT.value:
                path = promote_script(
                    find_file(item.directory, f"{candidate.id}.ps1"),
                    item.descriptor_path,
                    self.paths.scripts_dir,
                    self.paths.script_infos_dir,
                    candidate,
                )
            else:
                path = promote_module(item.directory, self.paths.modules_dir, candidate)

            inventory.record(candidate.id, candidate.version, item.kind, item.tag_info.commands)
            outcome.installed.append(
                InstalledPackage(
                    id=candidate.id,
                    version=candidate.version.normalized,
                    kind=item.kind,
                    repository=candidate.repository_name,
                    path=path,
                )
            )
            if constraint.satisfies(candidate.version):
                _remove_name(remaining, candidate.id)
            logger.info("Installed %s %s to %s", candidate.id, candidate.version, path)

    def _progress(self, options: InstallOptions, label: str, done: int, total: int) -> None:
        if options.quiet:
            return
        self._activity += 1
        self.host.report_progress(self._activity, label, int(done * 100 / max(total, 1)))
