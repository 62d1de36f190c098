"""Repository selector: ranked fallback across repositories."""

from __future__ import annotations

import dataclasses
import logging
from typing import List, Optional, Sequence

from common.logging_utils import extra_context, is_debug_enabled, safe_url
from install.errors import InstallError
from install.host import ConfirmResult, InstallHost
from install.models import InstallOptions, InstallResult, RepositoryEndpoint
from install.staging import StagingEngine
from versioning.models import VersionConstraint

logger = logging.getLogger(__name__)

UNTRUSTED_TITLE = "Untrusted repository"


def _dedupe(names: Sequence[str]) -> List[str]:
    seen = set()
    result = []
    for name in names:
        name = name.strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            result.append(name)
    return result


class RepositorySelector:
    """Try repositories in order, carrying forward only names still missing."""

    def __init__(self, engine: StagingEngine, host: InstallHost):
        self.engine = engine
        self.host = host

    def install(
        self,
        names: Sequence[str],
        constraint: VersionConstraint,
        repositories: Sequence[RepositoryEndpoint],
        options: InstallOptions,
    ) -> InstallResult:
        """Install ``names`` from the first repositories that have them.

        Names missing from every repository end up in ``InstallResult.not_found``;
        that is not an exception. Every other failure is fatal for the call and
        is reported through the host.
        """
        requested = _dedupe(names)
        outstanding = list(requested)
        result = InstallResult()
        trust_answer: Optional[ConfirmResult] = None

        for repository in repositories:
            if not outstanding:
                break

            if not repository.trusted and not (options.trust_repository or options.force):
                if trust_answer is None:
                    trust_answer = self.host.confirm(
                        f"You are installing the modules from an untrusted repository '{repository.name}' "
                        f"({safe_url(repository.url)}). If you trust this repository, mark it as trusted "
                        "in the repository settings. Are you sure you want to install from it?",
                        UNTRUSTED_TITLE,
                    )
                if not trust_answer.accepted:
                    logger.info("Skipping untrusted repository '%s'", repository.name)
                    continue

            if repository.credential is None and options.credential is not None:
                repository = dataclasses.replace(repository, credential=options.credential)

            result.repositories_tried.append(repository.name)
            logger.info("Searching repository '%s' for %s", repository.name, ", ".join(outstanding))
            try:
                outcome = self.engine.install_pkgs(repository, outstanding, requested, constraint, options)
            except InstallError as exc:
                if exc.repository is None:
                    exc.repository = repository.name
                self.host.fail(exc)

            result.installed.extend(outcome.installed)
            result.already_satisfied.extend(outcome.already_satisfied)
            outstanding = list(outcome.not_found)

            if is_debug_enabled(logger):
                logger.debug(
                    "Repository attempt finished",
                    extra=extra_context(
                        event="repository_attempt",
                        component="selector",
                        action="install_pkgs",
                        repository=repository.name,
                        count=len(outstanding),
                        outcome="complete" if not outstanding else "partial",
                    ),
                )

        result.not_found = outstanding
        if outstanding:
            logger.warning(
                "Package(s) %s could not be found in any repository",
                ", ".join(outstanding),
            )
        return result
