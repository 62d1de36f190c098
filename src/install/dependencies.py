"""Dependency graph expansion.

Walks declared dependencies depth-first with an explicit stack instead of
recursion. Each package id is expanded at most once per walk (the root id is
pre-seeded), so cyclic graphs terminate; a second declaration of an id
already visited keeps the first selection.

Dependencies already satisfied locally are left out of the result but their
own dependencies are still walked.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Set, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from install.cancellation import CancellationToken
from install.errors import ConstraintParseError, PackageNotFoundError
from install.inventory import LocalInventory
from install.models import InstallOptions, PackageCandidate, PackageDependency
from registry.feed import FeedClient
from versioning.models import ResolutionMode, VersionConstraint
from versioning.ranges import VersionRange
from versioning.resolver import VersionResolver

logger = logging.getLogger(__name__)


class DependencyGraphBuilder:
    """Expand a resolved candidate into the ordered list of its dependencies."""

    def __init__(
        self,
        feed: FeedClient,
        inventory: LocalInventory,
        options: Optional[InstallOptions] = None,
        resolver: Optional[VersionResolver] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.feed = feed
        self.inventory = inventory
        self.options = options or InstallOptions()
        self.resolver = resolver or VersionResolver()
        self.cancel_token = cancel_token

    def expand(self, root: PackageCandidate) -> List[PackageCandidate]:
        """Dependencies of ``root`` (root excluded), depth-first pre-order.

        Raises:
            ConstraintParseError: A declared range is malformed.
            PackageNotFoundError: No version of a dependency satisfies its range.
        """
        result: List[PackageCandidate] = []
        visited: Set[str] = {root.id.lower()}
        stack: List[Tuple[PackageCandidate, Iterator[PackageDependency]]] = [
            (root, iter(root.dependencies))
        ]

        while stack:
            parent, pending = stack[-1]
            dep = next(pending, None)
            if dep is None:
                stack.pop()
                continue
            if dep.id.lower() in visited:
                continue
            visited.add(dep.id.lower())

            dep_range = self._parse_range(dep, parent)
            selected = self._select(dep, dep_range, parent)

            satisfied = not self.options.reinstall and self.inventory.is_satisfied(dep.id, dep_range)
            if not satisfied:
                result.append(selected)
            if is_debug_enabled(logger):
                logger.debug(
                    "Dependency selected",
                    extra=extra_context(
                        event="dependency",
                        component="dependency_graph",
                        action="expand",
                        outcome="already_installed" if satisfied else "planned",
                        package_id=selected.id,
                        version=selected.version.normalized,
                        target=parent.id,
                    ),
                )
            stack.append((selected, iter(selected.dependencies)))

        return result

    def _parse_range(self, dep: PackageDependency, parent: PackageCandidate) -> Optional[VersionRange]:
        if not dep.range_text:
            return None
        try:
            return VersionRange.parse(dep.range_text)
        except ConstraintParseError as exc:
            raise ConstraintParseError(
                f"'{parent.id}' declares an invalid version range for dependency '{dep.id}'",
                package_id=dep.id,
                repository=self.feed.repository.name,
                constraint=dep.range_text,
            ) from exc

    def _select(
        self,
        dep: PackageDependency,
        dep_range: Optional[VersionRange],
        parent: PackageCandidate,
    ) -> PackageCandidate:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled(dep.id)
        candidates = self.feed.query_versions(
            dep.id, self.options.prerelease, True, self.cancel_token
        )
        if dep_range is None:
            # No range declared: take the feed's newest entry
            selected = next((c for c in candidates if c.id.lower() == dep.id.lower()), None)
        else:
            constraint = VersionConstraint(raw=dep.range_text, mode=ResolutionMode.RANGE, range=dep_range)
            selected = self.resolver.resolve(dep.id, constraint, self.options.prerelease, candidates)
        if selected is None:
            raise PackageNotFoundError(
                f"Dependency '{dep.id}' of '{parent.id}' could not be found",
                package_id=dep.id,
                repository=self.feed.repository.name,
                constraint=dep.range_text,
            )
        return selected
