"""Version resolver: pick the best candidate for a constraint."""

import logging
from typing import Iterable, List, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from install.models import PackageCandidate
from .models import PackageRequest, ResolutionMode, VersionConstraint
from .ranges import VersionRange

logger = logging.getLogger(__name__)


class VersionResolver:
    """Select the maximum satisfying version from feed candidates.

    Candidates are the feed's answer for one package id. Selection never
    raises for "nothing matched"; it returns None and leaves the decision to
    the caller. Malformed constraints are rejected earlier, when the
    constraint is parsed.
    """

    def resolve(
        self,
        package_id: str,
        constraint: VersionConstraint,
        prerelease: bool,
        candidates: Iterable[PackageCandidate],
    ) -> Optional[PackageCandidate]:
        """Return the best candidate, or None when nothing satisfies."""
        picked, count, error = self.pick(package_id, constraint, prerelease, list(candidates))
        if is_debug_enabled(logger):
            logger.debug(
                "Version resolution finished",
                extra=extra_context(
                    event="resolve",
                    component="version_resolver",
                    action="pick",
                    outcome="resolved" if picked else "not_found",
                    package_id=package_id,
                    version=str(picked.version) if picked else None,
                    count=count,
                    context=error,
                ),
            )
        return picked

    def resolve_request(
        self, req: PackageRequest, candidates: Iterable[PackageCandidate]
    ) -> Optional[PackageCandidate]:
        """Convenience wrapper taking a PackageRequest."""
        return self.resolve(req.name, req.constraint, req.prerelease, candidates)

    def pick(
        self,
        package_id: str,
        constraint: VersionConstraint,
        prerelease: bool,
        candidates: List[PackageCandidate],
    ) -> Tuple[Optional[PackageCandidate], int, Optional[str]]:
        """Apply constraint rules to select a candidate.

        Args:
            package_id: Requested id (compared case-insensitively)
            constraint: Parsed constraint
            prerelease: Whether prerelease versions are eligible
            candidates: Feed candidates in feed order

        Returns:
            Tuple of (candidate_or_none, candidate_count, error_message)
        """
        wanted = package_id.lower()
        allow_pre = prerelease or constraint.pins_prerelease
        eligible = [
            c for c in candidates
            if c.id.lower() == wanted and (allow_pre or not c.version.is_prerelease)
        ]
        if not eligible:
            return None, 0, "No versions available"

        if constraint.mode == ResolutionMode.LATEST:
            return self._pick_latest(eligible)
        if constraint.mode == ResolutionMode.EXACT:
            return self._pick_exact(constraint, eligible)
        return self._pick_range(constraint.range, eligible)

    def _pick_latest(
        self, candidates: List[PackageCandidate]
    ) -> Tuple[Optional[PackageCandidate], int, Optional[str]]:
        """Pick the highest version; the first of equal versions wins."""
        best: Optional[PackageCandidate] = None
        for candidate in candidates:
            if best is None or candidate.version > best.version:
                best = candidate
        return best, len(candidates), None

    def _pick_exact(
        self, constraint: VersionConstraint, candidates: List[PackageCandidate]
    ) -> Tuple[Optional[PackageCandidate], int, Optional[str]]:
        """Single-point range match."""
        for candidate in candidates:
            if constraint.range.satisfies(candidate.version):
                return candidate, len(candidates), None
        return None, len(candidates), f"Version {constraint} not found"

    def _pick_range(
        self, version_range: VersionRange, candidates: List[PackageCandidate]
    ) -> Tuple[Optional[PackageCandidate], int, Optional[str]]:
        """Filter by range and pick the highest match."""
        matching = [c for c in candidates if version_range.satisfies(c.version)]
        if not matching:
            return None, len(candidates), f"No versions match range '{version_range}'"
        best, _, _ = self._pick_latest(matching)
        return best, len(candidates), None
