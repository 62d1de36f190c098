"""Local directory feed: a folder (or file:// URL) of .nupkg files."""

from __future__ import annotations

import logging
import os
import shutil
from typing import Dict, List, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from install.cancellation import CancellationToken
from install.errors import RepositoryUnavailableError
from install.models import PackageCandidate, RepositoryEndpoint
from registry.feed import FeedClient, local_path_from_url
from registry.nupkg import candidate_from_nuspec, extract_nupkg, read_nuspec

logger = logging.getLogger(__name__)


class LocalFeed(FeedClient):
    """Feed backed by ``.nupkg`` files anywhere below a directory.

    The directory is indexed lazily on the first query; packages whose nuspec
    cannot be read are skipped with a warning.
    """

    def __init__(self, repository: RepositoryEndpoint):
        super().__init__(repository)
        path = local_path_from_url(repository.url)
        if not path or not os.path.isdir(path):
            raise RepositoryUnavailableError(
                f"Repository directory '{repository.url}' does not exist",
                repository=repository.name,
            )
        self.root = path
        self._index: Optional[Dict[Tuple[str, str], Tuple[PackageCandidate, str]]] = None

    def _build_index(self) -> Dict[Tuple[str, str], Tuple[PackageCandidate, str]]:
        index: Dict[Tuple[str, str], Tuple[PackageCandidate, str]] = {}
        for dirpath, _, filenames in os.walk(self.root):
            for filename in sorted(filenames):
                if not filename.lower().endswith(".nupkg"):
                    continue
                path = os.path.join(dirpath, filename)
                try:
                    candidate = candidate_from_nuspec(
                        read_nuspec(path),
                        repository_name=self.repository.name,
                        repository_url=self.repository.url,
                        download_url=path,
                    )
                except ValueError as exc:
                    logger.warning("Skipping unreadable package %s: %s", path, exc)
                    continue
                index.setdefault(candidate.key, (candidate, path))
        if is_debug_enabled(logger):
            logger.debug(
                "Indexed local feed",
                extra=extra_context(
                    event="feed_index",
                    component="local_feed",
                    action="index",
                    count=len(index),
                    repository=self.repository.name,
                    target=self.root,
                ),
            )
        return index

    def _entries(self) -> Dict[Tuple[str, str], Tuple[PackageCandidate, str]]:
        if self._index is None:
            self._index = self._build_index()
        return self._index

    def query_versions(
        self,
        package_id: str,
        include_prerelease: bool,
        include_dependency_info_only: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[PackageCandidate]:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(package_id)
        wanted = package_id.lower()
        found = [
            candidate
            for candidate, _ in self._entries().values()
            if candidate.id.lower() == wanted
            and (include_prerelease or not candidate.version.is_prerelease)
        ]
        found.sort(key=lambda c: c.version, reverse=True)
        return found

    def download(
        self,
        candidate: PackageCandidate,
        destination_dir: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(candidate.id)
        entry = self._entries().get(candidate.key)
        if entry is None:
            raise RepositoryUnavailableError(
                f"Package file for {candidate} disappeared from the feed",
                package_id=candidate.id,
                repository=self.repository.name,
            )
        target = self.extraction_dir(candidate, destination_dir)
        if os.path.isdir(target):
            shutil.rmtree(target)
        return extract_nupkg(entry[1], target)
