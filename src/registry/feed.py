"""Feed client interface and factory."""

from __future__ import annotations

import logging
import os
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import List, Optional

from common.logging_utils import extra_context, is_debug_enabled, safe_url
from install.cancellation import CancellationToken
from install.errors import RepositoryUnavailableError
from install.models import PackageCandidate, RepositoryEndpoint

logger = logging.getLogger(__name__)


class FeedClient(ABC):
    """Synchronous access to one repository."""

    def __init__(self, repository: RepositoryEndpoint):
        self.repository = repository

    @abstractmethod
    def query_versions(
        self,
        package_id: str,
        include_prerelease: bool,
        include_dependency_info_only: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[PackageCandidate]:
        """All published versions of ``package_id``, newest first.

        An unknown id yields an empty list. Transport failures raise
        RepositoryUnavailableError.
        """

    @abstractmethod
    def download(
        self,
        candidate: PackageCandidate,
        destination_dir: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Fetch and extract ``candidate``.

        Returns:
            str: ``<destination_dir>/<id lower>/<normalized version>``
        """

    @staticmethod
    def extraction_dir(candidate: PackageCandidate, destination_dir: str) -> str:
        return os.path.join(destination_dir, candidate.id.lower(), candidate.version.normalized)


def local_path_from_url(url: str) -> Optional[str]:
    """Filesystem path for ``file://`` URLs and plain paths, else None."""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme == "file":
        return urllib.request.url2pathname(parsed.path)
    # Windows drive letters parse as a one-letter scheme
    if parsed.scheme == "" or len(parsed.scheme) == 1:
        return os.path.expanduser(url)
    return None


def create_feed(repository: RepositoryEndpoint) -> FeedClient:
    """Pick a feed implementation from the repository URL scheme.

    Raises:
        RepositoryUnavailableError: Unsupported scheme or missing local directory.
    """
    # Imported here: both implementations import this module for FeedClient
    from registry.local import LocalFeed  # pylint: disable=import-outside-toplevel
    from registry.nuget.client import NuGetFeed  # pylint: disable=import-outside-toplevel

    scheme = urllib.parse.urlparse(repository.url).scheme.lower()
    if scheme in ("http", "https"):
        feed: FeedClient = NuGetFeed(repository)
    elif local_path_from_url(repository.url) is not None:
        feed = LocalFeed(repository)
    else:
        raise RepositoryUnavailableError(
            f"Unsupported repository URL scheme '{scheme}'",
            repository=repository.name,
        )

    if is_debug_enabled(logger):
        logger.debug(
            "Created feed",
            extra=extra_context(
                event="feed_create",
                component="feed",
                action="create",
                outcome=type(feed).__name__,
                repository=repository.name,
                target=safe_url(repository.url),
            ),
        )
    return feed
