"""NuGet feed client: V3 API (primary) and V2 OData API (fallback)."""
from __future__ import annotations

import logging
import os
import shutil
import urllib.parse
from typing import Any, Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

from constants import Constants
from common.http_client import download_file, get_json, get_text
from common.logging_utils import extra_context, is_debug_enabled, Timer, safe_url
from install.cancellation import CancellationToken
from install.errors import RepositoryUnavailableError
from install.models import DependencyGroup, PackageCandidate, PackageDependency, RepositoryEndpoint
from registry.feed import FeedClient
from registry.nupkg import extract_nupkg
from versioning.cache import TTLCache
from versioning.version import version_from_str

logger = logging.getLogger(__name__)

ATOM_NS = "{http://www.w3.org/2005/Atom}"
DATA_NS = "{http://schemas.microsoft.com/ado/2007/08/dataservices}"
META_NS = "{http://schemas.microsoft.com/ado/2007/08/dataservices/metadata}"

# Registration resource types in order of preference
REGISTRATION_TYPES = (
    Constants.NUGET_V3_REGISTRATIONS,
    "RegistrationsBaseUrl/3.4.0",
    "RegistrationsBaseUrl/3.0.0-rc",
    "RegistrationsBaseUrl",
)

# Process-wide query cache shared by all NuGetFeed instances
_QUERY_CACHE: TTLCache[List[PackageCandidate]] = TTLCache(default_ttl=Constants.FEED_CACHE_TTL_SEC)


def _as_text(value: Any) -> Optional[str]:
    """Join list-valued fields (authors, owners) into a display string."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        joined = ", ".join(str(v) for v in value if v)
        return joined or None
    text = str(value).strip()
    return text or None


def _as_tags(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return value.split()
    tags: List[str] = []
    for item in value:
        tags.extend(str(item).split())
    return tags


def parse_v2_dependencies(raw: Optional[str]) -> List[DependencyGroup]:
    """Parse a V2 ``Dependencies`` string (``Id:Range:Framework|...``)."""
    if not raw:
        return []
    groups: Dict[Optional[str], List[PackageDependency]] = {}
    for item in raw.split("|"):
        item = item.strip()
        if not item:
            continue
        parts = item.split(":")
        dep_id = parts[0].strip()
        if not dep_id:
            continue
        dep_range = parts[1].strip() if len(parts) > 1 and parts[1].strip() else None
        framework = parts[2].strip() if len(parts) > 2 and parts[2].strip() else None
        groups.setdefault(framework, []).append(PackageDependency(dep_id, dep_range))
    return [DependencyGroup(framework, tuple(deps)) for framework, deps in groups.items()]


class NuGetFeed(FeedClient):
    """NuGet repository over HTTP.

    The repository URL is probed once as a V3 service index; when it is not
    one (PowerShell Gallery's ``/api/v2`` for instance) the V2 OData protocol
    is used against the same base URL.
    """

    def __init__(self, repository: RepositoryEndpoint, cache: Optional[TTLCache] = None):
        super().__init__(repository)
        self.base_url = repository.url.rstrip("/")
        self.auth: Optional[Tuple[str, str]] = (
            repository.credential.as_auth() if repository.credential else None
        )
        self.cache = cache if cache is not None else _QUERY_CACHE
        self._resources: Optional[Dict[str, str]] = None
        self._protocol: Optional[str] = None

    # -- protocol discovery ----------------------------------------------

    def _discover(self) -> str:
        """Return "v3" or "v2", probing the service index once."""
        if self._protocol is not None:
            return self._protocol
        status, _, index_data = get_json(self.repository.url, context=self.repository.name, auth=self.auth)
        resources: Dict[str, str] = {}
        if status == 200 and isinstance(index_data, dict):
            for resource in index_data.get("resources", []):
                res_type = resource.get("@type")
                res_id = resource.get("@id")
                types = res_type if isinstance(res_type, list) else [res_type]
                for t in types:
                    if t and res_id and t not in resources:
                        resources[t] = res_id
        if any(t in resources for t in REGISTRATION_TYPES):
            self._resources = resources
            self._protocol = "v3"
        else:
            self._protocol = "v2"
        if is_debug_enabled(logger):
            logger.debug(
                "Feed protocol selected",
                extra=extra_context(
                    event="decision",
                    component="nuget_client",
                    action="discover",
                    outcome=self._protocol,
                    repository=self.repository.name,
                    target=safe_url(self.repository.url),
                ),
            )
        return self._protocol

    def _registration_base(self) -> str:
        assert self._resources is not None
        for res_type in REGISTRATION_TYPES:
            if res_type in self._resources:
                return self._resources[res_type].rstrip("/") + "/"
        raise RepositoryUnavailableError("Service index has no registrations resource", repository=self.repository.name)

    # -- queries ---------------------------------------------------------

    def query_versions(
        self,
        package_id: str,
        include_prerelease: bool,
        include_dependency_info_only: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[PackageCandidate]:
        """All versions of ``package_id``, newest first (see FeedClient).

        ``include_dependency_info_only`` is accepted for interface parity;
        both protocols return full metadata in the same request.
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(package_id)
        cache_key = f"{self.base_url.lower()}|{package_id.lower()}"
        candidates = self.cache.get(cache_key)
        if candidates is None:
            with Timer() as t:
                if self._discover() == "v3":
                    candidates = self._fetch_v3(package_id, cancel_token)
                else:
                    candidates = self._fetch_v2(package_id, cancel_token)
            candidates.sort(key=lambda c: c.version, reverse=True)
            self.cache.set(cache_key, candidates)
            if is_debug_enabled(logger):
                logger.debug(
                    "Fetched package versions",
                    extra=extra_context(
                        event="feed_query",
                        component="nuget_client",
                        action="query_versions",
                        outcome=self._protocol,
                        package_id=package_id,
                        count=len(candidates),
                        duration_ms=t.duration_ms(),
                        repository=self.repository.name,
                    ),
                )
        if include_prerelease:
            return list(candidates)
        return [c for c in candidates if not c.version.is_prerelease]

    def _check_status(self, status: int, url: str) -> bool:
        """True for 200, False for 404; anything else is fatal for the feed."""
        if status == 200:
            return True
        if status == 404:
            return False
        raise RepositoryUnavailableError(
            f"{safe_url(url)} returned HTTP {status}", repository=self.repository.name
        )

    def _fetch_v3(self, package_id: str, cancel_token: Optional[CancellationToken]) -> List[PackageCandidate]:
        encoded_id = urllib.parse.quote(package_id.lower(), safe="")
        registration_url = f"{self._registration_base()}{encoded_id}/index.json"
        status, _, reg_data = get_json(registration_url, context=self.repository.name, auth=self.auth)
        if not self._check_status(status, registration_url) or not isinstance(reg_data, dict):
            return []

        candidates: List[PackageCandidate] = []
        for page in reg_data.get("items", []):
            leaves = page.get("items")
            if leaves is None and page.get("@id"):
                # Large packages page their registrations out
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled(package_id)
                page_status, _, page_data = get_json(page["@id"], context=self.repository.name, auth=self.auth)
                if not self._check_status(page_status, page["@id"]) or not isinstance(page_data, dict):
                    continue
                leaves = page_data.get("items", [])
            for leaf in leaves or []:
                candidate = self._candidate_from_leaf(leaf)
                if candidate is not None:
                    candidates.append(candidate)
        return candidates

    def _candidate_from_leaf(self, leaf: Dict[str, Any]) -> Optional[PackageCandidate]:
        entry = leaf.get("catalogEntry")
        if not isinstance(entry, dict):
            return None
        version = version_from_str(entry.get("version"))
        if version is None or not entry.get("id"):
            return None
        if entry.get("listed") is False:
            return None
        groups = []
        for group in entry.get("dependencyGroups") or []:
            deps = tuple(
                PackageDependency(dep["id"], dep.get("range") or None)
                for dep in group.get("dependencies") or []
                if dep.get("id")
            )
            groups.append(DependencyGroup(group.get("targetFramework"), deps))
        return PackageCandidate(
            id=entry["id"],
            version=version,
            dependency_groups=groups,
            tags=_as_tags(entry.get("tags")),
            authors=_as_text(entry.get("authors")),
            owners=_as_text(entry.get("owners")),
            description=entry.get("description"),
            license_url=entry.get("licenseUrl") or None,
            project_url=entry.get("projectUrl") or None,
            icon_url=entry.get("iconUrl") or None,
            published=entry.get("published"),
            require_license_acceptance=bool(entry.get("requireLicenseAcceptance")),
            repository_name=self.repository.name,
            repository_url=self.repository.url,
            download_url=leaf.get("packageContent") or entry.get("packageContent"),
        )

    def _fetch_v2(self, package_id: str, cancel_token: Optional[CancellationToken]) -> List[PackageCandidate]:
        quoted = urllib.parse.quote(f"'{package_id}'", safe="")
        url: Optional[str] = f"{self.base_url}/FindPackagesById()?id={quoted}"
        candidates: List[PackageCandidate] = []
        visited = set()
        while url and url not in visited and len(visited) < Constants.NUGET_V2_PAGE_LIMIT:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(package_id)
            visited.add(url)
            status, text = get_text(url, context=self.repository.name, auth=self.auth)
            if not self._check_status(status, url) or not text:
                break
            try:
                root = ET.fromstring(text)
            except ET.ParseError as exc:
                raise RepositoryUnavailableError(
                    f"Malformed OData response from {safe_url(url)}: {exc}",
                    repository=self.repository.name,
                ) from exc
            for entry in root.findall(f"{ATOM_NS}entry"):
                candidate = self._candidate_from_entry(entry, package_id)
                if candidate is not None:
                    candidates.append(candidate)
            url = None
            for link in root.findall(f"{ATOM_NS}link"):
                if link.get("rel") == "next" and link.get("href"):
                    url = link.get("href")
        return candidates

    def _candidate_from_entry(self, entry: ET.Element, package_id: str) -> Optional[PackageCandidate]:
        props = entry.find(f"{META_NS}properties")
        if props is None:
            props = entry.find(f".//{META_NS}properties")
        if props is None:
            return None

        def prop(name: str) -> Optional[str]:
            elem = props.find(f"{DATA_NS}{name}")
            if elem is None or elem.text is None or elem.get(f"{META_NS}null") == "true":
                return None
            return elem.text.strip() or None

        version = version_from_str(prop("NormalizedVersion") or prop("Version"))
        if version is None:
            return None
        title = entry.findtext(f"{ATOM_NS}title")
        author = entry.findtext(f"{ATOM_NS}author/{ATOM_NS}name")
        content = entry.find(f"{ATOM_NS}content")
        return PackageCandidate(
            id=prop("Id") or (title.strip() if title else package_id),
            version=version,
            dependency_groups=parse_v2_dependencies(prop("Dependencies")),
            tags=_as_tags(prop("Tags")),
            authors=prop("Authors") or author,
            owners=prop("Owners") or prop("CompanyName"),
            description=prop("Description"),
            license_url=prop("LicenseUrl"),
            project_url=prop("ProjectUrl"),
            icon_url=prop("IconUrl"),
            published=prop("Published"),
            require_license_acceptance=(prop("RequireLicenseAcceptance") or "").lower() == "true",
            repository_name=self.repository.name,
            repository_url=self.repository.url,
            download_url=content.get("src") if content is not None else None,
        )

    # -- download --------------------------------------------------------

    def _download_url(self, candidate: PackageCandidate) -> str:
        if candidate.download_url:
            return candidate.download_url
        if self._discover() == "v3" and self._resources and Constants.NUGET_V3_PACKAGE_BASE in self._resources:
            base = self._resources[Constants.NUGET_V3_PACKAGE_BASE].rstrip("/")
            lower_id = candidate.id.lower()
            lower_ver = candidate.version.normalized.lower()
            return f"{base}/{lower_id}/{lower_ver}/{lower_id}.{lower_ver}.nupkg"
        return f"{self.base_url}/package/{candidate.id}/{candidate.version.normalized}"

    def download(
        self,
        candidate: PackageCandidate,
        destination_dir: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(candidate.id)
        os.makedirs(destination_dir, exist_ok=True)
        nupkg_path = os.path.join(
            destination_dir, f"{candidate.id.lower()}.{candidate.version.normalized.lower()}.nupkg"
        )
        download_file(
            self._download_url(candidate),
            nupkg_path,
            context=self.repository.name,
            auth=self.auth,
            cancel_token=cancel_token,
        )
        target = self.extraction_dir(candidate, destination_dir)
        if os.path.isdir(target):
            shutil.rmtree(target)
        try:
            return extract_nupkg(nupkg_path, target)
        finally:
            os.remove(nupkg_path)
