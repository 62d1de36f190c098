"""Required-resource manifests: several packages, each with its own switches.

A manifest maps package names either to a version string or to a table of
settings::

    {
      "Pester": "[5.0.0,6.0.0)",
      "PSReadLine": {"version": "2.3.4", "repository": "PSGallery", "acceptLicense": true}
    }

Files may be JSON or YAML. PowerShell data files (``.psd1``) are not read.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml

from constants import Constants
from install.errors import ManifestFormatError
from install.models import Credential, InstallOptions
from versioning.models import PackageRequest
from versioning.parser import parse_request

logger = logging.getLogger(__name__)

# Manifest key (lowercased) -> InstallOptions field
_SWITCHES = {
    "acceptlicense": "accept_license",
    "quiet": "quiet",
    "reinstall": "reinstall",
    "force": "force",
    "trustrepository": "trust_repository",
    "noclobber": "no_clobber",
}
_KNOWN_KEYS = set(_SWITCHES) | {"version", "prerelease", "repository", "scope", "credential"}


@dataclass
class RequiredResource:
    """One manifest entry ready to hand to the repository selector."""
    request: PackageRequest
    options: InstallOptions
    repositories: List[str] = field(default_factory=list)
    scope: Optional[str] = None


def _manifest_error(message: str, name: Optional[str] = None) -> ManifestFormatError:
    return ManifestFormatError(message, package_id=name)


def _flag(value: Any, key: str, name: str) -> bool:
    if isinstance(value, bool):
        return value
    raise _manifest_error(f"'{key}' of '{name}' must be true or false", name)


def _credential(value: Any, name: str, environ: Mapping[str, str]) -> Credential:
    if isinstance(value, str) and value:
        return Credential(username=value, password=environ.get(Constants.ENV_PASSWORD, ""))
    if isinstance(value, dict) and value.get("username"):
        password = value.get("password")
        if password is None:
            password = environ.get(Constants.ENV_PASSWORD, "")
        return Credential(username=str(value["username"]), password=str(password))
    raise _manifest_error(f"'credential' of '{name}' must be a user name or a username/password table", name)


def _entry(
    name: str,
    raw: Any,
    base: InstallOptions,
    environ: Mapping[str, str],
) -> RequiredResource:
    if raw is None or isinstance(raw, str):
        return RequiredResource(request=parse_request(name, raw, base.prerelease, source="manifest"), options=base)
    if not isinstance(raw, dict):
        raise _manifest_error(f"Entry '{name}' must be a version string or a table", name)

    settings = {str(k).lower(): v for k, v in raw.items()}
    unknown = sorted(set(settings) - _KNOWN_KEYS)
    if unknown:
        raise _manifest_error(f"Entry '{name}' has unknown keys: {', '.join(unknown)}", name)

    overrides: Dict[str, Any] = {}
    for key, attr in _SWITCHES.items():
        if key in settings:
            overrides[attr] = _flag(settings[key], key, name)
    prerelease = base.prerelease
    if "prerelease" in settings:
        prerelease = _flag(settings["prerelease"], "prerelease", name)
        overrides["prerelease"] = prerelease
    if settings.get("credential") is not None:
        overrides["credential"] = _credential(settings["credential"], name, environ)

    version = settings.get("version")
    if version is not None and not isinstance(version, str):
        version = str(version)

    repositories = settings.get("repository") or []
    if isinstance(repositories, str):
        repositories = [repositories]
    if not isinstance(repositories, list) or not all(isinstance(r, str) for r in repositories):
        raise _manifest_error(f"'repository' of '{name}' must be a name or a list of names", name)

    scope = settings.get("scope")
    if scope is not None and scope not in Constants.SUPPORTED_SCOPES:
        raise _manifest_error(
            f"'scope' of '{name}' must be one of {', '.join(Constants.SUPPORTED_SCOPES)}", name
        )

    return RequiredResource(
        request=parse_request(name, version, prerelease, source="manifest"),
        options=dataclasses.replace(base, **overrides),
        repositories=list(repositories),
        scope=scope,
    )


def parse_required_resources(
    data: Any,
    base_options: Optional[InstallOptions] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> List[RequiredResource]:
    """Turn a decoded manifest into RequiredResource entries, in manifest order."""
    if not isinstance(data, dict) or not data:
        raise _manifest_error("A required-resource manifest must be a non-empty table of package names")
    base = base_options or InstallOptions()
    env = os.environ if environ is None else environ
    resources = [_entry(str(name), raw, base, env) for name, raw in data.items()]
    logger.debug("Loaded %d required resource(s)", len(resources))
    return resources


def load_required_resources(
    path: Optional[str] = None,
    text: Optional[str] = None,
    base_options: Optional[InstallOptions] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> List[RequiredResource]:
    """Load a manifest from ``path`` (.json/.yml/.yaml) or from a JSON ``text``.

    Raises:
        ManifestFormatError: Unsupported file type, missing file or malformed content.
    """
    if (path is None) == (text is None):
        raise ValueError("Pass exactly one of path or text")

    if text is not None:
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise _manifest_error(f"Required resource is not valid JSON: {exc}") from exc
        return parse_required_resources(data, base_options, environ)

    ext = os.path.splitext(path)[1].lower()
    if ext == ".psd1":
        raise _manifest_error(f"PowerShell data files are not supported: {path}")
    if ext not in (".json", ".yml", ".yaml"):
        raise _manifest_error(f"Unsupported required-resource file type '{ext or path}'")
    if not os.path.isfile(path):
        raise _manifest_error(f"Required-resource file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh) if ext == ".json" else yaml.safe_load(fh)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise _manifest_error(f"Could not read required-resource file {path}: {exc}") from exc
    return parse_required_resources(data, base_options, environ)
