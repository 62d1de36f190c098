"""Repository settings: which feeds exist, their trust and priority.

Settings are a YAML (or JSON) document::

    repositories:
      - name: PSGallery
        url: https://www.powershellgallery.com/api/v2
        trusted: false
        priority: 50
      - name: Internal
        url: https://nuget.example.com/v3/index.json
        trusted: true
        priority: 10
        credential:
          username: builder
          password_env: INTERNAL_FEED_TOKEN

``repositories`` may also be a mapping of name -> settings. Without a
settings file the built-in PSGallery entry (untrusted) is used.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from install.errors import InstallError
from install.models import Credential, RepositoryEndpoint

logger = logging.getLogger(__name__)


class RepositorySettingsError(InstallError):
    """The repository settings file is missing, unreadable or invalid."""

    kind = "RepositorySettingsError"


def default_repositories() -> List[RepositoryEndpoint]:
    return [
        RepositoryEndpoint(
            name=Constants.DEFAULT_REPOSITORY_NAME,
            url=Constants.DEFAULT_REPOSITORY_URL,
            trusted=False,
            priority=Constants.DEFAULT_REPOSITORY_PRIORITY,
        )
    ]


def default_settings_path() -> str:
    config_home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(config_home, Constants.PROG_NAME, Constants.REPOSITORIES_FILE)


def resolve_settings_path(
    cli_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    """Settings file to use: CLI path, then env var, then the default location.

    An explicit (CLI or env) path is returned even when missing so the
    loader can report it; the default location only when it exists.
    """
    env = os.environ if environ is None else environ
    if cli_path:
        return cli_path
    if env.get(Constants.ENV_REPOSITORIES):
        return env[Constants.ENV_REPOSITORIES]
    default = default_settings_path()
    return default if os.path.isfile(default) else None


def _as_bool(value: Any, field: str, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "false", "no", "0"):
        return value.strip().lower() in ("true", "yes", "1")
    raise RepositorySettingsError(f"Repository '{name}': '{field}' must be a boolean", repository=name)


def _credential(raw: Any, name: str, environ: Mapping[str, str]) -> Optional[Credential]:
    if raw is None:
        return None
    if not isinstance(raw, dict) or not raw.get("username"):
        raise RepositorySettingsError(f"Repository '{name}': credential needs a username", repository=name)
    password = raw.get("password")
    if password is None and raw.get("password_env"):
        password = environ.get(str(raw["password_env"]))
        if password is None:
            logger.warning(
                "Repository '%s': environment variable %s is not set", name, raw["password_env"]
            )
    return Credential(username=str(raw["username"]), password=str(password or ""))


def _endpoint(name: str, raw: Dict[str, Any], environ: Mapping[str, str]) -> RepositoryEndpoint:
    url = raw.get("url") or raw.get("uri")
    if not url:
        raise RepositorySettingsError(f"Repository '{name}' has no url", repository=name)
    try:
        priority = int(raw.get("priority", Constants.DEFAULT_REPOSITORY_PRIORITY))
    except (TypeError, ValueError) as exc:
        raise RepositorySettingsError(f"Repository '{name}': priority must be an integer", repository=name) from exc
    return RepositoryEndpoint(
        name=name,
        url=str(url),
        trusted=_as_bool(raw.get("trusted", False), "trusted", name),
        priority=priority,
        credential=_credential(raw.get("credential"), name, environ),
    )


def parse_repository_settings(
    data: Any, environ: Optional[Mapping[str, str]] = None
) -> List[RepositoryEndpoint]:
    """Validate a decoded settings document into endpoints."""
    env = os.environ if environ is None else environ
    if not isinstance(data, dict) or "repositories" not in data:
        raise RepositorySettingsError("Repository settings must contain a 'repositories' section")
    section = data["repositories"]
    entries: List[RepositoryEndpoint] = []
    if isinstance(section, dict):
        for name, raw in section.items():
            if not isinstance(raw, dict):
                raise RepositorySettingsError(f"Repository '{name}' must be a mapping", repository=str(name))
            entries.append(_endpoint(str(name), raw, env))
    elif isinstance(section, list):
        for raw in section:
            if not isinstance(raw, dict) or not raw.get("name"):
                raise RepositorySettingsError("Each repository entry needs a name")
            entries.append(_endpoint(str(raw["name"]), raw, env))
    else:
        raise RepositorySettingsError("'repositories' must be a list or a mapping")

    seen = set()
    for entry in entries:
        if entry.name.lower() in seen:
            raise RepositorySettingsError(f"Repository '{entry.name}' is defined twice", repository=entry.name)
        seen.add(entry.name.lower())
    return entries


def load_repository_settings(
    path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> List[RepositoryEndpoint]:
    """Load endpoints from ``path`` (YAML or JSON); defaults when ``path`` is None."""
    if not path:
        return default_repositories()
    if not os.path.isfile(path):
        raise RepositorySettingsError(f"Repository settings file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise RepositorySettingsError(f"Could not read repository settings {path}: {exc}") from exc

    entries = parse_repository_settings(data, environ)
    if is_debug_enabled(logger):
        logger.debug(
            "Loaded repository settings",
            extra=extra_context(
                event="config_load",
                component="repository_settings",
                action="load",
                count=len(entries),
                target=path,
            ),
        )
    return entries


def select_repositories(
    available: Sequence[RepositoryEndpoint], names: Optional[Sequence[str]] = None
) -> List[RepositoryEndpoint]:
    """Order repositories for an install.

    Explicit ``names`` are used in the given order; otherwise every
    repository is used, by ascending priority then name.
    """
    if not names:
        return sorted(available, key=lambda r: (r.priority, r.name.lower()))
    by_name = {r.name.lower(): r for r in available}
    selected: List[RepositoryEndpoint] = []
    for name in names:
        repo = by_name.get(name.lower())
        if repo is None:
            raise RepositorySettingsError(f"Unable to find repository '{name}'", repository=name)
        if repo not in selected:
            selected.append(repo)
    for repo in selected:
        logger.debug("Using repository %s (%s)", repo.name, safe_url(repo.url))
    return selected
