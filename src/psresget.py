#! /usr/bin/env python3
"""psresget: install PowerShell modules and scripts from NuGet repositories.

Resolves the requested packages and their dependencies against the
configured repositories, skips what is already installed and installs the
rest through a staging directory so the local package store is never left
half updated.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from args import parse_args
from cli_config import apply_cli_overrides, build_credential, build_options
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from install.cancellation import CancellationToken
from install.errors import (
    InstallError,
    ManifestFormatError,
    OperationCancelledError,
    RepositoryUnavailableError,
)
from install.host import ConsoleHost, InstallHost, NonInteractiveHost
from install.models import InstallOptions, InstallResult
from install.paths import resolve_install_paths
from install.selector import RepositorySelector
from install.staging import StagingEngine
from repository.settings import RepositorySettingsError, load_repository_settings, resolve_settings_path, select_repositories
from required_resource import load_required_resources
from versioning.models import VersionConstraint
from versioning.parser import parse_constraint

logger = logging.getLogger(__name__)


@dataclass
class InstallJob:
    """One selector call: names sharing a constraint, repositories and switches."""
    names: List[str]
    constraint: VersionConstraint
    options: InstallOptions
    repositories: List[str] = field(default_factory=list)
    scope: Optional[str] = None


def build_jobs(args, options: InstallOptions) -> List[InstallJob]:
    """Jobs for the invocation: one for ``-n``, one per required resource."""
    if args.NAME:
        return [
            InstallJob(
                names=list(args.NAME),
                constraint=parse_constraint(args.VERSION),
                options=options,
                repositories=list(args.REPOSITORY or []),
                scope=args.SCOPE,
            )
        ]
    if args.REQUIRED_RESOURCE_FILE:
        resources = load_required_resources(path=args.REQUIRED_RESOURCE_FILE, base_options=options)
    else:
        resources = load_required_resources(text=args.REQUIRED_RESOURCE, base_options=options)
    return [
        InstallJob(
            names=[res.request.name],
            constraint=res.request.constraint,
            options=res.options,
            repositories=res.repositories or list(args.REPOSITORY or []),
            scope=res.scope or args.SCOPE,
        )
        for res in resources
    ]


def run(args, host: InstallHost, cancel_token: CancellationToken) -> InstallResult:
    """Run every job of the invocation and merge their results.

    Raises:
        InstallError: The first fatal error, already reported through ``host``.
    """
    try:
        credential = build_credential(args.CREDENTIAL, interactive=not args.NON_INTERACTIVE)
        jobs = build_jobs(args, build_options(args, credential))
        repositories = load_repository_settings(resolve_settings_path(args.CONFIG))
    except InstallError as exc:
        host.fail(exc)

    result = InstallResult()
    for job in jobs:
        try:
            paths = resolve_install_paths(job.scope, args.INSTALL_ROOT)
            ordered = select_repositories(repositories, job.repositories)
        except InstallError as exc:
            host.fail(exc)

        engine = StagingEngine(paths, host, cancel_token=cancel_token)
        selector = RepositorySelector(engine, host)
        job_result = selector.install(job.names, job.constraint, ordered, job.options)

        result.installed.extend(job_result.installed)
        result.already_satisfied.extend(job_result.already_satisfied)
        result.not_found.extend(job_result.not_found)
        for name in job_result.repositories_tried:
            if name not in result.repositories_tried:
                result.repositories_tried.append(name)
    return result


def export_json(path: str, result: InstallResult, error: Optional[InstallError] = None) -> None:
    """Write the install result (and the fatal error, if any) as JSON."""
    document = result.to_dict()
    if error is not None:
        document["error"] = dict(error.context(), message=error.message)
    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2)
        logger.info("Result written to %s", path)
    except OSError as exc:
        logger.error("Could not write %s: %s", path, exc)


def exit_code_for(error: InstallError) -> ExitCodes:
    if isinstance(error, OperationCancelledError):
        return ExitCodes.CANCELLED
    if isinstance(error, (ManifestFormatError, RepositorySettingsError)):
        return ExitCodes.FILE_ERROR
    if isinstance(error, RepositoryUnavailableError):
        return ExitCodes.CONNECTION_ERROR
    return ExitCodes.INSTALL_ERROR


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    # Honor CLI --loglevel by passing it to centralized logger via env
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.ENV_LOG_LEVEL] = str(args.LOG_LEVEL).upper()
    configure_logging(args.LOG_FILE)
    apply_cli_overrides(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.action),
        )

    if args.NON_INTERACTIVE:
        host: InstallHost = NonInteractiveHost()
    else:
        host = ConsoleHost(quiet=args.QUIET)
    cancel_token = CancellationToken()

    result = InstallResult()
    error: Optional[InstallError] = None
    try:
        result = run(args, host, cancel_token)
    except KeyboardInterrupt:
        cancel_token.cancel()
        error = OperationCancelledError("Interrupted by user")
        logger.warning("Interrupted by user")
    except InstallError as exc:
        error = exc

    if args.OUTPUT:
        export_json(args.OUTPUT, result, error)

    if error is not None:
        sys.exit(exit_code_for(error).value)
    if result.installed:
        logger.info("Installed %d package(s)", len(result.installed))
    if result.not_found:
        sys.exit(ExitCodes.PACKAGES_NOT_FOUND.value)
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
