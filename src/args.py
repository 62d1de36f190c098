"""Argument parsing functionality for psresget."""

import argparse
from constants import Constants


def _positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be 1 or greater")
    return number


def _positive_float(value):
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")
    return number


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog=Constants.PROG_NAME,
        description=(
            "psresget - install PowerShell modules and scripts from NuGet feeds"
        ),
        add_help=True,
    )

    parser.add_argument("action",
                        help="install a package, or update one that is already installed",
                        choices=Constants.ACTIONS)

    input_group = parser.add_mutually_exclusive_group(required=True)
    input_group.add_argument("-n", "--name",
                             dest="NAME",
                             help="Name of the package(s) to install",
                             nargs="+",
                             type=str)
    input_group.add_argument("--required-resource-file",
                             dest="REQUIRED_RESOURCE_FILE",
                             help="Install the packages listed in a JSON or YAML file",
                             action="store",
                             type=str)
    input_group.add_argument("--required-resource",
                             dest="REQUIRED_RESOURCE",
                             help="Install the packages listed in a JSON string",
                             action="store",
                             type=str)

    parser.add_argument("-v", "--version",
                        dest="VERSION",
                        help="Exact version (1.2.0) or NuGet range ([1.0.0,2.0.0)); default is latest",
                        action="store",
                        type=str)
    parser.add_argument("--prerelease",
                        dest="PRERELEASE",
                        help="Include prerelease versions",
                        action="store_true")
    parser.add_argument("-r", "--repository",
                        dest="REPOSITORY",
                        help="Repositories to search, in this order (default: all, by priority)",
                        nargs="+",
                        type=str)
    parser.add_argument("--scope",
                        dest="SCOPE",
                        help="Installation scope",
                        choices=Constants.SUPPORTED_SCOPES,
                        default=Constants.SUPPORTED_SCOPES[0])
    parser.add_argument("--install-root",
                        dest="INSTALL_ROOT",
                        help="Install under this directory instead of the scope default",
                        action="store",
                        type=str)
    parser.add_argument("--accept-license",
                        dest="ACCEPT_LICENSE",
                        help="Accept license agreements without prompting",
                        action="store_true")
    parser.add_argument("--reinstall",
                        dest="REINSTALL",
                        help="Install even when a satisfying version is already present",
                        action="store_true")
    parser.add_argument("--force",
                        dest="FORCE",
                        help="Reinstall and skip the untrusted repository prompt",
                        action="store_true")
    parser.add_argument("--trust-repository",
                        dest="TRUST_REPOSITORY",
                        help="Do not prompt before installing from untrusted repositories",
                        action="store_true")
    parser.add_argument("--no-clobber",
                        dest="NO_CLOBBER",
                        help="Refuse packages whose commands are already provided by another package",
                        action="store_true")
    parser.add_argument("--credential",
                        dest="CREDENTIAL",
                        help=f"User name for repositories without a credential (password from {Constants.ENV_PASSWORD})",
                        action="store",
                        type=str)
    parser.add_argument("--non-interactive",
                        dest="NON_INTERACTIVE",
                        help="Never prompt; every confirmation is answered no",
                        action="store_true")
    parser.add_argument("--max-download-workers",
                        dest="MAX_DOWNLOAD_WORKERS",
                        help="Number of packages downloaded concurrently (default: 1)",
                        type=_positive_int,
                        default=1)
    parser.add_argument("--timeout",
                        dest="TIMEOUT",
                        help=f"HTTP timeout in seconds (default: {Constants.REQUEST_TIMEOUT})",
                        type=_positive_float)

    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Write the install result as JSON to this file",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not report progress",
                        action="store_true")
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to the repository settings file (YAML, YML, or JSON)",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
