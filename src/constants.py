"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    PACKAGES_NOT_FOUND = 3
    INSTALL_ERROR = 4
    CANCELLED = 130


class Scopes(Enum):
    """Installation scopes understood by the path resolver.

    Args:
        Enum (string): Scope names as accepted on the command line.
    """

    CURRENT_USER = "CurrentUser"
    ALL_USERS = "AllUsers"


class PackageKinds(Enum):
    """Kinds of installable resources.

    Args:
        Enum (string): Value written to the descriptor's Type field.
    """

    MODULE = "Module"
    SCRIPT = "Script"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PROG_NAME = "psresget"
    ACTIONS = ["install", "update"]
    SUPPORTED_SCOPES = [Scopes.CURRENT_USER.value, Scopes.ALL_USERS.value]
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_FORMAT_FILE = "%(asctime)s %(levelname)s %(name)s %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    DOWNLOAD_CHUNK_SIZE = 64 * 1024
    FEED_CACHE_TTL_SEC = 600

    # Default repository used when no repository settings file exists
    DEFAULT_REPOSITORY_NAME = "PSGallery"
    DEFAULT_REPOSITORY_URL = "https://www.powershellgallery.com/api/v2"
    DEFAULT_REPOSITORY_PRIORITY = 50

    # NuGet protocol
    NUGET_V3_REGISTRATIONS = "RegistrationsBaseUrl/3.6.0"
    NUGET_V3_PACKAGE_BASE = "PackageBaseAddress/3.0.0"
    NUGET_V2_PAGE_LIMIT = 50
    HEADERS_JSON = {"Accept": "application/json"}
    HEADERS_ATOM = {"Accept": "application/atom+xml,application/xml"}

    # Install layout
    MODULES_DIR = "Modules"
    SCRIPTS_DIR = "Scripts"
    INSTALLED_SCRIPT_INFOS_DIR = "InstalledScriptInfos"
    MODULE_DESCRIPTOR = "PSGetModuleInfo.xml"
    SCRIPT_DESCRIPTOR_SUFFIX = "_InstalledScriptInfo.xml"
    LICENSE_FILE = "License.txt"
    DESCRIPTOR_FORMAT_VERSION = "3"
    STAGING_PREFIX = "psresget-"

    # Environment variables
    ENV_LOG_LEVEL = "PSRESGET_LOG_LEVEL"
    ENV_LOG_FORMAT = "PSRESGET_LOG_FORMAT"
    ENV_REPOSITORIES = "PSRESGET_REPOSITORIES"
    ENV_INSTALL_ROOT = "PSRESGET_INSTALL_ROOT"
    ENV_PASSWORD = "PSRESGET_PASSWORD"
    REPOSITORIES_FILE = "repositories.yml"
