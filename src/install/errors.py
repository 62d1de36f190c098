"""Install error hierarchy.

Every failure the install engine reports derives from ``InstallError`` and
carries a stable ``kind`` plus the context needed to diagnose it without
re-running (package id, repository, requested constraint). Only
``PackageNotFoundError`` is recoverable: the repository selector turns it into
"still outstanding" and moves on to the next repository.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class InstallError(Exception):
    """Base class for all install engine failures."""

    kind: str = "InstallError"
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        *,
        package_id: Optional[str] = None,
        repository: Optional[str] = None,
        constraint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.package_id = package_id
        self.repository = repository
        self.constraint = constraint

    def context(self) -> Dict[str, Any]:
        """Structured context for logs and JSON output."""
        return {
            "kind": self.kind,
            "package_id": self.package_id,
            "repository": self.repository,
            "constraint": self.constraint,
        }

    def __str__(self) -> str:
        details = [
            f"{label}={value}"
            for label, value in (
                ("package", self.package_id),
                ("repository", self.repository),
                ("constraint", self.constraint),
            )
            if value
        ]
        if not details:
            return self.message
        return f"{self.message} ({', '.join(details)})"


class RepositoryUnavailableError(InstallError):
    """The feed for a repository could not be created or reached."""

    kind = "RepositoryUnavailable"


class PackageNotFoundError(InstallError):
    """No version satisfying the request exists in the current repository."""

    kind = "PackageNotFound"
    recoverable = True


class ConstraintParseError(InstallError, ValueError):
    """Malformed version or version-range syntax."""

    kind = "ConstraintParseError"


class ModuleNotInstalledForUpdateError(InstallError):
    """Update requested for a package that is not installed."""

    kind = "ModuleNotInstalledForUpdate"


class LicenseTextNotFoundError(InstallError):
    """License acceptance is required but the package ships no License.txt."""

    kind = "LicenseTextNotFound"


class LicenseNotAcceptedError(InstallError):
    """License acceptance is required and was not given."""

    kind = "LicenseNotAccepted"


class CommandClobberError(InstallError):
    """The package would export commands already available on the system."""

    kind = "CommandClobber"

    def __init__(self, message: str, *, commands: Iterable[str], **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.commands: List[str] = sorted(set(commands), key=str.lower)

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx["commands"] = self.commands
        return ctx


class ManifestFormatError(InstallError):
    """A required-resource manifest could not be read or decoded."""

    kind = "ManifestFormatError"


class PromotionError(InstallError):
    """Moving a staged package into the permanent store failed."""

    kind = "PromotionFailed"


class AdminPrivilegeRequiredError(InstallError):
    """AllUsers scope requested without elevation."""

    kind = "AdminPrivilegeRequired"


class OperationCancelledError(InstallError):
    """The cancellation token fired before the operation finished."""

    kind = "OperationCancelled"
