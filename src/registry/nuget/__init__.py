"""NuGet registry package.

- client.py: NuGetFeed, HTTP access to NuGet V3 (primary) and V2 OData (fallback)
"""

from .client import NuGetFeed, parse_v2_dependencies  # noqa: F401

__all__ = [
    "NuGetFeed",
    "parse_v2_dependencies",
]
