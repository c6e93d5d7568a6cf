"""
Grant schema version metadata and helpers.

Exposes the schema version written into new grant documents
(`ProjectGrant.schema_version`) and the set of versions this package can read.
This module is zero-IO.

Notes:
    - Bump SCHEMA_VERSION on any breaking change to wire codes or bounds.
    - The structural validator reports unsupported versions as issues;
      `require_supported` raises for callers that want a hard stop.
"""

from __future__ import annotations

from .errors import VersionMismatch

__all__ = [
    "SCHEMA_VERSION",
    "SUPPORTED_SCHEMA_VERSIONS",
    "is_supported",
    "require_supported",
]

SCHEMA_VERSION: int = 1
SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})


def is_supported(version: int) -> bool:
    """
    Check whether a grant schema version can be read.

    Args:
        version (int): Value of `ProjectGrant.schema_version`.

    Returns:
        bool: True if the version is in SUPPORTED_SCHEMA_VERSIONS.

    Examples:
        >>> from granter.core.versioning import SCHEMA_VERSION, is_supported
        >>> is_supported(SCHEMA_VERSION)
        True
        >>> is_supported(SCHEMA_VERSION + 1)
        False
    """
    return version in SUPPORTED_SCHEMA_VERSIONS


def require_supported(version: int) -> None:
    """
    Raise unless the grant schema version can be read.

    Raises:
        VersionMismatch: If the version is not supported.
    """
    if not is_supported(version):
        supported = ", ".join(str(v) for v in sorted(SUPPORTED_SCHEMA_VERSIONS))
        raise VersionMismatch(f"unsupported grant schema version {version} (supported: {supported})")
