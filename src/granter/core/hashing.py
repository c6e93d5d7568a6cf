"""
Canonical JSON serialization and hashing helpers for grant documents.

Provides a single canonical JSON policy and SHA-256 helpers so that a grant
definition hashes to the same content identifier across runs, wire formats and
consumers. This module is zero-IO and uses only the Python standard library.

Notes:
    - Canonical JSON:
        - sort_keys=True
        - separators=(",", ":")
        - ensure_ascii=False
    - Hashing is performed over the UTF-8 encoded canonical JSON string.
    - granter.core.history stores `grant_cid` of the replaced definition in
      each change event (`previous.cid`).
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from .schema import ProjectGrant

__all__ = [
    "json_dumps_canonical",
    "hash_tree",
    "grant_cid",
]


def json_dumps_canonical(obj: Any) -> str:
    """
    Serialize an object to a canonical JSON string.

    Args:
        obj (Any): JSON-serializable object.

    Returns:
        str: Canonical JSON string with sort_keys=True, compact separators,
        and ensure_ascii=False.

    Notes:
        This function assumes the input is JSON-serializable and does not perform
        coercion of unsupported types.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _sha256_hexdigest(s: str) -> str:
    """Compute SHA-256 hex digest of a UTF-8 string."""
    h = hashlib.sha256()
    h.update(s.encode("utf-8"))
    return h.hexdigest()


def hash_tree(tree: Mapping[str, Any]) -> str:
    """
    Compute a stable hash for a document tree by hashing its canonical JSON.

    Args:
        tree (Mapping[str, Any]): Plain mapping (decoded YAML/JSON/CBOR document).

    Returns:
        str: SHA-256 hex digest over the canonical JSON serialization.

    Examples:
        >>> from granter.core.hashing import hash_tree
        >>> hash_tree({"a": 1, "b": 2}) == hash_tree({"b": 2, "a": 1})
        True
    """
    return _sha256_hexdigest(json_dumps_canonical(dict(tree)))


def grant_cid(grant: ProjectGrant) -> str:
    """
    Content identifier of a grant definition.

    Args:
        grant (ProjectGrant): Typed grant.

    Returns:
        str: SHA-256 hex digest of the grant's canonical JSON tree. Fields left
        at their defaults (unset in the source document) are not part of the hash.
    """
    return hash_tree(grant.model_dump(mode="json", exclude_unset=True))
