"""
Lightweight JSON and model-tree serialization utilities.

Provides `json_loads` as a thin wrapper around the stdlib `json` module,
`grant_to_tree` to turn a typed grant back into a plain document tree, and
re-exports `json_dumps_canonical` from `granter.core.hashing` to keep a single
canonical JSON policy across the codebase. This module is zero-IO.

Notes:
    - `grant_to_tree` dumps only the fields present in the source document, so
      parse -> dump reproduces the document (enum codes normalized to strings).
    - Wire-format adapters (YAML/CBOR) live in granter.io.documents.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel

# Re-export canonical dumps to keep a single canonicalization policy.
from .hashing import json_dumps_canonical  # noqa: F401

__all__ = [
    "json_loads",
    "json_dumps_canonical",
    "grant_to_tree",
]


def json_loads(s: str) -> Any:
    """
    Deserialize a JSON string to Python objects using the stdlib json module.

    Args:
        s (str): JSON string to parse.

    Returns:
        Any: Decoded Python object (dict, list, str, int, float, bool, or None).
    """
    return json.loads(s)


def grant_to_tree(model: BaseModel) -> dict[str, Any]:
    """
    Dump a typed grant (or any grant sub-model) to a JSON-compatible tree.

    Args:
        model (BaseModel): ProjectGrant or one of its component models.

    Returns:
        dict[str, Any]: Plain dict with enum members serialized to their
        lower_snake codes and unset optional fields omitted.

    Examples:
        >>> from granter.core.schema import ConditionMapping
        >>> from granter.core.serde import grant_to_tree
        >>> grant_to_tree(ConditionMapping(type=1, ref=[1], out=[100]))
        {'type': 'equal', 'ref': [1], 'out': [100]}
    """
    return model.model_dump(mode="json", exclude_unset=True)
