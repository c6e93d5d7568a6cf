"""
granter.io — settings and wire formats for grant documents.

## Responsibilities
- Load GranterSettings with precedence environment > TOML > defaults.
- Decode and encode grant documents as YAML, JSON or CBOR with a size limit.
- Hand decoded trees to granter.core.validation; never interpret grant semantics here.

## Public API
- GranterSettings — runtime configuration (size limit, formats, logging, workers, validation options).
- read_grant / write_grant — file-level entry points.
- loads / dumps — byte-level codecs.

## Import DAG discipline
- Depends on stdlib, PyYAML, cbor2 and granter.core.*.
- MUST NOT import granter.rating or granter.cli.

## Examples
```python
from granter.io import GranterSettings, read_grant
grant, issues = read_grant("grant.yaml", GranterSettings.load())  # doctest: +SKIP
```
"""

from __future__ import annotations

from .config import GranterSettings
from .documents import dumps, format_from_path, loads, read_document, read_grant, write_grant

__all__ = [
    "GranterSettings",
    "dumps",
    "format_from_path",
    "loads",
    "read_document",
    "read_grant",
    "write_grant",
]
