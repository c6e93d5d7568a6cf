"""
Grant document adapters for YAML, JSON and CBOR.

Decodes wire bytes into plain trees handed to granter.core.validation and encodes
typed grants back. The three formats carry the same tree, so a document converts
between them without loss.

Notes
- The size limit (GranterSettings.max_document_bytes) is enforced before decoding.
- YAML timestamps are kept as strings so history dates round-trip verbatim.
- Codec failures surface as IoDecodeError with the codec exception as cause.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import cbor2
import yaml

from granter.core.schema import ProjectGrant
from granter.core.serde import grant_to_tree
from granter.core.validation import ValidationIssue, parse_and_validate

from .config import FORMATS, Format, GranterSettings
from .errors import IoDecodeError, IoDocumentTooLarge, IoFormatError

logger = logging.getLogger(__name__)

__all__ = [
    "Format",
    "format_from_path",
    "loads",
    "dumps",
    "read_document",
    "read_grant",
    "write_grant",
]

_SUFFIXES: dict[str, Format] = {
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
    ".cbor": "cbor",
}

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class _GrantLoader(yaml.SafeLoader):
    """Safe loader that leaves ISO timestamps as plain strings."""


_GrantLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def format_from_path(path: str | os.PathLike[str], default: Format | None = None) -> Format:
    """
    Infer the document format from a file suffix.

    Args:
        path: Document path.
        default: Format to use when the suffix is not recognized.

    Returns:
        Format: "yaml", "json" or "cbor".

    Raises:
        IoFormatError: If the suffix is unknown and no default is given.
    """
    suffix = Path(path).suffix.lower()
    if suffix in _SUFFIXES:
        return _SUFFIXES[suffix]
    if default is not None:
        return _check_format(default)
    raise IoFormatError(f"cannot infer document format from {str(path)!r}")


def _check_format(fmt: str) -> Format:
    if fmt not in FORMATS:
        raise IoFormatError(f"unsupported document format {fmt!r}; expected one of {list(FORMATS)}")
    return fmt  # type: ignore[return-value]


def _check_size(size: int, settings: GranterSettings) -> None:
    if size > settings.max_document_bytes:
        raise IoDocumentTooLarge(
            f"document is {size} bytes; limit is {settings.max_document_bytes}"
        )


def loads(data: bytes | str, fmt: Format, settings: GranterSettings | None = None) -> Any:
    """
    Decode a document.

    Args:
        data (bytes | str): Encoded document; CBOR requires bytes.
        fmt (Format): Wire format.
        settings (GranterSettings | None): Size limit source (defaults when None).

    Returns:
        Any: Decoded tree.

    Raises:
        IoDocumentTooLarge: If the document exceeds the size limit.
        IoDecodeError: If the bytes are not valid for the format.
        IoFormatError: If the format is unknown.
    """
    settings = settings or GranterSettings()
    fmt = _check_format(fmt)
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    _check_size(len(raw), settings)
    try:
        if fmt == "cbor":
            if isinstance(data, str):
                raise IoDecodeError("cbor documents must be given as bytes")
            return cbor2.loads(raw)
        text = raw.decode("utf-8")
        if fmt == "json":
            return json.loads(text)
        return yaml.load(text, Loader=_GrantLoader)  # noqa: S506 - SafeLoader subclass
    except (UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError, cbor2.CBORDecodeError) as exc:
        raise IoDecodeError(f"invalid {fmt} document: {exc}") from exc


def dumps(tree: Any, fmt: Format) -> bytes:
    """
    Encode a tree.

    Args:
        tree (Any): Plain tree (dicts, lists, strings, numbers, booleans, None).
        fmt (Format): Wire format.

    Returns:
        bytes: Encoded document; YAML and JSON are UTF-8.
    """
    fmt = _check_format(fmt)
    if fmt == "cbor":
        return cbor2.dumps(tree)
    if fmt == "json":
        return (json.dumps(tree, ensure_ascii=False, indent=2) + "\n").encode("utf-8")
    return yaml.safe_dump(tree, sort_keys=False, allow_unicode=True).encode("utf-8")


def read_document(
    path: str | os.PathLike[str], settings: GranterSettings | None = None
) -> Any:
    """
    Read and decode any document (grant or oracle inputs).

    Raises:
        IoDocumentTooLarge: If the file exceeds the size limit (checked before reading).
        IoDecodeError: If the content is not valid for the inferred format.
        IoFormatError: If the format cannot be inferred.
    """
    settings = settings or GranterSettings()
    p = Path(path)
    fmt = format_from_path(p, settings.default_format)
    _check_size(p.stat().st_size, settings)
    data = p.read_bytes()
    tree = loads(data, fmt, settings)
    logger.info("loaded %s document %s (%d bytes)", fmt, p, len(data))
    return tree


def read_grant(
    path: str | os.PathLike[str], settings: GranterSettings | None = None
) -> tuple[ProjectGrant | None, list[ValidationIssue]]:
    """
    Read, decode and validate a grant document.

    Returns:
        tuple[ProjectGrant | None, list[ValidationIssue]]: See
        granter.core.validation.parse_and_validate.

    Raises:
        DocumentError: If the document root is not a mapping.
        IoError: See `read_document`.
    """
    settings = settings or GranterSettings()
    return parse_and_validate(read_document(path, settings), settings.validation)


def write_grant(
    grant: ProjectGrant, path: str | os.PathLike[str], fmt: Format | None = None
) -> Path:
    """
    Encode a grant and write it to `path`.

    Args:
        grant (ProjectGrant): Grant to write.
        path: Destination; its suffix picks the format unless `fmt` is given.
        fmt (Format | None): Explicit wire format.

    Returns:
        Path: The written path.
    """
    p = Path(path)
    fmt = fmt or format_from_path(p)
    p.write_bytes(dumps(grant_to_tree(grant), fmt))
    logger.info("wrote %s document %s", fmt, p)
    return p
