"""
Custom exceptions for the granter.io module.

Purpose
- Provide IO-layer error types for reading and writing grant documents.
- Keep granter.core as the source of truth for grammar/schema/validation errors
  (see granter.core.errors).

Source of truth and boundaries
- granter.core.errors.DocumentError is raised when a decoded document is not a mapping.
- granter.io raises Io* errors for file and codec concerns:
  - IoFormatError: unknown format name or file suffix.
  - IoDecodeError: bytes cannot be decoded as the declared format.
  - IoDocumentTooLarge: document exceeds GranterSettings.max_document_bytes.

Notes
- These exceptions do not perform any IO and are stdlib-only.
"""

from __future__ import annotations


class IoError(Exception):
    """
    Base class for IO-related errors in granter.io.

    Notes:
        Use this as a catch-all for IO-layer failures, distinct from granter.core errors.
    """


class IoFormatError(IoError):
    """
    Raised when a document format cannot be determined or is unsupported.

    Examples:
        - A path suffix other than .yaml/.yml/.json/.cbor
        - A format name other than "yaml", "json" or "cbor"
    """


class IoDecodeError(IoError):
    """
    Raised when document bytes cannot be decoded as the declared format.

    Notes:
        Wraps the codec's own exception (yaml.YAMLError, json.JSONDecodeError,
        cbor2.CBORDecodeError) as the cause.
    """


class IoDocumentTooLarge(IoError):
    """
    Raised when a document exceeds the configured size limit.

    Notes:
        The limit is checked before decoding, so oversized input is never parsed.
    """
