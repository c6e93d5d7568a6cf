"""
Core exception types raised by grammar parsing, schema checks, validation and evaluation.

Provides typed exceptions for core-domain failures:
- GrammarError for unknown or malformed enum codes.
- SchemaError for model-level constraints raised inside pydantic validators.
- StructuralError wrapping the complete list of validation issues (opt-in raise).
- ConfigurationError when a grant element is well-shaped but cannot be evaluated.
- InputError when oracle input does not fit what a condition expects.
- LifecycleError for forbidden changes to a grant (closed, locked, bad transition).
- DocumentError when a parsed document is not a mapping at its root.
- VersionMismatch for unsupported grant schema versions.

Notes:
    - This module uses only the Python standard library and has no side effects.
    - The structural validator never raises for data-shape problems; it returns
      issues. StructuralError exists for callers that want a hard stop
      (see granter.core.validation.ensure_valid).
    - ConfigurationError and InputError abort a single evaluation call only.

Examples:
    Catch an evaluation input failure.

    >>> from granter.core.errors import InputError
    >>> def mean(values: list[float]) -> float:
    ...     if not values:
    ...         raise InputError("average requires at least one value")
    ...     return sum(values) / len(values)
    >>> try:
    ...     mean([])
    ... except InputError as e:
    ...     msg = str(e)
    >>> "at least one" in msg
    True
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .validation import ValidationIssue

__all__ = [
    "GranterError",
    "GrammarError",
    "SchemaError",
    "StructuralError",
    "ConfigurationError",
    "InputError",
    "LifecycleError",
    "DocumentError",
    "VersionMismatch",
]


class GranterError(Exception):
    """Base class for every granter core failure."""


class GrammarError(GranterError, ValueError):
    """Unknown or malformed enum code (never silently defaulted)."""


class SchemaError(GranterError, ValueError):
    """Schema-level validation failure (shape, constraints, cross-field rules)."""


class StructuralError(GranterError):
    """
    A grant definition failed structural validation.

    Attributes:
        issues (list[ValidationIssue]): Every violation found, in rule order.
    """

    def __init__(self, issues: Sequence[ValidationIssue]) -> None:
        self.issues = list(issues)
        lines = [f"{len(self.issues)} structural issue(s)"]
        lines.extend(f"  {issue}" for issue in self.issues[:20])
        if len(self.issues) > 20:
            lines.append(f"  ... {len(self.issues) - 20} more")
        super().__init__("\n".join(lines))


class ConfigurationError(GranterError):
    """An outcome, condition or share model cannot be evaluated as defined."""


class InputError(GranterError, ValueError):
    """Oracle input or rating input does not match what the computation expects."""


class LifecycleError(GranterError):
    """A change to the grant is not allowed in its current lifecycle state."""


class DocumentError(GranterError):
    """The parsed document cannot be interpreted as a grant at all."""


class VersionMismatch(GranterError, RuntimeError):
    """Incompatible or unexpected grant schema version encountered."""
