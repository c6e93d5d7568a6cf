"""
Lightweight typing aliases used across grant schemas and the rating engine.

Provides minimal NewTypes and aliases to improve readability and static checks.
This module contains no runtime logic and is zero-IO.

Examples:
    >>> from granter.core.typing import ConditionId, Rating
    >>> def describe(cid: ConditionId, rating: Rating) -> str:
    ...     return f"condition:{cid}={rating}"
    >>> describe(ConditionId(3), 100.0)
    'condition:3=100.0'
"""

from __future__ import annotations

from typing import Any, NewType

__all__ = [
    "ActorAddress",
    "ConditionId",
    "OutcomeId",
    "TransferId",
    "Rating",
    "Ratio",
    "JsonDict",
]

# EVM account address, "0x" followed by 40 hex characters.
ActorAddress = NewType("ActorAddress", str)

ConditionId = NewType("ConditionId", int)
OutcomeId = NewType("OutcomeId", int)
TransferId = NewType("TransferId", int)

# Condition rating in [0, 100].
Rating = float
# Consolidated outcome ratio in [0, 1].
Ratio = float

JsonDict = dict[str, Any]
