"""
Grant schema bounds and rating constants.

Collects the array-size limits, rating scale and tolerance defaults consumed by
granter.core.schema, granter.core.validation and granter.rating. This module is
zero-IO and uses only the Python standard library.

Notes:
    - Changing a bound is a schema change; bump granter.core.versioning.SCHEMA_VERSION.
    - Validation tolerances here are defaults only; callers override them through
      granter.core.validation.ValidationOptions.
"""

from __future__ import annotations

__all__ = [
    "RATING_MIN",
    "RATING_MAX",
    "RATIO_EPSILON",
    "MIN_GATE_THRESHOLD",
    "MAX_ACTORS",
    "MAX_SHARE_ACTORS",
    "MAX_CONDITIONS_PER_OUTCOME",
    "MAX_GATES_PER_CONDITION",
    "MAX_MAPPING_ENTRIES",
    "MAX_TOKEN_DECIMALS",
    "ETH_ADDRESS_PATTERN",
]

# Condition ratings are percentages.
RATING_MIN: float = 0.0
RATING_MAX: float = 100.0

# Accepted distance between the sum of MAP_PERCENT ratios and 1.0.
RATIO_EPSILON: float = 1e-6

# Participation gates below this threshold are meaningless.
MIN_GATE_THRESHOLD: float = 0.1

MAX_ACTORS: int = 15
MAX_SHARE_ACTORS: int = 30
MAX_CONDITIONS_PER_OUTCOME: int = 10
MAX_GATES_PER_CONDITION: int = 10
MAX_MAPPING_ENTRIES: int = 20
MAX_TOKEN_DECIMALS: int = 36

ETH_ADDRESS_PATTERN: str = r"^0x[0-9a-fA-F]{40}$"
