"""
Outcome aggregator: condition ratings -> outcome ratio in [0, 1].

Mix methods
- require_and: 1.0 when every condition reached its ceiling (the highest rating
  it can produce, 100 unless its mapping caps it lower), else 0.0. A condition
  rated by its fallback default (failed gate, no matching ref) is never met,
  whatever the default is.
- average_weighted: sum(rating / 100 * weight) / sum(weight); weights default to 1.
"""

from __future__ import annotations

import math
from collections.abc import Collection, Mapping, Sequence

from granter.core.constants import RATING_MAX, RATING_MIN
from granter.core.errors import ConfigurationError, InputError
from granter.core.grammar import ConditionMix
from granter.core.schema import Outcome, ref_id
from granter.core.typing import ConditionId, Rating, Ratio

__all__ = [
    "mix",
    "aggregate",
]


def _rating(value: float, condition_id: int | None = None) -> float:
    label = "rating" if condition_id is None else f"rating of condition {condition_id}"
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InputError(f"{label} must be a finite number, got {value!r}")
    if not RATING_MIN <= value <= RATING_MAX:
        raise InputError(f"{label} must be within [0, 100], got {value!r}")
    return float(value)


def mix(
    method: ConditionMix,
    ratings: Sequence[float],
    weights: Sequence[float] | None = None,
    ceilings: Sequence[float] | None = None,
) -> float:
    """
    Combine condition ratings into an outcome ratio.

    Args:
        method (ConditionMix): Mix method.
        ratings (Sequence[float]): Ratings in [0, 100], in condition order.
        weights (Sequence[float] | None): Weights for average_weighted (default 1 each).
        ceilings (Sequence[float] | None): Per-condition ceilings for require_and
            (default 100 each).

    Returns:
        float: Ratio in [0, 1]; exactly 0.0 or 1.0 for require_and.

    Raises:
        ConfigurationError: If there are no ratings, weight or ceiling lengths do
            not match, or the weights sum to zero.
        InputError: If a rating is not a number within [0, 100].

    Examples:
        >>> from granter.core.grammar import ConditionMix
        >>> from granter.rating.aggregator import mix
        >>> mix(ConditionMix.AVERAGE_WEIGHTED, [80, 40], [1, 3])
        0.5
        >>> mix(ConditionMix.REQUIRE_AND, [100, 99])
        0.0
    """
    values = [_rating(r) for r in ratings]
    n = len(values)
    if n == 0:
        raise ConfigurationError("cannot mix an outcome without conditions")

    if method is ConditionMix.REQUIRE_AND:
        caps = [RATING_MAX] * n if ceilings is None else [float(c) for c in ceilings]
        if len(caps) != n:
            raise ConfigurationError(f"expected {n} ceilings, got {len(caps)}")
        return 1.0 if all(r >= cap for r, cap in zip(values, caps)) else 0.0

    w = [1.0] * n if weights is None else [float(x) for x in weights]
    if len(w) != n:
        raise ConfigurationError(f"expected {n} condition weights, got {len(w)}")
    if any(x < 0 or not math.isfinite(x) for x in w):
        raise ConfigurationError(f"condition weights must be finite and >= 0, got {w}")
    total = math.fsum(w)
    if total <= 0:
        raise ConfigurationError("condition weights must not sum to zero")
    ratio = math.fsum(r / RATING_MAX * x for r, x in zip(values, w)) / total
    return min(max(ratio, 0.0), 1.0)


def aggregate(
    outcome: Outcome,
    ratings: Mapping[ConditionId, Rating],
    ceilings: Mapping[ConditionId, Rating] | None = None,
    unmet: Collection[ConditionId] = (),
) -> Ratio:
    """
    Combine the ratings of an outcome's conditions.

    Args:
        outcome (Outcome): Outcome whose `condition`, `condition_mix` and
            `condition_weight` drive the mix.
        ratings (Mapping[ConditionId, Rating]): Rating per condition ID.
        ceilings (Mapping[ConditionId, Rating] | None): Ceiling per condition ID
            for require_and; missing entries default to 100.
        unmet (Collection[ConditionId]): Conditions rated by their fallback
            default. Under require_and any of them yields 0.0; average_weighted
            uses their rating as is.

    Returns:
        Ratio: Ratio in [0, 1].

    Raises:
        ConfigurationError: See `mix`.
        InputError: If a condition of the outcome has no rating.
    """
    ids = [ConditionId(ref_id(c)) for c in outcome.condition]
    if not ids:
        raise ConfigurationError(f"outcome {outcome.id} has no conditions")
    missing = [cid for cid in ids if cid not in ratings]
    if missing:
        raise InputError(f"outcome {outcome.id}: no rating for condition(s) {missing}")
    values = [_rating(ratings[cid], cid) for cid in ids]
    if outcome.condition_mix is ConditionMix.REQUIRE_AND and any(cid in unmet for cid in ids):
        return 0.0
    caps = [(ceilings or {}).get(cid, RATING_MAX) for cid in ids]
    return mix(outcome.condition_mix, values, outcome.condition_weight, caps)
