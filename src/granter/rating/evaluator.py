"""
Condition evaluator: oracle output -> rating in [0, 100].

Evaluation of one condition runs three stages:

1. Participation gates. Every ConditionValidation must pass; missing
   participation statistics fail the gate. Any failure yields the condition's
   default rating.
2. Compute. The oracle output is reduced to one value according to the
   condition's ComputeMethod (single number, single string, mean, weighted mean,
   most chosen value).
3. Mapping. The computed value is mapped onto `out[]` through `ref[]` with the
   mapping's relational operator. No match yields the default rating. Without a
   mapping (or with operator `none`) a numeric value is the rating itself.

The result is always clamped to [0, 100].

Notes:
    - Booleans, NaN and infinities are never accepted as numbers.
    - `most_chosen` ties go to the value encountered first in the input.
    - `condition.default` is a fallback, not a floor.

Examples:
    >>> from granter.core.schema import Condition
    >>> from granter.rating.evaluator import evaluate
    >>> c = Condition(
    ...     id=1,
    ...     oracle={"contract": "0x" + "a" * 40, "type": "tellor_number"},
    ...     compute="map_number",
    ...     mapping={"type": "equal", "ref": [0, 1], "out": [0, 100]},
    ... )
    >>> evaluate(c, 1), evaluate(c, 0.5)
    (100.0, 0.0)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from numbers import Real
from typing import Any, Literal

from granter.core.constants import RATING_MAX, RATING_MIN
from granter.core.errors import ConfigurationError, InputError
from granter.core.grammar import ComputeMethod, MappingType, ValidationType
from granter.core.schema import Condition, ConditionMapping, ConditionValidation

logger = logging.getLogger(__name__)

__all__ = [
    "ParticipationStats",
    "OracleReading",
    "ConditionRating",
    "RatingSource",
    "compute",
    "map_value",
    "gates_pass",
    "rate_condition",
    "evaluate",
    "rating_ceiling",
]

RatingSource = Literal["gate", "mapping", "default", "direct"]
Computed = float | str


@dataclass(frozen=True)
class ParticipationStats:
    """
    Participation observed by a poll or vote oracle.

    Attributes:
        participant_count (int | None): Number of accounts that took part.
        participation_percent (float | None): Share of eligible accounts, in percent.
    """

    participant_count: int | None = None
    participation_percent: float | None = None


@dataclass(frozen=True)
class OracleReading:
    """
    Oracle output for one condition.

    Attributes:
        value (Any): A number, a string, a list of numbers/strings, or a list of
            (value, weight) pairs, depending on the condition's compute method.
        participation (ParticipationStats | None): Gate inputs for poll/vote oracles.
    """

    value: Any
    participation: ParticipationStats | None = None


@dataclass(frozen=True)
class ConditionRating:
    """
    Trace entry of one condition evaluation.

    Attributes:
        condition_id (int): Rated condition.
        rating (float): Clamped rating in [0, 100].
        source (str): "gate" (a gate failed), "mapping" (matched a ref),
            "default" (no ref matched) or "direct" (numeric value used as is).
        computed (float | str | None): Value produced by the compute stage;
            None when a gate failed.
    """

    condition_id: int
    rating: float
    source: RatingSource
    computed: Computed | None = None


# ============================================================================
# INPUT CHECKS
# ============================================================================


def _is_number(v: Any) -> bool:
    return isinstance(v, Real) and not isinstance(v, bool)


def _number(v: Any, what: str) -> float:
    if not _is_number(v):
        raise InputError(f"{what} must be a number, got {v!r}")
    x = float(v)
    if not math.isfinite(x):
        raise InputError(f"{what} must be finite, got {v!r}")
    return x


def _scalar(v: Any, what: str) -> float | str:
    if isinstance(v, str):
        return v
    return _number(v, what)


def _sequence(v: Any, what: str) -> Sequence[Any]:
    if isinstance(v, (str, bytes, Mapping)) or not isinstance(v, Sequence):
        raise InputError(f"{what} requires a list, got {type(v).__name__}")
    if not v:
        raise InputError(f"{what} requires at least one value")
    return v


def _pair(item: Any, what: str) -> tuple[Any, float]:
    if isinstance(item, (str, bytes)) or not isinstance(item, Sequence) or len(item) != 2:
        raise InputError(f"{what} expects (value, weight) pairs, got {item!r}")
    weight = _number(item[1], f"{what} weight")
    if weight < 0:
        raise InputError(f"{what} weights must be >= 0, got {weight}")
    return item[0], weight


def _is_pair(item: Any) -> bool:
    return isinstance(item, (list, tuple)) and len(item) == 2


def _clamp(rating: float) -> float:
    return min(max(rating, RATING_MIN), RATING_MAX)


# ============================================================================
# STAGES
# ============================================================================


def gates_pass(
    gates: Sequence[ConditionValidation] | None, participation: ParticipationStats | None
) -> bool:
    """
    Check participation gates.

    Args:
        gates (Sequence[ConditionValidation] | None): Gates of the condition.
        participation (ParticipationStats | None): Observed participation.

    Returns:
        bool: True when every gate passes. A gate whose statistic is missing fails.
    """
    for gate in gates or ():
        if gate.type is ValidationType.MIN_PARTICIPATION_PERCENT:
            observed = None if participation is None else participation.participation_percent
        else:
            observed = None if participation is None else participation.participant_count
        if observed is None or observed < gate.threshold:
            return False
    return True


def compute(method: ComputeMethod, value: Any) -> Computed:
    """
    Reduce raw oracle output to one value.

    Args:
        method (ComputeMethod): Reduction to apply.
        value (Any): Raw oracle output.

    Returns:
        float | str: Computed value.

    Raises:
        InputError: If the output shape does not match the method, a number is
            not finite, or weights are negative or sum to zero.
    """
    name = method.value
    if method is ComputeMethod.MAP_NUMBER:
        return _number(value, name)
    if method is ComputeMethod.MAP_STRING:
        if not isinstance(value, str):
            raise InputError(f"{name} requires a string, got {value!r}")
        return value
    if method is ComputeMethod.AVERAGE:
        values = [_number(v, name) for v in _sequence(value, name)]
        return math.fsum(values) / len(values)
    if method is ComputeMethod.AVERAGE_WEIGHTED:
        pairs = [_pair(item, name) for item in _sequence(value, name)]
        numbers = [(_number(v, name), w) for v, w in pairs]
        total = math.fsum(w for _, w in numbers)
        if total <= 0:
            raise InputError(f"{name} weights must not sum to zero")
        return math.fsum(v * w for v, w in numbers) / total
    if method is ComputeMethod.MOST_CHOSEN:
        tally: dict[float | str, float] = {}
        for item in _sequence(value, name):
            if _is_pair(item):
                choice, weight = _pair(item, name)
            else:
                choice, weight = item, 1.0
            key = _scalar(choice, name)
            tally[key] = tally.get(key, 0.0) + weight
        # dicts keep insertion order, so ties resolve to the first value seen
        best, best_weight = None, -1.0
        for choice, weight in tally.items():
            if weight > best_weight:
                best, best_weight = choice, weight
        return best  # type: ignore[return-value]
    raise InputError(f"unsupported compute method {method!r}")


def map_value(mapping: ConditionMapping, value: Computed) -> float | None:
    """
    Map a computed value onto an output rating.

    Args:
        mapping (ConditionMapping): Operator with parallel ref/out lists.
        value (float | str): Computed value.

    Returns:
        float | None: The matched output rating, or None when nothing matches.
        Operator `none` always returns None.

    Raises:
        ConfigurationError: If ref and out lengths differ or a relational
            operator has a string reference.
        InputError: If a relational operator receives a string value.

    Notes:
        - equal: first ref equal to the value (numbers compare numerically).
        - greater_than(_or_equal): the highest ref the value exceeds.
        - lower_than(_or_equal): the lowest ref the value stays under.
    """
    if len(mapping.ref) != len(mapping.out):
        raise ConfigurationError(
            f"mapping ref/out length mismatch ({len(mapping.ref)} != {len(mapping.out)})"
        )
    op = mapping.type
    if op is MappingType.NONE:
        return None
    pairs = list(zip(mapping.ref, mapping.out))
    if op is MappingType.EQUAL:
        for ref, out in pairs:
            if isinstance(ref, str) or isinstance(value, str):
                if ref == value:
                    return float(out)
            elif float(ref) == value:
                return float(out)
        return None

    if isinstance(value, str):
        raise InputError(f"{op.value} mapping requires a numeric value, got {value!r}")
    for ref, _ in pairs:
        if isinstance(ref, str):
            raise ConfigurationError(f"{op.value} mapping requires numeric references, got {ref!r}")

    if op is MappingType.GREATER_THAN:
        candidates = [(ref, out) for ref, out in pairs if value > ref]
        pick = max
    elif op is MappingType.GREATER_THAN_OR_EQUAL:
        candidates = [(ref, out) for ref, out in pairs if value >= ref]
        pick = max
    elif op is MappingType.LOWER_THAN:
        candidates = [(ref, out) for ref, out in pairs if value < ref]
        pick = min
    else:
        candidates = [(ref, out) for ref, out in pairs if value <= ref]
        pick = min
    if not candidates:
        return None
    # max/min return the first of equal refs
    _, out = pick(candidates, key=lambda c: c[0])
    return float(out)


# ============================================================================
# ENTRY POINTS
# ============================================================================


def rate_condition(
    condition: Condition,
    oracle_output: Any,
    participation: ParticipationStats | None = None,
) -> ConditionRating:
    """
    Rate one condition and report how the rating was obtained.

    Args:
        condition (Condition): Condition to rate.
        oracle_output (Any): OracleReading, or the bare oracle value.
        participation (ParticipationStats | None): Gate inputs; overrides the
            reading's own statistics when given.

    Returns:
        ConditionRating: Rating in [0, 100] plus its trace.

    Raises:
        InputError: If the oracle output does not fit the compute method.
        ConfigurationError: If the mapping is inconsistent or a non-numeric
            value has no mapping.
    """
    if isinstance(oracle_output, OracleReading):
        participation = participation or oracle_output.participation
        oracle_output = oracle_output.value

    if condition.validation and not gates_pass(condition.validation, participation):
        rating = ConditionRating(condition.id, _clamp(condition.default), "gate")
        logger.debug("condition %d: gate failed, default rating %.6g", condition.id, rating.rating)
        return rating

    computed = compute(condition.compute, oracle_output)
    mapping = condition.mapping
    mapped = None if mapping is None else map_value(mapping, computed)
    if mapped is not None:
        rating = ConditionRating(condition.id, _clamp(mapped), "mapping", computed)
    elif mapping is not None and mapping.type is not MappingType.NONE:
        rating = ConditionRating(condition.id, _clamp(condition.default), "default", computed)
    elif isinstance(computed, str):
        raise ConfigurationError(
            f"condition {condition.id}: string value {computed!r} needs a mapping to become a rating"
        )
    else:
        rating = ConditionRating(condition.id, _clamp(computed), "direct", computed)
    logger.debug(
        "condition %d: computed %r -> rating %.6g (%s)",
        condition.id,
        computed,
        rating.rating,
        rating.source,
    )
    return rating


def evaluate(
    condition: Condition,
    oracle_output: Any,
    participation: ParticipationStats | None = None,
) -> float:
    """
    Rate one condition.

    Returns:
        float: Rating in [0, 100]. See `rate_condition` for arguments and errors.
    """
    return rate_condition(condition, oracle_output, participation).rating


def rating_ceiling(condition: Condition) -> float:
    """
    Highest rating a condition can produce.

    Returns:
        float: max(out) for conditions with a relational or equal mapping,
        otherwise 100.

    Notes:
        `condition.default` is left out. A rating taken from the default (failed
        gate, no matching ref) never counts as reaching the ceiling.
    """
    mapping = condition.mapping
    if mapping is not None and mapping.type is not MappingType.NONE and mapping.out:
        return _clamp(float(max(mapping.out)))
    return RATING_MAX
