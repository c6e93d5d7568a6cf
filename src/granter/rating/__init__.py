"""
granter.rating — evaluation pipeline from oracle output to per-actor amounts.

## Responsibilities
- evaluator — participation gates, compute methods and mappings for one condition.
- aggregator — condition mix (require_and, average_weighted) into an outcome ratio.
- shares — Decimal split of a transfer among recipients (map_percent, equi_percent).
- engine — GrantIndex (reference resolution) and outcome settlement, serial or threaded.

## Import DAG discipline
- Depends only on stdlib and granter.core.*.
- Pure and synchronous; no IO.
"""

from __future__ import annotations

from .aggregator import aggregate, mix
from .engine import (
    BatchSettlement,
    GrantIndex,
    OutcomeSettlement,
    ResolvedOutcome,
    TransferSettlement,
    evaluate_outcome,
    evaluate_outcomes,
)
from .evaluator import (
    ConditionRating,
    OracleReading,
    ParticipationStats,
    evaluate,
    rate_condition,
    rating_ceiling,
)
from .shares import distribute, effective_amount

__all__ = [
    "aggregate",
    "mix",
    "BatchSettlement",
    "GrantIndex",
    "OutcomeSettlement",
    "ResolvedOutcome",
    "TransferSettlement",
    "evaluate_outcome",
    "evaluate_outcomes",
    "ConditionRating",
    "OracleReading",
    "ParticipationStats",
    "evaluate",
    "rate_condition",
    "rating_ceiling",
    "distribute",
    "effective_amount",
]
