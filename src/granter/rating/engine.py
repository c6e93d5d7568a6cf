"""
Settlement engine: oracle inputs -> outcome ratio -> per-actor transfer amounts.

`GrantIndex` resolves the reference-or-inline relations of a grant once (IDs
into sibling collections, inline objects as given) so evaluation works on
concrete objects only. `evaluate_outcome` rates the conditions of one outcome,
mixes them into a ratio and splits each open transfer; `evaluate_outcomes` does
so for every outcome, optionally on a thread pool, and records per-outcome
failures without stopping the batch.

Notes:
    - Grants are frozen pydantic models, so one grant and its index can be read
      from several threads at once.
    - Closed transfers are reported with no amounts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from granter.core.errors import ConfigurationError, GranterError, InputError
from granter.core.grammar import TransferStatus
from granter.core.schema import (
    Condition,
    OracleDataSet,
    Outcome,
    ProjectGrant,
    Token,
    Transfer,
    TransferShare,
    is_inline,
    ref_id,
)
from granter.core.typing import ActorAddress, ConditionId, OutcomeId, Rating

from .aggregator import aggregate
from .evaluator import ConditionRating, rate_condition, rating_ceiling
from .shares import distribute, effective_amount

logger = logging.getLogger(__name__)

__all__ = [
    "GrantIndex",
    "ResolvedOutcome",
    "TransferSettlement",
    "OutcomeSettlement",
    "BatchSettlement",
    "evaluate_outcome",
    "evaluate_outcomes",
]


@dataclass(frozen=True)
class ResolvedOutcome:
    """Outcome with its conditions, transfers and sharing model resolved to objects."""

    outcome: Outcome
    conditions: tuple[Condition, ...]
    transfers: tuple[Transfer, ...]
    share: TransferShare | None


class GrantIndex:
    """
    By-ID lookups over a grant, including inline objects.

    Top-level collections take precedence over inline objects carrying the same ID.

    Examples:
        >>> index = GrantIndex.build(grant)  # doctest: +SKIP
        >>> resolved = index.resolve_outcome(index.outcome(1))  # doctest: +SKIP
    """

    def __init__(self, grant: ProjectGrant) -> None:
        self.grant = grant
        self._conditions: dict[int, Condition] = {c.id: c for c in grant.condition or []}
        self._transfers: dict[int, Transfer] = {t.id: t for t in grant.transfer or []}
        self._tokens: dict[int, Token] = {t.id: t for t in grant.token or []}
        self._shares: dict[int, TransferShare] = {s.id: s for s in grant.transfer_share or []}
        self._datasets: dict[int, OracleDataSet] = {d.id: d for d in grant.dataset or []}
        self._outcomes: dict[int, Outcome] = {}
        for outcome in grant.outcome or []:
            self._outcomes.setdefault(outcome.id, outcome)
            for item in outcome.condition:
                if is_inline(item):
                    self._conditions.setdefault(item.id, item)
            for item in outcome.transfer:
                if is_inline(item):
                    self._transfers.setdefault(item.id, item)
            if is_inline(outcome.share):
                self._shares.setdefault(outcome.share.id, outcome.share)
        for transfer in list(self._transfers.values()):
            if is_inline(transfer.token):
                self._tokens.setdefault(transfer.token.id, transfer.token)
        for condition in self._conditions.values():
            if is_inline(condition.oracle.dataset):
                self._datasets.setdefault(condition.oracle.dataset.id, condition.oracle.dataset)
        self._resolved: dict[int, ResolvedOutcome] = {}

    @classmethod
    def build(cls, grant: ProjectGrant) -> GrantIndex:
        """Index every entity of a grant."""
        return cls(grant)

    @staticmethod
    def _get(table: Mapping[int, Any], kind: str, id_: int) -> Any:
        try:
            return table[id_]
        except KeyError:
            raise ConfigurationError(f"unknown {kind} id {id_}") from None

    def condition(self, id_: int) -> Condition:
        return self._get(self._conditions, "condition", id_)

    def transfer(self, id_: int) -> Transfer:
        return self._get(self._transfers, "transfer", id_)

    def token(self, id_: int) -> Token:
        return self._get(self._tokens, "token", id_)

    def share(self, id_: int) -> TransferShare:
        return self._get(self._shares, "transfer_share", id_)

    def dataset(self, id_: int) -> OracleDataSet:
        return self._get(self._datasets, "dataset", id_)

    def outcome(self, id_: int) -> Outcome:
        return self._get(self._outcomes, "outcome", id_)

    def outcome_ids(self) -> list[OutcomeId]:
        """Outcome IDs in document order."""
        return [OutcomeId(id_) for id_ in self._outcomes]

    def resolve_token(self, ref: int | Token) -> Token:
        return ref if is_inline(ref) else self.token(ref)

    def resolve_outcome(self, outcome: Outcome) -> ResolvedOutcome:
        """
        Resolve the relations of an outcome.

        Raises:
            ConfigurationError: If a referenced condition, transfer or share does not exist.
        """
        cached = self._resolved.get(outcome.id)
        if cached is not None and cached.outcome is outcome:
            return cached
        conditions = tuple(c if is_inline(c) else self.condition(c) for c in outcome.condition)
        transfers = tuple(t if is_inline(t) else self.transfer(t) for t in outcome.transfer)
        share: TransferShare | None
        if outcome.share is None:
            share = None
        else:
            share = outcome.share if is_inline(outcome.share) else self.share(outcome.share)
        resolved = ResolvedOutcome(outcome, conditions, transfers, share)
        self._resolved[outcome.id] = resolved
        return resolved


@dataclass(frozen=True)
class TransferSettlement:
    """
    Released amounts of one transfer.

    Attributes:
        transfer_id (int): Settled transfer.
        token_id (int): Token moved.
        status (TransferStatus): Transfer status at evaluation time.
        effective_amount (Decimal): amount * ratio truncated to the token unit;
            zero for closed transfers.
        amounts (dict[ActorAddress, Decimal]): Amount per actor address; empty for closed transfers.
    """

    transfer_id: int
    token_id: int
    status: TransferStatus
    effective_amount: Decimal
    amounts: dict[ActorAddress, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transfer_id": self.transfer_id,
            "token_id": self.token_id,
            "status": self.status.value,
            "effective_amount": str(self.effective_amount),
            "amounts": {address: str(v) for address, v in self.amounts.items()},
        }


@dataclass(frozen=True)
class OutcomeSettlement:
    """
    Result of evaluating one outcome.

    Attributes:
        outcome_id (OutcomeId): Evaluated outcome.
        ratio (float): Mixed outcome ratio in [0, 1].
        transfers (tuple[TransferSettlement, ...]): One entry per outcome transfer.
        trace (tuple[ConditionRating, ...]): Condition ratings, in outcome order.
    """

    outcome_id: OutcomeId
    ratio: float
    transfers: tuple[TransferSettlement, ...]
    trace: tuple[ConditionRating, ...]

    @property
    def per_actor_amounts(self) -> dict[int, dict[str, Decimal]]:
        """Amount per actor address, keyed by transfer ID."""
        return {t.transfer_id: dict(t.amounts) for t in self.transfers}

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome_id": self.outcome_id,
            "ratio": self.ratio,
            "transfers": [t.to_dict() for t in self.transfers],
            "trace": [
                {
                    "condition_id": r.condition_id,
                    "rating": r.rating,
                    "source": r.source,
                    "computed": r.computed,
                }
                for r in self.trace
            ],
        }


@dataclass(frozen=True)
class BatchSettlement:
    """
    Results of evaluating several outcomes.

    Attributes:
        settlements (dict[OutcomeId, OutcomeSettlement]): Successful outcomes by ID, in document order.
        failures (dict[OutcomeId, GranterError]): Configuration or input failure per outcome ID.
    """

    settlements: dict[OutcomeId, OutcomeSettlement]
    failures: dict[OutcomeId, GranterError]

    @property
    def ok(self) -> bool:
        return not self.failures


def _lookup_input(oracle_inputs: Mapping[Any, Any], condition_id: int) -> Any:
    if condition_id in oracle_inputs:
        return oracle_inputs[condition_id]
    key = str(condition_id)
    if key in oracle_inputs:
        return oracle_inputs[key]
    raise InputError(f"no oracle input for condition {condition_id}")


def evaluate_outcome(
    grant: ProjectGrant,
    outcome_id: int,
    oracle_inputs: Mapping[Any, Any],
    index: GrantIndex | None = None,
) -> OutcomeSettlement:
    """
    Rate, mix and settle one outcome.

    Args:
        grant (ProjectGrant): Validated grant.
        outcome_id (int): Outcome to evaluate.
        oracle_inputs (Mapping): Condition ID -> OracleReading or bare oracle value.
            String keys ("3") are accepted for documents decoded from JSON.
        index (GrantIndex | None): Prebuilt index of `grant`.

    Returns:
        OutcomeSettlement: Ratio, per-transfer amounts and condition trace.

    Raises:
        ConfigurationError: If the outcome cannot be evaluated as defined
            (unknown references, no conditions, no share model for a transfer).
        InputError: If an oracle input is missing or malformed.
    """
    index = index or GrantIndex.build(grant)
    resolved = index.resolve_outcome(index.outcome(outcome_id))

    trace: list[ConditionRating] = []
    ratings: dict[ConditionId, Rating] = {}
    ceilings: dict[ConditionId, Rating] = {}
    unmet: set[ConditionId] = set()
    for condition in resolved.conditions:
        cid = ConditionId(condition.id)
        rating = rate_condition(condition, _lookup_input(oracle_inputs, condition.id))
        trace.append(rating)
        ratings[cid] = rating.rating
        ceilings[cid] = rating_ceiling(condition)
        if rating.source in ("gate", "default"):
            unmet.add(cid)
    ratio = aggregate(resolved.outcome, ratings, ceilings, unmet)

    transfers: list[TransferSettlement] = []
    for transfer in resolved.transfers:
        token = index.resolve_token(transfer.token)
        if transfer.status is TransferStatus.CLOSED:
            transfers.append(
                TransferSettlement(transfer.id, token.id, transfer.status, Decimal(0))
            )
            continue
        if resolved.share is None:
            raise ConfigurationError(f"outcome {outcome_id} has transfers but no transfer_share")
        transfers.append(
            TransferSettlement(
                transfer.id,
                token.id,
                transfer.status,
                effective_amount(transfer, ratio, token.decimals),
                distribute(transfer, resolved.share, ratio, token.decimals),
            )
        )

    logger.info(
        "outcome %d settled: ratio %.6g, %d transfer(s)", outcome_id, ratio, len(transfers)
    )
    return OutcomeSettlement(OutcomeId(outcome_id), ratio, tuple(transfers), tuple(trace))


def _collect(
    outcome_id: OutcomeId,
    run: Callable[[], OutcomeSettlement],
    settlements: dict[OutcomeId, OutcomeSettlement],
    failures: dict[OutcomeId, GranterError],
) -> None:
    try:
        settlements[outcome_id] = run()
    except (ConfigurationError, InputError) as exc:
        logger.warning("outcome %d not settled: %s", outcome_id, exc)
        failures[outcome_id] = exc


def evaluate_outcomes(
    grant: ProjectGrant,
    oracle_inputs: Mapping[Any, Any],
    max_workers: int = 1,
) -> BatchSettlement:
    """
    Evaluate every outcome of a grant.

    Args:
        grant (ProjectGrant): Validated grant.
        oracle_inputs (Mapping): Condition ID -> OracleReading or bare oracle value.
        max_workers (int): Threads to use; 1 evaluates serially.

    Returns:
        BatchSettlement: Settlements and failures, both in document order. The
        result does not depend on `max_workers`.
    """
    index = GrantIndex.build(grant)
    outcome_ids = index.outcome_ids()
    settlements: dict[OutcomeId, OutcomeSettlement] = {}
    failures: dict[OutcomeId, GranterError] = {}

    if max_workers > 1 and len(outcome_ids) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                oid: executor.submit(evaluate_outcome, grant, oid, oracle_inputs, index)
                for oid in outcome_ids
            }
            for oid in outcome_ids:
                _collect(oid, futures[oid].result, settlements, failures)
    else:
        for oid in outcome_ids:
            _collect(
                oid,
                lambda oid=oid: evaluate_outcome(grant, oid, oracle_inputs, index),
                settlements,
                failures,
            )

    logger.info(
        "evaluated %d outcome(s): %d settled, %d failed",
        len(outcome_ids),
        len(settlements),
        len(failures),
    )
    return BatchSettlement(settlements, failures)
