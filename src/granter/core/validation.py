"""
Structural validation of grant definitions.

Two passes report every problem of a document at once:

1. Field level (pydantic): types, ranges, lengths, enum codes, unknown keys and
   dates. `parse_and_validate` converts the pydantic errors into ValidationIssue
   entries with dotted paths such as ``outcome[0].condition_weight``.
2. Rule table: explicit predicate functions for conditional, cross-field,
   uniqueness and referential rules, evaluated over a typed ProjectGrant. Every
   rule runs; nothing short-circuits. When some top-level fields fail pass 1,
   the rules run over the fields that parsed and skip those reading a failed one.

Configuration is an explicit ValidationOptions value threaded into each call.

Examples:
    >>> from granter.core.validation import ValidationOptions, parse_and_validate
    >>> grant, issues = parse_and_validate({"actor": []})
    >>> grant is None and any(i.path == "actor" for i in issues)
    True
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from pydantic import ValidationError, create_model

from .constants import RATIO_EPSILON
from .errors import DocumentError, StructuralError
from .grammar import (
    GATED_ORACLE_TYPES,
    NUMERIC_ORACLE_TYPES,
    STRING_ORACLE_TYPES,
    ActorRole,
    ChangeType,
    ComputeMethod,
    ConditionMix,
    DataSetKind,
    GrantStatus,
    MappingType,
    OracleType,
    TokenType,
    TransferShareType,
    enum_value,
    status_rank,
)
from .schema import Condition, ProjectGrant, Token, Transfer, TransferShare, is_inline, ref_id
from .versioning import SUPPORTED_SCHEMA_VERSIONS, is_supported

logger = logging.getLogger(__name__)

__all__ = [
    "ValidationIssue",
    "ValidationOptions",
    "DEFAULT_OPTIONS",
    "Rule",
    "RULES",
    "validate",
    "parse_and_validate",
    "ensure_valid",
    "issues_from_pydantic",
]


@dataclass(frozen=True)
class ValidationIssue:
    """
    One structural violation.

    Attributes:
        path (str): Dotted path with bracketed indices, e.g. ``transfer_share[1].ratio``.
        value (Any): Offending value as found in the document or model.
        constraint (str): Human-readable description of the violated constraint.
    """

    path: str
    value: Any
    constraint: str

    def __str__(self) -> str:
        return f"{self.path}: {self.constraint} (got {self.value!r})"


@dataclass(frozen=True)
class ValidationOptions:
    """
    Toggles and tolerances of the rule table.

    Attributes:
        share_ratio_epsilon (float): Accepted distance between sum(ratio) and 1.0.
        unique_actor_address (bool): Actor addresses must be unique; only
            proposer entries may share an address.
        compute_mapping_consistency (bool): Check that compute method, oracle
            type and mapping operator fit together.
        referential_integrity (bool): Check that every by-ID reference resolves.
    """

    share_ratio_epsilon: float = RATIO_EPSILON
    unique_actor_address: bool = True
    compute_mapping_consistency: bool = True
    referential_integrity: bool = True


DEFAULT_OPTIONS = ValidationOptions()

# (path, value, constraint) produced by a rule predicate.
Finding = tuple[str, Any, str]
Check = Callable[[ProjectGrant, ValidationOptions], Iterator[Finding]]


@dataclass(frozen=True)
class Rule:
    """
    Entry of the rule table.

    Attributes:
        path (str): Field path pattern the rule inspects (documentation only).
        check (Check): Predicate yielding a Finding per violation.
        description (str): What the rule enforces.
        option (str | None): Name of the ValidationOptions flag enabling the rule.
        reads (tuple[str, ...]): Top-level grant fields the check looks at. The
            rule is skipped when one of them failed field-level validation.
    """

    path: str
    check: Check
    description: str
    option: str | None = None
    reads: tuple[str, ...] = ()


# ============================================================================
# ENTITY ITERATORS (top-level collections plus inline objects)
# ============================================================================


def _ids(items: list[Any] | None) -> set[int]:
    return {item.id for item in items or []}


def _iter_transfers(grant: ProjectGrant) -> Iterator[tuple[str, Transfer]]:
    for i, transfer in enumerate(grant.transfer or []):
        yield f"transfer[{i}]", transfer
    for i, outcome in enumerate(grant.outcome or []):
        for j, transfer in enumerate(outcome.transfer):
            if is_inline(transfer):
                yield f"outcome[{i}].transfer[{j}]", transfer


def _iter_tokens(grant: ProjectGrant) -> Iterator[tuple[str, Token]]:
    for i, token in enumerate(grant.token or []):
        yield f"token[{i}]", token
    for path, transfer in _iter_transfers(grant):
        if is_inline(transfer.token):
            yield f"{path}.token", transfer.token


def _iter_shares(grant: ProjectGrant) -> Iterator[tuple[str, TransferShare]]:
    for i, share in enumerate(grant.transfer_share or []):
        yield f"transfer_share[{i}]", share
    for i, outcome in enumerate(grant.outcome or []):
        if is_inline(outcome.share):
            yield f"outcome[{i}].share", outcome.share


def _iter_conditions(grant: ProjectGrant) -> Iterator[tuple[str, Condition]]:
    for i, condition in enumerate(grant.condition or []):
        yield f"condition[{i}]", condition
    for i, outcome in enumerate(grant.outcome or []):
        for j, condition in enumerate(outcome.condition):
            if is_inline(condition):
                yield f"outcome[{i}].condition[{j}]", condition


# ============================================================================
# RULES
# ============================================================================


def _check_token_id(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    for path, token in _iter_tokens(grant):
        if token.type is TokenType.ERC721:
            if token.token_id is None:
                yield f"{path}.token_id", None, "required when type is erc721"
            if token.decimals != 0:
                yield f"{path}.decimals", token.decimals, "erc721 tokens are indivisible (decimals must be 0)"


def _check_gates(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    gated = ", ".join(sorted(t.value for t in GATED_ORACLE_TYPES))
    for path, condition in _iter_conditions(grant):
        oracle_type = condition.oracle.type
        if oracle_type in GATED_ORACLE_TYPES and not condition.validation:
            yield (
                f"{path}.validation",
                condition.validation,
                f"participation gates required for {oracle_type.value} oracles",
            )
        elif oracle_type not in GATED_ORACLE_TYPES and condition.validation:
            yield (
                f"{path}.validation",
                [enum_value(v.type) for v in condition.validation],
                f"participation gates only apply to {gated} oracles, not {oracle_type.value}",
            )


def _check_mapping_lengths(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    for path, condition in _iter_conditions(grant):
        mapping = condition.mapping
        if mapping is not None and len(mapping.ref) != len(mapping.out):
            yield (
                f"{path}.mapping.out",
                mapping.out,
                f"must have the same length as mapping.ref ({len(mapping.ref)})",
            )


_RELATIONAL = frozenset(
    {
        MappingType.GREATER_THAN,
        MappingType.GREATER_THAN_OR_EQUAL,
        MappingType.LOWER_THAN,
        MappingType.LOWER_THAN_OR_EQUAL,
    }
)
_NUMERIC_COMPUTE = frozenset(
    {ComputeMethod.MAP_NUMBER, ComputeMethod.AVERAGE, ComputeMethod.AVERAGE_WEIGHTED}
)


def _check_compute_mapping(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    for path, condition in _iter_conditions(grant):
        mapping = condition.mapping
        oracle_type = condition.oracle.type
        if condition.compute is ComputeMethod.MAP_STRING:
            if oracle_type not in STRING_ORACLE_TYPES:
                yield f"{path}.compute", condition.compute.value, "map_string requires a string oracle type"
            if mapping is None or mapping.type is not MappingType.EQUAL:
                yield (
                    f"{path}.mapping.type",
                    None if mapping is None else mapping.type.value,
                    "map_string requires an equal mapping",
                )
        elif condition.compute in _NUMERIC_COMPUTE and oracle_type not in NUMERIC_ORACLE_TYPES:
            yield (
                f"{path}.compute",
                condition.compute.value,
                f"{condition.compute.value} requires a numeric oracle type",
            )
        if mapping is not None and mapping.type in _RELATIONAL:
            for k, ref in enumerate(mapping.ref):
                if isinstance(ref, str):
                    yield f"{path}.mapping.ref[{k}]", ref, "relational mappings require numeric references"


_EXPECTED_DATASET: dict[OracleType, DataSetKind] = {
    OracleType.TELLOR_NUMBER: DataSetKind.TELLOR,
    OracleType.POLL_NUMBER: DataSetKind.POLL,
    OracleType.POLL_STRING: DataSetKind.POLL,
    OracleType.VOTE_NUMBER: DataSetKind.POLL,
    OracleType.VOTE_STRING: DataSetKind.POLL,
}


def _check_dataset_kind(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    datasets = {d.id: d for d in grant.dataset or []}
    for path, condition in _iter_conditions(grant):
        ref = condition.oracle.dataset
        if ref is None:
            continue
        dataset = ref if is_inline(ref) else datasets.get(ref)
        expected = _EXPECTED_DATASET.get(condition.oracle.type)
        if dataset is None or expected is None:
            continue
        if dataset.kind != expected.value:
            yield (
                f"{path}.oracle.dataset",
                dataset.kind,
                f"{condition.oracle.type.value} oracles take a {expected.value} dataset",
            )


def _check_outcome_weights(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    for i, outcome in enumerate(grant.outcome or []):
        path = f"outcome[{i}].condition_weight"
        weights = outcome.condition_weight
        if outcome.condition_mix is ConditionMix.AVERAGE_WEIGHTED:
            if weights is None:
                if outcome.condition:
                    yield path, None, "required when condition_mix is average_weighted"
            elif len(weights) != len(outcome.condition):
                yield path, weights, f"must have one weight per condition ({len(outcome.condition)})"
            elif weights and sum(weights) <= 0:
                yield path, weights, "weights must not all be zero"
        elif weights is not None:
            yield path, weights, "unused when condition_mix is require_and"


def _check_outcome_share(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    for i, outcome in enumerate(grant.outcome or []):
        if outcome.transfer and outcome.share is None:
            yield f"outcome[{i}].share", None, "required when the outcome has transfers"


def _check_outcome_unique_refs(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    for i, outcome in enumerate(grant.outcome or []):
        for field in ("transfer", "condition"):
            seen: set[int] = set()
            for j, item in enumerate(getattr(outcome, field)):
                item_id = ref_id(item)
                if item_id in seen:
                    yield f"outcome[{i}].{field}[{j}]", item_id, f"{field} {item_id} is listed twice"
                seen.add(item_id)


def _check_transfer_single_outcome(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    owner: dict[int, int] = {}
    for i, outcome in enumerate(grant.outcome or []):
        for j, item in enumerate(outcome.transfer):
            transfer_id = ref_id(item)
            first = owner.setdefault(transfer_id, i)
            if first != i:
                yield (
                    f"outcome[{i}].transfer[{j}]",
                    transfer_id,
                    f"transfer already bound to outcome[{first}]",
                )


def _check_share_ratios(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    for path, share in _iter_shares(grant):
        if share.type is not TransferShareType.MAP_PERCENT:
            continue
        if share.ratio is None:
            yield f"{path}.ratio", None, "required when type is map_percent"
            continue
        if len(share.ratio) != len(share.actor):
            yield f"{path}.ratio", share.ratio, f"must have one ratio per actor ({len(share.actor)})"
        total = sum(share.ratio)
        if abs(total - 1.0) > options.share_ratio_epsilon:
            yield (
                f"{path}.ratio",
                share.ratio,
                f"ratios must sum to 1.0 +/- {options.share_ratio_epsilon:g} (sum={total:.9g})",
            )


def _check_share_actors(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    known = {a.address.lower() for a in grant.actor}
    for path, share in _iter_shares(grant):
        for k, address in enumerate(share.actor):
            if address.lower() not in known:
                yield f"{path}.actor[{k}]", address, "not an actor of the grant"


def _check_registration(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    if status_rank(grant.status) > status_rank(GrantStatus.DRAFT):
        if grant.nft is None:
            yield "nft", None, f"required once status is past draft (status={grant.status.value})"
        if grant.organization is None:
            yield "organization", None, f"required once status is past draft (status={grant.status.value})"


def _check_actor_addresses(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    by_address: dict[str, list[int]] = {}
    for i, actor in enumerate(grant.actor):
        by_address.setdefault(actor.address.lower(), []).append(i)
    for indices in by_address.values():
        if len(indices) < 2:
            continue
        if all(grant.actor[i].role is ActorRole.PROPOSER for i in indices):
            continue
        for i in indices[1:]:
            yield (
                f"actor[{i}].address",
                grant.actor[i].address,
                f"address already used by actor[{indices[0]}] (only proposers may share an address)",
            )


_ID_COLLECTIONS = (
    "dataset",
    "token",
    "transfer_share",
    "transfer",
    "condition",
    "outcome",
    "activity",
    "activity_group",
    "plan",
)


def _check_unique_ids(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    for name in _ID_COLLECTIONS:
        first: dict[int, int] = {}
        for i, item in enumerate(getattr(grant, name) or []):
            j = first.setdefault(item.id, i)
            if j != i:
                yield f"{name}[{i}].id", item.id, f"duplicate id (first used by {name}[{j}])"


def _as_utc(ts: datetime) -> datetime:
    return ts.replace(tzinfo=UTC) if ts.tzinfo is None else ts


def _check_history(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    history = grant.history
    last_previous: int | None = None
    last_date: datetime | None = None
    for i, event in enumerate(history.event):
        path = f"history.event[{i}]"
        if i > 0 and ChangeType.CREATE in event.type:
            yield f"{path}.type", [t.value for t in event.type], "create is only allowed in the first event"
        if event.previous is not None:
            version = event.previous.version
            if version > history.version:
                yield (
                    f"{path}.previous.version",
                    version,
                    f"must not exceed history.version ({history.version})",
                )
            if last_previous is not None and version <= last_previous:
                yield f"{path}.previous.version", version, f"must be greater than {last_previous}"
            last_previous = version
        ts = _as_utc(event.timestamp)
        if last_date is not None and ts < last_date:
            yield f"{path}.date", event.date, "events must be in chronological order"
        last_date = ts


def _check_schema_version(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    if not is_supported(grant.schema_version):
        supported = ", ".join(str(v) for v in sorted(SUPPORTED_SCHEMA_VERSIONS))
        yield "schema_version", grant.schema_version, f"unsupported schema version (supported: {supported})"


def _check_references(grant: ProjectGrant, options: ValidationOptions) -> Iterator[Finding]:
    transfers = _ids(grant.transfer)
    shares = _ids(grant.transfer_share)
    conditions = _ids(grant.condition)
    tokens = _ids(grant.token)
    datasets = _ids(grant.dataset)
    outcomes = _ids(grant.outcome)
    activities = _ids(grant.activity)
    groups = _ids(grant.activity_group)
    plans = _ids(grant.plan)

    for i, outcome in enumerate(grant.outcome or []):
        for j, item in enumerate(outcome.transfer):
            if not is_inline(item) and item not in transfers:
                yield f"outcome[{i}].transfer[{j}]", item, "unknown transfer id"
        if outcome.share is not None and not is_inline(outcome.share) and outcome.share not in shares:
            yield f"outcome[{i}].share", outcome.share, "unknown transfer_share id"
        for j, item in enumerate(outcome.condition):
            if not is_inline(item) and item not in conditions:
                yield f"outcome[{i}].condition[{j}]", item, "unknown condition id"
    for path, transfer in _iter_transfers(grant):
        if not is_inline(transfer.token) and transfer.token not in tokens:
            yield f"{path}.token", transfer.token, "unknown token id"
    for path, condition in _iter_conditions(grant):
        ref = condition.oracle.dataset
        if ref is not None and not is_inline(ref) and ref not in datasets:
            yield f"{path}.oracle.dataset", ref, "unknown dataset id"
    for i, activity in enumerate(grant.activity or []):
        for j, ref in enumerate(activity.outcome or []):
            if ref not in outcomes:
                yield f"activity[{i}].outcome[{j}]", ref, "unknown outcome id"
    for i, group in enumerate(grant.activity_group or []):
        for j, ref in enumerate(group.activity):
            if ref not in activities:
                yield f"activity_group[{i}].activity[{j}]", ref, "unknown activity id"
    plan_paths = [(f"plan[{i}]", plan) for i, plan in enumerate(grant.plan or [])]
    if is_inline(grant.plan_default):
        plan_paths.append(("plan_default", grant.plan_default))
    elif grant.plan_default is not None and grant.plan_default not in plans:
        yield "plan_default", grant.plan_default, "unknown plan id"
    for path, plan in plan_paths:
        for j, ref in enumerate(plan.group or []):
            if ref not in groups:
                yield f"{path}.group[{j}]", ref, "unknown activity_group id"


_CONDITION_FIELDS = ("condition", "outcome")

RULES: tuple[Rule, ...] = (
    Rule(
        "token[*]",
        _check_token_id,
        "erc721 tokens carry a token_id and no decimals",
        reads=("token", "transfer", "outcome"),
    ),
    Rule(
        "condition[*].validation",
        _check_gates,
        "participation gates on exactly the poll/vote number oracles",
        reads=_CONDITION_FIELDS,
    ),
    Rule(
        "condition[*].mapping",
        _check_mapping_lengths,
        "mapping ref and out have equal length",
        reads=_CONDITION_FIELDS,
    ),
    Rule(
        "condition[*]",
        _check_compute_mapping,
        "compute method, oracle type and mapping operator fit together",
        option="compute_mapping_consistency",
        reads=_CONDITION_FIELDS,
    ),
    Rule(
        "condition[*].oracle.dataset",
        _check_dataset_kind,
        "dataset kind matches the oracle type",
        reads=("dataset", *_CONDITION_FIELDS),
    ),
    Rule(
        "outcome[*].condition_weight",
        _check_outcome_weights,
        "weights follow the condition mix",
        reads=("outcome",),
    ),
    Rule(
        "outcome[*].share",
        _check_outcome_share,
        "outcomes with transfers have a share model",
        reads=("outcome",),
    ),
    Rule(
        "outcome[*]",
        _check_outcome_unique_refs,
        "transfers and conditions listed once per outcome",
        reads=("outcome",),
    ),
    Rule(
        "outcome[*].transfer",
        _check_transfer_single_outcome,
        "a transfer belongs to one outcome",
        reads=("outcome",),
    ),
    Rule(
        "transfer_share[*].ratio",
        _check_share_ratios,
        "map_percent ratios match actors and sum to 1",
        reads=("transfer_share", "outcome"),
    ),
    Rule(
        "transfer_share[*].actor",
        _check_share_actors,
        "share recipients are grant actors",
        reads=("actor", "transfer_share", "outcome"),
    ),
    Rule(
        "nft, organization",
        _check_registration,
        "registered grants carry nft and organization",
        reads=("status", "nft", "organization"),
    ),
    Rule(
        "actor[*].address",
        _check_actor_addresses,
        "actor addresses are unique except among proposers",
        option="unique_actor_address",
        reads=("actor",),
    ),
    Rule("*[*].id", _check_unique_ids, "IDs are unique within each collection", reads=_ID_COLLECTIONS),
    Rule("history", _check_history, "history versions and dates move forward", reads=("history",)),
    Rule(
        "schema_version",
        _check_schema_version,
        "schema version is supported",
        reads=("schema_version",),
    ),
    Rule(
        "*",
        _check_references,
        "by-ID references resolve",
        option="referential_integrity",
        reads=(*_ID_COLLECTIONS, "plan_default"),
    ),
)


# ============================================================================
# ENTRY POINTS
# ============================================================================


def _run_rules(
    grant: ProjectGrant, options: ValidationOptions, unparsed: frozenset[str] = frozenset()
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for rule in RULES:
        if rule.option is not None and not getattr(options, rule.option):
            continue
        blocked = unparsed.intersection(rule.reads)
        if blocked:
            logger.debug("rule %r skipped, unparsed field(s): %s", rule.path, ", ".join(sorted(blocked)))
            continue
        for path, value, constraint in rule.check(grant, options):
            issues.append(ValidationIssue(path, value, constraint))
    return issues


def validate(grant: ProjectGrant, options: ValidationOptions = DEFAULT_OPTIONS) -> list[ValidationIssue]:
    """
    Run the rule table over a typed grant.

    Args:
        grant (ProjectGrant): Grant that passed field-level validation.
        options (ValidationOptions): Rule toggles and tolerances.

    Returns:
        list[ValidationIssue]: Every violation, in rule order. Empty when valid.
    """
    return _run_rules(grant, options)


# Location segments added by pydantic for union members rather than document keys.
_UNION_SEGMENTS = frozenset({"ref", "inline", "tellor", "poll", "int", "str", "float"})


def _is_union_segment(loc: tuple[int | str, ...], k: int) -> bool:
    segment = loc[k]
    if not isinstance(segment, str):
        return False
    if segment.startswith(("function-", "constrained-")):
        return True
    # ConditionMapping.ref is the one document key that is also a union tag.
    if segment == "ref" and k > 0 and loc[k - 1] == "mapping":
        return False
    return segment in _UNION_SEGMENTS


def _format_loc(loc: tuple[int | str, ...]) -> str:
    path = ""
    for k, segment in enumerate(loc):
        if isinstance(segment, int):
            path += f"[{segment}]"
        elif not _is_union_segment(loc, k):
            path += f".{segment}" if path else segment
    return path or "<root>"


def issues_from_pydantic(exc: ValidationError) -> list[ValidationIssue]:
    """
    Convert a pydantic ValidationError into ValidationIssue entries.

    Union member tags (``ref``/``inline``, dataset kinds, scalar types) are dropped
    from locations. Errors repeated with the same path and message, as union
    members report them, are kept once.
    """
    issues: list[ValidationIssue] = []
    seen: set[tuple[str, str]] = set()
    for err in exc.errors(include_url=False):
        path = _format_loc(tuple(err["loc"]))
        key = (path, err["msg"])
        if key in seen:
            continue
        seen.add(key)
        issues.append(ValidationIssue(path, err.get("input"), err["msg"]))
    return issues


def _unparsed_fields(exc: ValidationError) -> frozenset[str] | None:
    # Top-level keys holding an error; None when an error is not tied to one.
    names: set[str] = set()
    for err in exc.errors(include_url=False):
        loc = err["loc"]
        if not loc or not isinstance(loc[0], str):
            return None
        names.add(loc[0])
    return frozenset(names)


@lru_cache(maxsize=64)
def _partial_model(unparsed: frozenset[str]) -> type[ProjectGrant]:
    # Same grant model with the failed fields made optional and untyped.
    overrides: dict[str, Any] = {
        name: (Any, None) for name in sorted(unparsed) if name in ProjectGrant.model_fields
    }
    return create_model("PartialProjectGrant", __base__=ProjectGrant, **overrides)


def _partial_grant(tree: Mapping[str, Any], unparsed: frozenset[str]) -> ProjectGrant | None:
    rest = {key: value for key, value in tree.items() if key not in unparsed}
    try:
        return _partial_model(unparsed).model_validate(rest)
    except ValidationError as exc:
        logger.debug("partial grant could not be built: %d error(s)", exc.error_count())
        return None


def parse_and_validate(
    tree: Any, options: ValidationOptions = DEFAULT_OPTIONS
) -> tuple[ProjectGrant | None, list[ValidationIssue]]:
    """
    Build a typed grant from a decoded document and report every issue.

    When some top-level fields fail field-level validation, the rule table still
    runs over the fields that parsed; rules reading a failed field are skipped.

    Args:
        tree (Any): Decoded YAML/JSON/CBOR document.
        options (ValidationOptions): Rule toggles and tolerances.

    Returns:
        tuple[ProjectGrant | None, list[ValidationIssue]]: The grant (None when
        field-level issues prevent building it) and all issues found, field-level
        issues first.

    Raises:
        DocumentError: If the document root is not a mapping.
    """
    if not isinstance(tree, Mapping):
        raise DocumentError(f"grant document root must be a mapping, got {type(tree).__name__}")
    try:
        grant = ProjectGrant.model_validate(dict(tree))
    except ValidationError as exc:
        issues = issues_from_pydantic(exc)
        logger.warning("grant document has %d field-level issue(s)", len(issues))
        unparsed = _unparsed_fields(exc)
        if unparsed is not None:
            partial = _partial_grant(tree, unparsed)
            if partial is not None:
                issues.extend(_run_rules(partial, options, unparsed))
        return None, issues
    issues = validate(grant, options)
    if issues:
        logger.warning("grant document has %d structural issue(s)", len(issues))
    else:
        logger.debug("grant document is valid (version %d)", grant.history.version)
    return grant, issues


def ensure_valid(grant: ProjectGrant, options: ValidationOptions = DEFAULT_OPTIONS) -> ProjectGrant:
    """
    Return the grant unchanged if it has no structural issues.

    Raises:
        StructuralError: Carrying every issue found.
    """
    issues = validate(grant, options)
    if issues:
        raise StructuralError(issues)
    return grant
