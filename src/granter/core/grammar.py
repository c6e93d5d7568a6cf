"""
Canonical grant grammar: enums, wire codes and normalization helpers.

Defines every enumerated option of a project grant definition (chains, token
standards, statuses, actor roles, change types, oracle types, compute methods,
mapping operators, participation gates and condition mixes) together with the
zero-IO helpers used by schema validators to parse them.

Responsibilities
- Define enums whose serialized values are stable lower_snake wire codes.
- Keep the integer codes of the first published schema readable (legacy codes).
- Reject unknown codes with GrammarError instead of defaulting.
- Provide lifecycle ordering for GrantStatus and the allowed transitions.

Design principles
-----------------
1) One naming standard:
   - Enum classes: PascalCase
   - Enum member names: UPPER_SNAKE (Python constants)
   - Enum serialized values (YAML/JSON/CBOR): lower_snake
   - Fields elsewhere: lower_snake

2) Stable wire codes:
   - Renaming or renumbering a value is a breaking schema change.
   - Documents written against the integer-coded schema still load; they are
     re-serialized with the string codes.

3) Explicit defaults only:
   - A default applies when a field is absent (see DEFAULTS), never when a
     supplied code is unknown.

Downstream usage
----------------
- granter.core.schema calls `enum_from_value` in `mode="before"` validators.
- granter.core.history uses `can_transition` and `status_rank`.
- Tests use `ensure_all_enum_values_lower_snake` to enforce naming invariants.

Examples
--------
>>> from granter.core.grammar import GrantStatus, TokenType, can_transition, enum_from_value
>>> enum_from_value(TokenType, "erc721") is TokenType.ERC721
True
>>> enum_from_value(TokenType, 100) is TokenType.ERC721
True
>>> can_transition(GrantStatus.HALTED, GrantStatus.RUNNING)
True
>>> can_transition(GrantStatus.RUNNING, GrantStatus.DRAFT)
False
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from enum import Enum
from typing import Any, Final, TypeVar

from .errors import GrammarError

__all__ = [
    "Chain",
    "TokenType",
    "TransferStatus",
    "TransferShareType",
    "ActorRole",
    "ChangeType",
    "GrantStatus",
    "OracleType",
    "ComputeMethod",
    "MappingType",
    "ValidationType",
    "ConditionMix",
    "DataSetKind",
    "ALL_ENUMS",
    "LEGACY_CODES",
    "DEFAULTS",
    "NUMERIC_ORACLE_TYPES",
    "STRING_ORACLE_TYPES",
    "GATED_ORACLE_TYPES",
    # helpers/validators
    "is_lower_snake",
    "assert_lower_snake",
    "enum_from_value",
    "enum_value",
    "status_rank",
    "can_transition",
    "ensure_all_enum_values_lower_snake",
]

E = TypeVar("E", bound=Enum)

_LOWER_SNAKE_RE = re.compile(r"^[a-z][a-z0-9]*(?:_[a-z0-9]+)*$")


# ============================================================================
# ASSETS & TRANSFERS
# ============================================================================


class Chain(Enum):
    """Blockchain networks where grant tokens live."""

    ETH = "eth"
    POLYGON = "polygon"
    OPTIMISM = "optimism"


class TokenType(Enum):
    """
    Token standards a transfer may move.

    Notes:
      ERC721 tokens require a `token_id` on granter.core.schema.Token.
    """

    ERC20 = "erc20"
    ERC721 = "erc721"
    ERC1155 = "erc1155"


class TransferStatus(Enum):
    """Transfer status: `open` is claimable, `closed` is settled or locked."""

    OPEN = "open"
    CLOSED = "closed"


class TransferShareType(Enum):
    """
    Sharing models for splitting a transfer among recipient actors.

    Values:
      - map_percent: each listed actor receives its own ratio.
      - equi_percent: every listed actor receives 1/N.
    """

    MAP_PERCENT = "map_percent"
    EQUI_PERCENT = "equi_percent"


# ============================================================================
# ACTORS, HISTORY, LIFECYCLE
# ============================================================================


class ActorRole(Enum):
    """
    Roles of grant actors. One role per actor; roles are never cumulated.
    """

    PROPOSER = "proposer"
    INVESTOR = "investor"
    EXECUTOR = "executor"
    REVIEWER = "reviewer"


class ChangeType(Enum):
    """
    Kinds of change events recorded in the grant history.

    Values:
      - create: initial definition.
      - update: definition edit.
      - contract_upd: on-chain contract updated.
      - lock: freeze the definition; only `unlock` is accepted afterwards.
      - unlock: resume edits after a lock.
      - close: terminate the grant; no further change is accepted.
    """

    CREATE = "create"
    UPDATE = "update"
    CONTRACT_UPD = "contract_upd"
    LOCK = "lock"
    UNLOCK = "unlock"
    CLOSE = "close"


class GrantStatus(Enum):
    """
    Lifecycle status of a project grant.

    Order: draft < submitted < approved < running < halted < closed.
    Moves are monotonic except halted -> running (resume).
    """

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    RUNNING = "running"
    HALTED = "halted"
    CLOSED = "closed"


# ============================================================================
# CONDITIONS & OUTCOMES
# ============================================================================


class OracleType(Enum):
    """
    Oracle sources feeding a condition.

    Notes:
      - *_number oracles report numbers; *_string oracles report strings.
      - poll_number and vote_number outputs must be guarded by participation gates.
    """

    POLL_NUMBER = "poll_number"
    POLL_STRING = "poll_string"
    VOTE_NUMBER = "vote_number"
    VOTE_STRING = "vote_string"
    UMA_NUMBER = "uma_number"
    TELLOR_NUMBER = "tellor_number"


class ComputeMethod(Enum):
    """
    How raw oracle output is reduced to one value before mapping.

    Values:
      - map_number: single number passed through.
      - map_string: single string passed through.
      - average: arithmetic mean of a numeric list.
      - average_weighted: sum(value * weight) / sum(weight).
      - most_chosen: value with the highest cumulative weight or frequency.
    """

    MAP_NUMBER = "map_number"
    MAP_STRING = "map_string"
    AVERAGE = "average"
    AVERAGE_WEIGHTED = "average_weighted"
    MOST_CHOSEN = "most_chosen"


class MappingType(Enum):
    """Relational operator used to map a computed value onto `ref[]`/`out[]`."""

    NONE = "none"
    EQUAL = "equal"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LOWER_THAN = "lower_than"
    LOWER_THAN_OR_EQUAL = "lower_than_or_equal"


class ValidationType(Enum):
    """Participation gates applied before trusting a poll or vote result."""

    MIN_PARTICIPATION_PERCENT = "min_participation_percent"
    MIN_PARTICIPATION_NB_ACCOUNT = "min_participation_nb_account"


class ConditionMix(Enum):
    """
    Methods combining the ratings of an outcome's conditions.

    Values:
      - require_and: all conditions at their maximum rating, else nothing.
      - average_weighted: weighted mean of the ratings.
    """

    REQUIRE_AND = "require_and"
    AVERAGE_WEIGHTED = "average_weighted"


class DataSetKind(Enum):
    """Discriminator of oracle query-parameter datasets."""

    TELLOR = "tellor"
    POLL = "poll"


ALL_ENUMS: Final[tuple[type[Enum], ...]] = (
    Chain,
    TokenType,
    TransferStatus,
    TransferShareType,
    ActorRole,
    ChangeType,
    GrantStatus,
    OracleType,
    ComputeMethod,
    MappingType,
    ValidationType,
    ConditionMix,
    DataSetKind,
)

# Integer codes of the first published (integer-coded) schema.
LEGACY_CODES: Final[dict[type[Enum], dict[int, Enum]]] = {
    Chain: {0: Chain.ETH, 10: Chain.POLYGON, 20: Chain.OPTIMISM},
    TokenType: {0: TokenType.ERC20, 100: TokenType.ERC721, 200: TokenType.ERC1155},
    TransferStatus: {0: TransferStatus.OPEN, 20: TransferStatus.CLOSED},
    TransferShareType: {0: TransferShareType.MAP_PERCENT, 1: TransferShareType.EQUI_PERCENT},
    ActorRole: {
        0: ActorRole.PROPOSER,
        100: ActorRole.INVESTOR,
        200: ActorRole.EXECUTOR,
        300: ActorRole.REVIEWER,
    },
    ChangeType: {
        0: ChangeType.CREATE,
        100: ChangeType.UPDATE,
        200: ChangeType.CONTRACT_UPD,
        300: ChangeType.LOCK,
        400: ChangeType.UNLOCK,
        500: ChangeType.CLOSE,
    },
    GrantStatus: {
        0: GrantStatus.DRAFT,
        90: GrantStatus.SUBMITTED,
        100: GrantStatus.APPROVED,
        200: GrantStatus.RUNNING,
        300: GrantStatus.HALTED,
        400: GrantStatus.CLOSED,
    },
    OracleType: {
        0: OracleType.POLL_NUMBER,
        1: OracleType.POLL_STRING,
        10: OracleType.VOTE_NUMBER,
        11: OracleType.VOTE_STRING,
        20: OracleType.UMA_NUMBER,
        30: OracleType.TELLOR_NUMBER,
    },
    ComputeMethod: {
        0: ComputeMethod.MAP_NUMBER,
        1: ComputeMethod.MAP_STRING,
        10: ComputeMethod.AVERAGE,
        11: ComputeMethod.AVERAGE_WEIGHTED,
        20: ComputeMethod.MOST_CHOSEN,
    },
    MappingType: {
        0: MappingType.NONE,
        1: MappingType.EQUAL,
        10: MappingType.GREATER_THAN,
        11: MappingType.GREATER_THAN_OR_EQUAL,
        20: MappingType.LOWER_THAN,
        21: MappingType.LOWER_THAN_OR_EQUAL,
    },
    ValidationType: {
        0: ValidationType.MIN_PARTICIPATION_PERCENT,
        1: ValidationType.MIN_PARTICIPATION_NB_ACCOUNT,
    },
    ConditionMix: {0: ConditionMix.REQUIRE_AND, 1: ConditionMix.AVERAGE_WEIGHTED},
}

# Values used when a field is absent from the document.
DEFAULTS: Final[dict[type[Enum], Enum]] = {
    Chain: Chain.OPTIMISM,
    TokenType: TokenType.ERC20,
    TransferShareType: TransferShareType.MAP_PERCENT,
    ChangeType: ChangeType.UPDATE,
    GrantStatus: GrantStatus.DRAFT,
    MappingType: MappingType.NONE,
    ConditionMix: ConditionMix.AVERAGE_WEIGHTED,
}

NUMERIC_ORACLE_TYPES: Final[frozenset[OracleType]] = frozenset(
    {
        OracleType.POLL_NUMBER,
        OracleType.VOTE_NUMBER,
        OracleType.UMA_NUMBER,
        OracleType.TELLOR_NUMBER,
    }
)
STRING_ORACLE_TYPES: Final[frozenset[OracleType]] = frozenset(
    {OracleType.POLL_STRING, OracleType.VOTE_STRING}
)
# Oracle types whose conditions must declare participation gates.
GATED_ORACLE_TYPES: Final[frozenset[OracleType]] = frozenset(
    {OracleType.POLL_NUMBER, OracleType.VOTE_NUMBER}
)

_STATUS_ORDER: Final[tuple[GrantStatus, ...]] = (
    GrantStatus.DRAFT,
    GrantStatus.SUBMITTED,
    GrantStatus.APPROVED,
    GrantStatus.RUNNING,
    GrantStatus.HALTED,
    GrantStatus.CLOSED,
)


# ============================================================================
# HELPERS
# ============================================================================


def is_lower_snake(s: str) -> bool:
    """
    Check whether a string is lower_snake.

    Args:
      s (str): Candidate string.

    Returns:
      bool: True when s matches ``^[a-z][a-z0-9]*(_[a-z0-9]+)*$``.
    """
    return bool(_LOWER_SNAKE_RE.match(s))


def assert_lower_snake(s: str, field: str) -> None:
    """
    Raise GrammarError unless s is lower_snake.

    Args:
      s (str): Candidate string.
      field (str): Field name used in the error message.

    Raises:
      GrammarError: If s is not lower_snake.
    """
    if not is_lower_snake(s):
        raise GrammarError(f"{field} must be lower_snake, got {s!r}")


def enum_from_value(enum_cls: type[E], value: Any) -> E:
    """
    Parse a wire code into a member of `enum_cls`.

    Accepts an existing member, the lower_snake string code, or the legacy
    integer code of the first published schema.

    Args:
      enum_cls (type[Enum]): Target enum class.
      value (Any): Candidate code.

    Returns:
      Enum: Parsed member.

    Raises:
      GrammarError: If the code is unknown, is a bool, or has an unsupported type.

    Examples:
      >>> enum_from_value(ConditionMix, "require_and") is ConditionMix.REQUIRE_AND
      True
      >>> enum_from_value(ConditionMix, 1) is ConditionMix.AVERAGE_WEIGHTED
      True
    """
    name = enum_cls.__name__
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, bool):
        raise GrammarError(f"{name} code must be a string or integer, got {value!r}")
    if isinstance(value, int):
        legacy = LEGACY_CODES.get(enum_cls, {})
        if value not in legacy:
            raise GrammarError(f"unknown {name} code {value!r}; expected one of {sorted(legacy)}")
        return legacy[value]  # type: ignore[return-value]
    if isinstance(value, str):
        assert_lower_snake(value, name)
        try:
            return enum_cls(value)
        except ValueError as exc:
            allowed = [m.value for m in enum_cls]
            raise GrammarError(f"unknown {name} code {value!r}; expected one of {allowed}") from exc
    raise GrammarError(f"{name} code must be a string or integer, got {type(value).__name__}")


def enum_value(member: Enum) -> str:
    """
    Get the serialized (lower_snake) value of an enum member.

    Args:
      member (Enum): Any grammar enum member.

    Returns:
      str: Wire code, e.g. "average_weighted".
    """
    return str(member.value)


def status_rank(status: GrantStatus) -> int:
    """
    Position of a status in the lifecycle order (draft is 0).

    Args:
      status (GrantStatus): Status to rank.

    Returns:
      int: Rank used for "status > draft" style comparisons.
    """
    return _STATUS_ORDER.index(status)


def can_transition(current: GrantStatus, target: GrantStatus) -> bool:
    """
    Whether a grant may move from `current` to `target`.

    Forward moves (by rank) are allowed, staying in place is allowed, and the
    only backward move is halted -> running. Nothing leaves closed.

    Args:
      current (GrantStatus): Present status.
      target (GrantStatus): Requested status.

    Returns:
      bool: True if the transition is legal.
    """
    if current is GrantStatus.CLOSED:
        return target is GrantStatus.CLOSED
    if current is GrantStatus.HALTED and target is GrantStatus.RUNNING:
        return True
    return status_rank(target) >= status_rank(current)


def ensure_all_enum_values_lower_snake(enums: Iterable[type[Enum]]) -> None:
    """
    Assert that every enum member's value is lower_snake.

    Args:
      enums (Iterable[type[Enum]]): Enum classes to inspect.

    Raises:
      AssertionError: If any enum member has a non-lower_snake value.

    Examples:
      >>> ensure_all_enum_values_lower_snake(ALL_ENUMS)
    """
    for enum_cls in enums:
        for m in enum_cls:
            if not is_lower_snake(m.value):
                raise AssertionError(
                    f"{enum_cls.__name__}.{m.name} has non-lower_snake value: {m.value!r}"
                )
