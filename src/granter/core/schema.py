"""
Pydantic v2 models for the project grant definition: actors, metadata, history,
tokens, transfers, sharing models, oracle datasets, conditions, outcomes and the
activity/plan composition. Validators parse enum codes through grammar helpers and
enforce field-level constraints (types, ranges, lengths, uniqueness).

Responsibilities
- Define the canonical typed model of a grant document.
- Parse enum-like fields (string or legacy integer codes) via grammar.enum_from_value.
- Enforce per-field bounds declared in the schema (array sizes, ranges, lengths).
- Model "reference | inline object" relations as tagged unions.

Not here
- Cross-field, conditional and referential rules. Those live in the rule table of
  granter.core.validation so that every violation is reported in one pass.

Style
- Zero-IO (stdlib + pydantic only).
- Google-style docstrings with Attributes, Raises, Notes and Examples sections.
- Models are frozen; changes go through granter.core.history.

References
- grammar: src/granter/core/grammar.py (enums, wire codes)
- validation: src/granter/core/validation.py (rule table)
- tests: tests/core/*
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    PlainSerializer,
    StringConstraints,
    Tag,
    field_validator,
)

from .constants import (
    ETH_ADDRESS_PATTERN,
    MAX_ACTORS,
    MAX_CONDITIONS_PER_OUTCOME,
    MAX_GATES_PER_CONDITION,
    MAX_MAPPING_ENTRIES,
    MAX_SHARE_ACTORS,
    MAX_TOKEN_DECIMALS,
    MIN_GATE_THRESHOLD,
    RATING_MAX,
)
from .errors import SchemaError
from .grammar import (
    DEFAULTS,
    ActorRole,
    Chain,
    ChangeType,
    ComputeMethod,
    ConditionMix,
    GrantStatus,
    MappingType,
    OracleType,
    TokenType,
    TransferShareType,
    TransferStatus,
    ValidationType,
    enum_from_value,
)

__all__ = [
    # Shared field types
    "EthAddress",
    "EntityId",
    "TransferAmount",
    # Metadata
    "Actor",
    "NFT",
    "Organization",
    "Project",
    "ChangePrevious",
    "HistoryEvent",
    "History",
    # Assets
    "Token",
    "TransferShare",
    "Transfer",
    # Oracles & conditions
    "TellorDataSet",
    "PollDataSet",
    "OracleDataSet",
    "ConditionOracle",
    "ConditionMapping",
    "ConditionValidation",
    "Condition",
    # Plan
    "Outcome",
    "Activity",
    "ActivityGroup",
    "Plan",
    # Root
    "ProjectGrant",
    "is_inline",
    "ref_id",
]


def _require_unique(items: list[Any]) -> list[Any]:
    seen: set[Any] = set()
    for item in items:
        if item in seen:
            raise SchemaError(f"items must be unique, {item!r} is repeated")
        seen.add(item)
    return items


def _ref_or_inline(v: Any) -> str:
    # Mappings and model instances are inline objects; anything else is an ID.
    if isinstance(v, (dict, BaseModel)):
        return "inline"
    return "ref"


def is_inline(v: Any) -> bool:
    """Whether a reference-or-inline field value holds an inline object."""
    return isinstance(v, BaseModel)


def ref_id(v: Any) -> int:
    """ID of a reference-or-inline field value."""
    return v.id if isinstance(v, BaseModel) else v


EthAddress = Annotated[str, StringConstraints(pattern=ETH_ADDRESS_PATTERN)]
EntityId = Annotated[int, Field(ge=0)]
DocLink = Annotated[str, StringConstraints(min_length=8, max_length=120)]
EntityName = Annotated[str, StringConstraints(min_length=3, max_length=50)]


def _amount_to_wire(v: Decimal) -> int | float | str:
    # Integral amounts go back out as integers of any size; other values as a
    # float only when that float reads back to the same Decimal.
    if v == v.to_integral_value():
        return int(v)
    f = float(v)
    if Decimal(repr(f)) == v:
        return f
    return str(v)


TransferAmount = Annotated[
    Decimal,
    Field(gt=0, allow_inf_nan=False),
    PlainSerializer(_amount_to_wire, when_used="json"),
]

UniqueIds = Annotated[list[EntityId], AfterValidator(_require_unique)]
UniqueAddresses = Annotated[list[EthAddress], AfterValidator(_require_unique)]


# ============================================================================
# METADATA
# ============================================================================


class Actor(BaseModel):
    """
    Actor of the project grant and its single role.

    Attributes:
        name (str): Display name, 3..20 characters.
        role (ActorRole): Exactly one role; roles are never cumulated.
        address (str): EVM account address.
        ens (str | None): Optional ENS name, 4..20 characters.
        share (float | None): Optional default share percentage in [0, 100].

    Examples:
        >>> from granter.core.schema import Actor
        >>> Actor(name="Jet Black", role="executor",
        ...       address="0x0E4716Dd910adeB96D9A82E2a7780261E3D9476D").role.value
        'executor'
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=3, max_length=20)
    role: ActorRole
    address: EthAddress
    ens: str | None = Field(default=None, min_length=4, max_length=20)
    share: float | None = Field(default=None, ge=0.0, le=100.0)

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, v: Any) -> ActorRole:
        return enum_from_value(ActorRole, v)


class NFT(BaseModel):
    """
    On-chain NFT that represents the grant.

    Attributes:
        collection (str): NFT collection contract address.
        token_id (str): Token ID inside the collection, 1..255 characters.
        token_uri (str | None): Optional content identifier of the stored definition.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    collection: EthAddress
    token_id: str = Field(..., min_length=1, max_length=255)
    token_uri: str | None = Field(default=None, min_length=5, max_length=255)


class Organization(BaseModel):
    """DAO owning the grant, its committee (1..3 addresses) and its admin account."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    dao: EthAddress
    committee: UniqueAddresses = Field(..., min_length=1, max_length=3)
    admin: EthAddress


class Project(BaseModel):
    """Project name, links to external documents and optional long description."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=5, max_length=30)
    doc: list[DocLink] = Field(..., min_length=1, max_length=5)
    desc: str | None = Field(default=None, min_length=20, max_length=512)


class ChangePrevious(BaseModel):
    """Version number and content identifier that a change replaced."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    version: int = Field(..., gt=0)
    cid: str = Field(..., min_length=1)


class HistoryEvent(BaseModel):
    """
    Change event recorded in the grant history.

    Attributes:
        date (str): ISO-8601 timestamp, kept verbatim for lossless round-trips.
        type (list[ChangeType]): 1..5 unique change kinds.
        author (list[str]): 1..5 unique signer addresses.
        previous (ChangePrevious | None): Definition version this change replaced.
        comment (str | None): Optional commit comment, up to 255 characters.

    Raises:
        pydantic.ValidationError: If the date is not ISO-8601 or a change code is unknown.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    date: str
    type: Annotated[list[ChangeType], AfterValidator(_require_unique)] = Field(
        ..., min_length=1, max_length=5
    )
    author: UniqueAddresses = Field(..., min_length=1, max_length=5)
    previous: ChangePrevious | None = None
    comment: str | None = Field(default=None, max_length=255)

    @field_validator("date", mode="before")
    @classmethod
    def _check_date(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise SchemaError(f"date must be an ISO-8601 string, got {v!r}")
        try:
            datetime.fromisoformat(v)
        except ValueError as exc:
            raise SchemaError(f"date must be ISO-8601, got {v!r}") from exc
        return v

    @field_validator("type", mode="before")
    @classmethod
    def _parse_types(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [enum_from_value(ChangeType, item) for item in v]
        return v

    @property
    def timestamp(self) -> datetime:
        """Parsed event date."""
        return datetime.fromisoformat(self.date)


class History(BaseModel):
    """Current definition version and the ordered change events (1..100)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    version: int = Field(..., gt=0)
    event: list[HistoryEvent] = Field(..., min_length=1, max_length=100)


# ============================================================================
# ASSETS
# ============================================================================


class Token(BaseModel):
    """
    Token moved by grant transfers.

    Attributes:
        id (int): Internal token ID.
        contract (str): Token contract address.
        type (TokenType): Token standard (default erc20).
        chain (Chain): Network (default optimism).
        token_id (str | None): Sub-token identifier, required iff type is erc721.
        decimals (int): Smallest indivisible unit is 10**-decimals (default 0).

    Notes:
        The erc721 requirement on token_id is a conditional rule checked by
        granter.core.validation, so it is reported alongside every other issue.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: EntityId
    contract: EthAddress
    type: TokenType = DEFAULTS[TokenType]  # type: ignore[assignment]
    chain: Chain = DEFAULTS[Chain]  # type: ignore[assignment]
    token_id: str | None = Field(default=None, min_length=1, max_length=80)
    decimals: int = Field(default=0, ge=0, le=MAX_TOKEN_DECIMALS)

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, v: Any) -> TokenType:
        return enum_from_value(TokenType, v)

    @field_validator("chain", mode="before")
    @classmethod
    def _parse_chain(cls, v: Any) -> Chain:
        return enum_from_value(Chain, v)


class TransferShare(BaseModel):
    """
    Sharing model splitting a transfer among recipient actors.

    Attributes:
        id (int): Internal sharing model ID.
        type (TransferShareType): map_percent (explicit ratios) or equi_percent (1/N).
        actor (list[str]): 1..30 unique recipient addresses, in payout order.
        ratio (list[float] | None): Per-actor ratios in [0, 1]; required and
            length-matched for map_percent, ignored for equi_percent.

    Notes:
        Sum of ratios must be 1.0 within ValidationOptions.share_ratio_epsilon
        (granter.core.validation).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: EntityId
    type: TransferShareType = DEFAULTS[TransferShareType]  # type: ignore[assignment]
    actor: UniqueAddresses = Field(..., min_length=1, max_length=MAX_SHARE_ACTORS)
    ratio: list[Annotated[float, Field(ge=0.0, le=1.0)]] | None = Field(
        default=None, min_length=1, max_length=MAX_SHARE_ACTORS
    )

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, v: Any) -> TransferShareType:
        return enum_from_value(TransferShareType, v)


TokenRef = Annotated[
    Union[Annotated[EntityId, Tag("ref")], Annotated[Token, Tag("inline")]],
    Discriminator(_ref_or_inline),
]


class Transfer(BaseModel):
    """
    Planned token transfer released when an outcome is rated.

    Attributes:
        id (int): Internal transfer ID.
        status (TransferStatus): open (claimable) or closed (settled/locked).
        amount (Decimal): Maximum amount to transfer, > 0. Kept exact so
            wei-scale integers survive parsing and share arithmetic.
        token (int | Token): Token reference or inline token.
        tx (list[str] | None): 1..20 unique on-chain transaction hashes.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: EntityId
    status: TransferStatus
    amount: TransferAmount
    token: TokenRef
    tx: (
        Annotated[
            list[Annotated[str, StringConstraints(min_length=10, max_length=100)]],
            AfterValidator(_require_unique),
        ]
        | None
    ) = Field(default=None, min_length=1, max_length=20)

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, v: Any) -> TransferStatus:
        return enum_from_value(TransferStatus, v)


# ============================================================================
# ORACLES & CONDITIONS
# ============================================================================


class TellorDataSet(BaseModel):
    """Tellor query parameters: query ID and ABI-encoded query data."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["tellor"] = "tellor"
    id: EntityId
    query_id: str = Field(..., min_length=1, max_length=80)
    query_data: str = Field(..., min_length=1, max_length=1024)


class PollDataSet(BaseModel):
    """Poll parameters: question, allowed choices and an optional quorum hint."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["poll"] = "poll"
    id: EntityId
    question: str = Field(..., min_length=3, max_length=255)
    choices: Annotated[
        list[Annotated[str, StringConstraints(min_length=1, max_length=80)]],
        AfterValidator(_require_unique),
    ] = Field(default_factory=list, max_length=20)
    min_participants: int | None = Field(default=None, ge=0)


OracleDataSet = Annotated[Union[TellorDataSet, PollDataSet], Field(discriminator="kind")]

DataSetRef = Annotated[
    Union[Annotated[EntityId, Tag("ref")], Annotated[OracleDataSet, Tag("inline")]],
    Discriminator(_ref_or_inline),
]


class ConditionOracle(BaseModel):
    """
    Oracle contract feeding a condition.

    Attributes:
        contract (str): Oracle contract address.
        type (OracleType): Source kind; decides the shape of the oracle output.
        dataset (int | TellorDataSet | PollDataSet | None): Query parameters,
            by reference into ProjectGrant.dataset or inline.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    contract: EthAddress
    type: OracleType
    dataset: DataSetRef | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, v: Any) -> OracleType:
        return enum_from_value(OracleType, v)


MappingRef = Union[
    Annotated[int, Field(ge=0)],
    Annotated[str, StringConstraints(min_length=1, max_length=80)],
]


class ConditionMapping(BaseModel):
    """
    Maps a computed oracle value onto an output rating.

    Attributes:
        type (MappingType): Relational operator (default none).
        ref (list[int | str]): Reference values; ints >= 0, or strings for map_string.
        out (list[int]): Output ratings in [0, 100], parallel to ref.

    Notes:
        ref/out length equality is reported by the structural validator and
        re-checked by the evaluator (ConfigurationError).

    Examples:
        >>> from granter.core.schema import ConditionMapping
        >>> m = ConditionMapping(type="equal", ref=[0, 1], out=[0, 100])
        >>> dict(zip(m.ref, m.out))
        {0: 0, 1: 100}
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: MappingType = DEFAULTS[MappingType]  # type: ignore[assignment]
    ref: list[MappingRef] = Field(default_factory=list, max_length=MAX_MAPPING_ENTRIES)
    out: list[Annotated[int, Field(ge=0, le=int(RATING_MAX))]] = Field(
        default_factory=list, max_length=MAX_MAPPING_ENTRIES
    )

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, v: Any) -> MappingType:
        return enum_from_value(MappingType, v)


class ConditionValidation(BaseModel):
    """Participation gate: minimum percent or minimum number of accounts (>= 0.1)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: ValidationType
    threshold: float = Field(..., ge=MIN_GATE_THRESHOLD)

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, v: Any) -> ValidationType:
        return enum_from_value(ValidationType, v)


class Condition(BaseModel):
    """
    Single testable criterion producing a rating in [0, 100] from oracle data.

    Attributes:
        id (int): Condition ID.
        oracle (ConditionOracle): Oracle source.
        compute (ComputeMethod): Reduction applied to the oracle output.
        validation (list[ConditionValidation] | None): 0..10 participation gates,
            all of which must pass.
        mapping (ConditionMapping | None): Optional value-to-rating mapping.
        default (float): Fallback rating (>= 0) when a gate fails or nothing matches.

    Examples:
        >>> from granter.core.schema import Condition
        >>> c = Condition(
        ...     id=1,
        ...     oracle={"contract": "0x" + "a" * 40, "type": "tellor_number"},
        ...     compute="map_number",
        ...     mapping={"type": "equal", "ref": [0, 1], "out": [0, 100]},
        ... )
        >>> c.compute.value, c.default
        ('map_number', 0.0)
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: EntityId
    oracle: ConditionOracle
    compute: ComputeMethod
    validation: list[ConditionValidation] | None = Field(
        default=None, max_length=MAX_GATES_PER_CONDITION
    )
    mapping: ConditionMapping | None = None
    default: float = Field(default=0.0, ge=0.0)

    @field_validator("compute", mode="before")
    @classmethod
    def _parse_compute(cls, v: Any) -> ComputeMethod:
        return enum_from_value(ComputeMethod, v)


# ============================================================================
# PLAN: OUTCOMES, ACTIVITIES, GROUPS, PLANS
# ============================================================================

TransferRef = Annotated[
    Union[Annotated[EntityId, Tag("ref")], Annotated[Transfer, Tag("inline")]],
    Discriminator(_ref_or_inline),
]
ShareRef = Annotated[
    Union[Annotated[EntityId, Tag("ref")], Annotated[TransferShare, Tag("inline")]],
    Discriminator(_ref_or_inline),
]
ConditionRef = Annotated[
    Union[Annotated[EntityId, Tag("ref")], Annotated[Condition, Tag("inline")]],
    Discriminator(_ref_or_inline),
]


class Outcome(BaseModel):
    """
    Deliverable of an activity whose condition ratings gate its transfers.

    Attributes:
        id (int): Outcome ID.
        name (str): 3..50 characters.
        transfer (list[int | Transfer]): Transfers released by this outcome.
        share (int | TransferShare | None): Sharing model for the transfers.
        condition (list[int | Condition]): 0..10 conditions impacting the ratio.
        condition_mix (ConditionMix): How ratings combine (default average_weighted).
        condition_weight (list[float] | None): Per-condition weights (>= 0),
            required and length-matched when condition_mix is average_weighted.

    Notes:
        Uniqueness of transfer/condition references is checked on resolved IDs by
        granter.core.validation because entries may be IDs or inline objects.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: EntityId
    name: EntityName
    transfer: list[TransferRef] = Field(default_factory=list)
    share: ShareRef | None = None
    condition: list[ConditionRef] = Field(
        default_factory=list, max_length=MAX_CONDITIONS_PER_OUTCOME
    )
    condition_mix: ConditionMix = DEFAULTS[ConditionMix]  # type: ignore[assignment]
    condition_weight: list[Annotated[float, Field(ge=0.0)]] | None = Field(
        default=None, max_length=MAX_CONDITIONS_PER_OUTCOME
    )

    @field_validator("condition_mix", mode="before")
    @classmethod
    def _parse_mix(cls, v: Any) -> ConditionMix:
        return enum_from_value(ConditionMix, v)


class Activity(BaseModel):
    """Activity of the grant: name, documents and the outcomes it delivers."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: EntityId
    name: EntityName
    doc: Annotated[list[DocLink], AfterValidator(_require_unique)] | None = Field(
        default=None, min_length=1, max_length=5
    )
    outcome: UniqueIds | None = Field(default=None, min_length=1)


class ActivityGroup(BaseModel):
    """Group of activities (0..20), optionally bound to a project phase."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: EntityId
    name: EntityName
    phase: int | None = None
    activity: UniqueIds = Field(default_factory=list, max_length=20)


class Plan(BaseModel):
    """Execution plan made of ordered activity groups (1..10)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: EntityId
    name: EntityName
    group: UniqueIds | None = Field(default=None, min_length=1, max_length=10)


PlanRef = Annotated[
    Union[Annotated[EntityId, Tag("ref")], Annotated[Plan, Tag("inline")]],
    Discriminator(_ref_or_inline),
]


# ============================================================================
# ROOT
# ============================================================================


class ProjectGrant(BaseModel):
    """
    Root aggregate of a project grant definition.

    Attributes:
        actor (list[Actor]): 1..15 actors and their roles.
        history (History): Version and change log of the definition.
        nft (NFT | None): On-chain NFT; required once status is past draft.
        organization (Organization | None): Owning DAO; required once status is past draft.
        project (Project): Project metadata.
        schema_version (int): Grant schema version (> 0).
        status (GrantStatus): Lifecycle status.
        dataset (list[TellorDataSet | PollDataSet] | None): Oracle query datasets (1..100).
        token (list[Token] | None): Tokens (1..100).
        transfer_share (list[TransferShare] | None): Sharing models (1..100).
        transfer (list[Transfer] | None): Transfers (1..100).
        condition (list[Condition] | None): Conditions (1..120).
        outcome (list[Outcome] | None): Outcomes (1..100).
        activity (list[Activity] | None): Activities (0..30).
        activity_group (list[ActivityGroup] | None): Activity groups (1..10).
        plan (list[Plan] | None): Execution plans (1..3).
        plan_default (int | Plan | None): Active plan, by reference or inline.

    Notes:
        - The grant owns every collection; relations between entities are by-ID
          lookups into sibling collections (or inline objects), resolved by
          granter.rating.engine.GrantIndex.
        - Instances are frozen. Use granter.core.history.apply_change to derive
          the next version.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    actor: list[Actor] = Field(..., min_length=1, max_length=MAX_ACTORS)
    history: History
    nft: NFT | None = None
    organization: Organization | None = None
    project: Project
    schema_version: int = Field(..., gt=0)
    status: GrantStatus

    dataset: list[OracleDataSet] | None = Field(default=None, min_length=1, max_length=100)
    token: list[Token] | None = Field(default=None, min_length=1, max_length=100)
    transfer_share: list[TransferShare] | None = Field(default=None, min_length=1, max_length=100)
    transfer: list[Transfer] | None = Field(default=None, min_length=1, max_length=100)
    condition: list[Condition] | None = Field(default=None, min_length=1, max_length=120)
    outcome: list[Outcome] | None = Field(default=None, min_length=1, max_length=100)
    activity: list[Activity] | None = Field(default=None, min_length=0, max_length=30)
    activity_group: list[ActivityGroup] | None = Field(default=None, min_length=1, max_length=10)
    plan: list[Plan] | None = Field(default=None, min_length=1, max_length=3)
    plan_default: PlanRef | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, v: Any) -> GrantStatus:
        return enum_from_value(GrantStatus, v)
