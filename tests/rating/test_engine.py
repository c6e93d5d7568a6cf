from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest

from granter.core.errors import ConfigurationError, InputError
from granter.core.grammar import TransferStatus
from granter.core.schema import ProjectGrant
from granter.rating.engine import GrantIndex, evaluate_outcome, evaluate_outcomes
from granter.rating.evaluator import OracleReading, ParticipationStats

EXECUTOR_A = "0x0E4716Dd910adeB96D9A82E2a7780261E3D9476D"
EXECUTOR_B = "0x3333333333333333333333333333333333333333"
REVIEWER = "0x4444444444444444444444444444444444444444"
TOKEN = "0x8888888888888888888888888888888888888888"


@pytest.fixture
def readings() -> dict[int, Any]:
    return {
        0: 1,
        1: OracleReading([60, 90], ParticipationStats(participant_count=5)),
        2: "yes",
    }


def test_weighted_outcome_settlement(grant: ProjectGrant, readings: dict[int, Any]) -> None:
    result = evaluate_outcome(grant, 0, readings)

    assert result.ratio == pytest.approx(0.625)
    assert [(r.condition_id, r.rating, r.source) for r in result.trace] == [
        (0, 100.0, "mapping"),
        (1, 50.0, "mapping"),
    ]
    (settled,) = result.transfers
    assert settled.effective_amount == Decimal("625.00")
    assert result.per_actor_amounts == {
        0: {EXECUTOR_A: Decimal("375.00"), EXECUTOR_B: Decimal("250.00")}
    }


def test_require_and_outcome_and_closed_transfer(
    grant: ProjectGrant, readings: dict[int, Any]
) -> None:
    result = evaluate_outcome(grant, 1, readings)

    assert result.ratio == 1.0
    open_, closed = result.transfers
    assert open_.amounts == {
        EXECUTOR_A: Decimal("33.34"),
        EXECUTOR_B: Decimal("33.33"),
        REVIEWER: Decimal("33.33"),
    }
    assert closed.status is TransferStatus.CLOSED
    assert closed.effective_amount == 0
    assert closed.amounts == {}


def test_failed_gate_lowers_ratio(grant: ProjectGrant, readings: dict[int, Any]) -> None:
    readings[1] = OracleReading([60, 90], ParticipationStats(participant_count=2))
    result = evaluate_outcome(grant, 0, readings)
    assert result.trace[1].source == "gate"
    assert result.ratio == pytest.approx(0.25)


def test_failed_gate_fails_require_and_whatever_the_default(grant_tree: dict[str, Any]) -> None:
    grant_tree["condition"][1]["mapping"] = {"type": "greater_than_or_equal", "ref": [0, 50], "out": [0, 50]}
    grant_tree["condition"][1]["default"] = 60
    grant_tree["outcome"][0]["condition_mix"] = "require_and"
    del grant_tree["outcome"][0]["condition_weight"]
    grant = ProjectGrant.model_validate(grant_tree)

    gated = {0: 1, 1: OracleReading([60, 90], ParticipationStats(participant_count=1))}
    result = evaluate_outcome(grant, 0, gated)
    assert result.trace[1].source == "gate"
    assert result.trace[1].rating == 60.0
    assert result.ratio == 0.0
    assert result.per_actor_amounts == {0: {EXECUTOR_A: Decimal("0.00"), EXECUTOR_B: Decimal("0.00")}}

    # with enough participants the mapping reaches its ceiling of 50
    passed = {0: 1, 1: OracleReading([60, 90], ParticipationStats(participant_count=3))}
    assert evaluate_outcome(grant, 0, passed).ratio == 1.0


def test_string_keys_accepted(grant: ProjectGrant, readings: dict[int, Any]) -> None:
    as_str = {str(k): v for k, v in readings.items()}
    assert evaluate_outcome(grant, 0, as_str).ratio == pytest.approx(0.625)


def test_missing_input(grant: ProjectGrant, readings: dict[int, Any]) -> None:
    del readings[2]
    with pytest.raises(InputError, match="condition 2"):
        evaluate_outcome(grant, 1, readings)


def test_unknown_outcome(grant: ProjectGrant, readings: dict[int, Any]) -> None:
    with pytest.raises(ConfigurationError, match="unknown outcome id 7"):
        evaluate_outcome(grant, 7, readings)


def test_serial_and_threaded_batches_agree(
    grant: ProjectGrant, readings: dict[int, Any]
) -> None:
    serial = evaluate_outcomes(grant, readings)
    threaded = evaluate_outcomes(grant, readings, max_workers=4)

    assert serial.ok and threaded.ok
    assert list(serial.settlements) == [0, 1]
    assert list(threaded.settlements) == [0, 1]
    assert [s.to_dict() for s in serial.settlements.values()] == [
        s.to_dict() for s in threaded.settlements.values()
    ]


@pytest.mark.parametrize("workers", [1, 3])
def test_batch_records_failures(
    grant: ProjectGrant, readings: dict[int, Any], workers: int
) -> None:
    readings[0] = "one"
    batch = evaluate_outcomes(grant, readings, max_workers=workers)

    assert not batch.ok
    assert list(batch.settlements) == [1]
    assert isinstance(batch.failures[0], InputError)


def test_inline_objects_resolved(grant_tree: dict[str, Any], readings: dict[int, Any]) -> None:
    grant_tree["outcome"][1]["transfer"] = [
        {
            "id": 5,
            "status": "open",
            "amount": 10,
            "token": {"id": 4, "contract": TOKEN, "type": "erc20", "decimals": 0},
        }
    ]
    grant_tree["outcome"][1]["share"] = {
        "id": 9,
        "type": "equi_percent",
        "actor": [EXECUTOR_B, REVIEWER, EXECUTOR_A],
    }
    grant_tree["outcome"][1]["condition"] = [
        {
            "id": 8,
            "oracle": {"contract": TOKEN, "type": "tellor_number"},
            "compute": "map_number",
        }
    ]
    grant = ProjectGrant.model_validate(grant_tree)
    index = GrantIndex.build(grant)
    assert index.token(4).decimals == 0
    assert index.share(9).actor[0] == EXECUTOR_B

    result = evaluate_outcome(grant, 1, {8: 50}, index)
    assert result.ratio == 0.0
    assert result.transfers[0].token_id == 4

    full = evaluate_outcome(grant, 1, {8: 100}, index)
    assert full.per_actor_amounts == {
        5: {EXECUTOR_B: Decimal(4), REVIEWER: Decimal(3), EXECUTOR_A: Decimal(3)}
    }


def test_settlement_to_dict(grant: ProjectGrant, readings: dict[int, Any]) -> None:
    data = evaluate_outcome(grant, 0, readings).to_dict()
    assert data["outcome_id"] == 0
    assert data["transfers"][0]["amounts"] == {EXECUTOR_A: "375.00", EXECUTOR_B: "250.00"}
    assert data["transfers"][0]["status"] == "open"
    assert data["trace"][1] == {"condition_id": 1, "rating": 50.0, "source": "mapping", "computed": 75.0}
