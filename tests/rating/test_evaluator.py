from __future__ import annotations

import math
import random
from typing import Any

import pytest

from granter.core.errors import ConfigurationError, InputError
from granter.core.grammar import ComputeMethod
from granter.core.schema import Condition, ConditionMapping
from granter.rating.evaluator import (
    OracleReading,
    ParticipationStats,
    compute,
    evaluate,
    gates_pass,
    map_value,
    rate_condition,
    rating_ceiling,
)

ORACLE = "0x9999999999999999999999999999999999999999"


def _condition(**overrides: Any) -> Condition:
    data: dict[str, Any] = {
        "id": 0,
        "oracle": {"contract": ORACLE, "type": "tellor_number"},
        "compute": "map_number",
        "mapping": {"type": "equal", "ref": [0, 1], "out": [0, 100]},
    }
    data.update(overrides)
    return Condition.model_validate(data)


def _mapping(kind: str, ref: list[Any], out: list[int]) -> ConditionMapping:
    return ConditionMapping(type=kind, ref=ref, out=out)


def test_exact_match_maps_to_output() -> None:
    assert evaluate(_condition(), 1) == 100.0


def test_no_match_falls_back_to_default() -> None:
    assert evaluate(_condition(), 0.5) == 0.0
    traced = rate_condition(_condition(default=25), 0.5)
    assert traced.rating == 25.0
    assert traced.source == "default"
    assert traced.computed == 0.5


def test_gate_failure_returns_default_regardless_of_value() -> None:
    condition = _condition(
        oracle={"contract": ORACLE, "type": "poll_number"},
        compute="average",
        validation=[{"type": "min_participation_nb_account", "threshold": 3}],
        mapping={"type": "greater_than_or_equal", "ref": [0], "out": [100]},
        default=10,
    )
    low = ParticipationStats(participant_count=2)
    for value in ([100], [0], [55, 60]):
        traced = rate_condition(condition, value, low)
        assert traced.rating == 10.0
        assert traced.source == "gate"
        assert traced.computed is None
    assert evaluate(condition, OracleReading([55], ParticipationStats(participant_count=3))) == 100.0


@pytest.mark.parametrize("k", range(5))
def test_equal_mapping_hits_every_entry(k: int) -> None:
    refs = [0, 10, 20, 30, 40]
    outs = [5, 25, 50, 75, 100]
    condition = _condition(mapping={"type": "equal", "ref": refs, "out": outs})
    assert evaluate(condition, refs[k]) == float(outs[k])


def test_rating_always_clamped() -> None:
    rng = random.Random(1234)
    condition = _condition(mapping=None, default=0)
    for _ in range(200):
        value = rng.uniform(-1e6, 1e6)
        rating = evaluate(condition, value)
        assert 0.0 <= rating <= 100.0
    assert evaluate(condition, 42.5) == 42.5
    assert evaluate(_condition(mapping=None, default=250), -3) == 0.0
    assert evaluate(_condition(default=250), 0.5) == 100.0


def test_default_is_not_a_floor() -> None:
    condition = _condition(default=50)
    assert evaluate(condition, 0) == 0.0


def test_none_mapping_uses_value_directly() -> None:
    condition = _condition(mapping={"type": "none", "ref": [], "out": []})
    traced = rate_condition(condition, 64)
    assert traced.rating == 64.0
    assert traced.source == "direct"


@pytest.mark.parametrize(
    ("method", "value", "expected"),
    [
        (ComputeMethod.MAP_NUMBER, 7, 7.0),
        (ComputeMethod.MAP_STRING, "yes", "yes"),
        (ComputeMethod.AVERAGE, [60, 90], 75.0),
        (ComputeMethod.AVERAGE_WEIGHTED, [[80, 1], [40, 3]], 50.0),
        (ComputeMethod.MOST_CHOSEN, ["no", "yes", "yes"], "yes"),
        (ComputeMethod.MOST_CHOSEN, [["no", 5], ["yes", 2], ["yes", 2]], "no"),
        (ComputeMethod.MOST_CHOSEN, [3, 1, 3], 3.0),
    ],
)
def test_compute_methods(method: ComputeMethod, value: Any, expected: Any) -> None:
    assert compute(method, value) == expected


def test_most_chosen_tie_goes_to_first_seen() -> None:
    assert compute(ComputeMethod.MOST_CHOSEN, ["b", "a", "a", "b"]) == "b"
    assert compute(ComputeMethod.MOST_CHOSEN, ["a", "b"]) == "a"


@pytest.mark.parametrize(
    ("method", "value"),
    [
        (ComputeMethod.MAP_NUMBER, True),
        (ComputeMethod.MAP_NUMBER, math.nan),
        (ComputeMethod.MAP_NUMBER, math.inf),
        (ComputeMethod.MAP_NUMBER, "1"),
        (ComputeMethod.MAP_STRING, 1),
        (ComputeMethod.AVERAGE, []),
        (ComputeMethod.AVERAGE, "12"),
        (ComputeMethod.AVERAGE, [1, False]),
        (ComputeMethod.AVERAGE_WEIGHTED, [[1, 0], [2, 0]]),
        (ComputeMethod.AVERAGE_WEIGHTED, [[1, -1]]),
        (ComputeMethod.AVERAGE_WEIGHTED, [1, 2]),
        (ComputeMethod.MOST_CHOSEN, []),
    ],
)
def test_compute_rejects_bad_input(method: ComputeMethod, value: Any) -> None:
    with pytest.raises(InputError):
        compute(method, value)


def test_gates_pass() -> None:
    condition = _condition(
        oracle={"contract": ORACLE, "type": "vote_string"},
        compute="map_string",
        validation=[
            {"type": "min_participation_percent", "threshold": 20},
            {"type": "min_participation_nb_account", "threshold": 3},
        ],
    )
    gates = condition.validation
    assert gates_pass(gates, ParticipationStats(participant_count=3, participation_percent=20.0))
    assert not gates_pass(gates, ParticipationStats(participant_count=3, participation_percent=19.9))
    assert not gates_pass(gates, ParticipationStats(participant_count=3))
    assert not gates_pass(gates, None)
    assert gates_pass(None, None)
    assert gates_pass([], None)


@pytest.mark.parametrize(
    ("kind", "value", "expected"),
    [
        ("greater_than", 80, 50.0),
        ("greater_than", 81, 100.0),
        ("greater_than_or_equal", 80, 100.0),
        ("greater_than_or_equal", -1, None),
        ("lower_than", 50, 100.0),
        ("lower_than", 10, 50.0),
        ("lower_than_or_equal", 0, 0.0),
        ("lower_than_or_equal", 81, None),
    ],
)
def test_relational_mappings(kind: str, value: float, expected: float | None) -> None:
    mapping = _mapping(kind, [0, 50, 80], [0, 50, 100])
    assert map_value(mapping, value) == expected


def test_relational_mapping_rejects_strings() -> None:
    with pytest.raises(InputError):
        map_value(_mapping("greater_than", [0, 50], [0, 100]), "high")
    with pytest.raises(ConfigurationError):
        map_value(_mapping("lower_than", ["a", 50], [0, 100]), 3)


def test_equal_mapping_with_strings() -> None:
    mapping = _mapping("equal", ["yes", "no"], [100, 0])
    assert map_value(mapping, "yes") == 100.0
    assert map_value(mapping, "maybe") is None
    assert map_value(_mapping("equal", [1, "1"], [10, 20]), "1") == 20.0


def test_mapping_length_mismatch_is_configuration_error() -> None:
    mapping = _mapping("equal", [0, 1], [0])
    with pytest.raises(ConfigurationError, match="length"):
        map_value(mapping, 0)


def test_string_value_without_mapping_is_configuration_error() -> None:
    condition = _condition(
        oracle={"contract": ORACLE, "type": "vote_string"},
        compute="map_string",
        mapping=None,
    )
    with pytest.raises(ConfigurationError, match="needs a mapping"):
        evaluate(condition, "yes")


def test_reading_participation_and_override() -> None:
    condition = _condition(
        oracle={"contract": ORACLE, "type": "poll_number"},
        compute="average",
        validation=[{"type": "min_participation_percent", "threshold": 50}],
        mapping=None,
    )
    reading = OracleReading([70, 80], ParticipationStats(participation_percent=60))
    assert evaluate(condition, reading) == 75.0
    assert evaluate(condition, reading, ParticipationStats(participation_percent=10)) == 0.0


def test_rating_ceiling() -> None:
    assert rating_ceiling(_condition()) == 100.0
    assert rating_ceiling(_condition(mapping={"type": "equal", "ref": [0, 1], "out": [10, 60]})) == 60.0
    assert rating_ceiling(_condition(mapping=None)) == 100.0
    assert rating_ceiling(_condition(mapping={"type": "none", "ref": [], "out": []})) == 100.0
