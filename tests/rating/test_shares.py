from __future__ import annotations

import random
from decimal import Decimal

import pytest

from granter.core.errors import ConfigurationError, InputError
from granter.core.schema import Transfer, TransferShare
from granter.rating.shares import distribute, effective_amount

A = "0x" + "a" * 40
B = "0x" + "b" * 40
C = "0x" + "c" * 40


def _transfer(amount: int | float | Decimal) -> Transfer:
    return Transfer(id=0, status="open", amount=amount, token=0)


def _equi(*actors: str) -> TransferShare:
    return TransferShare(id=0, type="equi_percent", actor=list(actors))


def _mapped(actors: list[str], ratio: list[float] | None) -> TransferShare:
    return TransferShare(id=1, type="map_percent", actor=actors, ratio=ratio)


def test_equi_split_remainder_goes_to_first_actor() -> None:
    amounts = distribute(_transfer(100), _equi(A, B, C), 0.5)
    assert list(amounts) == [A, B, C]
    assert amounts == {A: Decimal(18), B: Decimal(16), C: Decimal(16)}


def test_effective_amount_truncates_to_token_unit() -> None:
    assert effective_amount(_transfer(1000), 0.625, decimals=2) == Decimal("625.00")
    assert effective_amount(_transfer(10), 0.333, decimals=0) == Decimal(3)
    assert effective_amount(_transfer(1.5), 1.0, decimals=18) == Decimal("1.5")


def test_map_percent_with_decimals() -> None:
    amounts = distribute(_transfer(1000), _mapped([A, B], [0.6, 0.4]), 0.625, decimals=2)
    assert amounts == {A: Decimal("375.00"), B: Decimal("250.00")}

    amounts = distribute(_transfer(1), _mapped([A, B, C], [0.5, 0.25, 0.25]), 1.0)
    assert amounts == {A: Decimal(1), B: Decimal(0), C: Decimal(0)}


def test_map_percent_ratios_above_one_are_rescaled() -> None:
    amounts = distribute(_transfer(100), _mapped([A, B], [0.6, 0.6]), 1.0)
    assert amounts == {A: Decimal(50), B: Decimal(50)}


def test_map_percent_ratios_below_one_keep_the_rest() -> None:
    amounts = distribute(_transfer(100), _mapped([A, B], [0.3, 0.3]), 1.0)
    assert amounts == {A: Decimal(30), B: Decimal(30)}


def test_zero_ratio_pays_nothing() -> None:
    amounts = distribute(_transfer(100), _equi(A, B), 0.0, decimals=6)
    assert all(v == 0 for v in amounts.values())


def test_distribution_never_exceeds_amount() -> None:
    rng = random.Random(42)
    pool = ["0x" + f"{i:040x}" for i in range(1, 31)]
    for _ in range(300):
        amount = round(rng.uniform(0.01, 1_000_000), rng.randint(0, 6))
        if amount <= 0:
            continue
        decimals = rng.randint(0, 18)
        ratio = rng.random()
        actors = pool[: rng.randint(1, len(pool))]
        if rng.random() < 0.5:
            share = _equi(*actors)
        else:
            weights = [rng.random() + 0.01 for _ in actors]
            total = sum(weights)
            share = _mapped(actors, [w / total for w in weights])
        amounts = distribute(_transfer(amount), share, ratio, decimals)
        quantum = Decimal(1).scaleb(-decimals)
        assert sum(amounts.values()) <= Decimal(str(amount))
        assert sum(amounts.values()) <= effective_amount(_transfer(amount), ratio, decimals)
        assert all(v >= 0 and v == v.quantize(quantum) for v in amounts.values())


@pytest.mark.parametrize("ratio", [-0.1, 1.5, float("nan"), True])
def test_ratio_out_of_range(ratio: float) -> None:
    with pytest.raises(InputError):
        distribute(_transfer(100), _equi(A), ratio)


@pytest.mark.parametrize("decimals", [-1, 37])
def test_decimals_out_of_range(decimals: int) -> None:
    with pytest.raises(InputError):
        effective_amount(_transfer(100), 0.5, decimals)


def test_map_percent_requires_one_ratio_per_actor() -> None:
    with pytest.raises(ConfigurationError, match="one ratio per actor"):
        distribute(_transfer(100), _mapped([A, B], None), 1.0)
    with pytest.raises(ConfigurationError):
        distribute(_transfer(100), _mapped([A, B], [1.0]), 1.0)


def test_wei_scale_amounts_stay_exact() -> None:
    amount = 123456789012345678901
    transfer = _transfer(amount)
    assert transfer.amount == Decimal(amount)

    amounts = distribute(transfer, _equi(A, B, C), 1.0)
    assert sum(amounts.values()) == amount
    assert amounts[B] == amounts[C] == Decimal(amount // 3)

    mapped = distribute(transfer, _mapped([A, B], [0.25, 0.75]), 1.0)
    assert mapped == {A: Decimal(amount // 4 + 1), B: Decimal(amount * 3 // 4)}
