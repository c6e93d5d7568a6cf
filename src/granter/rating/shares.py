"""
Share calculator: outcome ratio -> per-actor token amounts.

All arithmetic is Decimal. Amounts are truncated (never rounded up) to the
token's smallest unit, 10**-decimals, so the distributed total never exceeds
the transfer amount. The truncation remainder goes to the first actor of the
sharing model.

Examples:
    >>> from granter.core.schema import Transfer, TransferShare
    >>> from granter.rating.shares import distribute
    >>> t = Transfer(id=0, status="open", amount=100, token=0)
    >>> s = TransferShare(id=0, type="equi_percent",
    ...                   actor=["0x" + c * 40 for c in "abc"])
    >>> [str(v) for v in distribute(t, s, 0.5).values()]
    ['18', '16', '16']
"""

from __future__ import annotations

import math
from decimal import ROUND_DOWN, Decimal, localcontext

from granter.core.constants import MAX_TOKEN_DECIMALS
from granter.core.errors import ConfigurationError, InputError
from granter.core.grammar import TransferShareType
from granter.core.schema import Transfer, TransferShare
from granter.core.typing import ActorAddress, Ratio

__all__ = [
    "effective_amount",
    "distribute",
]

# Enough digits for 10**-36 units on amounts far beyond any token supply.
_PRECISION = 96


def _quantum(decimals: int) -> Decimal:
    if isinstance(decimals, bool) or not 0 <= decimals <= MAX_TOKEN_DECIMALS:
        raise InputError(f"decimals must be within [0, {MAX_TOKEN_DECIMALS}], got {decimals!r}")
    return Decimal(1).scaleb(-decimals)


def _truncate(value: Decimal, quantum: Decimal) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_DOWN)


def _ratio(ratio: float) -> Decimal:
    if isinstance(ratio, bool) or not isinstance(ratio, (int, float)) or not math.isfinite(ratio):
        raise InputError(f"ratio must be a finite number, got {ratio!r}")
    if not 0.0 <= ratio <= 1.0:
        raise InputError(f"ratio must be within [0, 1], got {ratio!r}")
    return Decimal(str(ratio))


def effective_amount(transfer: Transfer, ratio: Ratio, decimals: int = 0) -> Decimal:
    """
    Part of a transfer released at a given outcome ratio.

    Args:
        transfer (Transfer): Transfer with its maximum amount.
        ratio (float): Outcome ratio in [0, 1].
        decimals (int): Token decimals.

    Returns:
        Decimal: amount * ratio truncated to 10**-decimals.

    Raises:
        InputError: If the ratio or decimals are out of range.
    """
    quantum = _quantum(decimals)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return _truncate(Decimal(transfer.amount) * _ratio(ratio), quantum)


def distribute(
    transfer: Transfer,
    share: TransferShare,
    ratio: Ratio,
    decimals: int = 0,
) -> dict[ActorAddress, Decimal]:
    """
    Split the released part of a transfer among the share's actors.

    Args:
        transfer (Transfer): Transfer to split.
        share (TransferShare): Sharing model (recipients and, for map_percent, ratios).
        ratio (float): Outcome ratio in [0, 1].
        decimals (int): Token decimals; amounts are multiples of 10**-decimals.

    Returns:
        dict[ActorAddress, Decimal]: Amount per actor address, in the share's actor order.

    Raises:
        InputError: If the ratio or decimals are out of range.
        ConfigurationError: If a map_percent share lacks one ratio per actor.

    Notes:
        - map_percent ratios summing above 1 are scaled down proportionally.
        - The sum of amounts never exceeds `transfer.amount`.
    """
    quantum = _quantum(decimals)
    effective = effective_amount(transfer, ratio, decimals)
    actors = [ActorAddress(a) for a in share.actor]
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        if share.type is TransferShareType.MAP_PERCENT:
            if share.ratio is None or len(share.ratio) != len(actors):
                raise ConfigurationError(
                    f"transfer_share {share.id}: map_percent needs one ratio per actor"
                )
            parts = [Decimal(str(r)) for r in share.ratio]
            total = sum(parts, Decimal(0))
            if total > 1:
                parts = [p / total for p in parts]
                total = Decimal(1)
            amounts = [_truncate(effective * p, quantum) for p in parts]
            distributable = _truncate(effective * total, quantum)
        else:
            each = _truncate(effective / len(actors), quantum)
            amounts = [each] * len(actors)
            distributable = effective
        remainder = distributable - sum(amounts, Decimal(0))
        if remainder > 0:
            amounts[0] += remainder
    return dict(zip(actors, amounts))
