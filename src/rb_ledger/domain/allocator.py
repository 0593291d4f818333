"""Weighted lot consumption: pure functions, no I/O.

Spend order:
  support -> highest weight first (maximize the beneficiary's support value)
  sink    -> lowest weight first (burn the cheapest currency)
  cashout -> highest weight first, by value rather than by amount
Ties: created_at ASC, then lot id ASC. The order is total, so an allocation is
reproducible from the lot set alone.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, TypeVar

from src.rb_common.amounts import weighted_value
from src.rb_common.enums import LotOrder, SpendKind
from src.rb_common.errors import InsufficientBalanceError, InsufficientValueError
from src.rb_common.weights import FULL_WEIGHT_BP
from src.rb_ledger.domain.models import Allocation


class WeightedLot(Protocol):
    """Anything shaped like a lot: user lots and chest lots both qualify."""

    id: int
    origin: str
    weight_bp: int
    amount_remaining: int
    created_at: datetime


L = TypeVar("L", bound=WeightedLot)


def order_for(kind: SpendKind) -> LotOrder:
    if kind is SpendKind.SUPPORT:
        return LotOrder.HIGHEST_WEIGHT_FIRST
    return LotOrder.LOWEST_WEIGHT_FIRST


def order_lots(lots: Sequence[L], order: LotOrder) -> list[L]:
    if order is LotOrder.HIGHEST_WEIGHT_FIRST:
        return sorted(lots, key=lambda lot: (-lot.weight_bp, lot.created_at, lot.id))
    return sorted(lots, key=lambda lot: (lot.weight_bp, lot.created_at, lot.id))


def allocate(lots: Sequence[WeightedLot], amount: int) -> list[Allocation]:
    """Greedily take `amount` from already-ordered lots.

    Raises InsufficientBalanceError (nothing taken) if the lots cannot cover it.
    """
    available = sum(lot.amount_remaining for lot in lots if lot.amount_remaining > 0)
    if available < amount:
        raise InsufficientBalanceError(amount, available)

    allocations: list[Allocation] = []
    left = amount
    for lot in lots:
        if left == 0:
            break
        if lot.amount_remaining <= 0:
            continue
        take = min(lot.amount_remaining, left)
        allocations.append(Allocation(lot.id, lot.origin, lot.weight_bp, take))
        left -= take
    return allocations


def support_value(allocations: Sequence[Allocation]) -> int:
    """floor(sum(taken_i * weight_i) / 10000)."""
    return weighted_value([(a.amount, a.weight_bp) for a in allocations])


def breakdown_by_origin(allocations: Sequence[Allocation]) -> dict[str, int]:
    breakdown: dict[str, int] = {}
    for a in allocations:
        breakdown[a.origin] = breakdown.get(a.origin, 0) + a.amount
    return breakdown


def breakdown_by_weight(allocations: Sequence[Allocation]) -> dict[int, int]:
    breakdown: dict[int, int] = {}
    for a in allocations:
        breakdown[a.weight_bp] = breakdown.get(a.weight_bp, 0) + a.amount
    return breakdown


def allocate_value(lots: Sequence[WeightedLot], value: int) -> list[Allocation]:
    """Take just enough rubis from already-ordered lots to cover `value`.

    Each lot gives at most ceil(left * 10000 / weight) units, so the weighted
    value taken covers what is still missing. Raises InsufficientValueError
    (nothing taken) if every lot together cannot cover it.
    """
    allocations: list[Allocation] = []
    left = value
    for lot in lots:
        if left <= 0:
            break
        if lot.amount_remaining <= 0:
            continue
        needed = -(-left * FULL_WEIGHT_BP // max(1, lot.weight_bp))
        take = min(lot.amount_remaining, needed)
        allocations.append(Allocation(lot.id, lot.origin, lot.weight_bp, take))
        left -= weighted_value([(take, lot.weight_bp)])
    if left > 0:
        raise InsufficientValueError(value, value - left)
    return allocations
