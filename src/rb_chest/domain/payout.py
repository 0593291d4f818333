"""Payout arithmetic: pure functions, no I/O.

Settlement pool = every remaining chest unit. It is split per head:
base = pool // n for everyone, and the remainder (pool - base * n, always < n)
adds +1 to a random subset of participants. Each share is then drawn from the
chest lots highest-weight-first, continuing where the previous share stopped,
and paid out as one lot per (capped) drawn weight.
"""

import random
from dataclasses import replace

from src.rb_ledger.domain.allocator import allocate, breakdown_by_weight
from src.rb_ledger.domain.models import Allocation
from src.rb_chest.domain.models import ChestLot


def split_equally(pool: int, user_ids: list[str], rng: random.Random) -> list[tuple[str, int]]:
    if not user_ids:
        return []
    base, remainder = divmod(pool, len(user_ids))
    lucky = set(rng.sample(range(len(user_ids)), remainder))
    return [(uid, base + (1 if i in lucky else 0)) for i, uid in enumerate(user_ids)]


def plan_draws(
    lots: list[ChestLot], shares: list[tuple[str, int]]
) -> list[tuple[str, int, list[Allocation]]]:
    """Draw each share in turn from `lots` (already ordered). Zero shares are skipped."""
    working = [replace(lot) for lot in lots]
    plans: list[tuple[str, int, list[Allocation]]] = []
    for user_id, amount in shares:
        if amount <= 0:
            continue
        allocations = allocate(working, amount)
        taken = {a.lot_id: a.amount for a in allocations}
        for lot in working:
            lot.amount_remaining -= taken.get(lot.id, 0)
        plans.append((user_id, amount, allocations))
    return plans


def payout_parts(allocations: list[Allocation], cap_bp: int) -> list[tuple[int, int]]:
    """(weight_bp, amount) of each lot minted for one share, highest weight first.

    Every drawn unit keeps its own weight, lowered to `cap_bp` when above it.
    Weights are never blended, so a low-weight unit never comes out higher.
    """
    parts: dict[int, int] = {}
    for a in allocations:
        weight = min(a.weight_bp, cap_bp)
        parts[weight] = parts.get(weight, 0) + a.amount
    return sorted(parts.items(), reverse=True)


def weight_breakdown(allocations: list[Allocation]) -> dict[str, int]:
    return {str(w): amount for w, amount in sorted(breakdown_by_weight(allocations).items(), reverse=True)}


def merge_allocations(allocations: list[Allocation]) -> list[Allocation]:
    """Collapse draws on the same lot into one decrement per lot."""
    merged: dict[int, Allocation] = {}
    for a in allocations:
        prev = merged.get(a.lot_id)
        merged[a.lot_id] = a if prev is None else replace(prev, amount=prev.amount + a.amount)
    return list(merged.values())
