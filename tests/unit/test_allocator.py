"""Tests for weighted lot ordering and allocation."""

from datetime import datetime, timedelta, timezone

import pytest

from src.rb_common.enums import LotOrder, SpendKind
from src.rb_common.errors import InsufficientBalanceError, InsufficientValueError
from src.rb_ledger.domain.allocator import (
    allocate,
    allocate_value,
    breakdown_by_origin,
    breakdown_by_weight,
    order_for,
    order_lots,
    support_value,
)
from src.rb_ledger.domain.models import Allocation, Lot

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _lot(lot_id: int, weight: int, amount: int, origin: str = "x", age: int = 0) -> Lot:
    return Lot(lot_id, "u1", origin, weight, amount, amount, T0 + timedelta(seconds=age))


class TestOrdering:
    def test_support_is_highest_first(self) -> None:
        assert order_for(SpendKind.SUPPORT) is LotOrder.HIGHEST_WEIGHT_FIRST

    def test_sink_is_lowest_first(self) -> None:
        assert order_for(SpendKind.SINK) is LotOrder.LOWEST_WEIGHT_FIRST

    def test_highest_first_breaks_ties_by_age_then_id(self) -> None:
        lots = [_lot(3, 3000, 1, age=5), _lot(2, 3000, 1, age=1), _lot(1, 10000, 1, age=9), _lot(4, 3000, 1, age=1)]
        ordered = order_lots(lots, LotOrder.HIGHEST_WEIGHT_FIRST)
        assert [l.id for l in ordered] == [1, 2, 4, 3]

    def test_lowest_first(self) -> None:
        lots = [_lot(1, 10000, 1), _lot(2, 2000, 1), _lot(3, 3500, 1)]
        ordered = order_lots(lots, LotOrder.LOWEST_WEIGHT_FIRST)
        assert [l.id for l in ordered] == [2, 3, 1]


class TestAllocate:
    def test_support_example(self) -> None:
        lots = order_lots(
            [_lot(2, 3000, 10, "daily_bonus"), _lot(1, 10000, 5, "paid_topup")],
            LotOrder.HIGHEST_WEIGHT_FIRST,
        )
        allocations = allocate(lots, 8)
        assert allocations == [
            Allocation(1, "paid_topup", 10000, 5),
            Allocation(2, "daily_bonus", 3000, 3),
        ]
        assert support_value(allocations) == 5

    def test_exact_cover_stops_early(self) -> None:
        allocations = allocate([_lot(1, 10000, 5), _lot(2, 10000, 5)], 5)
        assert allocations == [Allocation(1, "x", 10000, 5)]

    def test_skips_empty_lots(self) -> None:
        empty = _lot(1, 10000, 5)
        empty.amount_remaining = 0
        allocations = allocate([empty, _lot(2, 3000, 5)], 2)
        assert [a.lot_id for a in allocations] == [2]

    def test_insufficient_takes_nothing(self) -> None:
        lots = [_lot(1, 10000, 5), _lot(2, 3000, 10)]
        with pytest.raises(InsufficientBalanceError) as exc_info:
            allocate(lots, 16)
        assert exc_info.value.code == 3001
        assert [l.amount_remaining for l in lots] == [5, 10]


class TestAllocateValue:
    def test_ceil_per_lot_until_value_is_covered(self) -> None:
        lots = [_lot(1, 10000, 1, "paid_topup"), _lot(2, 3000, 10, "daily_bonus")]
        allocations = allocate_value(lots, 3)
        # 1 unit covers 1; ceil(2 * 10000 / 3000) = 7 units cover the last 2.
        assert allocations == [
            Allocation(1, "paid_topup", 10000, 1),
            Allocation(2, "daily_bonus", 3000, 7),
        ]
        assert support_value(allocations) == 3

    def test_full_weight_is_one_to_one(self) -> None:
        assert allocate_value([_lot(1, 10000, 5)], 3) == [Allocation(1, "x", 10000, 3)]

    def test_stops_once_covered(self) -> None:
        allocations = allocate_value([_lot(1, 10000, 2), _lot(2, 0, 5)], 2)
        assert [a.lot_id for a in allocations] == [1]

    def test_insufficient_value_takes_nothing(self) -> None:
        lots = [_lot(1, 3000, 10)]
        with pytest.raises(InsufficientValueError) as exc_info:
            allocate_value(lots, 4)
        assert exc_info.value.code == 3002
        assert "available 3" in exc_info.value.message
        assert lots[0].amount_remaining == 10


class TestBreakdowns:
    def test_by_origin_and_weight(self) -> None:
        allocations = [
            Allocation(1, "paid_topup", 10000, 5),
            Allocation(2, "daily_bonus", 3000, 3),
            Allocation(3, "achievement", 3000, 2),
        ]
        assert breakdown_by_origin(allocations) == {"paid_topup": 5, "daily_bonus": 3, "achievement": 2}
        assert breakdown_by_weight(allocations) == {10000: 5, 3000: 5}
