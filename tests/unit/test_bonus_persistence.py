"""Unit tests for BonusRepository using MagicMock AsyncSession."""

import json
from datetime import date
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.rb_bonus.infrastructure.persistence import BonusRepository

MARCH = date(2026, 3, 1)


def _result(fetchone: Any = None, fetchall: list[Any] | None = None, scalar: Any = None) -> MagicMock:
    result = MagicMock()
    result.fetchone.return_value = fetchone
    result.fetchall.return_value = fetchall or []
    result.scalar_one.return_value = scalar
    return result


@pytest.fixture
def db() -> MagicMock:
    return MagicMock()


@pytest.fixture
def repo() -> BonusRepository:
    return BonusRepository()


class TestDailyClaims:
    @pytest.mark.asyncio
    async def test_fresh_claim(self, db: MagicMock, repo: BonusRepository) -> None:
        db.execute = AsyncMock(return_value=_result(fetchone=MagicMock(day=date(2026, 3, 2))))

        assert await repo.insert_daily_claim(db, "u1", date(2026, 3, 2), {"type": "rubis", "amount": 3})

        params = db.execute.await_args.args[1]
        assert json.loads(params["reward"]) == {"type": "rubis", "amount": 3}

    @pytest.mark.asyncio
    async def test_conflicting_claim_returns_false(self, db: MagicMock, repo: BonusRepository) -> None:
        db.execute = AsyncMock(return_value=_result(fetchone=None))
        assert not await repo.insert_daily_claim(db, "u1", date(2026, 3, 2), {})

    @pytest.mark.asyncio
    async def test_count_claimed_days(self, db: MagicMock, repo: BonusRepository) -> None:
        db.execute = AsyncMock(return_value=_result(scalar=4))
        assert await repo.count_claimed_days(db, "u1", MARCH, date(2026, 4, 1)) == 4
        assert db.execute.await_args.args[1]["month_end"] == date(2026, 4, 1)


class TestMilestones:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("row,expected", [(MagicMock(milestone=5), True), (None, False)])
    async def test_insert_milestone_reports_conflict(
        self, db: MagicMock, repo: BonusRepository, row: Any, expected: bool
    ) -> None:
        db.execute = AsyncMock(return_value=_result(fetchone=row))
        assert await repo.insert_milestone(db, "u1", MARCH, 5) is expected

    @pytest.mark.asyncio
    async def test_record_grants_as_json(self, db: MagicMock, repo: BonusRepository) -> None:
        db.execute = AsyncMock()
        await repo.record_milestone_grants(db, "u1", MARCH, 10, [{"type": "token", "amount": 1}])
        assert json.loads(db.execute.await_args.args[1]["granted"]) == [{"type": "token", "amount": 1}]

    @pytest.mark.asyncio
    async def test_list_granted(self, db: MagicMock, repo: BonusRepository) -> None:
        db.execute = AsyncMock(return_value=_result(fetchall=[MagicMock(milestone=5), MagicMock(milestone=10)]))
        assert await repo.list_granted_milestones(db, "u1", MARCH) == {5, 10}


class TestInventory:
    @pytest.mark.asyncio
    async def test_add_token_returns_new_total(self, db: MagicMock, repo: BonusRepository) -> None:
        db.execute = AsyncMock(return_value=_result(scalar=3))
        assert await repo.add_token(db, "u1", "wheel_ticket", 1) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("row,expected", [(MagicMock(code="skin"), True), (None, False)])
    async def test_insert_entitlement_reports_held(
        self, db: MagicMock, repo: BonusRepository, row: Any, expected: bool
    ) -> None:
        db.execute = AsyncMock(return_value=_result(fetchone=row))
        assert await repo.insert_entitlement(db, "u1", "skin", "monthly_claim_20_skin", "monthly_bonus") is expected
