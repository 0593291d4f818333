"""Bonus repository Protocol. Uniqueness of (user, day) and (user, month, milestone)
is the only concurrency guard: the insert_* methods return False on a duplicate."""

from datetime import date
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession


class BonusRepositoryProtocol(Protocol):
    async def insert_daily_claim(
        self, db: AsyncSession, user_id: str, day: date, reward: dict[str, Any]
    ) -> bool: ...

    async def has_daily_claim(self, db: AsyncSession, user_id: str, day: date) -> bool: ...

    async def count_claimed_days(
        self, db: AsyncSession, user_id: str, month_start: date, month_end: date
    ) -> int:
        """Distinct claimed days with month_start <= day < month_end."""
        ...

    async def insert_milestone(
        self, db: AsyncSession, user_id: str, month_start: date, milestone: int
    ) -> bool: ...

    async def record_milestone_grants(
        self,
        db: AsyncSession,
        user_id: str,
        month_start: date,
        milestone: int,
        granted: list[dict[str, Any]],
    ) -> None: ...

    async def list_granted_milestones(
        self, db: AsyncSession, user_id: str, month_start: date
    ) -> set[int]: ...

    async def add_token(self, db: AsyncSession, user_id: str, token: str, amount: int) -> int: ...

    async def insert_entitlement(
        self, db: AsyncSession, user_id: str, kind: str, code: str, source: str
    ) -> bool: ...
