"""BonusRepository: raw SQL over daily_bonus_claims, monthly_bonus_rewards,
user_tokens and user_entitlements."""

import json
from datetime import date
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

_INSERT_DAILY_CLAIM_SQL = text("""
    INSERT INTO daily_bonus_claims (user_id, day, reward)
    VALUES (:user_id, :day, CAST(:reward AS JSONB))
    ON CONFLICT (user_id, day) DO NOTHING
    RETURNING day
""")

_HAS_DAILY_CLAIM_SQL = text("""
    SELECT 1 FROM daily_bonus_claims WHERE user_id = :user_id AND day = :day
""")

_COUNT_CLAIMED_DAYS_SQL = text("""
    SELECT COUNT(DISTINCT day)
    FROM daily_bonus_claims
    WHERE user_id = :user_id AND day >= :month_start AND day < :month_end
""")

_INSERT_MILESTONE_SQL = text("""
    INSERT INTO monthly_bonus_rewards (user_id, month_start, milestone, granted)
    VALUES (:user_id, :month_start, :milestone, '[]'::jsonb)
    ON CONFLICT (user_id, month_start, milestone) DO NOTHING
    RETURNING milestone
""")

_RECORD_MILESTONE_GRANTS_SQL = text("""
    UPDATE monthly_bonus_rewards
    SET granted = CAST(:granted AS JSONB)
    WHERE user_id = :user_id AND month_start = :month_start AND milestone = :milestone
""")

_LIST_MILESTONES_SQL = text("""
    SELECT milestone
    FROM monthly_bonus_rewards
    WHERE user_id = :user_id AND month_start = :month_start
""")

_ADD_TOKEN_SQL = text("""
    INSERT INTO user_tokens (user_id, token, amount)
    VALUES (:user_id, :token, :amount)
    ON CONFLICT (user_id, token) DO UPDATE
        SET amount = user_tokens.amount + EXCLUDED.amount,
            updated_at = NOW()
    RETURNING amount
""")

_INSERT_ENTITLEMENT_SQL = text("""
    INSERT INTO user_entitlements (user_id, kind, code, source)
    VALUES (:user_id, :kind, :code, :source)
    ON CONFLICT (user_id, kind, code) DO NOTHING
    RETURNING code
""")


class BonusRepository:
    async def insert_daily_claim(
        self, db: AsyncSession, user_id: str, day: date, reward: dict[str, Any]
    ) -> bool:
        result = await db.execute(
            _INSERT_DAILY_CLAIM_SQL,
            {"user_id": user_id, "day": day, "reward": json.dumps(reward)},
        )
        return result.fetchone() is not None

    async def has_daily_claim(self, db: AsyncSession, user_id: str, day: date) -> bool:
        result = await db.execute(_HAS_DAILY_CLAIM_SQL, {"user_id": user_id, "day": day})
        return result.fetchone() is not None

    async def count_claimed_days(
        self, db: AsyncSession, user_id: str, month_start: date, month_end: date
    ) -> int:
        result = await db.execute(
            _COUNT_CLAIMED_DAYS_SQL,
            {"user_id": user_id, "month_start": month_start, "month_end": month_end},
        )
        return int(result.scalar_one())

    async def insert_milestone(
        self, db: AsyncSession, user_id: str, month_start: date, milestone: int
    ) -> bool:
        result = await db.execute(
            _INSERT_MILESTONE_SQL,
            {"user_id": user_id, "month_start": month_start, "milestone": milestone},
        )
        return result.fetchone() is not None

    async def record_milestone_grants(
        self,
        db: AsyncSession,
        user_id: str,
        month_start: date,
        milestone: int,
        granted: list[dict[str, Any]],
    ) -> None:
        await db.execute(
            _RECORD_MILESTONE_GRANTS_SQL,
            {
                "user_id": user_id,
                "month_start": month_start,
                "milestone": milestone,
                "granted": json.dumps(granted),
            },
        )

    async def list_granted_milestones(
        self, db: AsyncSession, user_id: str, month_start: date
    ) -> set[int]:
        rows = (
            await db.execute(_LIST_MILESTONES_SQL, {"user_id": user_id, "month_start": month_start})
        ).fetchall()
        return {int(r.milestone) for r in rows}

    async def add_token(self, db: AsyncSession, user_id: str, token: str, amount: int) -> int:
        result = await db.execute(
            _ADD_TOKEN_SQL, {"user_id": user_id, "token": token, "amount": amount}
        )
        return int(result.scalar_one())

    async def insert_entitlement(
        self, db: AsyncSession, user_id: str, kind: str, code: str, source: str
    ) -> bool:
        result = await db.execute(
            _INSERT_ENTITLEMENT_SQL,
            {"user_id": user_id, "kind": kind, "code": code, "source": source},
        )
        return result.fetchone() is not None
