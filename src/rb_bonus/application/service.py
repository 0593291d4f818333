"""BonusApplicationService — commit/rollback and events around BonusEngine."""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_bonus.application.schemas import (
    BonusStatusResponse,
    DailyClaimResponse,
    GrantedItem,
    MilestoneClaimResponse,
)
from src.rb_bonus.domain.engine import BonusEngine
from src.rb_common.datetime_utils import utc_now
from src.rb_common.events import DomainEvent, EventPublisher, NullEventPublisher


class BonusApplicationService:
    def __init__(
        self,
        engine: BonusEngine,
        publisher: EventPublisher | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._engine = engine
        self._publisher: EventPublisher = publisher or NullEventPublisher()
        self._clock = clock

    async def claim_daily(self, db: AsyncSession, user_id: str) -> DailyClaimResponse:
        try:
            result = await self._engine.claim_daily_in_tx(db, user_id, self._clock())
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if not result.already_claimed:
            await self._publisher.publish(
                DomainEvent(
                    type="bonus.daily_claimed",
                    user_id=user_id,
                    data={
                        "day": result.day.isoformat(),
                        "claimed_days": result.claimed_days,
                        "milestones": sorted(result.milestones),
                    },
                )
            )
        return DailyClaimResponse.from_result(result)

    async def claim_milestone(
        self, db: AsyncSession, user_id: str, milestone: int
    ) -> MilestoneClaimResponse:
        try:
            grants = await self._engine.claim_milestone_in_tx(db, user_id, milestone, self._clock())
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return MilestoneClaimResponse(
            milestone=milestone, granted=[GrantedItem.from_grant(g) for g in grants]
        )

    async def get_status(self, db: AsyncSession, user_id: str) -> BonusStatusResponse:
        status = await self._engine.get_status(db, user_id, self._clock())
        return BonusStatusResponse.from_status(status)
