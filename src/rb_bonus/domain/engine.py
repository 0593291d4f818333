"""BonusEngine: daily claims and monthly milestones, inside the caller's transaction.

The user row is locked first (via the ledger) so one user's claims serialize;
the (user, day) and (user, month, milestone) inserts then decide whether a
reward is due. A duplicate insert grants nothing, so a reward can never be
minted twice for the same period.
"""

import logging
from datetime import date, datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.datetime_utils import business_day, month_start, next_month_start
from src.rb_common.enums import RewardType
from src.rb_common.errors import (
    AlreadyClaimedError,
    InternalError,
    InvalidInputError,
    MilestoneNotReachedError,
)
from src.rb_ledger.domain.models import MintCommand, MintResult
from src.rb_bonus.domain.models import (
    BonusStatus,
    DailyClaimResult,
    Grant,
    MilestoneStatus,
)
from src.rb_bonus.domain.repository import BonusRepositoryProtocol
from src.rb_bonus.domain.rewards import (
    MILESTONE_REWARDS,
    MILESTONES,
    Reward,
    daily_reward,
)

logger = logging.getLogger(__name__)


class BonusLedgerPort(Protocol):
    async def lock_user(self, db: AsyncSession, user_id: str) -> int: ...

    async def mint_in_tx(self, db: AsyncSession, cmd: MintCommand) -> MintResult: ...


class BonusEngine:
    def __init__(self, repo: BonusRepositoryProtocol, ledger: BonusLedgerPort) -> None:
        self._repo = repo
        self._ledger = ledger

    async def claim_daily_in_tx(
        self, db: AsyncSession, user_id: str, now: datetime
    ) -> DailyClaimResult:
        day = business_day(now)
        first = month_start(day)
        await self._ledger.lock_user(db, user_id)

        reward = daily_reward(day)
        inserted = await self._repo.insert_daily_claim(
            db, user_id, day, {"weekday": day.isoweekday(), "type": reward.type.value}
        )
        claimed_days = await self._repo.count_claimed_days(db, user_id, first, next_month_start(day))
        if not inserted:
            return DailyClaimResult(
                already_claimed=True, day=day, month_start=first, claimed_days=claimed_days
            )

        granted = await self._grant(db, user_id, reward, fallback=())
        milestones: dict[int, list[Grant]] = {}
        for m in MILESTONES:
            if claimed_days < m:
                break
            grants = await self._grant_milestone(db, user_id, first, m)
            if grants is not None:
                milestones[m] = grants

        logger.info(
            "Daily bonus claimed by user %s on %s (%d days this month, milestones=%s)",
            user_id, day.isoformat(), claimed_days, sorted(milestones),
        )
        return DailyClaimResult(
            already_claimed=False,
            day=day,
            month_start=first,
            claimed_days=claimed_days,
            granted=granted,
            milestones=milestones,
        )

    async def claim_milestone_in_tx(
        self, db: AsyncSession, user_id: str, milestone: int, now: datetime
    ) -> list[Grant]:
        if milestone not in MILESTONE_REWARDS:
            raise InvalidInputError(f"unknown milestone {milestone}; expected one of {MILESTONES}")
        day = business_day(now)
        first = month_start(day)
        await self._ledger.lock_user(db, user_id)

        claimed_days = await self._repo.count_claimed_days(db, user_id, first, next_month_start(day))
        if claimed_days < milestone:
            raise MilestoneNotReachedError(milestone, claimed_days)
        grants = await self._grant_milestone(db, user_id, first, milestone)
        if grants is None:
            raise AlreadyClaimedError(f"milestone {milestone} for {first.isoformat()}")
        return grants

    async def get_status(self, db: AsyncSession, user_id: str, now: datetime) -> BonusStatus:
        day = business_day(now)
        first = month_start(day)
        claimed_days = await self._repo.count_claimed_days(db, user_id, first, next_month_start(day))
        granted = await self._repo.list_granted_milestones(db, user_id, first)
        return BonusStatus(
            day=day,
            month_start=first,
            claimed_today=await self._repo.has_daily_claim(db, user_id, day),
            claimed_days=claimed_days,
            milestones=[
                MilestoneStatus(milestone=m, reached=claimed_days >= m, granted=m in granted)
                for m in MILESTONES
            ],
        )

    async def _grant_milestone(
        self, db: AsyncSession, user_id: str, first: date, milestone: int
    ) -> list[Grant] | None:
        """Grant once per (user, month, milestone); None if already granted.

        The milestone row goes in before any reward so a duplicate aborts first.
        """
        if not await self._repo.insert_milestone(db, user_id, first, milestone):
            return None
        plan = MILESTONE_REWARDS[milestone]
        grants: list[Grant] = []
        for reward in plan.rewards:
            grants.extend(await self._grant(db, user_id, reward, plan.fallback))
        await self._repo.record_milestone_grants(
            db, user_id, first, milestone, [g.as_dict() for g in grants]
        )
        return grants

    async def _grant(
        self,
        db: AsyncSession,
        user_id: str,
        reward: Reward,
        fallback: tuple[Reward, ...],
    ) -> list[Grant]:
        if reward.type is RewardType.RUBIS:
            if reward.origin is None:
                raise InternalError(f"rubis reward without an origin: {reward!r}")
            # Weight comes from the origin table (daily_bonus, monthly_bonus_*).
            minted = await self._ledger.mint_in_tx(
                db, MintCommand(user_id=user_id, origin=reward.origin, amount=reward.amount)
            )
            return [
                Grant(
                    RewardType.RUBIS,
                    amount=reward.amount,
                    origin=reward.origin,
                    weight_bp=minted.weight_bp,
                    tx_id=minted.transaction_id,
                )
            ]

        if reward.type is RewardType.TOKEN:
            if reward.token is None:
                raise InternalError(f"token reward without a token name: {reward!r}")
            await self._repo.add_token(db, user_id, reward.token, reward.amount)
            return [Grant(RewardType.TOKEN, amount=reward.amount, token=reward.token)]

        if reward.kind is None or reward.code is None:
            raise InternalError(f"entitlement reward without kind/code: {reward!r}")
        if await self._repo.insert_entitlement(db, user_id, reward.kind, reward.code, "monthly_bonus"):
            return [Grant(RewardType.ENTITLEMENT, kind=reward.kind, code=reward.code)]

        # Already held: hand out the equivalent fallback and record that we did.
        grants: list[Grant] = []
        for alt in fallback:
            grants.extend(await self._grant(db, user_id, alt, ()))
        grants.append(Grant(RewardType.ENTITLEMENT, kind=reward.kind, code=reward.code, fallback=True))
        return grants
