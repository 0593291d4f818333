"""Daily and monthly-milestone reward tables.

Daily reward depends only on the ISO weekday of the business day. Milestones
unlock at 5/10/20/30 distinct claimed days within one business month.
"""

from dataclasses import dataclass
from datetime import date

from src.rb_common.enums import RewardType

DAILY_ORIGIN = "daily_bonus"

WHEEL_TICKET = "wheel_ticket"
PRESTIGE_TOKEN = "prestige_token"


@dataclass(frozen=True)
class Reward:
    type: RewardType
    amount: int = 0
    origin: str | None = None      # rubis
    token: str | None = None       # token
    kind: str | None = None        # entitlement: skin | title
    code: str | None = None        # entitlement


def rubis(amount: int, origin: str) -> Reward:
    return Reward(RewardType.RUBIS, amount=amount, origin=origin)


def token(name: str, amount: int = 1) -> Reward:
    return Reward(RewardType.TOKEN, amount=amount, token=name)


def entitlement(kind: str, code: str) -> Reward:
    return Reward(RewardType.ENTITLEMENT, kind=kind, code=code)


DAILY_REWARDS: dict[int, Reward] = {
    1: rubis(3, DAILY_ORIGIN),
    2: rubis(3, DAILY_ORIGIN),
    3: token(WHEEL_TICKET),
    4: rubis(5, DAILY_ORIGIN),
    5: rubis(5, DAILY_ORIGIN),
    6: token(WHEEL_TICKET),
    7: rubis(10, DAILY_ORIGIN),
}


@dataclass(frozen=True)
class MilestoneReward:
    milestone: int
    rewards: tuple[Reward, ...]
    # Granted instead of an entitlement the user already holds.
    fallback: tuple[Reward, ...] = ()


MILESTONES: tuple[int, ...] = (5, 10, 20, 30)

MILESTONE_REWARDS: dict[int, MilestoneReward] = {
    5: MilestoneReward(5, (rubis(5, "monthly_bonus_5"),)),
    10: MilestoneReward(10, (rubis(10, "monthly_bonus_10"), token(WHEEL_TICKET))),
    20: MilestoneReward(
        20,
        (entitlement("skin", "monthly_claim_20_skin"),),
        fallback=(rubis(20, "monthly_bonus_20_fallback"),),
    ),
    30: MilestoneReward(
        30,
        (entitlement("title", "monthly_claim_30_title"),),
        fallback=(token(PRESTIGE_TOKEN),),
    ),
}


def daily_reward(day: date) -> Reward:
    return DAILY_REWARDS[day.isoweekday()]
