"""Domain models for rb_bonus: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from src.rb_common.enums import RewardType


@dataclass
class Grant:
    """One reward actually handed out; stored as JSON on the claim/milestone row."""
    type: RewardType
    amount: int = 0
    origin: str | None = None
    weight_bp: int | None = None
    tx_id: int | None = None
    token: str | None = None
    kind: str | None = None
    code: str | None = None
    fallback: bool = False

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.type is RewardType.RUBIS:
            data.update(amount=self.amount, origin=self.origin, weight_bp=self.weight_bp, tx_id=self.tx_id)
        elif self.type is RewardType.TOKEN:
            data.update(token=self.token, amount=self.amount)
        else:
            data.update(kind=self.kind, code=self.code)
            if self.fallback:
                data["fallback"] = True
        return data


@dataclass
class DailyClaimResult:
    already_claimed: bool
    day: date
    month_start: date
    claimed_days: int
    granted: list[Grant] = field(default_factory=list)
    milestones: dict[int, list[Grant]] = field(default_factory=dict)


@dataclass
class MilestoneStatus:
    milestone: int
    reached: bool
    granted: bool


@dataclass
class BonusStatus:
    day: date
    month_start: date
    claimed_today: bool
    claimed_days: int
    milestones: list[MilestoneStatus]
