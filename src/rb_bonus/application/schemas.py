"""Pydantic schemas for rb_bonus API."""

from typing import Any

from pydantic import BaseModel

from src.rb_bonus.domain.models import BonusStatus, DailyClaimResult, Grant


class GrantedItem(BaseModel):
    type: str
    amount: int | None = None
    origin: str | None = None
    weight_bp: int | None = None
    tx_id: int | None = None
    token: str | None = None
    kind: str | None = None
    code: str | None = None
    fallback: bool = False

    @classmethod
    def from_grant(cls, g: Grant) -> "GrantedItem":
        data: dict[str, Any] = g.as_dict()
        return cls(**data)


class MilestoneGrants(BaseModel):
    milestone: int
    granted: list[GrantedItem]


class DailyClaimResponse(BaseModel):
    already_claimed: bool
    day: str
    month_start: str
    claimed_days: int
    granted: list[GrantedItem]
    milestones: list[MilestoneGrants]

    @classmethod
    def from_result(cls, r: DailyClaimResult) -> "DailyClaimResponse":
        return cls(
            already_claimed=r.already_claimed,
            day=r.day.isoformat(),
            month_start=r.month_start.isoformat(),
            claimed_days=r.claimed_days,
            granted=[GrantedItem.from_grant(g) for g in r.granted],
            milestones=[
                MilestoneGrants(milestone=m, granted=[GrantedItem.from_grant(g) for g in grants])
                for m, grants in sorted(r.milestones.items())
            ],
        )


class MilestoneClaimResponse(BaseModel):
    milestone: int
    granted: list[GrantedItem]


class MilestoneStatusItem(BaseModel):
    milestone: int
    reached: bool
    granted: bool


class BonusStatusResponse(BaseModel):
    day: str
    month_start: str
    claimed_today: bool
    claimed_days: int
    milestones: list[MilestoneStatusItem]

    @classmethod
    def from_status(cls, s: BonusStatus) -> "BonusStatusResponse":
        return cls(
            day=s.day.isoformat(),
            month_start=s.month_start.isoformat(),
            claimed_today=s.claimed_today,
            claimed_days=s.claimed_days,
            milestones=[
                MilestoneStatusItem(milestone=m.milestone, reached=m.reached, granted=m.granted)
                for m in s.milestones
            ],
        )
