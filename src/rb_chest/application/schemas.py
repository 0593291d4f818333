"""Pydantic schemas for rb_chest API."""

from pydantic import BaseModel, Field, model_validator

from src.rb_chest.domain.models import (
    ChestOpening,
    ChestPayout,
    ChestSummary,
    SettlementResult,
)

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DepositRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Rubis moved from the caller's wallet into the chest")
    note: str | None = Field(None, max_length=200)


class OpenChestRequest(BaseModel):
    duration_seconds: int | None = Field(None, gt=0, le=86_400)
    duration_minutes: int | None = Field(None, gt=0, le=1_440)
    min_watch_minutes: int | None = Field(None, ge=0, le=1_440)

    @model_validator(mode="after")
    def _one_duration(self) -> "OpenChestRequest":
        if self.duration_seconds is not None and self.duration_minutes is not None:
            raise ValueError("give duration_seconds or duration_minutes, not both")
        return self

    def resolved_duration_seconds(self) -> int | None:
        if self.duration_minutes is not None:
            return self.duration_minutes * 60
        return self.duration_seconds


class JoinChestRequest(BaseModel):
    opening_id: int | None = Field(None, description="Defaults to the streamer's open opening")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OpeningResponse(BaseModel):
    id: int
    streamer_id: str
    status: str
    created_by: str | None
    opens_at: str
    closes_at: str
    min_watch_minutes: int
    closed_at: str | None = None
    closed_by: str | None = None

    @classmethod
    def from_opening(cls, o: ChestOpening) -> "OpeningResponse":
        return cls(
            id=o.id,
            streamer_id=o.streamer_id,
            status=o.status,
            created_by=o.created_by,
            opens_at=o.opens_at.isoformat(),
            closes_at=o.closes_at.isoformat(),
            min_watch_minutes=o.min_watch_minutes,
            closed_at=o.closed_at.isoformat() if o.closed_at else None,
            closed_by=o.closed_by,
        )


class WeightBucket(BaseModel):
    weight_bp: int
    amount: int


class ChestResponse(BaseModel):
    streamer_id: str
    balance: int
    breakdown: list[WeightBucket]
    opening: OpeningResponse | None
    participants: int

    @classmethod
    def from_summary(cls, s: ChestSummary) -> "ChestResponse":
        return cls(
            streamer_id=s.streamer_id,
            balance=s.balance,
            breakdown=[
                WeightBucket(weight_bp=w, amount=a)
                for w, a in sorted(s.by_weight.items(), reverse=True)
            ],
            opening=OpeningResponse.from_opening(s.open_opening) if s.open_opening else None,
            participants=s.participants,
        )


class DepositResponse(BaseModel):
    streamer_id: str
    transaction_id: int
    deposited: int
    breakdown: list[WeightBucket]
    chest_balance: int


class JoinResponse(BaseModel):
    opening_id: int
    joined: bool
    already_joined: bool


class PayoutItem(BaseModel):
    user_id: str
    amount: int
    minted: dict[str, int]
    breakdown: dict[str, int]
    tx_id: int

    @classmethod
    def from_payout(cls, p: ChestPayout) -> "PayoutItem":
        return cls(
            user_id=p.user_id,
            amount=p.amount,
            minted=p.minted,
            breakdown=p.breakdown,
            tx_id=p.tx_id,
        )


class SettlementResponse(BaseModel):
    opening_id: int
    streamer_id: str
    status: str
    already_closed: bool
    pool: int
    participants: int
    payouts: list[PayoutItem]

    @classmethod
    def from_result(cls, r: SettlementResult) -> "SettlementResponse":
        return cls(
            opening_id=r.opening_id,
            streamer_id=r.streamer_id,
            status=r.status,
            already_closed=r.already_closed,
            pool=r.pool,
            participants=r.participants,
            payouts=[PayoutItem.from_payout(p) for p in r.payouts],
        )
