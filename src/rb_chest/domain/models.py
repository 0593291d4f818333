"""Domain models for rb_chest: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.rb_common.enums import OpeningStatus


@dataclass
class ChestLot:
    id: int
    streamer_id: str
    origin: str                    # chest_deposit | chest_auto
    weight_bp: int
    amount_total: int
    amount_remaining: int
    created_at: datetime
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChestOpening:
    id: int
    streamer_id: str
    created_by: str | None         # None when opened by a job
    status: str                    # OpeningStatus value
    opens_at: datetime
    closes_at: datetime
    min_watch_minutes: int
    closed_at: datetime | None = None
    closed_by: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status == OpeningStatus.OPEN.value

    def accepts_joins(self, now: datetime) -> bool:
        return self.is_open and now < self.closes_at


@dataclass
class Participant:
    opening_id: int
    user_id: str
    joined_at: datetime


@dataclass
class ChestPayout:
    opening_id: int
    user_id: str
    amount: int
    minted: dict[str, int]         # weight (bp, as str) -> amount of each lot minted to the participant
    breakdown: dict[str, int]      # chest weight (bp, as str) -> amount drawn
    tx_id: int


@dataclass
class SettlementResult:
    opening_id: int
    streamer_id: str
    status: str
    already_closed: bool
    pool: int
    participants: int
    payouts: list[ChestPayout]


@dataclass
class ChestSummary:
    streamer_id: str
    balance: int
    by_weight: dict[int, int]
    open_opening: ChestOpening | None
    participants: int


@dataclass
class AutoMintState:
    streamer_id: str
    last_bucket_ts: datetime
    carry_minutes: int
