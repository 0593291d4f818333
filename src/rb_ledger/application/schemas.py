"""Pydantic schemas for rb_ledger API."""

from typing import Any

from pydantic import BaseModel, Field

from src.rb_common.amounts import weighted_value
from src.rb_common.enums import SpendKind
from src.rb_common.weights import weight_for_origin
from src.rb_ledger.domain.models import (
    EarningsRow,
    MintResult,
    SpendResult,
    StreamerWallet,
    Transaction,
    WalletSummary,
)

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class MintRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    origin: str = Field("admin_grant", min_length=1, max_length=64)
    amount: int = Field(..., gt=0, description="Rubis to credit")
    weight_bp: int | None = Field(None, ge=0, le=10_000, description="Defaults to the origin weight")
    meta: dict[str, Any] = Field(default_factory=dict)


class SpendRequest(BaseModel):
    amount: int = Field(..., gt=0)
    kind: SpendKind
    purpose: str = Field(..., min_length=1, max_length=64)
    beneficiary_id: str | None = Field(None, description="Streamer id, required for support")
    meta: dict[str, Any] = Field(default_factory=dict)


class CashoutRequest(BaseModel):
    value: int = Field(..., gt=0, description="Earned value to withdraw")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class MintResponse(BaseModel):
    transaction_id: int
    lot_id: int
    amount: int
    weight_bp: int
    balance_after: int

    @classmethod
    def from_result(cls, r: MintResult) -> "MintResponse":
        return cls(
            transaction_id=r.transaction_id,
            lot_id=r.lot_id,
            amount=r.amount,
            weight_bp=r.weight_bp,
            balance_after=r.balance_after,
        )


class AllocationItem(BaseModel):
    lot_id: int
    origin: str
    weight_bp: int
    amount: int


class SpendResponse(BaseModel):
    transaction_id: int
    spent: int
    breakdown: dict[str, int]
    allocations: list[AllocationItem]
    support_value: int
    beneficiary_share: int
    platform_share: int
    burn_share: int
    balance_after: int

    @classmethod
    def from_result(cls, r: SpendResult) -> "SpendResponse":
        return cls(
            transaction_id=r.transaction_id,
            spent=r.spent,
            breakdown=r.breakdown,
            allocations=[
                AllocationItem(lot_id=a.lot_id, origin=a.origin, weight_bp=a.weight_bp, amount=a.amount)
                for a in r.allocations
            ],
            support_value=r.support_value,
            beneficiary_share=r.beneficiary_share,
            platform_share=r.platform_share,
            burn_share=r.burn_share,
            balance_after=r.balance_after,
        )


class WeightBucket(BaseModel):
    weight_bp: int
    amount: int


class WalletResponse(BaseModel):
    user_id: str
    balance: int
    weighted_value: int
    by_origin: dict[str, int]
    by_weight: list[WeightBucket]
    nominal_weights: dict[str, int]   # origin table weight of each held origin

    @classmethod
    def from_summary(cls, s: WalletSummary) -> "WalletResponse":
        buckets = sorted(s.by_weight.items(), key=lambda kv: -kv[0])
        return cls(
            user_id=s.user_id,
            balance=s.cached_total,
            weighted_value=weighted_value([(a, w) for w, a in buckets]),
            by_origin=s.by_origin,
            by_weight=[WeightBucket(weight_bp=w, amount=a) for w, a in buckets],
            nominal_weights={o: weight_for_origin(o) for o in s.by_origin},
        )


class TransactionItem(BaseModel):
    id: int
    kind: str
    purpose: str
    status: str
    amount: int
    direction: str  # "in" | "out"
    support_value: int
    streamer_id: str | None
    meta: dict[str, Any]
    created_at: str  # ISO8601 string

    @classmethod
    def from_tx(cls, tx: Transaction, user_id: str) -> "TransactionItem":
        return cls(
            id=tx.id,
            kind=tx.kind,
            purpose=tx.purpose,
            status=tx.status,
            amount=tx.amount,
            direction="in" if tx.to_user == user_id else "out",
            support_value=tx.support_value,
            streamer_id=tx.streamer_id,
            meta=tx.meta,
            created_at=tx.created_at.isoformat() if tx.created_at else "",
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool


class EarningsItem(BaseModel):
    tx_id: int
    from_user: str
    spent: int
    support_value: int
    streamer_share: int
    created_at: str

    @classmethod
    def from_row(cls, row: EarningsRow) -> "EarningsItem":
        return cls(
            tx_id=row.tx_id,
            from_user=row.from_user,
            spent=row.spent,
            support_value=row.support_value,
            streamer_share=row.streamer_share,
            created_at=row.created_at.isoformat() if row.created_at else "",
        )


class EarningsResponse(BaseModel):
    streamer_id: str
    available_value: int
    lifetime_value: int
    recent: list[EarningsItem]

    @classmethod
    def build(
        cls, streamer_id: str, wallet: StreamerWallet | None, rows: list[EarningsRow]
    ) -> "EarningsResponse":
        return cls(
            streamer_id=streamer_id,
            available_value=wallet.available_value if wallet else 0,
            lifetime_value=wallet.lifetime_value if wallet else 0,
            recent=[EarningsItem.from_row(r) for r in rows],
        )


class CashoutResponse(BaseModel):
    transaction_id: int
    request_id: int
    value: int
    status: str = "pending"
    debited: int = Field(..., description="Rubis taken from the owner's wallet")
    breakdown: dict[str, int]
    balance_after: int
    available_after: int


class AuditResponse(BaseModel):
    healthy: bool
    conservation: list[str]
    unbalanced_entries: list[str]
