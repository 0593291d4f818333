"""Domain models for rb_ledger: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.rb_common.enums import EntryEntity, SpendKind, TxKind, TxStatus


@dataclass
class Lot:
    id: int
    owner_id: str
    origin: str
    weight_bp: int                 # 0..10000
    amount_total: int
    amount_remaining: int          # 0 <= amount_remaining <= amount_total
    created_at: datetime
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class LockedBalance:
    """A user's balance as seen under row locks: cached total + locked lots in spend order."""
    user_id: str
    cached_total: int
    lots: list[Lot]

    @property
    def lots_total(self) -> int:
        return sum(lot.amount_remaining for lot in self.lots)


@dataclass(frozen=True)
class Allocation:
    """Amount taken from one lot by a spend."""
    lot_id: int
    origin: str
    weight_bp: int
    amount: int


@dataclass
class Entry:
    entity: EntryEntity
    delta: int
    user_id: str | None = None
    streamer_id: str | None = None


@dataclass
class NewTransaction:
    kind: TxKind
    purpose: str
    amount: int
    from_user: str | None = None
    to_user: str | None = None
    streamer_id: str | None = None
    support_value: int = 0
    beneficiary_share: int = 0
    platform_share: int = 0
    burn_share: int = 0
    status: TxStatus = TxStatus.COMPLETED
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class Transaction:
    id: int
    kind: str
    purpose: str
    amount: int
    from_user: str | None
    to_user: str | None
    streamer_id: str | None
    support_value: int
    beneficiary_share: int
    platform_share: int
    burn_share: int
    status: str
    meta: dict[str, Any]
    created_at: datetime


@dataclass
class MintCommand:
    user_id: str
    origin: str
    amount: int
    weight_bp: int | None = None   # None -> origin weight table
    purpose: str | None = None     # None -> origin
    meta: dict[str, Any] = field(default_factory=dict)
    source: EntryEntity = EntryEntity.PLATFORM_MINT
    source_streamer_id: str | None = None
    # (weight_bp, amount) per lot, all under one transaction; must add up to `amount`.
    # None -> a single lot at `weight_bp`.
    parts: list[tuple[int, int]] | None = None


@dataclass
class MintResult:
    transaction_id: int
    lot_id: int                    # first (or only) lot
    amount: int
    weight_bp: int                 # weight of that lot
    balance_after: int
    lot_ids: list[int] = field(default_factory=list)


@dataclass
class SpendCommand:
    user_id: str
    amount: int
    kind: SpendKind
    purpose: str
    beneficiary_id: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)
    # Sink counterparty: platform_burn removes currency; chest keeps it in a streamer's chest.
    sink_entity: EntryEntity = EntryEntity.PLATFORM_BURN
    sink_streamer_id: str | None = None


@dataclass
class SpendResult:
    transaction_id: int
    spent: int
    breakdown: dict[str, int]
    allocations: list[Allocation]
    support_value: int
    beneficiary_share: int
    platform_share: int
    burn_share: int
    balance_after: int


@dataclass
class StreamerWallet:
    streamer_id: str
    available_value: int
    lifetime_value: int
    updated_at: datetime | None = None


@dataclass
class EarningsRow:
    id: int
    streamer_id: str
    tx_id: int
    from_user: str
    spent: int
    support_value: int
    streamer_share: int
    created_at: datetime


@dataclass
class CashoutResult:
    transaction_id: int
    request_id: int
    value: int                     # support value requested
    debited: int                   # rubis taken from the owner's lots
    breakdown: dict[str, int]      # origin -> rubis taken
    balance_after: int
    available_after: int           # streamer wallet value left


@dataclass
class WalletSummary:
    user_id: str
    cached_total: int
    by_origin: dict[str, int]
    by_weight: dict[int, int]
