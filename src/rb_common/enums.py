"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class TxKind(str, Enum):
    MINT = "mint"
    SPEND = "spend"
    ADJUST = "adjust"
    TRANSFER = "transfer"
    CASHOUT = "cashout"


class TxStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


class SpendKind(str, Enum):
    """support: credits a beneficiary; sink: removes currency from circulation."""
    SUPPORT = "support"
    SINK = "sink"


class EntryEntity(str, Enum):
    """Counterparties of a double-entry transaction."""
    USER = "user"
    PLATFORM_FEE = "platform_fee"
    PLATFORM_BURN = "platform_burn"
    PLATFORM_MINT = "platform_mint"
    STREAMER_WALLET = "streamer_wallet"
    CHEST = "chest"
    CASHOUT = "cashout"


class LotOrder(str, Enum):
    HIGHEST_WEIGHT_FIRST = "highest_weight_first"
    LOWEST_WEIGHT_FIRST = "lowest_weight_first"


class OpeningStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    CANCELED = "canceled"


class CashoutStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class UserRole(str, Enum):
    USER = "user"
    STREAMER = "streamer"
    ADMIN = "admin"


class RewardType(str, Enum):
    RUBIS = "rubis"
    TOKEN = "token"
    ENTITLEMENT = "entitlement"
