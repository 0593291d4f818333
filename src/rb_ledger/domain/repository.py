"""Repository Protocol — dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.

Every method except the read-only ones at the bottom must run inside the
caller's open transaction.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.enums import LotOrder
from src.rb_ledger.domain.models import (
    Allocation,
    EarningsRow,
    Entry,
    LockedBalance,
    Lot,
    NewTransaction,
    StreamerWallet,
    Transaction,
    WalletSummary,
)


class LedgerRepositoryProtocol(Protocol):
    # --- locking reads ---

    async def lock_user(self, db: AsyncSession, user_id: str) -> int | None:
        """Lock the user row; return the cached balance, or None if missing."""
        ...

    async def get_locked_balance(
        self, db: AsyncSession, user_id: str, order: LotOrder
    ) -> LockedBalance | None: ...

    async def lock_streamer_wallet(
        self, db: AsyncSession, streamer_id: str
    ) -> StreamerWallet | None: ...

    # --- mutations ---

    async def insert_lot(
        self,
        db: AsyncSession,
        user_id: str,
        origin: str,
        weight_bp: int,
        amount: int,
        meta: dict[str, Any],
    ) -> Lot: ...

    async def consume_lots(self, db: AsyncSession, allocations: list[Allocation]) -> None: ...

    async def adjust_cached_balance(self, db: AsyncSession, user_id: str, delta: int) -> int: ...

    async def insert_transaction(self, db: AsyncSession, tx: NewTransaction) -> int: ...

    async def insert_tx_lots(
        self, db: AsyncSession, tx_id: int, allocations: list[Allocation]
    ) -> None: ...

    async def insert_entries(self, db: AsyncSession, tx_id: int, entries: list[Entry]) -> None: ...

    async def credit_streamer_wallet(
        self, db: AsyncSession, streamer_id: str, value: int
    ) -> StreamerWallet: ...

    async def debit_streamer_wallet(
        self, db: AsyncSession, streamer_id: str, value: int
    ) -> StreamerWallet: ...

    async def insert_earnings(
        self,
        db: AsyncSession,
        streamer_id: str,
        tx_id: int,
        from_user: str,
        spent: int,
        support_value: int,
        streamer_share: int,
    ) -> None: ...

    async def insert_cashout_request(
        self,
        db: AsyncSession,
        streamer_id: str,
        requested_by: str,
        value: int,
        amount: int,
        tx_id: int,
    ) -> int: ...

    # --- read-only, unlocked ---

    async def get_wallet_summary(self, db: AsyncSession, user_id: str) -> WalletSummary | None: ...

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[Transaction]: ...

    async def get_streamer_wallet(
        self, db: AsyncSession, streamer_id: str
    ) -> StreamerWallet | None: ...

    async def list_earnings(
        self, db: AsyncSession, streamer_id: str, limit: int
    ) -> list[EarningsRow]: ...
