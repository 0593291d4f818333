"""LedgerApplicationService — transaction boundary around LedgerEngine.

Mutating operations: one session transaction each, commit on success, rollback on
any error, events published only after commit. Reads run without a transaction
and may be stale.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.enums import SpendKind
from src.rb_common.errors import UserNotFoundError
from src.rb_common.events import DomainEvent, EventPublisher, NullEventPublisher
from src.rb_common.pagination import cursor_decode, cursor_encode
from src.rb_ledger.application.schemas import (
    AuditResponse,
    CashoutResponse,
    EarningsResponse,
    MintRequest,
    MintResponse,
    SpendRequest,
    SpendResponse,
    TransactionItem,
    TransactionListResponse,
    WalletResponse,
)
from src.rb_ledger.domain.engine import LedgerEngine
from src.rb_ledger.domain.models import MintCommand, SpendCommand
from src.rb_ledger.domain.repository import LedgerRepositoryProtocol
from src.rb_ledger.infrastructure.audit import verify_conservation, verify_entries_balanced
from src.rb_streamer.domain.access import ensure_can_manage, get_streamer_or_raise
from src.rb_streamer.domain.repository import StreamerDirectoryProtocol

logger = logging.getLogger(__name__)


class LedgerApplicationService:
    def __init__(
        self,
        engine: LedgerEngine,
        repo: LedgerRepositoryProtocol,
        streamers: StreamerDirectoryProtocol,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._engine = engine
        self._repo = repo
        self._streamers = streamers
        self._publisher: EventPublisher = publisher or NullEventPublisher()

    async def get_wallet(self, db: AsyncSession, user_id: str) -> WalletResponse:
        summary = await self._repo.get_wallet_summary(db, user_id)
        if summary is None:
            raise UserNotFoundError(user_id)
        return WalletResponse.from_summary(summary)

    async def list_transactions(
        self, db: AsyncSession, user_id: str, cursor: str | None, limit: int
    ) -> TransactionListResponse:
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        txs = await self._repo.list_transactions(db, user_id, cursor_decode(cursor), limit + 1)
        has_more = len(txs) > limit
        page = txs[:limit]
        return TransactionListResponse(
            items=[TransactionItem.from_tx(tx, user_id) for tx in page],
            next_cursor=cursor_encode(page[-1].id) if has_more and page else None,
            has_more=has_more,
        )

    async def mint(self, db: AsyncSession, body: MintRequest, granted_by: str) -> MintResponse:
        cmd = MintCommand(
            user_id=body.user_id,
            origin=body.origin,
            amount=body.amount,
            weight_bp=body.weight_bp,
            meta={**body.meta, "granted_by": granted_by},
        )
        try:
            result = await self._engine.mint_in_tx(db, cmd)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return MintResponse.from_result(result)

    async def spend(self, db: AsyncSession, user_id: str, body: SpendRequest) -> SpendResponse:
        cmd = SpendCommand(
            user_id=user_id,
            amount=body.amount,
            kind=body.kind,
            purpose=body.purpose,
            beneficiary_id=body.beneficiary_id,
            meta=body.meta,
        )
        try:
            result = await self._engine.spend_in_tx(db, cmd)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if body.kind is SpendKind.SUPPORT:
            await self._publisher.publish(
                DomainEvent(
                    type="support.received",
                    streamer_id=body.beneficiary_id,
                    user_id=user_id,
                    data={
                        "transaction_id": result.transaction_id,
                        "purpose": body.purpose,
                        "spent": result.spent,
                        "support_value": result.support_value,
                    },
                )
            )
        return SpendResponse.from_result(result)

    async def get_earnings(
        self,
        db: AsyncSession,
        streamer_id: str,
        user_id: str,
        is_admin: bool,
        limit: int = 20,
    ) -> EarningsResponse:
        streamer = await get_streamer_or_raise(self._streamers, db, streamer_id)
        ensure_can_manage(streamer, user_id, is_admin)
        wallet = await self._repo.get_streamer_wallet(db, streamer_id)
        rows = await self._repo.list_earnings(db, streamer_id, limit)
        return EarningsResponse.build(streamer_id, wallet, rows)

    async def request_cashout(
        self,
        db: AsyncSession,
        streamer_id: str,
        user_id: str,
        is_admin: bool,
        value: int,
    ) -> CashoutResponse:
        try:
            streamer = await get_streamer_or_raise(self._streamers, db, streamer_id)
            ensure_can_manage(streamer, user_id, is_admin)
            result = await self._engine.cashout_in_tx(
                db, streamer_id, streamer.owner_user_id, user_id, value
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return CashoutResponse(
            transaction_id=result.transaction_id,
            request_id=result.request_id,
            value=result.value,
            debited=result.debited,
            breakdown=result.breakdown,
            balance_after=result.balance_after,
            available_after=result.available_after,
        )

    async def audit(self, db: AsyncSession, user_id: str | None = None) -> AuditResponse:
        conservation = await verify_conservation(db, user_id)
        unbalanced = await verify_entries_balanced(db)
        return AuditResponse(
            healthy=not conservation and not unbalanced,
            conservation=conservation,
            unbalanced_entries=unbalanced,
        )
