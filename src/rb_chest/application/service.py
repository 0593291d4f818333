"""ChestApplicationService: chest lifecycle behind one transaction per call.

    open ──settle──▶ closed
      └───cancel──▶ canceled

Watch-time eligibility of joiners is checked upstream (chat/presence service);
settlement pays every registered participant equally.
"""

import logging
import random
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.rb_common.datetime_utils import utc_now
from src.rb_common.enums import EntryEntity, OpeningStatus, SpendKind
from src.rb_common.errors import (
    ChestAlreadyOpenError,
    NoOpenChestError,
    OpeningNotFoundError,
    OpeningNotJoinableError,
    OpeningNotOpenError,
    OwnerCannotJoinError,
)
from src.rb_common.events import DomainEvent, EventPublisher, NullEventPublisher
from src.rb_common.weights import CHEST_MAX_OUT_WEIGHT_BP
from src.rb_ledger.domain.models import SpendCommand
from src.rb_chest.application.schemas import (
    ChestResponse,
    DepositRequest,
    DepositResponse,
    JoinResponse,
    OpenChestRequest,
    OpeningResponse,
    SettlementResponse,
    WeightBucket,
)
from src.rb_chest.domain.models import SettlementResult
from src.rb_chest.domain.ports import LedgerPort
from src.rb_chest.domain.repository import ChestRepositoryProtocol
from src.rb_chest.domain.settlement import ChestSettler
from src.rb_streamer.domain.access import ensure_can_manage, get_streamer_or_raise
from src.rb_streamer.domain.repository import StreamerDirectoryProtocol

logger = logging.getLogger(__name__)

DEPOSIT_ORIGIN = "chest_deposit"


class ChestApplicationService:
    def __init__(
        self,
        repo: ChestRepositoryProtocol,
        ledger: LedgerPort,
        streamers: StreamerDirectoryProtocol,
        publisher: EventPublisher | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repo
        self._ledger = ledger
        self._streamers = streamers
        self._publisher: EventPublisher = publisher or NullEventPublisher()
        self._settler = ChestSettler(repo, ledger, rng=rng)
        self._clock = clock

    async def get_chest(self, db: AsyncSession, streamer_id: str) -> ChestResponse:
        await get_streamer_or_raise(self._streamers, db, streamer_id)
        summary = await self._repo.get_chest_summary(db, streamer_id)
        return ChestResponse.from_summary(summary)

    async def deposit(
        self,
        db: AsyncSession,
        streamer_id: str,
        user_id: str,
        is_admin: bool,
        body: DepositRequest,
    ) -> DepositResponse:
        """Move the caller's rubis into the chest, cheapest lots first.

        Each consumed wallet lot becomes one chest lot at its weight, capped at
        CHEST_MAX_OUT_WEIGHT_BP.
        """
        try:
            streamer = await get_streamer_or_raise(self._streamers, db, streamer_id)
            ensure_can_manage(streamer, user_id, is_admin)
            spent = await self._ledger.spend_in_tx(
                db,
                SpendCommand(
                    user_id=user_id,
                    amount=body.amount,
                    kind=SpendKind.SINK,
                    purpose=DEPOSIT_ORIGIN,
                    meta={"streamer_id": streamer_id, "note": body.note},
                    sink_entity=EntryEntity.CHEST,
                    sink_streamer_id=streamer_id,
                ),
            )
            await self._repo.ensure_chest(db, streamer_id)
            for a in spent.allocations:
                await self._repo.insert_chest_lot(
                    db,
                    streamer_id,
                    DEPOSIT_ORIGIN,
                    min(a.weight_bp, CHEST_MAX_OUT_WEIGHT_BP),
                    a.amount,
                    {
                        "tx_id": spent.transaction_id,
                        "source_lot_id": a.lot_id,
                        "source_origin": a.origin,
                        "source_weight_bp": a.weight_bp,
                        "deposited_by": user_id,
                    },
                )
            summary = await self._repo.get_chest_summary(db, streamer_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        buckets: dict[int, int] = {}
        for a in spent.allocations:
            weight = min(a.weight_bp, CHEST_MAX_OUT_WEIGHT_BP)
            buckets[weight] = buckets.get(weight, 0) + a.amount
        await self._publisher.publish(
            DomainEvent(
                type="chest.deposited",
                streamer_id=streamer_id,
                user_id=user_id,
                data={"amount": body.amount, "chest_balance": summary.balance},
            )
        )
        return DepositResponse(
            streamer_id=streamer_id,
            transaction_id=spent.transaction_id,
            deposited=spent.spent,
            breakdown=[
                WeightBucket(weight_bp=w, amount=amt) for w, amt in sorted(buckets.items(), reverse=True)
            ],
            chest_balance=summary.balance,
        )

    async def open_chest(
        self,
        db: AsyncSession,
        streamer_id: str,
        user_id: str,
        is_admin: bool,
        body: OpenChestRequest,
    ) -> OpeningResponse:
        duration = body.resolved_duration_seconds() or settings.CHEST_DEFAULT_DURATION_SECONDS
        duration = max(settings.CHEST_MIN_DURATION_SECONDS, duration)
        min_watch = body.min_watch_minutes
        if min_watch is None:
            min_watch = settings.CHEST_DEFAULT_MIN_WATCH_MINUTES
        min_watch = max(1, min_watch)

        try:
            streamer = await get_streamer_or_raise(self._streamers, db, streamer_id)
            ensure_can_manage(streamer, user_id, is_admin)
            if await self._repo.get_open_opening(db, streamer_id) is not None:
                raise ChestAlreadyOpenError(streamer_id)
            await self._repo.ensure_chest(db, streamer_id)
            now = self._clock()
            opening = await self._repo.insert_opening(
                db,
                streamer_id,
                user_id,
                opens_at=now,
                closes_at=now + timedelta(seconds=duration),
                min_watch_minutes=min_watch,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Chest opening %d opened for streamer %s until %s",
            opening.id, streamer_id, opening.closes_at.isoformat(),
        )
        await self._publisher.publish(
            DomainEvent(
                type="chest.opened",
                streamer_id=streamer_id,
                data={
                    "opening_id": opening.id,
                    "closes_at": opening.closes_at.isoformat(),
                    "min_watch_minutes": opening.min_watch_minutes,
                },
            )
        )
        return OpeningResponse.from_opening(opening)

    async def join_chest(self, db: AsyncSession, opening_id: int, user_id: str) -> JoinResponse:
        try:
            response = await self._join(db, opening_id, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return response

    async def join_current(
        self, db: AsyncSession, streamer_id: str, user_id: str, opening_id: int | None = None
    ) -> JoinResponse:
        """Join `opening_id` if given (it must belong to the streamer), else the open one."""
        try:
            await get_streamer_or_raise(self._streamers, db, streamer_id)
            if opening_id is None:
                current = await self._repo.get_open_opening(db, streamer_id)
                if current is None:
                    raise NoOpenChestError(streamer_id)
                opening_id = current.id
            response = await self._join(db, opening_id, user_id, streamer_id=streamer_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return response

    async def _join(
        self,
        db: AsyncSession,
        opening_id: int,
        user_id: str,
        streamer_id: str | None = None,
    ) -> JoinResponse:
        # Same row lock as settlement: a join either lands before the close or sees it.
        opening = await self._repo.lock_opening(db, opening_id)
        if opening is None or (streamer_id is not None and opening.streamer_id != streamer_id):
            raise OpeningNotFoundError(opening_id)
        streamer = await get_streamer_or_raise(self._streamers, db, opening.streamer_id)
        if streamer.is_owned_by(user_id):
            raise OwnerCannotJoinError()
        if not opening.is_open:
            raise OpeningNotJoinableError(opening.id, opening.status)
        if not opening.accepts_joins(self._clock()):
            raise OpeningNotJoinableError(opening.id, "closing time has passed")
        joined = await self._repo.insert_participant(db, opening.id, user_id)
        return JoinResponse(opening_id=opening.id, joined=joined, already_joined=not joined)

    async def settle_chest(
        self, db: AsyncSession, opening_id: int, closed_by: str | None = None
    ) -> SettlementResponse:
        """Close and pay out. Re-running on a closed opening returns the recorded payouts."""
        try:
            result = await self._settler.settle_in_tx(db, opening_id, closed_by, self._clock())
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if not result.already_closed:
            await self._publish_settled(result)
        return SettlementResponse.from_result(result)

    async def close_current(
        self, db: AsyncSession, streamer_id: str, user_id: str, is_admin: bool
    ) -> SettlementResponse:
        streamer = await get_streamer_or_raise(self._streamers, db, streamer_id)
        ensure_can_manage(streamer, user_id, is_admin)
        opening = await self._repo.get_open_opening(db, streamer_id)
        if opening is None:
            raise NoOpenChestError(streamer_id)
        return await self.settle_chest(db, opening.id, closed_by=user_id)

    async def cancel_chest(
        self,
        db: AsyncSession,
        opening_id: int,
        user_id: str,
        is_admin: bool,
        streamer_id: str | None = None,
    ) -> OpeningResponse:
        """open -> canceled without payouts; the chest keeps its lots."""
        try:
            opening = await self._repo.lock_opening(db, opening_id)
            if opening is None or streamer_id not in (None, opening.streamer_id):
                raise OpeningNotFoundError(opening_id)
            streamer = await get_streamer_or_raise(self._streamers, db, opening.streamer_id)
            ensure_can_manage(streamer, user_id, is_admin)
            now = self._clock()
            if not opening.is_open or not await self._repo.transition_opening(
                db, opening_id, OpeningStatus.CANCELED.value, user_id, now
            ):
                raise OpeningNotOpenError(opening_id, opening.status)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        opening.status = OpeningStatus.CANCELED.value
        opening.closed_at = now
        opening.closed_by = user_id
        logger.info("Chest opening %d canceled by %s", opening_id, user_id)
        return OpeningResponse.from_opening(opening)

    async def _publish_settled(self, result: SettlementResult) -> None:
        await self._publisher.publish(
            DomainEvent(
                type="chest.settled",
                streamer_id=result.streamer_id,
                data={
                    "opening_id": result.opening_id,
                    "pool": result.pool,
                    "payouts": [{"user_id": p.user_id, "amount": p.amount} for p in result.payouts],
                },
            )
        )
