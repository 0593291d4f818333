"""Chest settlement: close an opening and pay every participant, exactly once.

Lock order: opening row -> chest lots -> each participant's user row (inside Mint).
Each share is minted as one lot per drawn weight, capped at CHEST_MAX_OUT_WEIGHT_BP.
The UPDATE ... WHERE status = 'open' on the locked opening row is the
mutual-exclusion gate: a second settlement blocks on the row lock, then sees
a non-open status and returns the recorded payouts unchanged.

Nothing here commits. If any participant's mint fails the exception propagates,
the caller rolls back, and the opening stays open for the next attempt.
"""

import logging
import random
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.enums import EntryEntity, OpeningStatus
from src.rb_common.errors import OpeningNotFoundError
from src.rb_common.weights import CHEST_MAX_OUT_WEIGHT_BP
from src.rb_ledger.domain.models import Allocation, MintCommand
from src.rb_chest.domain.models import ChestOpening, ChestPayout, SettlementResult
from src.rb_chest.domain.payout import (
    merge_allocations,
    payout_parts,
    plan_draws,
    split_equally,
    weight_breakdown,
)
from src.rb_chest.domain.ports import LedgerPort
from src.rb_chest.domain.repository import ChestRepositoryProtocol

logger = logging.getLogger(__name__)

PAYOUT_ORIGIN = "chest_streamer"
PAYOUT_PURPOSE = "chest_payout"


class ChestSettler:
    def __init__(
        self,
        repo: ChestRepositoryProtocol,
        ledger: LedgerPort,
        rng: random.Random | None = None,
        max_out_weight_bp: int = CHEST_MAX_OUT_WEIGHT_BP,
    ) -> None:
        self._repo = repo
        self._ledger = ledger
        self._rng = rng or random.SystemRandom()
        self._max_out_weight_bp = max_out_weight_bp

    async def settle_in_tx(
        self,
        db: AsyncSession,
        opening_id: int,
        closed_by: str | None,
        now: datetime,
    ) -> SettlementResult:
        opening = await self._repo.lock_opening(db, opening_id)
        if opening is None:
            raise OpeningNotFoundError(opening_id)
        if not opening.is_open:
            return await self._already_settled(db, opening)
        if not await self._repo.transition_opening(
            db, opening_id, OpeningStatus.CLOSED.value, closed_by, now
        ):
            return await self._already_settled(db, opening)

        participants = await self._repo.list_participants(db, opening_id)
        lots = await self._repo.lock_chest_lots(db, opening.streamer_id)
        pool = sum(lot.amount_remaining for lot in lots)

        if not participants or pool == 0:
            logger.info(
                "Chest opening %d closed without payout (participants=%d, pool=%d)",
                opening_id, len(participants), pool,
            )
            return SettlementResult(
                opening_id=opening_id,
                streamer_id=opening.streamer_id,
                status=OpeningStatus.CLOSED.value,
                already_closed=False,
                pool=pool,
                participants=len(participants),
                payouts=[],
            )

        shares = split_equally(pool, [p.user_id for p in participants], self._rng)
        drawn: list[Allocation] = []
        payouts: list[ChestPayout] = []
        for user_id, amount, allocations in plan_draws(lots, shares):
            parts = payout_parts(allocations, self._max_out_weight_bp)
            breakdown = weight_breakdown(allocations)
            minted = await self._ledger.mint_in_tx(
                db,
                MintCommand(
                    user_id=user_id,
                    origin=PAYOUT_ORIGIN,
                    amount=amount,
                    purpose=PAYOUT_PURPOSE,
                    meta={
                        "opening_id": opening_id,
                        "streamer_id": opening.streamer_id,
                        "breakdown": breakdown,
                    },
                    source=EntryEntity.CHEST,
                    source_streamer_id=opening.streamer_id,
                    parts=parts,
                ),
            )
            payout = ChestPayout(
                opening_id=opening_id,
                user_id=user_id,
                amount=amount,
                minted={str(w): a for w, a in parts},
                breakdown=breakdown,
                tx_id=minted.transaction_id,
            )
            await self._repo.insert_payout(db, payout)
            payouts.append(payout)
            drawn.extend(allocations)

        await self._repo.consume_chest_lots(db, merge_allocations(drawn))
        logger.info(
            "Chest opening %d settled: pool=%d participants=%d payouts=%d",
            opening_id, pool, len(participants), len(payouts),
        )
        return SettlementResult(
            opening_id=opening_id,
            streamer_id=opening.streamer_id,
            status=OpeningStatus.CLOSED.value,
            already_closed=False,
            pool=pool,
            participants=len(participants),
            payouts=payouts,
        )

    async def _already_settled(self, db: AsyncSession, opening: ChestOpening) -> SettlementResult:
        payouts = await self._repo.list_payouts(db, opening.id)
        return SettlementResult(
            opening_id=opening.id,
            streamer_id=opening.streamer_id,
            status=opening.status,
            already_closed=True,
            pool=sum(p.amount for p in payouts),
            participants=len(payouts),
            payouts=payouts,
        )
