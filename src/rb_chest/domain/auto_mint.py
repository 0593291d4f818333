"""Per-streamer auto-mint step: watch minutes since the watermark -> one chest lot."""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.rb_chest.domain.accrual import accrue
from src.rb_chest.domain.repository import ChestRepositoryProtocol
from src.rb_common.weights import ORIGIN_WEIGHT_BP

logger = logging.getLogger(__name__)

AUTO_ORIGIN = "chest_auto"


async def accrue_streamer(
    db: AsyncSession,
    repo: ChestRepositoryProtocol,
    streamer_id: str,
    to_ts: datetime,
    rule_minutes: int = settings.AUTO_MINT_RULE_MINUTES,
    rule_rubis: int = settings.AUTO_MINT_RULE_RUBIS,
    weight_bp: int = ORIGIN_WEIGHT_BP[AUTO_ORIGIN],
) -> int:
    """Advance the streamer's watermark to `to_ts`; return rubis minted into the chest.

    The first call for a streamer only records the baseline watermark.
    """
    state = await repo.lock_auto_state(db, streamer_id)
    if state is None:
        await repo.insert_auto_state(db, streamer_id, to_ts)
        logger.debug("Auto-mint baseline for streamer %s at %s", streamer_id, to_ts)
        return 0
    if to_ts <= state.last_bucket_ts:
        return 0

    new_minutes = await repo.count_viewer_minutes(db, streamer_id, state.last_bucket_ts, to_ts)
    minted, carry = accrue(state.carry_minutes, new_minutes, rule_minutes, rule_rubis)
    await repo.update_auto_state(db, streamer_id, to_ts, carry)

    if minted > 0:
        await repo.ensure_chest(db, streamer_id)
        await repo.insert_chest_lot(
            db,
            streamer_id,
            AUTO_ORIGIN,
            weight_bp,
            minted,
            {
                "from_ts": state.last_bucket_ts.isoformat(),
                "to_ts": to_ts.isoformat(),
                "minutes": new_minutes,
                "carry_in": state.carry_minutes,
            },
        )
        logger.info(
            "Auto-minted %d rubis into chest of streamer %s (%d new minutes, carry %d)",
            minted, streamer_id, new_minutes, carry,
        )
    return minted
