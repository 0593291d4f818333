"""Auto-mint sweep: convert elapsed watch minutes of live streamers into chest lots.

Each streamer is processed in its own transaction; one streamer failing is
logged and does not block the others. Only one sweep runs at a time per process.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src import container
from src.rb_chest.domain.auto_mint import accrue_streamer
from src.rb_chest.domain.repository import ChestRepositoryProtocol
from src.rb_common.database import async_session_factory, unit_of_work
from src.rb_common.datetime_utils import last_complete_minute, utc_now
from src.rb_streamer.domain.repository import StreamerDirectoryProtocol

logger = logging.getLogger(__name__)

_sweep_lock = asyncio.Lock()


async def run_auto_mint_tick(
    repo: ChestRepositoryProtocol | None = None,
    streamers: StreamerDirectoryProtocol | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> int:
    """One sweep over live streamers. Returns the total rubis minted into chests."""
    if _sweep_lock.locked():
        logger.debug("Auto-mint sweep already in flight, skipping tick")
        return 0

    async with _sweep_lock:
        repo = repo or container.chest_repository
        streamers = streamers or container.streamer_directory
        factory = session_factory or async_session_factory
        to_ts = last_complete_minute(clock())

        async with factory() as db:
            streamer_ids = await streamers.list_live_streamer_ids(db)

        total = 0
        for streamer_id in streamer_ids:
            try:
                async with unit_of_work(factory) as db:
                    minted = await accrue_streamer(db, repo, streamer_id, to_ts)
            except Exception:
                logger.exception("Auto-mint failed for streamer %s", streamer_id)
                continue
            total += minted

        logger.debug(
            "Auto-mint sweep to %s: %d streamers, %d rubis", to_ts.isoformat(), len(streamer_ids), total
        )
        return total
