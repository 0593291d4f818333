"""Auto-close sweep: settle chest openings whose closing time has passed.

Oldest first, a small batch per tick. Each settlement is independent; a failed
one stays open and is picked up again on a later tick.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src import container
from src.rb_chest.application.service import ChestApplicationService
from src.rb_chest.domain.repository import ChestRepositoryProtocol
from src.rb_common.database import async_session_factory
from src.rb_common.datetime_utils import utc_now

logger = logging.getLogger(__name__)


async def run_auto_close_tick(
    service: ChestApplicationService | None = None,
    repo: ChestRepositoryProtocol | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    clock: Callable[[], datetime] = utc_now,
    batch_size: int = settings.AUTO_CLOSE_BATCH_SIZE,
) -> int:
    """Settle up to `batch_size` due openings. Returns how many were settled."""
    service = service or container.chest_service
    repo = repo or container.chest_repository
    factory = session_factory or async_session_factory

    async with factory() as db:
        due = await repo.list_due_openings(db, clock(), batch_size)

    settled = 0
    for opening_id in due:
        try:
            async with factory() as db:
                result = await service.settle_chest(db, opening_id, closed_by=None)
        except Exception:
            logger.exception("Auto-close failed for chest opening %d", opening_id)
            continue
        if not result.already_closed:
            settled += 1
    if due:
        logger.info("Auto-close: %d due, %d settled", len(due), settled)
    return settled
