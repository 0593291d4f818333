"""Chest repository Protocol.

Methods named lock_* take row locks and, like every mutation, must run inside
the caller's transaction.
"""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_ledger.domain.models import Allocation
from src.rb_chest.domain.models import (
    AutoMintState,
    ChestLot,
    ChestOpening,
    ChestPayout,
    ChestSummary,
    Participant,
)


class ChestRepositoryProtocol(Protocol):
    # --- chest & lots ---

    async def ensure_chest(self, db: AsyncSession, streamer_id: str) -> None: ...

    async def insert_chest_lot(
        self,
        db: AsyncSession,
        streamer_id: str,
        origin: str,
        weight_bp: int,
        amount: int,
        meta: dict[str, Any],
    ) -> ChestLot: ...

    async def lock_chest_lots(self, db: AsyncSession, streamer_id: str) -> list[ChestLot]:
        """Lots with remaining > 0, highest weight first, then created_at, then id."""
        ...

    async def consume_chest_lots(self, db: AsyncSession, allocations: list[Allocation]) -> None: ...

    async def get_chest_summary(self, db: AsyncSession, streamer_id: str) -> ChestSummary: ...

    # --- openings ---

    async def get_open_opening(self, db: AsyncSession, streamer_id: str) -> ChestOpening | None: ...

    async def insert_opening(
        self,
        db: AsyncSession,
        streamer_id: str,
        created_by: str | None,
        opens_at: datetime,
        closes_at: datetime,
        min_watch_minutes: int,
    ) -> ChestOpening:
        """Raises ChestAlreadyOpenError if the streamer already has an open opening."""
        ...

    async def lock_opening(self, db: AsyncSession, opening_id: int) -> ChestOpening | None: ...

    async def transition_opening(
        self,
        db: AsyncSession,
        opening_id: int,
        status: str,
        closed_by: str | None,
        closed_at: datetime,
    ) -> bool:
        """open -> status. False if the opening was no longer open."""
        ...

    async def list_due_openings(self, db: AsyncSession, now: datetime, limit: int) -> list[int]: ...

    # --- participants & payouts ---

    async def insert_participant(self, db: AsyncSession, opening_id: int, user_id: str) -> bool:
        """False if the user had already joined."""
        ...

    async def list_participants(self, db: AsyncSession, opening_id: int) -> list[Participant]: ...

    async def insert_payout(self, db: AsyncSession, payout: ChestPayout) -> None: ...

    async def list_payouts(self, db: AsyncSession, opening_id: int) -> list[ChestPayout]: ...

    # --- auto-mint watermark ---

    async def lock_auto_state(self, db: AsyncSession, streamer_id: str) -> AutoMintState | None: ...

    async def insert_auto_state(
        self, db: AsyncSession, streamer_id: str, last_bucket_ts: datetime
    ) -> None: ...

    async def update_auto_state(
        self, db: AsyncSession, streamer_id: str, last_bucket_ts: datetime, carry_minutes: int
    ) -> None: ...

    async def count_viewer_minutes(
        self, db: AsyncSession, streamer_id: str, after: datetime, upto: datetime
    ) -> int:
        """Distinct (viewer, minute) records with after < bucket_ts <= upto."""
        ...
