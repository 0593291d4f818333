"""StreamerDirectory Protocol: read-only lookup of streamer identity and live status."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_streamer.domain.models import Streamer


class StreamerDirectoryProtocol(Protocol):
    async def get_streamer(self, db: AsyncSession, streamer_id: str) -> Streamer | None: ...

    async def list_live_streamer_ids(self, db: AsyncSession) -> list[str]: ...
