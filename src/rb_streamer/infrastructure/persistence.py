"""StreamerDirectory backed by the `streamers` table.

The live flag is maintained by the external live-status poller; this module only reads it.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_streamer.domain.models import Streamer

_GET_STREAMER_SQL = text("""
    SELECT id, user_id, slug, is_live
    FROM streamers
    WHERE id = :streamer_id
""")

_LIST_LIVE_SQL = text("""
    SELECT id
    FROM streamers
    WHERE is_live = TRUE
    ORDER BY id
""")


class StreamerDirectory:
    async def get_streamer(self, db: AsyncSession, streamer_id: str) -> Streamer | None:
        row = (await db.execute(_GET_STREAMER_SQL, {"streamer_id": streamer_id})).fetchone()
        if row is None:
            return None
        return Streamer(
            id=str(row.id),
            owner_user_id=str(row.user_id),
            slug=row.slug,
            is_live=bool(row.is_live),
        )

    async def list_live_streamer_ids(self, db: AsyncSession) -> list[str]:
        rows = (await db.execute(_LIST_LIVE_SQL)).fetchall()
        return [str(r.id) for r in rows]
