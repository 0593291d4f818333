"""Streamer lookup and management rights, shared by ledger and chest services."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.errors import ForbiddenError, StreamerNotFoundError
from src.rb_streamer.domain.models import Streamer
from src.rb_streamer.domain.repository import StreamerDirectoryProtocol


async def get_streamer_or_raise(
    directory: StreamerDirectoryProtocol, db: AsyncSession, streamer_id: str
) -> Streamer:
    streamer = await directory.get_streamer(db, streamer_id)
    if streamer is None:
        raise StreamerNotFoundError(streamer_id)
    return streamer


def ensure_can_manage(streamer: Streamer, user_id: str, is_admin: bool) -> None:
    """Only the owning user or an admin may manage a streamer's wallet and chest."""
    if not is_admin and not streamer.is_owned_by(user_id):
        raise ForbiddenError(f"Not allowed to manage streamer {streamer.id}")
