"""Streamer identity as seen by the ledger. Owned by the streamer directory service."""

from dataclasses import dataclass


@dataclass
class Streamer:
    id: str
    owner_user_id: str
    slug: str
    is_live: bool = False

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_user_id == user_id
