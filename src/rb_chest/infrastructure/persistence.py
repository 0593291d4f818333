"""ChestRepository — concrete implementation of ChestRepositoryProtocol (raw SQL)."""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.errors import ChestAlreadyOpenError, InternalError
from src.rb_ledger.domain.models import Allocation
from src.rb_chest.domain.models import (
    AutoMintState,
    ChestLot,
    ChestOpening,
    ChestPayout,
    ChestSummary,
    Participant,
)

_LOT_COLUMNS = (
    "id, streamer_id, origin, weight_bp, amount_total, amount_remaining, created_at, meta"
)
_OPENING_COLUMNS = (
    "id, streamer_id, created_by, status, opens_at, closes_at, "
    "min_watch_minutes, closed_at, closed_by"
)

# ---------------------------------------------------------------------------
# SQL: chest & lots
# ---------------------------------------------------------------------------

_ENSURE_CHEST_SQL = text("""
    INSERT INTO streamer_chests (streamer_id)
    VALUES (:streamer_id)
    ON CONFLICT (streamer_id) DO NOTHING
""")

_INSERT_LOT_SQL = text(f"""
    INSERT INTO streamer_chest_lots
        (streamer_id, origin, weight_bp, amount_total, amount_remaining, meta)
    VALUES
        (:streamer_id, :origin, :weight_bp, :amount, :amount, CAST(:meta AS JSONB))
    RETURNING {_LOT_COLUMNS}
""")

_LOCK_LOTS_SQL = text(f"""
    SELECT {_LOT_COLUMNS}
    FROM streamer_chest_lots
    WHERE streamer_id = :streamer_id AND amount_remaining > 0
    ORDER BY weight_bp DESC, created_at ASC, id ASC
    FOR UPDATE
""")

_CONSUME_LOT_SQL = text("""
    UPDATE streamer_chest_lots
    SET amount_remaining = amount_remaining - :amount
    WHERE id = :lot_id AND amount_remaining >= :amount
    RETURNING id
""")

_CHEST_BREAKDOWN_SQL = text("""
    SELECT weight_bp, SUM(amount_remaining) AS amount
    FROM streamer_chest_lots
    WHERE streamer_id = :streamer_id AND amount_remaining > 0
    GROUP BY weight_bp
    ORDER BY weight_bp DESC
""")

# ---------------------------------------------------------------------------
# SQL: openings
# ---------------------------------------------------------------------------

_GET_OPEN_OPENING_SQL = text(f"""
    SELECT {_OPENING_COLUMNS}
    FROM streamer_chest_openings
    WHERE streamer_id = :streamer_id AND status = 'open'
""")

_INSERT_OPENING_SQL = text(f"""
    INSERT INTO streamer_chest_openings
        (streamer_id, created_by, status, opens_at, closes_at, min_watch_minutes)
    VALUES
        (:streamer_id, :created_by, 'open', :opens_at, :closes_at, :min_watch_minutes)
    RETURNING {_OPENING_COLUMNS}
""")

_LOCK_OPENING_SQL = text(f"""
    SELECT {_OPENING_COLUMNS}
    FROM streamer_chest_openings
    WHERE id = :opening_id
    FOR UPDATE
""")

_TRANSITION_OPENING_SQL = text("""
    UPDATE streamer_chest_openings
    SET status = :status,
        closed_at = :closed_at,
        closed_by = :closed_by
    WHERE id = :opening_id AND status = 'open'
    RETURNING id
""")

_LIST_DUE_SQL = text("""
    SELECT id
    FROM streamer_chest_openings
    WHERE status = 'open' AND closes_at <= :now
    ORDER BY closes_at ASC, id ASC
    LIMIT :limit
""")

_COUNT_PARTICIPANTS_SQL = text("""
    SELECT COUNT(*) FROM streamer_chest_participants WHERE opening_id = :opening_id
""")

# ---------------------------------------------------------------------------
# SQL: participants & payouts
# ---------------------------------------------------------------------------

_INSERT_PARTICIPANT_SQL = text("""
    INSERT INTO streamer_chest_participants (opening_id, user_id)
    VALUES (:opening_id, :user_id)
    ON CONFLICT (opening_id, user_id) DO NOTHING
    RETURNING user_id
""")

_LIST_PARTICIPANTS_SQL = text("""
    SELECT opening_id, user_id, joined_at
    FROM streamer_chest_participants
    WHERE opening_id = :opening_id
    ORDER BY joined_at ASC, user_id ASC
""")

_INSERT_PAYOUT_SQL = text("""
    INSERT INTO streamer_chest_payouts (opening_id, user_id, amount, minted, breakdown, tx_id)
    VALUES (:opening_id, :user_id, :amount, CAST(:minted AS JSONB), CAST(:breakdown AS JSONB), :tx_id)
""")

_LIST_PAYOUTS_SQL = text("""
    SELECT opening_id, user_id, amount, minted, breakdown, tx_id
    FROM streamer_chest_payouts
    WHERE opening_id = :opening_id
    ORDER BY id ASC
""")

# ---------------------------------------------------------------------------
# SQL: auto-mint watermark
# ---------------------------------------------------------------------------

_LOCK_AUTO_STATE_SQL = text("""
    SELECT streamer_id, last_bucket_ts, carry_minutes
    FROM streamer_chest_auto_state
    WHERE streamer_id = :streamer_id
    FOR UPDATE
""")

_INSERT_AUTO_STATE_SQL = text("""
    INSERT INTO streamer_chest_auto_state (streamer_id, last_bucket_ts, carry_minutes)
    VALUES (:streamer_id, :last_bucket_ts, 0)
    ON CONFLICT (streamer_id) DO NOTHING
""")

_UPDATE_AUTO_STATE_SQL = text("""
    UPDATE streamer_chest_auto_state
    SET last_bucket_ts = :last_bucket_ts,
        carry_minutes = :carry_minutes,
        updated_at = NOW()
    WHERE streamer_id = :streamer_id
""")

_COUNT_VIEWER_MINUTES_SQL = text("""
    SELECT COUNT(*) FROM (
        SELECT DISTINCT viewer_key, bucket_ts
        FROM stream_viewer_minutes
        WHERE streamer_id = :streamer_id
          AND bucket_ts > :after
          AND bucket_ts <= :upto
    ) AS minutes
""")


def _load_json(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


def _row_to_lot(row: Any) -> ChestLot:
    return ChestLot(
        id=row.id,
        streamer_id=str(row.streamer_id),
        origin=row.origin,
        weight_bp=row.weight_bp,
        amount_total=row.amount_total,
        amount_remaining=row.amount_remaining,
        created_at=row.created_at,
        meta=_load_json(row.meta),
    )


def _row_to_opening(row: Any) -> ChestOpening:
    return ChestOpening(
        id=row.id,
        streamer_id=str(row.streamer_id),
        created_by=row.created_by,
        status=row.status,
        opens_at=row.opens_at,
        closes_at=row.closes_at,
        min_watch_minutes=row.min_watch_minutes,
        closed_at=row.closed_at,
        closed_by=row.closed_by,
    )


def _row_to_payout(row: Any) -> ChestPayout:
    return ChestPayout(
        opening_id=row.opening_id,
        user_id=str(row.user_id),
        amount=row.amount,
        minted={str(k): int(v) for k, v in _load_json(row.minted).items()},
        breakdown={str(k): int(v) for k, v in _load_json(row.breakdown).items()},
        tx_id=row.tx_id,
    )


class ChestRepository:
    async def ensure_chest(self, db: AsyncSession, streamer_id: str) -> None:
        await db.execute(_ENSURE_CHEST_SQL, {"streamer_id": streamer_id})

    async def insert_chest_lot(
        self,
        db: AsyncSession,
        streamer_id: str,
        origin: str,
        weight_bp: int,
        amount: int,
        meta: dict[str, Any],
    ) -> ChestLot:
        result = await db.execute(
            _INSERT_LOT_SQL,
            {
                "streamer_id": streamer_id,
                "origin": origin,
                "weight_bp": weight_bp,
                "amount": amount,
                "meta": json.dumps(meta, default=str),
            },
        )
        return _row_to_lot(result.fetchone())

    async def lock_chest_lots(self, db: AsyncSession, streamer_id: str) -> list[ChestLot]:
        rows = (await db.execute(_LOCK_LOTS_SQL, {"streamer_id": streamer_id})).fetchall()
        return [_row_to_lot(r) for r in rows]

    async def consume_chest_lots(self, db: AsyncSession, allocations: list[Allocation]) -> None:
        for a in allocations:
            result = await db.execute(_CONSUME_LOT_SQL, {"lot_id": a.lot_id, "amount": a.amount})
            if result.fetchone() is None:
                raise InternalError(f"Chest lot {a.lot_id} could not cover {a.amount} rubis")

    async def get_chest_summary(self, db: AsyncSession, streamer_id: str) -> ChestSummary:
        rows = (await db.execute(_CHEST_BREAKDOWN_SQL, {"streamer_id": streamer_id})).fetchall()
        by_weight = {r.weight_bp: int(r.amount) for r in rows}
        opening = await self.get_open_opening(db, streamer_id)
        participants = 0
        if opening is not None:
            participants = int(
                (await db.execute(_COUNT_PARTICIPANTS_SQL, {"opening_id": opening.id})).scalar_one()
            )
        return ChestSummary(
            streamer_id=streamer_id,
            balance=sum(by_weight.values()),
            by_weight=by_weight,
            open_opening=opening,
            participants=participants,
        )

    async def get_open_opening(self, db: AsyncSession, streamer_id: str) -> ChestOpening | None:
        row = (await db.execute(_GET_OPEN_OPENING_SQL, {"streamer_id": streamer_id})).fetchone()
        return None if row is None else _row_to_opening(row)

    async def insert_opening(
        self,
        db: AsyncSession,
        streamer_id: str,
        created_by: str | None,
        opens_at: datetime,
        closes_at: datetime,
        min_watch_minutes: int,
    ) -> ChestOpening:
        try:
            result = await db.execute(
                _INSERT_OPENING_SQL,
                {
                    "streamer_id": streamer_id,
                    "created_by": created_by,
                    "opens_at": opens_at,
                    "closes_at": closes_at,
                    "min_watch_minutes": min_watch_minutes,
                },
            )
        except IntegrityError as exc:
            # uq_chest_openings_one_open: a concurrent open won the race
            raise ChestAlreadyOpenError(streamer_id) from exc
        return _row_to_opening(result.fetchone())

    async def lock_opening(self, db: AsyncSession, opening_id: int) -> ChestOpening | None:
        row = (await db.execute(_LOCK_OPENING_SQL, {"opening_id": opening_id})).fetchone()
        return None if row is None else _row_to_opening(row)

    async def transition_opening(
        self,
        db: AsyncSession,
        opening_id: int,
        status: str,
        closed_by: str | None,
        closed_at: datetime,
    ) -> bool:
        result = await db.execute(
            _TRANSITION_OPENING_SQL,
            {
                "opening_id": opening_id,
                "status": status,
                "closed_by": closed_by,
                "closed_at": closed_at,
            },
        )
        return result.fetchone() is not None

    async def list_due_openings(self, db: AsyncSession, now: datetime, limit: int) -> list[int]:
        rows = (await db.execute(_LIST_DUE_SQL, {"now": now, "limit": limit})).fetchall()
        return [r.id for r in rows]

    async def insert_participant(self, db: AsyncSession, opening_id: int, user_id: str) -> bool:
        result = await db.execute(
            _INSERT_PARTICIPANT_SQL, {"opening_id": opening_id, "user_id": user_id}
        )
        return result.fetchone() is not None

    async def list_participants(self, db: AsyncSession, opening_id: int) -> list[Participant]:
        rows = (await db.execute(_LIST_PARTICIPANTS_SQL, {"opening_id": opening_id})).fetchall()
        return [
            Participant(opening_id=r.opening_id, user_id=str(r.user_id), joined_at=r.joined_at)
            for r in rows
        ]

    async def insert_payout(self, db: AsyncSession, payout: ChestPayout) -> None:
        await db.execute(
            _INSERT_PAYOUT_SQL,
            {
                "opening_id": payout.opening_id,
                "user_id": payout.user_id,
                "amount": payout.amount,
                "minted": json.dumps(payout.minted),
                "breakdown": json.dumps(payout.breakdown),
                "tx_id": payout.tx_id,
            },
        )

    async def list_payouts(self, db: AsyncSession, opening_id: int) -> list[ChestPayout]:
        rows = (await db.execute(_LIST_PAYOUTS_SQL, {"opening_id": opening_id})).fetchall()
        return [_row_to_payout(r) for r in rows]

    async def lock_auto_state(self, db: AsyncSession, streamer_id: str) -> AutoMintState | None:
        row = (await db.execute(_LOCK_AUTO_STATE_SQL, {"streamer_id": streamer_id})).fetchone()
        if row is None:
            return None
        return AutoMintState(
            streamer_id=str(row.streamer_id),
            last_bucket_ts=row.last_bucket_ts,
            carry_minutes=row.carry_minutes,
        )

    async def insert_auto_state(
        self, db: AsyncSession, streamer_id: str, last_bucket_ts: datetime
    ) -> None:
        await db.execute(
            _INSERT_AUTO_STATE_SQL, {"streamer_id": streamer_id, "last_bucket_ts": last_bucket_ts}
        )

    async def update_auto_state(
        self, db: AsyncSession, streamer_id: str, last_bucket_ts: datetime, carry_minutes: int
    ) -> None:
        await db.execute(
            _UPDATE_AUTO_STATE_SQL,
            {
                "streamer_id": streamer_id,
                "last_bucket_ts": last_bucket_ts,
                "carry_minutes": carry_minutes,
            },
        )

    async def count_viewer_minutes(
        self, db: AsyncSession, streamer_id: str, after: datetime, upto: datetime
    ) -> int:
        result = await db.execute(
            _COUNT_VIEWER_MINUTES_SQL, {"streamer_id": streamer_id, "after": after, "upto": upto}
        )
        return int(result.scalar_one())
