"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

Locking reads use SELECT ... FOR UPDATE; the user row is always locked before the
user's lots so concurrent mint/spend on one user serialize in the same order.

Transaction ownership: the CALLER (LedgerEngine via an application service) is
responsible for committing or rolling back.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.enums import LotOrder
from src.rb_common.errors import InternalError
from src.rb_ledger.domain.models import (
    Allocation,
    EarningsRow,
    Entry,
    LockedBalance,
    Lot,
    NewTransaction,
    StreamerWallet,
    Transaction,
    WalletSummary,
)

# ---------------------------------------------------------------------------
# SQL: locking reads
# ---------------------------------------------------------------------------

_LOCK_USER_SQL = text("""
    SELECT rubis
    FROM users
    WHERE id = :user_id
    FOR UPDATE
""")

_LOT_COLUMNS = "id, user_id, origin, weight_bp, amount_total, amount_remaining, created_at, meta"

_LOCK_LOTS_HIGHEST_FIRST_SQL = text(f"""
    SELECT {_LOT_COLUMNS}
    FROM rubis_lots
    WHERE user_id = :user_id AND amount_remaining > 0
    ORDER BY weight_bp DESC, created_at ASC, id ASC
    FOR UPDATE
""")

_LOCK_LOTS_LOWEST_FIRST_SQL = text(f"""
    SELECT {_LOT_COLUMNS}
    FROM rubis_lots
    WHERE user_id = :user_id AND amount_remaining > 0
    ORDER BY weight_bp ASC, created_at ASC, id ASC
    FOR UPDATE
""")

_LOCK_WALLET_SQL = text("""
    SELECT streamer_id, available_value, lifetime_value, updated_at
    FROM streamer_wallets
    WHERE streamer_id = :streamer_id
    FOR UPDATE
""")

# ---------------------------------------------------------------------------
# SQL: mutations
# ---------------------------------------------------------------------------

_INSERT_LOT_SQL = text(f"""
    INSERT INTO rubis_lots (user_id, origin, weight_bp, amount_total, amount_remaining, meta)
    VALUES (:user_id, :origin, :weight_bp, :amount, :amount, CAST(:meta AS JSONB))
    RETURNING {_LOT_COLUMNS}
""")

_CONSUME_LOT_SQL = text("""
    UPDATE rubis_lots
    SET amount_remaining = amount_remaining - :amount
    WHERE id = :lot_id AND amount_remaining >= :amount
    RETURNING id
""")

_ADJUST_BALANCE_SQL = text("""
    UPDATE users
    SET rubis = rubis + :delta
    WHERE id = :user_id
    RETURNING rubis
""")

_INSERT_TX_SQL = text("""
    INSERT INTO rubis_tx
        (kind, purpose, status, from_user_id, to_user_id, streamer_id, amount,
         support_value, beneficiary_share, platform_share, burn_share, meta)
    VALUES
        (:kind, :purpose, :status, :from_user_id, :to_user_id, :streamer_id, :amount,
         :support_value, :beneficiary_share, :platform_share, :burn_share, CAST(:meta AS JSONB))
    RETURNING id
""")

_INSERT_TX_LOT_SQL = text("""
    INSERT INTO rubis_tx_lots (tx_id, lot_id, origin, weight_bp, amount)
    VALUES (:tx_id, :lot_id, :origin, :weight_bp, :amount)
""")

_INSERT_ENTRY_SQL = text("""
    INSERT INTO rubis_tx_entries (tx_id, entity, user_id, streamer_id, delta)
    VALUES (:tx_id, :entity, :user_id, :streamer_id, :delta)
""")

_CREDIT_WALLET_SQL = text("""
    INSERT INTO streamer_wallets (streamer_id, available_value, lifetime_value)
    VALUES (:streamer_id, :value, :value)
    ON CONFLICT (streamer_id) DO UPDATE
        SET available_value = streamer_wallets.available_value + EXCLUDED.available_value,
            lifetime_value  = streamer_wallets.lifetime_value + EXCLUDED.lifetime_value,
            updated_at = NOW()
    RETURNING streamer_id, available_value, lifetime_value, updated_at
""")

_DEBIT_WALLET_SQL = text("""
    UPDATE streamer_wallets
    SET available_value = available_value - :value,
        updated_at = NOW()
    WHERE streamer_id = :streamer_id AND available_value >= :value
    RETURNING streamer_id, available_value, lifetime_value, updated_at
""")

_INSERT_EARNINGS_SQL = text("""
    INSERT INTO streamer_earnings_ledger
        (streamer_id, tx_id, from_user_id, spent, support_value, streamer_share)
    VALUES
        (:streamer_id, :tx_id, :from_user_id, :spent, :support_value, :streamer_share)
""")

_INSERT_CASHOUT_SQL = text("""
    INSERT INTO cashout_requests (streamer_id, requested_by, value, amount, tx_id, status)
    VALUES (:streamer_id, :requested_by, :value, :amount, :tx_id, 'pending')
    RETURNING id
""")

# ---------------------------------------------------------------------------
# SQL: unlocked reads
# ---------------------------------------------------------------------------

_GET_BALANCE_SQL = text("SELECT rubis FROM users WHERE id = :user_id")

_BREAKDOWN_SQL = text("""
    SELECT origin, weight_bp, SUM(amount_remaining) AS amount
    FROM rubis_lots
    WHERE user_id = :user_id AND amount_remaining > 0
    GROUP BY origin, weight_bp
""")

_LIST_TX_SQL = text("""
    SELECT id, kind, purpose, status, from_user_id, to_user_id, streamer_id, amount,
           support_value, beneficiary_share, platform_share, burn_share, meta, created_at
    FROM rubis_tx
    WHERE (from_user_id = :user_id OR to_user_id = :user_id)
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
    ORDER BY id DESC
    LIMIT :limit
""")

_GET_WALLET_SQL = text("""
    SELECT streamer_id, available_value, lifetime_value, updated_at
    FROM streamer_wallets
    WHERE streamer_id = :streamer_id
""")

_LIST_EARNINGS_SQL = text("""
    SELECT id, streamer_id, tx_id, from_user_id, spent, support_value, streamer_share, created_at
    FROM streamer_earnings_ledger
    WHERE streamer_id = :streamer_id
    ORDER BY id DESC
    LIMIT :limit
""")


def _load_json(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


def _row_to_lot(row: Any) -> Lot:
    return Lot(
        id=row.id,
        owner_id=str(row.user_id),
        origin=row.origin,
        weight_bp=row.weight_bp,
        amount_total=row.amount_total,
        amount_remaining=row.amount_remaining,
        created_at=row.created_at,
        meta=_load_json(row.meta),
    )


def _row_to_wallet(row: Any) -> StreamerWallet:
    return StreamerWallet(
        streamer_id=str(row.streamer_id),
        available_value=row.available_value,
        lifetime_value=row.lifetime_value,
        updated_at=row.updated_at,
    )


def _row_to_tx(row: Any) -> Transaction:
    return Transaction(
        id=row.id,
        kind=row.kind,
        purpose=row.purpose,
        amount=row.amount,
        from_user=row.from_user_id,
        to_user=row.to_user_id,
        streamer_id=row.streamer_id,
        support_value=row.support_value,
        beneficiary_share=row.beneficiary_share,
        platform_share=row.platform_share,
        burn_share=row.burn_share,
        status=row.status,
        meta=_load_json(row.meta),
        created_at=row.created_at,
    )


class LedgerRepository:
    async def lock_user(self, db: AsyncSession, user_id: str) -> int | None:
        row = (await db.execute(_LOCK_USER_SQL, {"user_id": user_id})).fetchone()
        return None if row is None else int(row.rubis)

    async def get_locked_balance(
        self, db: AsyncSession, user_id: str, order: LotOrder
    ) -> LockedBalance | None:
        cached = await self.lock_user(db, user_id)
        if cached is None:
            return None
        sql = (
            _LOCK_LOTS_HIGHEST_FIRST_SQL
            if order is LotOrder.HIGHEST_WEIGHT_FIRST
            else _LOCK_LOTS_LOWEST_FIRST_SQL
        )
        rows = (await db.execute(sql, {"user_id": user_id})).fetchall()
        return LockedBalance(user_id=user_id, cached_total=cached, lots=[_row_to_lot(r) for r in rows])

    async def lock_streamer_wallet(
        self, db: AsyncSession, streamer_id: str
    ) -> StreamerWallet | None:
        row = (await db.execute(_LOCK_WALLET_SQL, {"streamer_id": streamer_id})).fetchone()
        return None if row is None else _row_to_wallet(row)

    async def insert_lot(
        self,
        db: AsyncSession,
        user_id: str,
        origin: str,
        weight_bp: int,
        amount: int,
        meta: dict[str, Any],
    ) -> Lot:
        result = await db.execute(
            _INSERT_LOT_SQL,
            {
                "user_id": user_id,
                "origin": origin,
                "weight_bp": weight_bp,
                "amount": amount,
                "meta": json.dumps(meta, default=str),
            },
        )
        return _row_to_lot(result.fetchone())

    async def consume_lots(self, db: AsyncSession, allocations: list[Allocation]) -> None:
        for a in allocations:
            result = await db.execute(_CONSUME_LOT_SQL, {"lot_id": a.lot_id, "amount": a.amount})
            if result.fetchone() is None:
                # Lots were locked and checked by the allocator; this means lost lock discipline.
                raise InternalError(f"Lot {a.lot_id} could not cover {a.amount} rubis")

    async def adjust_cached_balance(self, db: AsyncSession, user_id: str, delta: int) -> int:
        row = (await db.execute(_ADJUST_BALANCE_SQL, {"user_id": user_id, "delta": delta})).fetchone()
        if row is None:
            raise InternalError(f"Balance row vanished for user {user_id}")
        return int(row.rubis)

    async def insert_transaction(self, db: AsyncSession, tx: NewTransaction) -> int:
        result = await db.execute(
            _INSERT_TX_SQL,
            {
                "kind": tx.kind.value,
                "purpose": tx.purpose,
                "status": tx.status.value,
                "from_user_id": tx.from_user,
                "to_user_id": tx.to_user,
                "streamer_id": tx.streamer_id,
                "amount": tx.amount,
                "support_value": tx.support_value,
                "beneficiary_share": tx.beneficiary_share,
                "platform_share": tx.platform_share,
                "burn_share": tx.burn_share,
                "meta": json.dumps(tx.meta, default=str),
            },
        )
        return int(result.scalar_one())

    async def insert_tx_lots(
        self, db: AsyncSession, tx_id: int, allocations: list[Allocation]
    ) -> None:
        if not allocations:
            return
        await db.execute(
            _INSERT_TX_LOT_SQL,
            [
                {
                    "tx_id": tx_id,
                    "lot_id": a.lot_id,
                    "origin": a.origin,
                    "weight_bp": a.weight_bp,
                    "amount": a.amount,
                }
                for a in allocations
            ],
        )

    async def insert_entries(self, db: AsyncSession, tx_id: int, entries: list[Entry]) -> None:
        if sum(e.delta for e in entries) != 0:
            raise InternalError(f"Unbalanced entries for tx {tx_id}")
        await db.execute(
            _INSERT_ENTRY_SQL,
            [
                {
                    "tx_id": tx_id,
                    "entity": e.entity.value,
                    "user_id": e.user_id,
                    "streamer_id": e.streamer_id,
                    "delta": e.delta,
                }
                for e in entries
            ],
        )

    async def credit_streamer_wallet(
        self, db: AsyncSession, streamer_id: str, value: int
    ) -> StreamerWallet:
        result = await db.execute(_CREDIT_WALLET_SQL, {"streamer_id": streamer_id, "value": value})
        return _row_to_wallet(result.fetchone())

    async def debit_streamer_wallet(
        self, db: AsyncSession, streamer_id: str, value: int
    ) -> StreamerWallet:
        result = await db.execute(_DEBIT_WALLET_SQL, {"streamer_id": streamer_id, "value": value})
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Wallet of streamer {streamer_id} could not cover {value}")
        return _row_to_wallet(row)

    async def insert_earnings(
        self,
        db: AsyncSession,
        streamer_id: str,
        tx_id: int,
        from_user: str,
        spent: int,
        support_value: int,
        streamer_share: int,
    ) -> None:
        await db.execute(
            _INSERT_EARNINGS_SQL,
            {
                "streamer_id": streamer_id,
                "tx_id": tx_id,
                "from_user_id": from_user,
                "spent": spent,
                "support_value": support_value,
                "streamer_share": streamer_share,
            },
        )

    async def insert_cashout_request(
        self,
        db: AsyncSession,
        streamer_id: str,
        requested_by: str,
        value: int,
        amount: int,
        tx_id: int,
    ) -> int:
        result = await db.execute(
            _INSERT_CASHOUT_SQL,
            {
                "streamer_id": streamer_id,
                "requested_by": requested_by,
                "value": value,
                "amount": amount,
                "tx_id": tx_id,
            },
        )
        return int(result.scalar_one())

    async def get_wallet_summary(self, db: AsyncSession, user_id: str) -> WalletSummary | None:
        row = (await db.execute(_GET_BALANCE_SQL, {"user_id": user_id})).fetchone()
        if row is None:
            return None
        by_origin: dict[str, int] = {}
        by_weight: dict[int, int] = {}
        for r in (await db.execute(_BREAKDOWN_SQL, {"user_id": user_id})).fetchall():
            amount = int(r.amount)
            by_origin[r.origin] = by_origin.get(r.origin, 0) + amount
            by_weight[r.weight_bp] = by_weight.get(r.weight_bp, 0) + amount
        return WalletSummary(
            user_id=user_id,
            cached_total=int(row.rubis),
            by_origin=by_origin,
            by_weight=by_weight,
        )

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[Transaction]:
        rows = (
            await db.execute(
                _LIST_TX_SQL, {"user_id": user_id, "cursor_id": cursor_id, "limit": limit}
            )
        ).fetchall()
        return [_row_to_tx(r) for r in rows]

    async def get_streamer_wallet(
        self, db: AsyncSession, streamer_id: str
    ) -> StreamerWallet | None:
        row = (await db.execute(_GET_WALLET_SQL, {"streamer_id": streamer_id})).fetchone()
        return None if row is None else _row_to_wallet(row)

    async def list_earnings(
        self, db: AsyncSession, streamer_id: str, limit: int
    ) -> list[EarningsRow]:
        rows = (
            await db.execute(_LIST_EARNINGS_SQL, {"streamer_id": streamer_id, "limit": limit})
        ).fetchall()
        return [
            EarningsRow(
                id=r.id,
                streamer_id=str(r.streamer_id),
                tx_id=r.tx_id,
                from_user=str(r.from_user_id),
                spent=r.spent,
                support_value=r.support_value,
                streamer_share=r.streamer_share,
                created_at=r.created_at,
            )
            for r in rows
        ]
