"""Ledger audit checks: conservation and double-entry balance.

Each check returns a list of violation strings (empty = healthy) and logs every
violation at ERROR. Intended for admin tooling and post-deploy sanity runs, not
for the request path.
"""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_USER_CONSERVATION_SQL = text("""
    SELECT u.id AS user_id, u.rubis AS cached, COALESCE(SUM(l.amount_remaining), 0) AS lots
    FROM users u
    LEFT JOIN rubis_lots l ON l.user_id = u.id
    WHERE (CAST(:user_id AS VARCHAR) IS NULL OR u.id = CAST(:user_id AS VARCHAR))
    GROUP BY u.id, u.rubis
    HAVING u.rubis <> COALESCE(SUM(l.amount_remaining), 0)
""")

_LOT_BOUNDS_SQL = text("""
    SELECT id, amount_total, amount_remaining
    FROM rubis_lots
    WHERE amount_remaining < 0 OR amount_remaining > amount_total
""")

_UNBALANCED_TX_SQL = text("""
    SELECT tx_id, SUM(delta) AS total
    FROM rubis_tx_entries
    WHERE (CAST(:tx_id AS BIGINT) IS NULL OR tx_id = CAST(:tx_id AS BIGINT))
    GROUP BY tx_id
    HAVING SUM(delta) <> 0
""")


async def verify_conservation(db: AsyncSession, user_id: str | None = None) -> list[str]:
    """cached balance == sum(lot.amount_remaining), per user (all users if None)."""
    violations: list[str] = []
    for row in (await db.execute(_USER_CONSERVATION_SQL, {"user_id": user_id})).fetchall():
        violations.append(
            f"Conservation violated for user {row.user_id}: cached={row.cached} lots={row.lots}"
        )
    for row in (await db.execute(_LOT_BOUNDS_SQL)).fetchall():
        violations.append(
            f"Lot {row.id} out of bounds: remaining={row.amount_remaining} total={row.amount_total}"
        )
    for msg in violations:
        logger.error(msg)
    return violations


async def verify_entries_balanced(db: AsyncSession, tx_id: int | None = None) -> list[str]:
    """Sum of entry deltas is zero, per transaction (all transactions if None)."""
    violations = [
        f"Entries of tx {row.tx_id} sum to {row.total}, expected 0"
        for row in (await db.execute(_UNBALANCED_TX_SQL, {"tx_id": tx_id})).fetchall()
    ]
    for msg in violations:
        logger.error(msg)
    return violations
