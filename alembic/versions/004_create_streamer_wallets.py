"""004: create streamer wallet and earnings tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE streamer_wallets (
            streamer_id         VARCHAR(64)     PRIMARY KEY REFERENCES streamers (id),
            available_value     BIGINT          NOT NULL DEFAULT 0,
            lifetime_value      BIGINT          NOT NULL DEFAULT 0,
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_wallet_available_gte_0 CHECK (available_value >= 0),
            CONSTRAINT ck_wallet_lifetime CHECK (lifetime_value >= available_value)
        );
    """)

    op.execute("""
        CREATE TABLE streamer_earnings_ledger (
            id              BIGSERIAL       PRIMARY KEY,
            streamer_id     VARCHAR(64)     NOT NULL REFERENCES streamers (id),
            tx_id           BIGINT          NOT NULL REFERENCES rubis_tx (id),
            from_user_id    VARCHAR(64)     NOT NULL,
            spent           BIGINT          NOT NULL,
            support_value   BIGINT          NOT NULL,
            streamer_share  BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_earnings_tx UNIQUE (tx_id)
        );
    """)
    op.execute(
        "CREATE INDEX idx_earnings_streamer ON streamer_earnings_ledger (streamer_id, id DESC);"
    )

    op.execute("""
        CREATE TABLE cashout_requests (
            id              BIGSERIAL       PRIMARY KEY,
            streamer_id     VARCHAR(64)     NOT NULL REFERENCES streamers (id),
            requested_by    VARCHAR(64)     NOT NULL,
            value           BIGINT          NOT NULL,
            amount          BIGINT          NOT NULL,
            tx_id           BIGINT          NOT NULL REFERENCES rubis_tx (id),
            status          VARCHAR(16)     NOT NULL DEFAULT 'pending',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_cashout_value_gt_0 CHECK (value > 0),
            CONSTRAINT ck_cashout_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_cashout_status CHECK (status IN ('pending', 'approved', 'rejected', 'paid'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_cashout_requests_updated_at
            BEFORE UPDATE ON cashout_requests
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS cashout_requests CASCADE;")
    op.execute("DROP TABLE IF EXISTS streamer_earnings_ledger CASCADE;")
    op.execute("DROP TABLE IF EXISTS streamer_wallets CASCADE;")
