"""003: create rubis ledger tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE rubis_lots (
            id                  BIGSERIAL       PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL REFERENCES users (id),
            origin              VARCHAR(64)     NOT NULL,
            weight_bp           INTEGER         NOT NULL,
            amount_total        BIGINT          NOT NULL,
            amount_remaining    BIGINT          NOT NULL,
            meta                JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_lots_weight CHECK (weight_bp BETWEEN 0 AND 10000),
            CONSTRAINT ck_lots_total_gt_0 CHECK (amount_total > 0),
            CONSTRAINT ck_lots_remaining CHECK (amount_remaining BETWEEN 0 AND amount_total)
        );
    """)
    op.execute("""
        CREATE INDEX idx_lots_user_open
        ON rubis_lots (user_id, weight_bp, created_at, id)
        WHERE amount_remaining > 0;
    """)

    op.execute("""
        CREATE TABLE rubis_tx (
            id                  BIGSERIAL       PRIMARY KEY,
            kind                VARCHAR(16)     NOT NULL,
            purpose             VARCHAR(64)     NOT NULL,
            status              VARCHAR(16)     NOT NULL DEFAULT 'completed',
            from_user_id        VARCHAR(64),
            to_user_id          VARCHAR(64),
            streamer_id         VARCHAR(64),
            amount              BIGINT          NOT NULL,
            support_value       BIGINT          NOT NULL DEFAULT 0,
            beneficiary_share   BIGINT          NOT NULL DEFAULT 0,
            platform_share      BIGINT          NOT NULL DEFAULT 0,
            burn_share          BIGINT          NOT NULL DEFAULT 0,
            meta                JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_tx_kind CHECK (kind IN ('mint', 'spend', 'adjust', 'transfer', 'cashout')),
            CONSTRAINT ck_tx_status CHECK (status IN ('completed', 'pending', 'failed')),
            CONSTRAINT ck_tx_amount_gt_0 CHECK (amount > 0)
        );
    """)
    op.execute("CREATE INDEX idx_tx_from_user ON rubis_tx (from_user_id, id DESC);")
    op.execute("CREATE INDEX idx_tx_to_user ON rubis_tx (to_user_id, id DESC);")
    op.execute("COMMENT ON TABLE rubis_tx IS 'Rubis transactions — append-only';")

    op.execute("""
        CREATE TABLE rubis_tx_lots (
            id              BIGSERIAL       PRIMARY KEY,
            tx_id           BIGINT          NOT NULL REFERENCES rubis_tx (id),
            lot_id          BIGINT          NOT NULL REFERENCES rubis_lots (id),
            origin          VARCHAR(64)     NOT NULL,
            weight_bp       INTEGER         NOT NULL,
            amount          BIGINT          NOT NULL,
            CONSTRAINT ck_tx_lots_amount_gt_0 CHECK (amount > 0)
        );
    """)
    op.execute("CREATE INDEX idx_tx_lots_tx ON rubis_tx_lots (tx_id);")

    op.execute("""
        CREATE TABLE rubis_tx_entries (
            id              BIGSERIAL       PRIMARY KEY,
            tx_id           BIGINT          NOT NULL REFERENCES rubis_tx (id),
            entity          VARCHAR(32)     NOT NULL,
            user_id         VARCHAR(64),
            streamer_id     VARCHAR(64),
            delta           BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_entries_entity CHECK (
                entity IN (
                    'user', 'platform_fee', 'platform_burn', 'platform_mint',
                    'streamer_wallet', 'chest', 'cashout'
                )
            )
        );
    """)
    op.execute("CREATE INDEX idx_entries_tx ON rubis_tx_entries (tx_id);")
    op.execute("COMMENT ON TABLE rubis_tx_entries IS 'Double-entry rows — deltas of one tx sum to 0';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS rubis_tx_entries CASCADE;")
    op.execute("DROP TABLE IF EXISTS rubis_tx_lots CASCADE;")
    op.execute("DROP TABLE IF EXISTS rubis_tx CASCADE;")
    op.execute("DROP TABLE IF EXISTS rubis_lots CASCADE;")
