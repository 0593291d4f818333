"""005: create streamer chest tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE streamer_chests (
            streamer_id     VARCHAR(64)     PRIMARY KEY REFERENCES streamers (id),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)

    op.execute("""
        CREATE TABLE streamer_chest_lots (
            id                  BIGSERIAL       PRIMARY KEY,
            streamer_id         VARCHAR(64)     NOT NULL REFERENCES streamer_chests (streamer_id),
            origin              VARCHAR(64)     NOT NULL,
            weight_bp           INTEGER         NOT NULL,
            amount_total        BIGINT          NOT NULL,
            amount_remaining    BIGINT          NOT NULL,
            meta                JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_chest_lots_weight CHECK (weight_bp BETWEEN 0 AND 10000),
            CONSTRAINT ck_chest_lots_total_gt_0 CHECK (amount_total > 0),
            CONSTRAINT ck_chest_lots_remaining CHECK (amount_remaining BETWEEN 0 AND amount_total)
        );
    """)
    op.execute("""
        CREATE INDEX idx_chest_lots_open
        ON streamer_chest_lots (streamer_id, weight_bp DESC, created_at, id)
        WHERE amount_remaining > 0;
    """)

    op.execute("""
        CREATE TABLE streamer_chest_openings (
            id                  BIGSERIAL       PRIMARY KEY,
            streamer_id         VARCHAR(64)     NOT NULL REFERENCES streamer_chests (streamer_id),
            created_by          VARCHAR(64),
            status              VARCHAR(16)     NOT NULL DEFAULT 'open',
            opens_at            TIMESTAMPTZ     NOT NULL,
            closes_at           TIMESTAMPTZ     NOT NULL,
            min_watch_minutes   INTEGER         NOT NULL,
            closed_at           TIMESTAMPTZ,
            closed_by           VARCHAR(64),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_openings_status CHECK (status IN ('open', 'closed', 'canceled')),
            CONSTRAINT ck_openings_window CHECK (closes_at > opens_at),
            CONSTRAINT ck_openings_min_watch CHECK (min_watch_minutes >= 1)
        );
    """)
    # At most one open opening per streamer.
    op.execute("""
        CREATE UNIQUE INDEX uq_chest_openings_one_open
        ON streamer_chest_openings (streamer_id)
        WHERE status = 'open';
    """)
    op.execute("""
        CREATE INDEX idx_chest_openings_due
        ON streamer_chest_openings (closes_at, id)
        WHERE status = 'open';
    """)

    op.execute("""
        CREATE TABLE streamer_chest_participants (
            opening_id      BIGINT          NOT NULL REFERENCES streamer_chest_openings (id),
            user_id         VARCHAR(64)     NOT NULL,
            joined_at       TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (opening_id, user_id)
        );
    """)

    op.execute("""
        CREATE TABLE streamer_chest_payouts (
            id              BIGSERIAL       PRIMARY KEY,
            opening_id      BIGINT          NOT NULL REFERENCES streamer_chest_openings (id),
            user_id         VARCHAR(64)     NOT NULL,
            amount          BIGINT          NOT NULL,
            minted          JSONB           NOT NULL DEFAULT '{}'::jsonb,
            breakdown       JSONB           NOT NULL DEFAULT '{}'::jsonb,
            tx_id           BIGINT          NOT NULL REFERENCES rubis_tx (id),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_chest_payouts_user UNIQUE (opening_id, user_id),
            CONSTRAINT ck_chest_payouts_amount_gt_0 CHECK (amount > 0)
        );
    """)

    op.execute("""
        CREATE TABLE streamer_chest_auto_state (
            streamer_id     VARCHAR(64)     PRIMARY KEY REFERENCES streamers (id),
            last_bucket_ts  TIMESTAMPTZ     NOT NULL,
            carry_minutes   INTEGER         NOT NULL DEFAULT 0,
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_auto_state_carry_gte_0 CHECK (carry_minutes >= 0)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS streamer_chest_auto_state CASCADE;")
    op.execute("DROP TABLE IF EXISTS streamer_chest_payouts CASCADE;")
    op.execute("DROP TABLE IF EXISTS streamer_chest_participants CASCADE;")
    op.execute("DROP TABLE IF EXISTS streamer_chest_openings CASCADE;")
    op.execute("DROP TABLE IF EXISTS streamer_chest_lots CASCADE;")
    op.execute("DROP TABLE IF EXISTS streamer_chests CASCADE;")
