"""006: create bonus tables

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE daily_bonus_claims (
            user_id         VARCHAR(64)     NOT NULL REFERENCES users (id),
            day             DATE            NOT NULL,
            reward          JSONB           NOT NULL DEFAULT '{}'::jsonb,
            claimed_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, day)
        );
    """)

    op.execute("""
        CREATE TABLE monthly_bonus_rewards (
            user_id         VARCHAR(64)     NOT NULL REFERENCES users (id),
            month_start     DATE            NOT NULL,
            milestone       INTEGER         NOT NULL,
            granted         JSONB           NOT NULL DEFAULT '[]'::jsonb,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, month_start, milestone),
            CONSTRAINT ck_monthly_milestone CHECK (milestone IN (5, 10, 20, 30))
        );
    """)

    op.execute("""
        CREATE TABLE user_tokens (
            user_id         VARCHAR(64)     NOT NULL REFERENCES users (id),
            token           VARCHAR(64)     NOT NULL,
            amount          BIGINT          NOT NULL DEFAULT 0,
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, token),
            CONSTRAINT ck_user_tokens_amount_gte_0 CHECK (amount >= 0)
        );
    """)

    op.execute("""
        CREATE TABLE user_entitlements (
            user_id         VARCHAR(64)     NOT NULL REFERENCES users (id),
            kind            VARCHAR(32)     NOT NULL,
            code            VARCHAR(64)     NOT NULL,
            source          VARCHAR(64)     NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, kind, code)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_entitlements CASCADE;")
    op.execute("DROP TABLE IF EXISTS user_tokens CASCADE;")
    op.execute("DROP TABLE IF EXISTS monthly_bonus_rewards CASCADE;")
    op.execute("DROP TABLE IF EXISTS daily_bonus_claims CASCADE;")
