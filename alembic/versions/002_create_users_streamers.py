"""002: create users, streamers and viewer minutes

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # users / streamers are owned by the account and streamer services; the ledger
    # only needs the id, the cached balance and the live flag.
    op.execute("""
        CREATE TABLE users (
            id              VARCHAR(64)     PRIMARY KEY,
            rubis           BIGINT          NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_users_rubis_gte_0 CHECK (rubis >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE users IS 'Users — rubis is a cache of SUM(rubis_lots.amount_remaining)';")

    op.execute("""
        CREATE TABLE streamers (
            id              VARCHAR(64)     PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL REFERENCES users (id),
            slug            VARCHAR(64)     NOT NULL,
            is_live         BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_streamers_slug UNIQUE (slug)
        );
    """)
    op.execute("CREATE INDEX idx_streamers_live ON streamers (is_live) WHERE is_live;")
    op.execute("""
        CREATE TRIGGER trg_streamers_updated_at
            BEFORE UPDATE ON streamers
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE stream_viewer_minutes (
            id              BIGSERIAL       PRIMARY KEY,
            streamer_id     VARCHAR(64)     NOT NULL REFERENCES streamers (id),
            viewer_key      VARCHAR(128)    NOT NULL,
            bucket_ts       TIMESTAMPTZ     NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_viewer_minute UNIQUE (streamer_id, viewer_key, bucket_ts)
        );
    """)
    op.execute(
        "CREATE INDEX idx_viewer_minutes_streamer_ts ON stream_viewer_minutes (streamer_id, bucket_ts);"
    )
    op.execute("COMMENT ON TABLE stream_viewer_minutes IS 'One row per (viewer, minute) of presence';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS stream_viewer_minutes CASCADE;")
    op.execute("DROP TABLE IF EXISTS streamers CASCADE;")
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
