"""007: create prediction market tables

Revision ID: 007
Revises: 006
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE prediction_markets (
            id              BIGSERIAL       PRIMARY KEY,
            pm_market_id    VARCHAR(128)    NOT NULL,
            question        TEXT            NOT NULL,
            status          VARCHAR(16)     NOT NULL DEFAULT 'active',
            yes_token_id    VARCHAR(128),
            no_token_id     VARCHAR(128),
            end_date        TIMESTAMPTZ,
            metadata        JSONB           NOT NULL DEFAULT '{}'::jsonb,
            resolution      VARCHAR(16),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_prediction_markets_pm_id UNIQUE (pm_market_id),
            CONSTRAINT ck_prediction_markets_status CHECK (status IN ('active', 'paused', 'resolved')),
            CONSTRAINT ck_prediction_markets_resolution CHECK (
                resolution IS NULL OR resolution IN ('yes', 'no', 'invalid')
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_prediction_markets_updated_at
            BEFORE UPDATE ON prediction_markets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE prediction_quotes (
            id              BIGSERIAL       PRIMARY KEY,
            market_id       BIGINT          NOT NULL REFERENCES prediction_markets(id) ON DELETE CASCADE,
            yes_bid         NUMERIC(10, 6)  NOT NULL,
            yes_ask         NUMERIC(10, 6)  NOT NULL,
            no_bid          NUMERIC(10, 6)  NOT NULL,
            no_ask          NUMERIC(10, 6)  NOT NULL,
            src_timestamp   TIMESTAMPTZ     NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_prediction_quotes_market_ts ON prediction_quotes (market_id, created_at DESC);")

    op.execute("""
        CREATE TABLE prediction_positions (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            market_id       BIGINT          NOT NULL REFERENCES prediction_markets(id) ON DELETE CASCADE,
            side            VARCHAR(3)      NOT NULL,
            quantity        NUMERIC(20, 6)  NOT NULL DEFAULT 0,
            avg_price       NUMERIC(10, 6)  NOT NULL DEFAULT 0,
            realized_pnl    NUMERIC(20, 6)  NOT NULL DEFAULT 0,
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_prediction_positions UNIQUE (user_id, market_id, side),
            CONSTRAINT ck_prediction_positions_side CHECK (side IN ('yes', 'no')),
            CONSTRAINT ck_prediction_positions_qty_gte_0 CHECK (quantity >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_prediction_positions_updated_at
            BEFORE UPDATE ON prediction_positions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE prediction_orders (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            market_id       BIGINT          NOT NULL REFERENCES prediction_markets(id) ON DELETE CASCADE,
            side            VARCHAR(3)      NOT NULL,
            action          VARCHAR(4)      NOT NULL,
            quantity        NUMERIC(20, 6)  NOT NULL,
            exec_price      NUMERIC(10, 6)  NOT NULL,
            cost_agon       NUMERIC(20, 6)  NOT NULL,
            fee_agon        NUMERIC(20, 6)  NOT NULL DEFAULT 0,
            status          VARCHAR(16)     NOT NULL DEFAULT 'filled',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_prediction_orders_action CHECK (action IN ('buy', 'sell'))
        );
    """)
    op.execute("""
        CREATE TABLE prediction_trades (
            id              BIGSERIAL       PRIMARY KEY,
            order_id        BIGINT          NOT NULL REFERENCES prediction_orders(id) ON DELETE CASCADE,
            user_id         UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            market_id       BIGINT          NOT NULL REFERENCES prediction_markets(id) ON DELETE CASCADE,
            side            VARCHAR(3)      NOT NULL,
            quantity        NUMERIC(20, 6)  NOT NULL,
            exec_price      NUMERIC(10, 6)  NOT NULL,
            cost_agon       NUMERIC(20, 6)  NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_prediction_trades_user ON prediction_trades (user_id, created_at DESC);")

    op.execute("""
        CREATE TABLE prediction_settlements (
            id                  BIGSERIAL       PRIMARY KEY,
            market_id           BIGINT          NOT NULL REFERENCES prediction_markets(id) ON DELETE CASCADE,
            resolved_outcome    VARCHAR(16)     NOT NULL,
            settled_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_prediction_settlements_market UNIQUE (market_id)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS prediction_settlements CASCADE;")
    op.execute("DROP TABLE IF EXISTS prediction_trades CASCADE;")
    op.execute("DROP TABLE IF EXISTS prediction_orders CASCADE;")
    op.execute("DROP TABLE IF EXISTS prediction_positions CASCADE;")
    op.execute("DROP TABLE IF EXISTS prediction_quotes CASCADE;")
    op.execute("DROP TABLE IF EXISTS prediction_markets CASCADE;")
