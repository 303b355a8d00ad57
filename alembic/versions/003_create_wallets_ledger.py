"""003: create wallets, transactions, activity_logs

Revision ID: 003
Revises: 002
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallets (
            id                  BIGSERIAL       PRIMARY KEY,
            user_id             UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            agon                NUMERIC(20, 6)  NOT NULL DEFAULT 0,
            stoneworks_dollar   NUMERIC(20, 6)  NOT NULL DEFAULT 0,
            agon_escrow         NUMERIC(20, 6)  NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_wallets_user_id           UNIQUE (user_id),
            CONSTRAINT ck_wallets_agon_gte_0        CHECK (agon >= 0),
            CONSTRAINT ck_wallets_swd_gte_0         CHECK (stoneworks_dollar >= 0),
            CONSTRAINT ck_wallets_escrow_gte_0      CHECK (agon_escrow >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_wallets_updated_at
            BEFORE UPDATE ON wallets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE transactions (
            id                  BIGSERIAL       PRIMARY KEY,
            from_user_id        UUID            REFERENCES users(id) ON DELETE SET NULL,
            to_user_id          UUID            REFERENCES users(id) ON DELETE SET NULL,
            transaction_type    VARCHAR(32)     NOT NULL,
            currency            VARCHAR(32)     NOT NULL,
            amount              NUMERIC(20, 6)  NOT NULL,
            description         TEXT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_transactions_type CHECK (transaction_type IN (
                'payment', 'swap', 'auction', 'commission', 'fee',
                'prediction_payout', 'prediction_refund', 'game',
                'crypto_trade', 'maintenance_fee', 'admin_adjust', 'signup_bonus'
            )),
            CONSTRAINT ck_transactions_currency CHECK (currency IN ('agon', 'stoneworks_dollar')),
            CONSTRAINT ck_transactions_amount_gte_0 CHECK (amount >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_transactions_from ON transactions (from_user_id, created_at DESC);")
    op.execute("CREATE INDEX idx_transactions_to ON transactions (to_user_id, created_at DESC);")

    op.execute("""
        CREATE TABLE activity_logs (
            id          BIGSERIAL       PRIMARY KEY,
            user_id     UUID            REFERENCES users(id) ON DELETE CASCADE,
            action      VARCHAR(64)     NOT NULL,
            metadata    JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_activity_logs_created ON activity_logs (created_at DESC);")
    op.execute("CREATE INDEX idx_activity_logs_user ON activity_logs (user_id, created_at DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS activity_logs CASCADE;")
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS wallets CASCADE;")
