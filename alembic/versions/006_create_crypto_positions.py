"""006: create crypto_positions

Revision ID: 006
Revises: 005
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE crypto_positions (
            id                      BIGSERIAL       PRIMARY KEY,
            user_id                 UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            coin_id                 VARCHAR(32)     NOT NULL,
            position_type           VARCHAR(8)      NOT NULL,
            leverage                INTEGER         NOT NULL,
            quantity                NUMERIC(30, 12) NOT NULL,
            entry_price             NUMERIC(20, 6)  NOT NULL,
            liquidation_price       NUMERIC(20, 6)  NOT NULL,
            margin_agon             NUMERIC(20, 6)  NOT NULL,
            status                  VARCHAR(8)      NOT NULL DEFAULT 'open',
            opened_at               TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            closed_at               TIMESTAMPTZ,
            closed_price            NUMERIC(20, 6),
            realized_pnl            NUMERIC(20, 6),
            last_maintenance_fee_at TIMESTAMPTZ,
            total_maintenance_fees  NUMERIC(20, 6)  NOT NULL DEFAULT 0,
            CONSTRAINT ck_crypto_positions_type     CHECK (position_type IN ('long', 'short')),
            CONSTRAINT ck_crypto_positions_status   CHECK (status IN ('open', 'closed')),
            CONSTRAINT ck_crypto_positions_leverage CHECK (leverage BETWEEN 1 AND 10),
            CONSTRAINT ck_crypto_positions_margin   CHECK (margin_agon >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_crypto_positions_user ON crypto_positions (user_id, status);")
    op.execute("CREATE INDEX idx_crypto_positions_open ON crypto_positions (last_maintenance_fee_at) WHERE status = 'open';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS crypto_positions CASCADE;")
