"""005: create game_history

Revision ID: 005
Revises: 004
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE game_history (
            id          BIGSERIAL       PRIMARY KEY,
            user_id     UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            game_type   VARCHAR(16)     NOT NULL,
            bet_amount  NUMERIC(20, 6)  NOT NULL,
            result      VARCHAR(32)     NOT NULL,
            choice      TEXT,
            won         BOOLEAN         NOT NULL,
            payout      NUMERIC(20, 6)  NOT NULL DEFAULT 0,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_game_history_type CHECK (
                game_type IN ('coinflip', 'blackjack', 'plinko', 'crash')
            )
        );
    """)
    op.execute("CREATE INDEX idx_game_history_user ON game_history (user_id, created_at DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS game_history CASCADE;")
