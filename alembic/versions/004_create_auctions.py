"""004: create auctions and bids

Revision ID: 004
Revises: 003
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE auctions (
            id                  BIGSERIAL       PRIMARY KEY,
            seller_id           UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            item_name           VARCHAR(255)    NOT NULL,
            item_description    TEXT,
            rarity              VARCHAR(16)     NOT NULL,
            durability          INTEGER,
            starting_price      NUMERIC(20, 6)  NOT NULL,
            current_bid         NUMERIC(20, 6),
            highest_bidder_id   UUID            REFERENCES users(id) ON DELETE SET NULL,
            end_date            TIMESTAMPTZ     NOT NULL,
            status              VARCHAR(16)     NOT NULL DEFAULT 'active',
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            completed_at        TIMESTAMPTZ,
            CONSTRAINT ck_auctions_status CHECK (
                status IN ('active', 'ended', 'disputed', 'completed', 'cancelled')
            ),
            CONSTRAINT ck_auctions_rarity CHECK (
                rarity IN ('Common', 'Uncommon', 'Rare', 'Epic', 'Legendary', 'Mythic')
            ),
            CONSTRAINT ck_auctions_starting_price_gt_0 CHECK (starting_price > 0)
        );
    """)
    op.execute("CREATE INDEX idx_auctions_status_end ON auctions (status, end_date);")
    op.execute("CREATE INDEX idx_auctions_seller ON auctions (seller_id);")
    op.execute("""
        CREATE TRIGGER trg_auctions_updated_at
            BEFORE UPDATE ON auctions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE bids (
            id          BIGSERIAL       PRIMARY KEY,
            auction_id  BIGINT          NOT NULL REFERENCES auctions(id) ON DELETE CASCADE,
            bidder_id   UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount      NUMERIC(20, 6)  NOT NULL,
            is_active   BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_bids_amount_gt_0 CHECK (amount > 0)
        );
    """)
    op.execute("CREATE INDEX idx_bids_auction ON bids (auction_id, created_at DESC);")
    op.execute("CREATE INDEX idx_bids_bidder_active ON bids (bidder_id) WHERE is_active;")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bids CASCADE;")
    op.execute("DROP TABLE IF EXISTS auctions CASCADE;")
