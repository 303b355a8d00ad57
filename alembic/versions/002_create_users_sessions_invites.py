"""002: create users, user_sessions, invite_codes

Revision ID: 002
Revises: 001
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            username        VARCHAR(16)     NOT NULL,
            password_hash   VARCHAR(255)    NOT NULL,
            is_admin        BOOLEAN         NOT NULL DEFAULT FALSE,
            disabled        BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_username        UNIQUE (username),
            CONSTRAINT ck_users_username_len    CHECK (LENGTH(username) BETWEEN 3 AND 16)
        );
    """)
    op.execute("CREATE INDEX idx_users_admin_created ON users (created_at) WHERE is_admin;")
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE user_sessions (
            jti         VARCHAR(64)     PRIMARY KEY,
            user_id     UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            expires_at  TIMESTAMPTZ     NOT NULL,
            revoked     BOOLEAN         NOT NULL DEFAULT FALSE
        );
    """)
    op.execute("CREATE INDEX idx_user_sessions_user ON user_sessions (user_id);")

    op.execute("""
        CREATE TABLE invite_codes (
            id          BIGSERIAL       PRIMARY KEY,
            code        VARCHAR(32)     NOT NULL,
            created_by  UUID            REFERENCES users(id) ON DELETE SET NULL,
            used_by     UUID            REFERENCES users(id) ON DELETE SET NULL,
            is_used     BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            used_at     TIMESTAMPTZ,
            CONSTRAINT uq_invite_codes_code UNIQUE (code)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS invite_codes CASCADE;")
    op.execute("DROP TABLE IF EXISTS user_sessions CASCADE;")
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
