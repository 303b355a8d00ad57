"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Pre-condition: PostgreSQL and Redis running, `alembic upgrade head` applied.
"""

import uuid

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.ag_common.database import session_scope
from src.main import app

PASSWORD = "TestPass1"


def unique_username(prefix: str = "u") -> str:
    """Unique 3-16 char username to avoid test pollution."""
    return f"{prefix}_{uuid.uuid4().hex[:10]}"[:16]


async def signup(client: AsyncClient, username: str | None = None, invite_code: str | None = None) -> dict:
    username = username or unique_username()
    body = {"username": username, "password": PASSWORD}
    if invite_code:
        body["inviteCode"] = invite_code
    resp = await client.post("/api/v1/auth/signup", json=body)
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    # Tests authenticate with Bearer headers; keep the shared client cookie-free
    client.cookies.clear()
    return {"username": username, "id": data["user"]["id"], "token": data["token"]}


def bearer(user: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {user['token']}"}


async def fund(user_id: str, agon: int = 0, stoneworks_dollar: int = 0) -> None:
    async with session_scope() as db:
        await db.execute(
            text(
                "UPDATE wallets SET agon = agon + :agon, "
                "stoneworks_dollar = stoneworks_dollar + :sd WHERE user_id = :user_id"
            ),
            {"agon": agon, "sd": stoneworks_dollar, "user_id": user_id},
        )
        await db.commit()


async def make_admin(user_id: str) -> None:
    async with session_scope() as db:
        await db.execute(text("UPDATE users SET is_admin = TRUE WHERE id = :id"), {"id": user_id})
        await db.commit()


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client; keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def admin_user(client: AsyncClient) -> dict:
    """An admin account. The is_admin flag is re-read per request, so the
    token issued at signup works once the row is promoted."""
    user = await signup(client, unique_username("adm"))
    await make_admin(user["id"])
    return user
