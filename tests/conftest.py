"""Shared test fixtures."""

import os

# Settings() requires JWT_SECRET at import time
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-unit-tests-only")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.ag_wallet.domain.models import Wallet  # noqa: E402
from src.main import app  # noqa: E402


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def make_wallet(
    user_id: str = "user-1",
    agon: str | int = 1000,
    stoneworks_dollar: str | int = 1000,
    agon_escrow: str | int = 0,
) -> Wallet:
    return Wallet(
        user_id=user_id,
        agon=Decimal(agon),
        stoneworks_dollar=Decimal(stoneworks_dollar),
        agon_escrow=Decimal(agon_escrow),
    )
