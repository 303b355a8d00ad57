"""Unit tests for MaintenanceFeeService."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from src.ag_common.enums import PositionStatus, PositionType, TransactionType
from src.ag_trading.application.maintenance import MaintenanceFeeService
from src.ag_trading.domain.models import CryptoPosition

_SVC = "src.ag_trading.application.maintenance"


def _position(position_id: int, leverage: int = 1, margin: str = "1000") -> CryptoPosition:
    return CryptoPosition(
        id=position_id,
        user_id=f"user-{position_id}",
        coin_id="bitcoin",
        position_type=PositionType.LONG,
        leverage=leverage,
        quantity=Decimal("1"),
        entry_price=Decimal("100"),
        liquidation_price=Decimal("10"),
        margin_agon=Decimal(margin),
        status=PositionStatus.OPEN,
    )


@pytest.fixture
def repo() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture(autouse=True)
def write_tx():
    with patch(f"{_SVC}.write_transaction", new_callable=AsyncMock) as mock:
        yield mock


class TestApplyMaintenanceFees:
    async def test_charges_each_due_position(
        self, repo: AsyncMock, db: AsyncMock, write_tx: AsyncMock
    ) -> None:
        positions = [_position(1, leverage=1), _position(2, leverage=10)]
        repo.due_for_maintenance.return_value = positions
        repo.lock_due_for_maintenance.side_effect = positions

        report = await MaintenanceFeeService(repo).apply_maintenance_fees(db)

        assert report.charged == 2
        assert report.failed == 0
        # 1000 * 0.1% + 1000 * 1%
        assert report.total_fees == Decimal("11")
        repo.charge_maintenance.assert_any_await(db, 1, Decimal("999"), Decimal("1"))
        repo.charge_maintenance.assert_any_await(db, 2, Decimal("990"), Decimal("10"))
        assert write_tx.await_args.args[1] is TransactionType.MAINTENANCE_FEE
        assert write_tx.await_args.kwargs["from_user_id"] == "user-2"
        assert db.commit.await_count == 2

    async def test_skips_position_closed_since_scan(
        self, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.due_for_maintenance.return_value = [_position(1)]
        repo.lock_due_for_maintenance.return_value = None

        report = await MaintenanceFeeService(repo).apply_maintenance_fees(db)

        assert report.charged == 0
        repo.charge_maintenance.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_failure_isolated_to_one_position(
        self, repo: AsyncMock, db: AsyncMock
    ) -> None:
        positions = [_position(1), _position(2)]
        repo.due_for_maintenance.return_value = positions
        repo.lock_due_for_maintenance.side_effect = positions
        repo.charge_maintenance.side_effect = [RuntimeError("db down"), None]

        report = await MaintenanceFeeService(repo).apply_maintenance_fees(db)

        assert report.failed == 1
        assert report.charged == 1
        db.rollback.assert_awaited_once()

    async def test_nothing_due(self, repo: AsyncMock, db: AsyncMock) -> None:
        repo.due_for_maintenance.return_value = []
        report = await MaintenanceFeeService(repo).apply_maintenance_fees(db)
        assert report.charged == 0
        assert report.total_fees == 0
