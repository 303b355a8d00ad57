"""Unit tests for TradingService (mocked repository, wallet and price feed)."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from src.ag_common.enums import Currency, PositionStatus, PositionType, TransactionType
from src.ag_common.errors import (
    InsufficientBalanceError,
    InvalidTradeError,
    PositionNotFoundError,
    PriceUnavailableError,
    UnsupportedAssetError,
)
from src.ag_trading.application.service import TradingService
from src.ag_trading.domain.models import AssetInfo, CryptoPosition, PricePoint, PriceQuote
from tests.conftest import make_wallet

_SVC = "src.ag_trading.application.service"


def _quote(price: str, asset_id: str = "bitcoin") -> PriceQuote:
    return PriceQuote(
        asset_id=asset_id,
        symbol="BTC-USD",
        name="Bitcoin",
        asset_type="crypto",
        price=Decimal(price),
        change_24h=Decimal("0"),
        last_updated=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def _position(
    status: PositionStatus = PositionStatus.OPEN,
    position_type: PositionType = PositionType.LONG,
    margin: str = "95",
) -> CryptoPosition:
    return CryptoPosition(
        id=7,
        user_id="u1",
        coin_id="bitcoin",
        position_type=position_type,
        leverage=10,
        quantity=Decimal("9.5"),
        entry_price=Decimal("100"),
        liquidation_price=Decimal("91"),
        margin_agon=Decimal(margin),
        status=status,
    )


@pytest.fixture
def repo() -> AsyncMock:
    mock = AsyncMock()
    mock.insert.return_value = _position()
    mock.get.return_value = _position()
    mock.lock_open.return_value = _position()
    mock.close.return_value = _position(status=PositionStatus.CLOSED)
    return mock


@pytest.fixture
def wallets() -> AsyncMock:
    mock = AsyncMock()
    mock.debit.return_value = make_wallet(agon=900)
    mock.credit.return_value = make_wallet(agon=1090)
    mock.get_wallet.return_value = make_wallet(agon=900)
    return mock


@pytest.fixture
def feed() -> AsyncMock:
    mock = AsyncMock()
    mock.get_price.return_value = _quote("100")
    return mock


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(repo: AsyncMock, wallets: AsyncMock, feed: AsyncMock) -> TradingService:
    return TradingService(repo=repo, wallets=wallets, feed=feed)


@pytest.fixture(autouse=True)
def ledger():
    with (
        patch(f"{_SVC}.write_transaction", new_callable=AsyncMock) as write_tx,
        patch(f"{_SVC}.log_activity", new_callable=AsyncMock) as log_activity,
    ):
        yield {"write_transaction": write_tx, "log_activity": log_activity}


class TestOpenPosition:
    async def test_debits_margin_and_stores_net(
        self, service: TradingService, repo: AsyncMock, wallets: AsyncMock, db: AsyncMock, ledger
    ) -> None:
        resp = await service.open_position(
            db, "u1", "bitcoin", PositionType.LONG, 10, Decimal("100")
        )

        wallets.debit.assert_awaited_once_with(db, "u1", Currency.AGON, Decimal("100"))
        args = repo.insert.await_args.args
        # (db, user, coin, type, leverage, quantity, entry, liquidation, net margin)
        assert args[5] == Decimal("9.5")
        assert args[6] == Decimal("100")
        assert args[7] == Decimal("91")
        assert args[8] == Decimal("95")
        assert resp.commission == Decimal("5")
        assert resp.commission_rate == Decimal("0.05")
        assert resp.new_balance == Decimal("900")
        tx = ledger["write_transaction"].await_args
        assert tx.args[1] is TransactionType.CRYPTO_TRADE
        assert tx.kwargs["description"] == "Opened long position on bitcoin with 10x leverage"
        db.commit.assert_awaited_once()

    async def test_unsupported_asset(self, service: TradingService, db: AsyncMock) -> None:
        with pytest.raises(UnsupportedAssetError):
            await service.open_position(db, "u1", "litecoin", PositionType.LONG, 2, Decimal("10"))

    @pytest.mark.parametrize("leverage", [0, 11])
    async def test_leverage_bounds(
        self, service: TradingService, db: AsyncMock, leverage: int
    ) -> None:
        with pytest.raises(InvalidTradeError, match="Leverage"):
            await service.open_position(
                db, "u1", "bitcoin", PositionType.LONG, leverage, Decimal("10")
            )

    async def test_price_failure_touches_nothing(
        self, service: TradingService, feed: AsyncMock, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        feed.get_price.side_effect = PriceUnavailableError("bitcoin")
        with pytest.raises(PriceUnavailableError):
            await service.open_position(db, "u1", "bitcoin", PositionType.LONG, 2, Decimal("10"))
        wallets.debit.assert_not_awaited()

    async def test_insufficient_agon(
        self, service: TradingService, repo: AsyncMock, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        wallets.debit.side_effect = InsufficientBalanceError("agon", Decimal("10"))
        with pytest.raises(InsufficientBalanceError):
            await service.open_position(db, "u1", "bitcoin", PositionType.LONG, 2, Decimal("10"))
        repo.insert.assert_not_awaited()
        db.rollback.assert_awaited_once()


class TestClosePosition:
    async def test_profit_returned_with_margin(
        self, service: TradingService, feed: AsyncMock, repo: AsyncMock, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        feed.get_price.return_value = _quote("110")
        resp = await service.close_position(db, "u1", 7)

        assert resp.realized_pnl == Decimal("95")
        assert resp.final_return == Decimal("190")
        wallets.credit.assert_awaited_once_with(db, "u1", Currency.AGON, Decimal("190"))
        repo.close.assert_awaited_once_with(db, 7, Decimal("110"), Decimal("95"))

    async def test_short_profits_on_drop(
        self, service: TradingService, feed: AsyncMock, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock_open.return_value = _position(position_type=PositionType.SHORT)
        feed.get_price.return_value = _quote("95")
        resp = await service.close_position(db, "u1", 7)
        assert resp.realized_pnl == Decimal("47.5")

    async def test_loss_capped_at_margin(
        self, service: TradingService, feed: AsyncMock, wallets: AsyncMock, db: AsyncMock, ledger
    ) -> None:
        feed.get_price.return_value = _quote("80")
        resp = await service.close_position(db, "u1", 7)

        assert resp.realized_pnl == Decimal("-190")
        assert resp.final_return == 0
        wallets.credit.assert_not_awaited()
        assert resp.new_balance == Decimal("900")
        assert "Loss 190.00" in ledger["write_transaction"].await_args.kwargs["description"]

    async def test_missing_position(
        self, service: TradingService, repo: AsyncMock, feed: AsyncMock, db: AsyncMock
    ) -> None:
        repo.get.return_value = None
        with pytest.raises(PositionNotFoundError):
            await service.close_position(db, "u1", 7)
        feed.get_price.assert_not_awaited()

    async def test_already_closed(
        self, service: TradingService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.get.return_value = _position(status=PositionStatus.CLOSED)
        with pytest.raises(PositionNotFoundError):
            await service.close_position(db, "u1", 7)

    async def test_closed_concurrently(
        self, service: TradingService, repo: AsyncMock, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock_open.return_value = None
        with pytest.raises(PositionNotFoundError):
            await service.close_position(db, "u1", 7)
        wallets.credit.assert_not_awaited()
        db.rollback.assert_awaited_once()


class TestQueries:
    async def test_list_marks_open_to_market(
        self, service: TradingService, repo: AsyncMock, feed: AsyncMock, db: AsyncMock
    ) -> None:
        repo.list_for_user.return_value = [_position()]
        feed.get_prices.return_value = {"bitcoin": _quote("110")}
        items = await service.list_positions(db, "u1", "open")

        repo.list_for_user.assert_awaited_once_with(db, "u1", PositionStatus.OPEN)
        assert items[0].current_price == Decimal("110")
        assert items[0].unrealized_pnl == Decimal("95")
        assert items[0].total_value == Decimal("190")
        assert items[0].pnl_percentage == Decimal("100")

    async def test_list_all_passes_none(
        self, service: TradingService, repo: AsyncMock, feed: AsyncMock, db: AsyncMock
    ) -> None:
        repo.list_for_user.return_value = [_position(status=PositionStatus.CLOSED)]
        items = await service.list_positions(db, "u1", "all")
        repo.list_for_user.assert_awaited_once_with(db, "u1", None)
        feed.get_prices.assert_not_awaited()
        assert items[0].current_price is None

    async def test_list_bad_status(self, service: TradingService, db: AsyncMock) -> None:
        with pytest.raises(InvalidTradeError):
            await service.list_positions(db, "u1", "pending")

    async def test_get_position_without_price(
        self, service: TradingService, feed: AsyncMock, db: AsyncMock
    ) -> None:
        feed.get_prices.return_value = {}
        item = await service.get_position(db, "u1", 7)
        assert item.id == 7
        assert item.unrealized_pnl is None

    async def test_prices(self, service: TradingService, feed: AsyncMock) -> None:
        feed.get_prices.return_value = {"bitcoin": _quote("50000")}
        prices = await service.prices(["bitcoin"])
        assert prices["bitcoin"].price == Decimal("50000")

    async def test_price_history(self, service: TradingService, feed: AsyncMock) -> None:
        at = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
        feed.get_history.return_value = [PricePoint(timestamp=at, price=Decimal("64000.5"))]

        history = await service.price_history("bitcoin", 7)

        feed.get_history.assert_awaited_once_with("bitcoin", 7)
        assert history.coin_id == "bitcoin"
        assert history.days == 7
        assert history.prices[0].timestamp == at.isoformat()
        assert history.prices[0].price == Decimal("64000.5")

    async def test_asset_info(self, service: TradingService, feed: AsyncMock) -> None:
        feed.get_asset_info.return_value = AssetInfo(
            asset_id="tsla",
            symbol="TSLA",
            name="Tesla, Inc.",
            asset_type="equity",
            currency="USD",
            exchange="NasdaqGS",
            current_price=Decimal("250"),
            previous_close=Decimal("200"),
            price_change_24h=Decimal("50"),
            price_change_percentage_24h=Decimal("25"),
        )

        info = await service.asset_info("tsla")

        assert info.id == "tsla"
        assert info.exchange == "NasdaqGS"
        assert info.price_change_percentage_24h == Decimal("25")
        assert info.high_24h is None

    async def test_history_of_unsupported_asset(
        self, service: TradingService, feed: AsyncMock
    ) -> None:
        feed.get_history.side_effect = UnsupportedAssetError("litecoin")
        with pytest.raises(UnsupportedAssetError):
            await service.price_history("litecoin", 7)
