"""Unit tests for PredictionSyncService: quote polling, auto-pause and settlement."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.ag_common.enums import (
    Currency,
    MarketStatus,
    PredictionSide,
    ResolutionOutcome,
    TransactionType,
)
from src.ag_common.errors import (
    ExternalServiceError,
    MarketAlreadyResolvedError,
    MarketNotFoundError,
)
from src.ag_prediction.application.sync_service import PredictionSyncService
from src.ag_prediction.domain.models import PredictionMarket, PredictionPosition, Quote
from src.ag_prediction.domain.pricing import MAX_SYNC_FAILURES, QUOTE_HISTORY_LIMIT

_SVC = "src.ag_prediction.application.sync_service"


def _quote() -> Quote:
    return Quote(
        yes_bid=Decimal("0.40"),
        yes_ask=Decimal("0.45"),
        no_bid=Decimal("0.55"),
        no_ask=Decimal("0.60"),
        src_timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def _market(
    market_id: int = 1,
    status: MarketStatus = MarketStatus.ACTIVE,
    tokens: bool = True,
) -> PredictionMarket:
    return PredictionMarket(
        id=market_id,
        pm_market_id=f"pm-{market_id}",
        question="Will it rain?",
        status=status,
        yes_token_id="y" if tokens else None,
        no_token_id="n" if tokens else None,
    )


def _position(pid: int, user_id: str, side: PredictionSide) -> PredictionPosition:
    return PredictionPosition(
        id=pid,
        user_id=user_id,
        market_id=1,
        side=side,
        quantity=Decimal("10"),
        avg_price=Decimal("0.4"),
        realized_pnl=Decimal("0"),
    )


@pytest.fixture
def repo() -> AsyncMock:
    mock = AsyncMock()
    mock.list_active_markets.return_value = [_market()]
    mock.lock_market.return_value = _market()
    mock.lock_open_positions.return_value = []
    return mock


@pytest.fixture
def wallets() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def client() -> MagicMock:
    mock = MagicMock()
    mock.fetch_quote = AsyncMock(return_value=_quote())
    mock.check_resolution = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def service(repo: AsyncMock, wallets: AsyncMock, client: MagicMock) -> PredictionSyncService:
    return PredictionSyncService(repo=repo, wallets=wallets, client_factory=lambda: client)


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture(autouse=True)
def ledger():
    with (
        patch(f"{_SVC}.log_activity", new_callable=AsyncMock) as log,
        patch(f"{_SVC}.write_transaction", new_callable=AsyncMock) as tx,
    ):
        yield {"log": log, "tx": tx}


class TestSyncQuotes:
    async def test_stores_and_prunes(
        self, service: PredictionSyncService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        report = await service.sync_quotes(db)

        assert report.synced == 1
        repo.insert_quote.assert_awaited_once()
        repo.prune_quotes.assert_awaited_once_with(db, 1, QUOTE_HISTORY_LIMIT)
        db.commit.assert_awaited_once()

    async def test_skips_markets_without_tokens(
        self, service: PredictionSyncService, repo: AsyncMock, client: MagicMock, db: AsyncMock
    ) -> None:
        repo.list_active_markets.return_value = [_market(tokens=False)]
        report = await service.sync_quotes(db)
        assert report.skipped == 1
        client.fetch_quote.assert_not_awaited()

    async def test_failure_counted_no_fallback(
        self, service: PredictionSyncService, repo: AsyncMock, client: MagicMock, db: AsyncMock
    ) -> None:
        client.fetch_quote.side_effect = ExternalServiceError("polymarket", "boom")
        report = await service.sync_quotes(db)

        assert report.failed == 1
        assert service.failure_count(1) == 1
        repo.insert_quote.assert_not_awaited()

    async def test_parse_error_counted_and_tick_continues(
        self, service: PredictionSyncService, repo: AsyncMock, client: MagicMock, db: AsyncMock
    ) -> None:
        repo.list_active_markets.return_value = [_market(1), _market(2)]
        client.fetch_quote.side_effect = [ValueError("bad price"), _quote()]

        report = await service.sync_quotes(db)

        assert report.failed == 1
        assert report.synced == 1
        assert service.failure_count(1) == 1
        repo.insert_quote.assert_awaited_once_with(db, 2, _quote())

    async def test_auto_pause_after_consecutive_failures(
        self, service: PredictionSyncService, repo: AsyncMock, client: MagicMock, db: AsyncMock
    ) -> None:
        client.fetch_quote.side_effect = ExternalServiceError("polymarket", "boom")
        for _ in range(MAX_SYNC_FAILURES - 1):
            report = await service.sync_quotes(db)
            assert report.paused == []
        repo.set_market_status.assert_not_awaited()

        report = await service.sync_quotes(db)

        assert report.paused == [1]
        repo.set_market_status.assert_awaited_once_with(db, 1, MarketStatus.PAUSED)
        assert service.failure_count(1) == 0

    async def test_success_resets_counter(
        self, service: PredictionSyncService, client: MagicMock, db: AsyncMock
    ) -> None:
        client.fetch_quote.side_effect = [
            ExternalServiceError("polymarket", "boom"),
            _quote(),
        ]
        await service.sync_quotes(db)
        assert service.failure_count(1) == 1
        await service.sync_quotes(db)
        assert service.failure_count(1) == 0

    async def test_store_failure_isolated(
        self, service: PredictionSyncService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.list_active_markets.return_value = [_market(1), _market(2)]
        repo.insert_quote.side_effect = [RuntimeError("db down"), None]
        report = await service.sync_quotes(db)
        assert report.failed == 1
        assert report.synced == 1
        db.rollback.assert_awaited_once()


class TestSettleMarket:
    async def test_pays_winners_only(
        self,
        service: PredictionSyncService,
        repo: AsyncMock,
        wallets: AsyncMock,
        db: AsyncMock,
        ledger: dict,
    ) -> None:
        repo.lock_open_positions.return_value = [
            _position(1, "u2", PredictionSide.YES),
            _position(2, "u1", PredictionSide.NO),
        ]
        summary = await service.settle_market(db, 1, ResolutionOutcome.YES)

        wallets.lock_wallets.assert_awaited_once_with(db, ["u1", "u2"])
        repo.mark_resolved.assert_awaited_once_with(db, 1, ResolutionOutcome.YES)
        repo.close_position.assert_any_await(db, 1, Decimal("6"))
        repo.close_position.assert_any_await(db, 2, Decimal("-4"))
        wallets.credit.assert_awaited_once_with(db, "u2", Currency.AGON, Decimal("10"))
        assert ledger["tx"].await_args.args[1] is TransactionType.PREDICTION_PAYOUT
        repo.insert_settlement.assert_awaited_once_with(db, 1, ResolutionOutcome.YES)
        assert summary.positions_settled == 2
        assert summary.total_payout == Decimal("10")
        db.commit.assert_awaited_once()

    async def test_invalid_refunds_everyone(
        self,
        service: PredictionSyncService,
        repo: AsyncMock,
        wallets: AsyncMock,
        db: AsyncMock,
        ledger: dict,
    ) -> None:
        repo.lock_open_positions.return_value = [
            _position(1, "u1", PredictionSide.YES),
            _position(2, "u2", PredictionSide.NO),
        ]
        summary = await service.settle_market(db, 1, ResolutionOutcome.INVALID)

        assert wallets.credit.await_count == 2
        assert summary.total_payout == Decimal("8")
        assert all(
            c.args[1] is TransactionType.PREDICTION_REFUND for c in ledger["tx"].await_args_list
        )

    async def test_already_resolved(
        self, service: PredictionSyncService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock_market.return_value = _market(status=MarketStatus.RESOLVED)
        with pytest.raises(MarketAlreadyResolvedError):
            await service.settle_market(db, 1, ResolutionOutcome.YES)
        repo.mark_resolved.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_missing_market(
        self, service: PredictionSyncService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock_market.return_value = None
        with pytest.raises(MarketNotFoundError):
            await service.settle_market(db, 1, ResolutionOutcome.NO)


class TestCheckResolutions:
    async def test_settles_resolved_markets(
        self, service: PredictionSyncService, repo: AsyncMock, client: MagicMock, db: AsyncMock
    ) -> None:
        client.check_resolution.return_value = ResolutionOutcome.NO
        report = await service.check_resolutions(db)
        assert report.settled == [1]
        repo.mark_resolved.assert_awaited_once_with(db, 1, ResolutionOutcome.NO)

    async def test_open_markets_untouched(
        self, service: PredictionSyncService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        report = await service.check_resolutions(db)
        assert report.checked == 1
        assert report.settled == []
        repo.lock_market.assert_not_awaited()

    async def test_fetch_errors_counted(
        self, service: PredictionSyncService, client: MagicMock, db: AsyncMock
    ) -> None:
        client.check_resolution.side_effect = ExternalServiceError("polymarket", "timeout")
        report = await service.check_resolutions(db)
        assert report.errors == 1

    async def test_settlement_conflict_counted(
        self, service: PredictionSyncService, repo: AsyncMock, client: MagicMock, db: AsyncMock
    ) -> None:
        client.check_resolution.return_value = ResolutionOutcome.YES
        repo.lock_market.return_value = _market(status=MarketStatus.RESOLVED)
        report = await service.check_resolutions(db)
        assert report.errors == 1
        assert report.settled == []

    async def test_db_error_does_not_stop_the_tick(
        self, service: PredictionSyncService, repo: AsyncMock, client: MagicMock, db: AsyncMock
    ) -> None:
        repo.list_active_markets.return_value = [_market(1), _market(2)]
        repo.lock_market.side_effect = [RuntimeError("connection reset"), _market(2)]
        client.check_resolution.return_value = ResolutionOutcome.YES

        report = await service.check_resolutions(db)

        assert report.errors == 1
        assert report.settled == [2]
        db.rollback.assert_awaited()

    async def test_unexpected_payload_error_counted(
        self, service: PredictionSyncService, client: MagicMock, db: AsyncMock
    ) -> None:
        client.check_resolution.side_effect = KeyError("outcomePrices")
        report = await service.check_resolutions(db)
        assert report.errors == 1
