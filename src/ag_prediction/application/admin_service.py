"""PredictionAdminService: whitelist Polymarket markets and operate them."""

import logging
from collections.abc import Callable
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.datetime_utils import isoformat_or_none
from src.ag_common.enums import MarketStatus, ResolutionOutcome
from src.ag_common.errors import (
    ExternalServiceError,
    MarketAlreadyExistsError,
    MarketAlreadyResolvedError,
    MarketNotFoundError,
    OpenPositionsError,
)
from src.ag_common.money import ZERO
from src.ag_prediction.application.schemas import (
    AvailableMarketItem,
    AvailableMarketsResponse,
    AvailableMarketsStats,
    MarketExposureItem,
    MarketItem,
    PlatformExposure,
    PlatformStatsResponse,
    QuoteItem,
    RepairTokensResponse,
    SettlementResponse,
    TopMarketItem,
    WhitelistedMarketItem,
)
from src.ag_prediction.application.service import FEE_DESCRIPTION
from src.ag_prediction.application.sync_service import PredictionSyncService
from src.ag_prediction.domain.models import PredictionMarket, Quote
from src.ag_prediction.domain.repository import PredictionRepositoryProtocol
from src.ag_prediction.infrastructure.persistence import PredictionRepository
from src.ag_prediction.infrastructure.polymarket_client import (
    SERVICE_NAME,
    PolymarketClient,
    extract_token_ids,
    get_polymarket_client,
    market_end_date,
    market_id_of,
    market_metadata,
)
from src.ag_wallet.infrastructure.ledger import log_activity

logger = logging.getLogger(__name__)

_STATS_TOTALS_SQL = text("""
    SELECT
        (SELECT COUNT(*) FROM prediction_markets) AS total_markets,
        (SELECT COUNT(*) FROM prediction_positions WHERE quantity > 0) AS active_positions,
        (SELECT COALESCE(SUM(cost_agon), 0) FROM prediction_trades) AS total_volume,
        (SELECT COUNT(DISTINCT user_id) FROM prediction_orders
            WHERE created_at > NOW() - INTERVAL '7 days') AS active_users,
        (SELECT COALESCE(SUM(amount), 0) FROM transactions
            WHERE transaction_type = 'fee' AND description = :fee_description) AS total_fees
""")

_TOP_MARKETS_SQL = text("""
    SELECT m.id, m.question, m.status,
           COALESCE(SUM(t.cost_agon), 0) AS volume,
           COUNT(DISTINCT t.user_id) AS unique_traders
    FROM prediction_markets m
    LEFT JOIN prediction_trades t ON t.market_id = m.id
    GROUP BY m.id, m.question, m.status
    ORDER BY volume DESC, m.id ASC
    LIMIT 10
""")

_EXPOSURE_BY_MARKET_SQL = text("""
    SELECT m.id, m.question,
           COALESCE(SUM(CASE WHEN p.side = 'yes' THEN p.quantity * (1 - p.avg_price) END), 0) AS yes_exposure,
           COALESCE(SUM(CASE WHEN p.side = 'no' THEN p.quantity * (1 - p.avg_price) END), 0) AS no_exposure,
           COALESCE(SUM(CASE WHEN p.side = 'yes' THEN p.quantity END), 0) AS yes_quantity,
           COALESCE(SUM(CASE WHEN p.side = 'no' THEN p.quantity END), 0) AS no_quantity
    FROM prediction_markets m
    JOIN prediction_positions p ON p.market_id = m.id AND p.quantity > 0
    WHERE m.status = 'active'
    GROUP BY m.id, m.question
    ORDER BY GREATEST(
        COALESCE(SUM(CASE WHEN p.side = 'yes' THEN p.quantity * (1 - p.avg_price) END), 0),
        COALESCE(SUM(CASE WHEN p.side = 'no' THEN p.quantity * (1 - p.avg_price) END), 0)
    ) DESC
""")


class PredictionAdminService:
    def __init__(
        self,
        repo: PredictionRepositoryProtocol | None = None,
        sync: PredictionSyncService | None = None,
        client_factory: Callable[[], PolymarketClient] | None = None,
    ) -> None:
        self._repo: PredictionRepositoryProtocol = repo or PredictionRepository()
        self._sync = sync or PredictionSyncService(repo=self._repo)
        self._client_factory = client_factory or get_polymarket_client

    async def get_available_markets(self, db: AsyncSession) -> AvailableMarketsResponse:
        whitelisted = await self._repo.list_markets(db)
        whitelisted_items = [
            WhitelistedMarketItem(
                id=m.id, pm_market_id=m.pm_market_id, question=m.question, status=m.status.value
            )
            for m in whitelisted
        ]
        known_ids = {m.pm_market_id for m in whitelisted}

        try:
            raw_markets = await self._client_factory().fetch_active_markets()
        except ExternalServiceError as e:
            logger.warning("Falling back to whitelisted markets: %s", e.message)
            return AvailableMarketsResponse(
                markets=[],
                whitelisted_markets=whitelisted_items,
                stats=AvailableMarketsStats(
                    total_available=0,
                    total_whitelisted=len(whitelisted_items),
                    available_to_add=0,
                ),
                error=f"Failed to fetch from Polymarket: {e.message}",
            )

        markets = []
        for raw in raw_markets:
            pm_id = market_id_of(raw)
            yes_id, no_id = extract_token_ids(raw)
            markets.append(
                AvailableMarketItem(
                    pm_market_id=pm_id,
                    question=raw.get("question"),
                    end_date=isoformat_or_none(market_end_date(raw)),
                    volume=Decimal(str(raw.get("volume") or 0)),
                    liquidity=Decimal(str(raw["liquidity"])) if raw.get("liquidity") else None,
                    yes_token_id=yes_id,
                    no_token_id=no_id,
                    metadata=market_metadata(raw),
                    is_whitelisted=pm_id in known_ids,
                )
            )
        return AvailableMarketsResponse(
            markets=markets,
            whitelisted_markets=whitelisted_items,
            stats=AvailableMarketsStats(
                total_available=len(markets),
                total_whitelisted=len(whitelisted_items),
                available_to_add=sum(1 for m in markets if not m.is_whitelisted),
            ),
        )

    async def whitelist_market(
        self, db: AsyncSession, admin_id: str, pm_market_id: str
    ) -> MarketItem:
        pm_market_id = pm_market_id.strip()
        if await self._repo.get_market_by_pm_id(db, pm_market_id) is not None:
            raise MarketAlreadyExistsError(pm_market_id)

        details = await self._client_factory().fetch_market_details(pm_market_id)
        if details is None:
            raise MarketNotFoundError(pm_market_id)

        yes_id, no_id = extract_token_ids(details)
        if not (yes_id and no_id):
            logger.warning("Whitelisting %s without token ids; quotes will not sync", pm_market_id)

        try:
            market = await self._repo.insert_market(
                db,
                pm_market_id,
                str(details.get("question") or pm_market_id),
                yes_id,
                no_id,
                market_end_date(details),
                market_metadata(details),
            )
            await log_activity(
                db, admin_id, "admin_whitelist_market", {"market_id": market.id, "pm_market_id": pm_market_id}
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Whitelisted market %s as id=%s", pm_market_id, market.id)
        market.last_quote = await self._initial_quote(db, market)
        return MarketItem.from_market(market)

    async def update_market_status(
        self, db: AsyncSession, admin_id: str, market_id: int, status: MarketStatus
    ) -> MarketItem:
        try:
            market = await self._lock_unresolved(db, market_id)
            await self._repo.set_market_status(db, market_id, status)
            await log_activity(
                db, admin_id, "admin_update_market_status", {"market_id": market_id, "status": status.value}
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        market.status = status
        return MarketItem.from_market(market)

    async def remove_market(self, db: AsyncSession, admin_id: str, market_id: int) -> MarketItem:
        """Soft removal: refuses while positions are open, otherwise pauses."""
        try:
            market = await self._lock_unresolved(db, market_id)
            open_count = await self._repo.count_open_positions(db, market_id)
            if open_count > 0:
                raise OpenPositionsError(open_count)
            await self._repo.set_market_status(db, market_id, MarketStatus.PAUSED)
            await log_activity(db, admin_id, "admin_remove_market", {"market_id": market_id})
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        market.status = MarketStatus.PAUSED
        return MarketItem.from_market(market)

    async def trigger_settlement(
        self, db: AsyncSession, admin_id: str, market_id: int, outcome: ResolutionOutcome
    ) -> SettlementResponse:
        summary = await self._sync.settle_market(db, market_id, outcome)
        try:
            await log_activity(
                db,
                admin_id,
                "admin_trigger_settlement",
                {"market_id": market_id, "outcome": outcome.value},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return SettlementResponse.from_summary(summary)

    async def repair_market_tokens(self, db: AsyncSession, market_id: int) -> RepairTokensResponse:
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        if market.has_tokens:
            return RepairTokensResponse(
                market_id=market_id,
                yes_token_id=market.yes_token_id,  # type: ignore[arg-type]
                no_token_id=market.no_token_id,  # type: ignore[arg-type]
                repaired=False,
            )

        details = await self._client_factory().fetch_market_details(market.pm_market_id)
        if details is None:
            raise MarketNotFoundError(market.pm_market_id)
        yes_id, no_id = extract_token_ids(details)
        if not (yes_id and no_id):
            raise ExternalServiceError(SERVICE_NAME, "could not extract token ids")

        try:
            await self._repo.update_tokens(db, market_id, yes_id, no_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Repaired token ids for market %s", market_id)
        market.yes_token_id, market.no_token_id = yes_id, no_id
        quote = await self._initial_quote(db, market)
        return RepairTokensResponse(
            market_id=market_id,
            yes_token_id=yes_id,
            no_token_id=no_id,
            repaired=True,
            initial_quote=QuoteItem.from_quote(quote),
        )

    async def get_platform_stats(self, db: AsyncSession) -> PlatformStatsResponse:
        totals = (
            await db.execute(_STATS_TOTALS_SQL, {"fee_description": FEE_DESCRIPTION})
        ).fetchone()
        top_rows = (await db.execute(_TOP_MARKETS_SQL)).fetchall()
        exposure_rows = (await db.execute(_EXPOSURE_BY_MARKET_SQL)).fetchall()

        exposures = [
            MarketExposureItem(
                id=r.id,
                question=r.question,
                yes_exposure=r.yes_exposure,
                no_exposure=r.no_exposure,
                yes_quantity=r.yes_quantity,
                no_quantity=r.no_quantity,
                max_exposure=max(r.yes_exposure, r.no_exposure),
            )
            for r in exposure_rows
        ]
        yes_total = sum((e.yes_exposure for e in exposures), ZERO)
        no_total = sum((e.no_exposure for e in exposures), ZERO)

        return PlatformStatsResponse(
            total_markets=int(totals.total_markets),  # type: ignore[union-attr]
            active_positions=int(totals.active_positions),  # type: ignore[union-attr]
            total_volume=totals.total_volume,  # type: ignore[union-attr]
            active_users=int(totals.active_users),  # type: ignore[union-attr]
            total_fees=totals.total_fees,  # type: ignore[union-attr]
            platform_exposure=PlatformExposure(
                max_exposure=max(yes_total, no_total),
                yes_exposure=yes_total,
                no_exposure=no_total,
            ),
            top_markets=[
                TopMarketItem(
                    id=r.id,
                    question=r.question,
                    status=r.status,
                    volume=r.volume,
                    unique_traders=int(r.unique_traders),
                )
                for r in top_rows
            ],
            exposure_by_market=exposures,
        )

    async def _lock_unresolved(self, db: AsyncSession, market_id: int) -> PredictionMarket:
        market = await self._repo.lock_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        if market.status is MarketStatus.RESOLVED:
            raise MarketAlreadyResolvedError(market_id)
        return market

    async def _initial_quote(self, db: AsyncSession, market: PredictionMarket) -> Quote | None:
        """Best effort; a failed fetch leaves the market for the next sync tick."""
        if not market.has_tokens:
            return None
        try:
            quote = await self._client_factory().fetch_quote(
                market.yes_token_id, market.no_token_id  # type: ignore[arg-type]
            )
        except ExternalServiceError as e:
            logger.warning("Initial quote for market %s failed: %s", market.id, e.message)
            return None
        try:
            await self._sync.store_quote(db, market.id, quote)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Failed to store initial quote for market %s", market.id)
            return None
        return quote
