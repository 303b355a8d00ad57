"""PredictionSyncService: quote polling, resolution polling and settlement.

Driven by the periodic jobs in ``src.ag_prediction.jobs.sync``. Each market
is handled in its own DB transaction so one bad market never blocks the
rest of a tick.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import Currency, MarketStatus, ResolutionOutcome, TransactionType
from src.ag_common.errors import (
    AppError,
    MarketAlreadyResolvedError,
    MarketNotFoundError,
)
from src.ag_common.money import ZERO
from src.ag_prediction.domain.models import Quote, SettlementLine, SettlementSummary
from src.ag_prediction.domain.pricing import MAX_SYNC_FAILURES, QUOTE_HISTORY_LIMIT
from src.ag_prediction.domain.repository import PredictionRepositoryProtocol
from src.ag_prediction.domain.settlement import settlement_payout
from src.ag_prediction.infrastructure.persistence import PredictionRepository
from src.ag_prediction.infrastructure.polymarket_client import (
    PolymarketClient,
    get_polymarket_client,
)
from src.ag_wallet.domain.repository import WalletRepositoryProtocol
from src.ag_wallet.infrastructure.ledger import log_activity, write_transaction
from src.ag_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    paused: list[int] = field(default_factory=list)


@dataclass
class ResolutionReport:
    checked: int = 0
    settled: list[int] = field(default_factory=list)
    errors: int = 0


class PredictionSyncService:
    def __init__(
        self,
        repo: PredictionRepositoryProtocol | None = None,
        wallets: WalletRepositoryProtocol | None = None,
        client_factory: Callable[[], PolymarketClient] | None = None,
    ) -> None:
        self._repo: PredictionRepositoryProtocol = repo or PredictionRepository()
        self._wallets: WalletRepositoryProtocol = wallets or WalletRepository()
        self._client_factory = client_factory or get_polymarket_client
        # market_id -> consecutive quote fetch failures
        self._failures: dict[int, int] = {}

    def failure_count(self, market_id: int) -> int:
        return self._failures.get(market_id, 0)

    async def store_quote(self, db: AsyncSession, market_id: int, quote: Quote) -> None:
        """Append a quote and trim history. Caller commits."""
        await self._repo.insert_quote(db, market_id, quote)
        await self._repo.prune_quotes(db, market_id, QUOTE_HISTORY_LIMIT)

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    async def sync_quotes(self, db: AsyncSession) -> SyncReport:
        report = SyncReport()
        client = self._client_factory()
        markets = await self._repo.list_active_markets(db)

        for market in markets:
            if not market.has_tokens:
                logger.warning("Market %s (%s) has no token ids; skipping quote sync", market.id, market.pm_market_id)
                report.skipped += 1
                continue

            try:
                quote = await client.fetch_quote(market.yes_token_id, market.no_token_id)  # type: ignore[arg-type]
            except Exception as e:
                report.failed += 1
                if await self._record_failure(db, market.id, str(e)):
                    report.paused.append(market.id)
                continue

            try:
                await self.store_quote(db, market.id, quote)
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception("Failed to store quote for market %s", market.id)
                report.failed += 1
                continue

            self._failures.pop(market.id, None)
            report.synced += 1

        return report

    async def _record_failure(self, db: AsyncSession, market_id: int, reason: str) -> bool:
        """Count a failure; pause the market once the limit is hit. True if paused."""
        count = self._failures.get(market_id, 0) + 1
        self._failures[market_id] = count
        logger.warning(
            "Quote fetch failed for market %s (%d/%d): %s", market_id, count, MAX_SYNC_FAILURES, reason
        )
        if count < MAX_SYNC_FAILURES:
            return False

        try:
            await self._repo.set_market_status(db, market_id, MarketStatus.PAUSED)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Failed to auto-pause market %s", market_id)
            return False

        self._failures.pop(market_id, None)
        logger.error(
            "Market %s auto-paused after %d consecutive quote failures", market_id, MAX_SYNC_FAILURES
        )
        return True

    # ------------------------------------------------------------------
    # Resolutions
    # ------------------------------------------------------------------

    async def check_resolutions(self, db: AsyncSession) -> ResolutionReport:
        report = ResolutionReport()
        client = self._client_factory()
        markets = await self._repo.list_active_markets(db)

        for market in markets:
            report.checked += 1
            try:
                outcome = await client.check_resolution(market.pm_market_id)
            except Exception as e:
                logger.warning("Resolution check failed for market %s: %s", market.id, e)
                report.errors += 1
                continue
            if outcome is None:
                continue

            logger.info("Market %s resolved on Polymarket as %s", market.id, outcome.value)
            try:
                await self.settle_market(db, market.id, outcome)
            except AppError as e:
                logger.warning("Settlement skipped for market %s: %s", market.id, e.message)
                report.errors += 1
                continue
            except Exception:
                logger.exception("Settlement failed for market %s", market.id)
                report.errors += 1
                continue
            report.settled.append(market.id)

        return report

    async def settle_market(
        self, db: AsyncSession, market_id: int, outcome: ResolutionOutcome
    ) -> SettlementSummary:
        """Resolve a market and pay out every open position in one transaction."""
        lines: list[SettlementLine] = []
        total_payout = ZERO
        try:
            market = await self._repo.lock_market(db, market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if market.status is MarketStatus.RESOLVED:
                raise MarketAlreadyResolvedError(market_id)

            await self._repo.mark_resolved(db, market_id, outcome)
            positions = await self._repo.lock_open_positions(db, market_id)
            if positions:
                await self._wallets.lock_wallets(db, sorted({p.user_id for p in positions}))

            for p in positions:
                payout, profit = settlement_payout(p.side, p.quantity, p.avg_price, outcome)
                await self._repo.close_position(db, p.id, profit)
                if payout > 0:
                    await self._pay(db, p.user_id, payout, outcome, market.question)
                await log_activity(
                    db,
                    p.user_id,
                    "prediction_settled",
                    {
                        "market_id": market_id,
                        "side": p.side.value,
                        "outcome": outcome.value,
                        "quantity": p.quantity,
                        "payout": payout,
                        "profit": profit,
                    },
                )
                total_payout += payout
                lines.append(
                    SettlementLine(
                        user_id=p.user_id,
                        side=p.side,
                        quantity=p.quantity,
                        payout=payout,
                        profit=profit,
                    )
                )

            await self._repo.insert_settlement(db, market_id, outcome)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        self._failures.pop(market_id, None)
        logger.info(
            "Settled market %s as %s: %d positions, %s Agon paid",
            market_id,
            outcome.value,
            len(lines),
            total_payout,
        )
        return SettlementSummary(
            market_id=market_id,
            outcome=outcome.value,
            positions_settled=len(lines),
            total_payout=total_payout,
            lines=lines,
        )

    async def _pay(
        self,
        db: AsyncSession,
        user_id: str,
        payout: Decimal,
        outcome: ResolutionOutcome,
        question: str,
    ) -> None:
        await self._wallets.credit(db, user_id, Currency.AGON, payout)
        if outcome is ResolutionOutcome.INVALID:
            tx_type = TransactionType.PREDICTION_REFUND
            description = f"Prediction market refund (invalid): {question[:100]}"
        else:
            tx_type = TransactionType.PREDICTION_PAYOUT
            description = f"Prediction market payout ({outcome.value}): {question[:100]}"
        await write_transaction(
            db, tx_type, Currency.AGON, payout, to_user_id=user_id, description=description
        )
