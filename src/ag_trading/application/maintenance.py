"""Daily maintenance fees on open leveraged positions.

Run hourly; a position is charged once its last fee is at least
``FEE_PERIOD`` old (or it was never charged). The fee comes out of the
position's margin, never the wallet, so margin is floored at zero.
"""

import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.datetime_utils import utc_now
from src.ag_common.enums import Currency, TransactionType
from src.ag_common.money import ZERO, quantize
from src.ag_trading.domain.models import MaintenanceReport
from src.ag_trading.domain.repository import PositionRepositoryProtocol
from src.ag_trading.domain.trading_math import daily_maintenance_rate
from src.ag_trading.infrastructure.persistence import PositionRepository
from src.ag_wallet.infrastructure.ledger import write_transaction

logger = logging.getLogger(__name__)

FEE_PERIOD = timedelta(hours=24)


class MaintenanceFeeService:
    def __init__(self, repo: PositionRepositoryProtocol | None = None) -> None:
        self._repo: PositionRepositoryProtocol = repo or PositionRepository()

    async def apply_maintenance_fees(self, db: AsyncSession) -> MaintenanceReport:
        """Charge every due position, one transaction per position."""
        report = MaintenanceReport()
        cutoff = utc_now() - FEE_PERIOD

        for candidate in await self._repo.due_for_maintenance(db, cutoff):
            try:
                position = await self._repo.lock_due_for_maintenance(db, candidate.id, cutoff)
                if position is None:
                    # Closed or charged since the scan
                    await db.rollback()
                    continue
                rate = daily_maintenance_rate(position.leverage)
                fee = quantize(position.margin_agon * rate)
                new_margin = max(ZERO, position.margin_agon - fee)
                await self._repo.charge_maintenance(db, position.id, new_margin, fee)
                await write_transaction(
                    db,
                    TransactionType.MAINTENANCE_FEE,
                    Currency.AGON,
                    fee,
                    from_user_id=position.user_id,
                    description=f"Daily maintenance fee applied on position {position.id}",
                )
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception("Maintenance fee failed for position %s", candidate.id)
                report.failed += 1
                continue

            report.charged += 1
            report.total_fees += fee

        return report
