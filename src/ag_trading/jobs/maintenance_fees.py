"""Background tick: daily maintenance fees, checked hourly."""

import logging
import time

from config.settings import settings
from src.ag_common.database import session_scope
from src.ag_common.scheduler import PeriodicJob
from src.ag_trading.application.maintenance import MaintenanceFeeService

logger = logging.getLogger(__name__)

_service = MaintenanceFeeService()


async def run_maintenance_fees() -> None:
    start = time.perf_counter()
    async with session_scope() as db:
        report = await _service.apply_maintenance_fees(db)
    logger.info(
        "Maintenance fees: %d charged (%s Agon), %d failed (%.0fms)",
        report.charged,
        report.total_fees,
        report.failed,
        (time.perf_counter() - start) * 1000,
    )


def build_maintenance_job() -> PeriodicJob:
    return PeriodicJob(
        "trading-maintenance-fees", run_maintenance_fees, settings.MAINTENANCE_FEE_INTERVAL_SECONDS
    )
