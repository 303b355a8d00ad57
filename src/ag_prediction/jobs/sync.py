"""Background ticks: quote sync (15s) and resolution check (2min)."""

import logging
import time

from config.settings import settings
from src.ag_common.database import session_scope
from src.ag_common.scheduler import PeriodicJob
from src.ag_prediction.application.sync_service import PredictionSyncService

logger = logging.getLogger(__name__)

# Shared so the consecutive-failure counters survive between ticks
sync_service = PredictionSyncService()


async def run_quote_sync() -> None:
    start = time.perf_counter()
    async with session_scope() as db:
        report = await sync_service.sync_quotes(db)
    logger.info(
        "Quote sync: %d synced, %d failed, %d skipped, paused=%s (%.0fms)",
        report.synced,
        report.failed,
        report.skipped,
        report.paused,
        (time.perf_counter() - start) * 1000,
    )


async def run_resolution_check() -> None:
    start = time.perf_counter()
    async with session_scope() as db:
        report = await sync_service.check_resolutions(db)
    logger.info(
        "Resolution check: %d checked, settled=%s, %d errors (%.0fms)",
        report.checked,
        report.settled,
        report.errors,
        (time.perf_counter() - start) * 1000,
    )


def build_prediction_jobs() -> list[PeriodicJob]:
    return [
        PeriodicJob("prediction-quote-sync", run_quote_sync, settings.QUOTE_SYNC_INTERVAL_SECONDS),
        PeriodicJob(
            "prediction-resolution-check",
            run_resolution_check,
            settings.RESOLUTION_CHECK_INTERVAL_SECONDS,
        ),
    ]
