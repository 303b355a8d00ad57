"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.ag_admin.api.router import router as admin_router
from src.ag_auction.api.router import router as auction_router
from src.ag_common.database import engine
from src.ag_common.errors import AppError
from src.ag_common.redis_client import close_redis, ping_redis
from src.ag_common.response import error_response
from src.ag_common.scheduler import JobScheduler, PeriodicJob
from src.ag_games.api.router import router as games_router
from src.ag_gateway.api.router import router as auth_router
from src.ag_gateway.api.users_router import router as users_router
from src.ag_gateway.middleware.request_log import RequestLogMiddleware
from src.ag_prediction.api.admin_router import router as prediction_admin_router
from src.ag_prediction.api.router import router as prediction_router
from src.ag_prediction.infrastructure.polymarket_client import close_polymarket_client
from src.ag_prediction.jobs.sync import build_prediction_jobs
from src.ag_trading.api.router import prices_router as trading_prices_router
from src.ag_trading.api.router import router as crypto_router
from src.ag_trading.infrastructure.price_feed import close_price_feed
from src.ag_trading.jobs.maintenance_fees import build_maintenance_job
from src.ag_wallet.api.router import payment_router
from src.ag_wallet.api.router import router as wallet_router

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def build_jobs() -> list[PeriodicJob]:
    jobs: list[PeriodicJob] = []
    if settings.PREDICTION_ENABLED:
        jobs.extend(build_prediction_jobs())
    if settings.MAINTENANCE_FEES_ENABLED:
        jobs.append(build_maintenance_job())
    return jobs


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, start jobs. Shutdown: stop jobs, dispose clients."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await ping_redis()
    scheduler = JobScheduler(build_jobs())
    scheduler.start()
    logger.info(
        "%s started with %d background jobs", settings.APP_NAME, len(scheduler.jobs)
    )
    yield
    # Shutdown
    scheduler.stop()
    await close_polymarket_client()
    await close_price_feed()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=VERSION,
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(wallet_router, prefix="/api/v1")
app.include_router(payment_router, prefix="/api/v1")
app.include_router(auction_router, prefix="/api/v1")
app.include_router(games_router, prefix="/api/v1")
app.include_router(prediction_router, prefix="/api/v1")
app.include_router(prediction_admin_router, prefix="/api/v1")
app.include_router(crypto_router, prefix="/api/v1")
app.include_router(trading_prices_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": VERSION}
