"""Admin-only prediction market management."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.database import get_db_session
from src.ag_common.enums import MarketStatus
from src.ag_common.response import ApiResponse, success_response
from src.ag_gateway.auth.dependencies import require_admin
from src.ag_gateway.user.db_models import UserModel
from src.ag_prediction.application.admin_service import PredictionAdminService
from src.ag_prediction.application.schemas import (
    MarketStatusRequest,
    TriggerSettlementRequest,
    WhitelistMarketRequest,
)
from src.ag_prediction.jobs.sync import sync_service

router = APIRouter(prefix="/admin/prediction", tags=["admin-prediction"])

_service = PredictionAdminService(sync=sync_service)


@router.get("/available-markets")
async def available_markets(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_available_markets(db)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/markets", status_code=status.HTTP_201_CREATED)
async def whitelist_market(
    body: WhitelistMarketRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.whitelist_market(db, str(admin.id), body.pm_market_id)
    return success_response(data.model_dump(mode="json"), request, "Market whitelisted")


@router.patch("/markets/{market_id}/status")
async def update_market_status(
    market_id: int,
    body: MarketStatusRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_market_status(
        db, str(admin.id), market_id, MarketStatus(body.status)
    )
    return success_response(data.model_dump(mode="json"), request, "Market status updated")


@router.delete("/markets/{market_id}")
async def remove_market(
    market_id: int,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.remove_market(db, str(admin.id), market_id)
    return success_response(data.model_dump(mode="json"), request, "Market removed from active listings")


@router.post("/markets/{market_id}/settle")
async def trigger_settlement(
    market_id: int,
    body: TriggerSettlementRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.trigger_settlement(db, str(admin.id), market_id, body.outcome)
    return success_response(data.model_dump(mode="json"), request, "Market settled")


@router.post("/markets/{market_id}/repair-tokens")
async def repair_market_tokens(
    market_id: int,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.repair_market_tokens(db, market_id)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/stats")
async def platform_stats(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_platform_stats(db)
    return success_response(data.model_dump(mode="json"), request)
