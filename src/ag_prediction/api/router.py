"""ag_prediction REST API for traders. All endpoints require JWT authentication."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.database import get_db_session
from src.ag_common.response import ApiResponse, success_response
from src.ag_gateway.auth.dependencies import get_current_user
from src.ag_gateway.user.db_models import UserModel
from src.ag_prediction.application.schemas import PlaceOrderRequest
from src.ag_prediction.application.service import PredictionService

router = APIRouter(prefix="/prediction", tags=["prediction"])

_service = PredictionService()


@router.get("/markets")
async def list_markets(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    items = await _service.list_markets(db)
    return success_response([i.model_dump(mode="json") for i in items], request)


@router.get("/markets/{market_id}")
async def get_market(
    market_id: int,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    days: int | None = Query(None, ge=1, le=365),
) -> ApiResponse:
    data = await _service.get_market(db, market_id, days)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/markets/{market_id}/orders")
async def place_order(
    market_id: int,
    body: PlaceOrderRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.place_order(
        db, str(current_user.id), market_id, body.side, body.action, body.quantity
    )
    return success_response(data.model_dump(mode="json"), request, "Order filled")


@router.get("/portfolio")
async def get_portfolio(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_portfolio(db, str(current_user.id))
    return success_response(data.model_dump(mode="json"), request)
