"""ag_trading REST API.

/crypto/*          leveraged positions and stats
/crypto/prices/{coin_id}/history, /crypto/coins/{coin_id}
                   price history and coin info for any tradable asset
/trading/prices    spot prices for every tradable asset
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.database import get_db_session
from src.ag_common.enums import PositionType
from src.ag_common.response import ApiResponse, success_response
from src.ag_gateway.auth.dependencies import get_current_user
from src.ag_gateway.user.db_models import UserModel
from src.ag_trading.application.schemas import OpenPositionRequest
from src.ag_trading.application.service import TradingService
from src.ag_trading.infrastructure.price_feed import MAX_HISTORY_DAYS

router = APIRouter(prefix="/crypto", tags=["trading"])
prices_router = APIRouter(prefix="/trading", tags=["trading"])

_service = TradingService()

CRYPTO_ASSETS = ["bitcoin", "ethereum", "dogecoin"]


@router.get("/prices")
async def crypto_prices(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    prices = await _service.prices(CRYPTO_ASSETS)
    return success_response(
        {"prices": {k: v.model_dump(mode="json") for k, v in prices.items()}}, request
    )


@router.get("/prices/{coin_id}/history")
async def price_history(
    coin_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
    days: int = Query(7, ge=1, le=MAX_HISTORY_DAYS),
) -> ApiResponse:
    data = await _service.price_history(coin_id, days)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/coins/{coin_id}")
async def coin_info(
    coin_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    data = await _service.asset_info(coin_id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/positions")
async def open_position(
    body: OpenPositionRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.open_position(
        db,
        str(current_user.id),
        body.coin_id,
        PositionType(body.position_type),
        body.leverage,
        body.margin_agon,
    )
    return success_response(data.model_dump(mode="json"), request, "Position opened")


@router.get("/positions")
async def list_positions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: str = Query("open", pattern="^(open|closed|all)$"),
) -> ApiResponse:
    items = await _service.list_positions(db, str(current_user.id), status)
    return success_response({"positions": [i.model_dump(mode="json") for i in items]}, request)


@router.get("/positions/{position_id}")
async def get_position(
    position_id: int,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_position(db, str(current_user.id), position_id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/positions/{position_id}/close")
async def close_position(
    position_id: int,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.close_position(db, str(current_user.id), position_id)
    return success_response(data.model_dump(mode="json"), request, "Position closed")


@router.get("/stats")
async def trading_stats(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.stats(db, str(current_user.id))
    return success_response(data.model_dump(mode="json"), request)


@prices_router.get("/prices")
async def trading_prices(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    prices = await _service.prices()
    return success_response(
        {"prices": {k: v.model_dump(mode="json") for k, v in prices.items()}}, request
    )
