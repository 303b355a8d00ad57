"""ag_wallet REST API: wallet, swap, transactions, payments. All require JWT."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.database import get_db_session
from src.ag_common.response import ApiResponse, success_response
from src.ag_gateway.auth.dependencies import get_current_user
from src.ag_gateway.user.db_models import UserModel
from src.ag_wallet.application.schemas import PaymentRequest, SwapRequest
from src.ag_wallet.application.service import WalletApplicationService

router = APIRouter(prefix="/wallet", tags=["wallet"])
payment_router = APIRouter(prefix="/payment", tags=["payment"])

_service = WalletApplicationService()


@router.get("")
async def get_wallet(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_wallet(db, str(current_user.id))
    return success_response(data.model_dump(mode="json"), request)


@router.post("/swap")
async def swap(
    body: SwapRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.swap(
        db, str(current_user.id), body.from_currency, body.to_currency, body.amount
    )
    return success_response(data.model_dump(mode="json"), request, "Swap completed")


@router.get("/transactions")
async def list_transactions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    data = await _service.list_transactions(db, str(current_user.id), limit, offset)
    return success_response(data.model_dump(mode="json"), request)


@payment_router.post("/send")
async def send_payment(
    body: PaymentRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.send_payment(
        db,
        str(current_user.id),
        current_user.username,
        body.recipient_username,
        body.currency,
        body.amount,
        body.description,
    )
    return success_response(data.model_dump(mode="json"), request, "Payment sent")


@payment_router.get("/transactions")
async def payment_transactions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    data = await _service.list_transactions(db, str(current_user.id), limit, offset)
    return success_response(data.model_dump(mode="json"), request)
