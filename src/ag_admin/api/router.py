"""Admin REST API: users, balances, metrics, activity, invite codes, auctions."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_admin.application.schemas import AdjustBalanceRequest, CreateInviteCodeRequest
from src.ag_admin.application.service import AdminService
from src.ag_common.database import get_db_session
from src.ag_common.response import ApiResponse, success_response
from src.ag_gateway.auth.dependencies import require_admin
from src.ag_gateway.user.db_models import UserModel

router = APIRouter(prefix="/admin", tags=["admin"])

_service = AdminService()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users")
async def list_users(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    items = await _service.list_users(db)
    return success_response({"users": [i.model_dump(mode="json") for i in items]}, request)


@router.post("/users/{user_id}/toggle-disabled")
async def toggle_disabled(
    user_id: uuid.UUID,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.toggle_disabled(db, str(admin.id), str(user_id))
    return success_response(data.model_dump(mode="json"), request)


@router.post("/users/{user_id}/toggle-admin")
async def toggle_admin(
    user_id: uuid.UUID,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.toggle_admin(db, str(admin.id), str(user_id))
    return success_response(data.model_dump(mode="json"), request)


@router.post("/users/{user_id}/adjust-balance")
async def adjust_balance(
    user_id: uuid.UUID,
    body: AdjustBalanceRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.adjust_balance(db, str(admin.id), str(user_id), body.currency, body.amount)
    return success_response(data.model_dump(mode="json"), request, "Balance updated")


# ---------------------------------------------------------------------------
# Metrics and activity
# ---------------------------------------------------------------------------


@router.get("/metrics")
async def metrics(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.metrics(db)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/activity")
async def activity(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    items = await _service.activity(db, limit, offset)
    return success_response({"activity": [i.model_dump(mode="json") for i in items]}, request)


# ---------------------------------------------------------------------------
# Invite codes
# ---------------------------------------------------------------------------


@router.get("/invite-codes")
async def list_invite_codes(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    items = await _service.list_invite_codes(db)
    return success_response({"codes": [i.model_dump(mode="json") for i in items]}, request)


@router.post("/invite-codes", status_code=status.HTTP_201_CREATED)
async def create_invite_code(
    body: CreateInviteCodeRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_invite_code(db, str(admin.id), body.code)
    return success_response(data.model_dump(mode="json"), request, "Invite code created")


@router.post("/invite-codes/generate", status_code=status.HTTP_201_CREATED)
async def generate_invite_code(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.generate_invite_code(db, str(admin.id))
    return success_response(data.model_dump(mode="json"), request, "Invite code generated")


@router.delete("/invite-codes/{code_id}")
async def delete_invite_code(
    code_id: int,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _service.delete_invite_code(db, str(admin.id), code_id)
    return success_response({"id": code_id}, request, "Invite code deleted")


# ---------------------------------------------------------------------------
# Auctions
# ---------------------------------------------------------------------------


@router.get("/auctions/disputed")
async def list_disputed(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    items = await _service.list_disputed(db)
    return success_response({"auctions": [i.model_dump(mode="json") for i in items]}, request)


@router.post("/auctions/{auction_id}/force-end")
async def force_end_auction(
    auction_id: int,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.force_end_auction(db, str(admin.id), auction_id)
    return success_response(data.model_dump(mode="json"), request, "Auction force-ended")


@router.post("/auctions/{auction_id}/auto-release")
async def auto_release_escrow(
    auction_id: int,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.auto_release_escrow(db, str(admin.id), auction_id)
    return success_response(data.model_dump(mode="json"), request, "Escrow released")
