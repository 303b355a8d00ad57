"""User directory: list and search other users (payment recipients)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.database import get_db_session
from src.ag_common.response import ApiResponse, success_response
from src.ag_gateway.auth.dependencies import get_current_user
from src.ag_gateway.user.db_models import UserModel
from src.ag_gateway.user.service import UserService

router = APIRouter(prefix="/users", tags=["users"])
_service = UserService()


@router.get("")
async def list_users(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    users = await _service.list_users(db, str(current_user.id))
    return success_response([u.model_dump() for u in users], request)


@router.get("/search")
async def search_users(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    q: str | None = Query(None, max_length=16),
) -> ApiResponse:
    users = await _service.search_users(db, str(current_user.id), q)
    return success_response([u.model_dump() for u in users], request)
