"""Auth API router: signup, login, logout, profile.

The token is returned in the body and also set as an httpOnly cookie so
browser clients need not store it. request_id is read from request.state
(injected by RequestLogMiddleware).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ag_common.database import get_db_session
from src.ag_common.response import ApiResponse, success_response
from src.ag_gateway.auth.dependencies import get_current_user
from src.ag_gateway.auth.jwt_handler import IssuedToken
from src.ag_gateway.user.db_models import UserModel
from src.ag_gateway.user.schemas import AuthResponse, LoginRequest, SignupRequest
from src.ag_gateway.user.service import UserService, user_info

router = APIRouter(prefix="/auth", tags=["auth"])
_service = UserService()


def _set_auth_cookie(response: Response, issued: IssuedToken) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=issued.token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.JWT_EXPIRE_DAYS * 24 * 3600,
        path="/",
    )


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse,
    summary="User signup",
)
async def signup(
    request: Request,
    response: Response,
    body: SignupRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user, issued, has_bonus = await _service.signup(
        db, body.username, body.password, body.invite_code
    )
    _set_auth_cookie(response, issued)
    data = AuthResponse(
        token=issued.token,
        expires_at=issued.expires_at.isoformat(),
        user=user_info(user),
        has_bonus=has_bonus,
    )
    return success_response(data.model_dump(), request, "User created successfully")


@router.post(
    "/login",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="User login",
)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user, issued = await _service.login(db, body.username, body.password)
    _set_auth_cookie(response, issued)
    data = AuthResponse(
        token=issued.token,
        expires_at=issued.expires_at.isoformat(),
        user=user_info(user),
    )
    return success_response(data.model_dump(), request, "Login successful")


@router.post("/logout", response_model=ApiResponse, summary="Revoke the current session")
async def logout(
    request: Request,
    response: Response,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    await _service.logout(db, request.state.token_jti)
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    return success_response({"username": current_user.username}, request, "Logged out")


@router.get("/profile", response_model=ApiResponse, summary="Current user and wallet")
async def profile(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.profile(db, current_user)
    return success_response(data.model_dump(mode="json"), request)
