"""ag_games REST API: coinflip, blackjack, plinko, crash, history and stats.

All endpoints require JWT. Bets are in Stoneworks Dollars.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.database import get_db_session
from src.ag_common.errors import InvalidBetError
from src.ag_common.response import ApiResponse, success_response
from src.ag_games.application.blackjack import BlackjackService
from src.ag_games.application.crash import CrashService
from src.ag_games.application.schemas import (
    BlackjackRequest,
    CoinflipRequest,
    CrashBetRequest,
    CrashCashoutRequest,
    PlinkoRequest,
)
from src.ag_games.application.service import GameService
from src.ag_gateway.auth.dependencies import get_current_user
from src.ag_gateway.user.db_models import UserModel

router = APIRouter(prefix="/games", tags=["games"])

_games = GameService()
_blackjack = BlackjackService()
_crash = CrashService()


@router.post("/coinflip")
async def coinflip(
    body: CoinflipRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _games.coinflip(db, str(current_user.id), body.bet_amount, body.choice)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/blackjack")
async def blackjack(
    body: BlackjackRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    user_id = str(current_user.id)
    if body.action == "deal":
        data = await _blackjack.deal(db, user_id, body.bet_amount)
    elif body.action == "hit":
        data = await _blackjack.hit(db, user_id, body.game_id)
    elif body.action == "stand":
        data = await _blackjack.stand(db, user_id, body.game_id)
    else:
        raise InvalidBetError("Invalid action")
    return success_response(data.model_dump(mode="json"), request)


@router.post("/plinko")
async def plinko(
    body: PlinkoRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _games.plinko(db, str(current_user.id), body.bet_amount, body.rows, body.risk)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/history")
async def game_history(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(10, ge=1, le=100),
) -> ApiResponse:
    items = await _games.history(db, str(current_user.id), limit)
    return success_response({"games": [i.model_dump(mode="json") for i in items]}, request)


@router.get("/stats")
async def game_stats(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _games.stats(db, str(current_user.id))
    return success_response(data.model_dump(mode="json"), request)


# ---------------------------------------------------------------------------
# Crash
# ---------------------------------------------------------------------------


@router.get("/crash/round")
async def crash_round(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    data = await _crash.current_round(str(current_user.id))
    return success_response(data.model_dump(mode="json"), request)


@router.post("/crash/start")
async def crash_start(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    data = await _crash.start()
    return success_response(data.model_dump(mode="json"), request, "Round started")


@router.post("/crash/bet")
async def crash_bet(
    body: CrashBetRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _crash.place_bet(db, str(current_user.id), body.bet_amount, body.auto_cashout)
    return success_response(data.model_dump(mode="json"), request, "Bet placed")


@router.post("/crash/cashout")
async def crash_cashout(
    body: CrashCashoutRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _crash.cashout(db, str(current_user.id), body.multiplier)
    return success_response(data.model_dump(mode="json"), request, "Cashed out")


@router.post("/crash/finalize")
async def crash_finalize(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _crash.finalize(db)
    return success_response(data.model_dump(mode="json"), request, "Round finalized")
