"""ag_auction REST API. All endpoints require JWT authentication."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_auction.application.schemas import (
    CreateAuctionRequest,
    PlaceBidRequest,
    ReportIssueRequest,
)
from src.ag_auction.application.service import DEFAULT_LIST_LIMIT, AuctionApplicationService
from src.ag_common.database import get_db_session
from src.ag_common.enums import AuctionStatus
from src.ag_common.response import ApiResponse, success_response
from src.ag_gateway.auth.dependencies import get_current_user
from src.ag_gateway.user.db_models import UserModel

router = APIRouter(prefix="/auctions", tags=["auctions"])

_service = AuctionApplicationService()


@router.get("")
async def list_auctions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status_filter: AuctionStatus = Query(AuctionStatus.ACTIVE, alias="status"),
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=200),
) -> ApiResponse:
    items = await _service.list_auctions(db, status_filter, limit)
    return success_response([i.model_dump(mode="json") for i in items], request)


@router.get("/my-auctions")
async def my_auctions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    items = await _service.my_auctions(db, str(current_user.id))
    return success_response([i.model_dump(mode="json") for i in items], request)


@router.get("/my-bids")
async def my_bids(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    items = await _service.my_bids(db, str(current_user.id))
    return success_response([i.model_dump(mode="json") for i in items], request)


@router.get("/{auction_id}")
async def get_auction(
    auction_id: int,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_auction(db, auction_id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_auction(
    body: CreateAuctionRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_auction(db, str(current_user.id), body)
    return success_response(data.model_dump(mode="json"), request, "Auction created")


@router.post("/{auction_id}/bid")
async def place_bid(
    auction_id: int,
    body: PlaceBidRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.place_bid(db, str(current_user.id), auction_id, body.amount)
    return success_response(data.model_dump(mode="json"), request, "Bid placed")


@router.post("/{auction_id}/confirm-delivery")
async def confirm_delivery(
    auction_id: int,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.confirm_delivery(db, str(current_user.id), auction_id)
    return success_response(data.model_dump(mode="json"), request, "Delivery confirmed")


@router.post("/{auction_id}/report-issue")
async def report_issue(
    auction_id: int,
    body: ReportIssueRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.report_delivery_issue(
        db, str(current_user.id), auction_id, body.reason
    )
    return success_response(data.model_dump(mode="json"), request, "Issue reported")


@router.delete("/{auction_id}")
async def cancel_auction(
    auction_id: int,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.cancel_auction(db, str(current_user.id), auction_id)
    return success_response(data.model_dump(mode="json"), request, "Auction cancelled")
