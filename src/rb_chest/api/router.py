"""rb_chest REST API — chest state, deposit, open/join/close/cancel."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import chest_service as _service
from src.rb_chest.application.schemas import DepositRequest, JoinChestRequest, OpenChestRequest
from src.rb_common.database import get_db_session
from src.rb_common.response import ApiResponse, success_response
from src.rb_gateway.auth.dependencies import get_current_user
from src.rb_gateway.auth.jwt_handler import CurrentUser

router = APIRouter(prefix="/streamers/{streamer_id}/chest", tags=["chest"])


@router.get("")
async def get_chest(
    streamer_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_chest(db, streamer_id)
    return success_response(data.model_dump(), request)


@router.post("/deposit")
async def deposit(
    streamer_id: str,
    body: DepositRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.deposit(
        db, streamer_id, current_user.user_id, current_user.is_admin, body
    )
    return success_response(data.model_dump(), request)


@router.post("/open")
async def open_chest(
    streamer_id: str,
    body: OpenChestRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.open_chest(
        db, streamer_id, current_user.user_id, current_user.is_admin, body
    )
    return success_response(data.model_dump(), request)


@router.post("/join")
async def join_chest(
    streamer_id: str,
    body: JoinChestRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.join_current(db, streamer_id, current_user.user_id, body.opening_id)
    return success_response(data.model_dump(), request)


@router.post("/close")
async def close_chest(
    streamer_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.close_current(
        db, streamer_id, current_user.user_id, current_user.is_admin
    )
    return success_response(data.model_dump(), request)


@router.post("/openings/{opening_id}/cancel")
async def cancel_chest(
    streamer_id: str,
    opening_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.cancel_chest(
        db, opening_id, current_user.user_id, current_user.is_admin, streamer_id
    )
    return success_response(data.model_dump(), request)
