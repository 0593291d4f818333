"""rb_bonus REST API — daily claim, milestone claim, status."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import bonus_service as _service
from src.rb_common.database import get_db_session
from src.rb_common.response import ApiResponse, success_response
from src.rb_gateway.auth.dependencies import get_current_user
from src.rb_gateway.auth.jwt_handler import CurrentUser

router = APIRouter(prefix="/bonus", tags=["bonus"])


@router.get("/status")
async def get_status(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_status(db, current_user.user_id)
    return success_response(data.model_dump(), request)


@router.post("/daily/claim")
async def claim_daily(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.claim_daily(db, current_user.user_id)
    return success_response(data.model_dump(), request)


@router.post("/milestones/{milestone}/claim")
async def claim_milestone(
    milestone: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.claim_milestone(db, current_user.user_id, milestone)
    return success_response(data.model_dump(), request)
