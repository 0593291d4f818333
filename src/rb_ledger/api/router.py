"""rb_ledger REST API — wallet, spend, admin mint, streamer earnings and cashout."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import ledger_service as _service
from src.rb_common.database import get_db_session
from src.rb_common.response import ApiResponse, success_response
from src.rb_gateway.auth.dependencies import get_current_user, require_admin
from src.rb_gateway.auth.jwt_handler import CurrentUser
from src.rb_ledger.application.schemas import CashoutRequest, MintRequest, SpendRequest

router = APIRouter(tags=["ledger"])


@router.get("/wallet")
async def get_wallet(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_wallet(db, current_user.user_id)
    return success_response(data.model_dump(), request)


@router.get("/wallet/transactions")
async def list_transactions(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_transactions(db, current_user.user_id, cursor, limit)
    return success_response(data.model_dump(), request)


@router.post("/wallet/spend")
async def spend(
    body: SpendRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.spend(db, current_user.user_id, body)
    return success_response(data.model_dump(), request)


@router.post("/admin/rubis/mint")
async def admin_mint(
    body: MintRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.mint(db, body, granted_by=admin.user_id)
    return success_response(data.model_dump(), request)


@router.get("/streamers/{streamer_id}/earnings")
async def get_earnings(
    streamer_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.get_earnings(
        db, streamer_id, current_user.user_id, current_user.is_admin, limit
    )
    return success_response(data.model_dump(), request)


@router.post("/streamers/{streamer_id}/cashout")
async def request_cashout(
    streamer_id: str,
    body: CashoutRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.request_cashout(
        db, streamer_id, current_user.user_id, current_user.is_admin, body.value
    )
    return success_response(data.model_dump(), request)


@router.get("/admin/ledger/audit")
async def audit_ledger(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    user_id: str | None = Query(None, description="Restrict the conservation check to one user"),
) -> ApiResponse:
    data = await _service.audit(db, user_id)
    return success_response(data.model_dump(), request)
