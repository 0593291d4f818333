"""Unit tests for JWT verification and the auth dependencies."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from config.settings import settings
from src.rb_common.enums import UserRole
from src.rb_common.errors import ForbiddenError
from src.rb_gateway.auth.dependencies import get_current_user, require_admin
from src.rb_gateway.auth.jwt_handler import CurrentUser, InvalidTokenError, decode_token


def _token(secret: str | None = None, **claims: object) -> str:
    payload = {"exp": datetime.now(timezone.utc) + timedelta(minutes=5), **claims}
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestDecodeToken:
    def test_plain_user(self) -> None:
        user = decode_token(_token(sub="u-1"))
        assert user == CurrentUser("u-1", UserRole.USER)
        assert not user.is_admin

    def test_admin_role(self) -> None:
        user = decode_token(_token(sub="u-1", role="admin", type="access"))
        assert user.role is UserRole.ADMIN
        assert user.is_admin

    def test_unknown_role_falls_back_to_user(self) -> None:
        assert decode_token(_token(sub="u-1", role="superuser")).role is UserRole.USER

    def test_refresh_token_rejected(self) -> None:
        with pytest.raises(InvalidTokenError):
            decode_token(_token(sub="u-1", type="refresh"))

    def test_missing_subject(self) -> None:
        with pytest.raises(InvalidTokenError):
            decode_token(_token(role="admin"))

    def test_bad_signature(self) -> None:
        with pytest.raises(InvalidTokenError):
            decode_token(_token(secret="some-other-secret", sub="u-1"))

    def test_expired(self) -> None:
        token = _token(sub="u-1", exp=datetime.now(timezone.utc) - timedelta(seconds=1))
        with pytest.raises(InvalidTokenError):
            decode_token(token)

    def test_garbage(self) -> None:
        with pytest.raises(InvalidTokenError):
            decode_token("not-a-jwt")


class TestDependencies:
    @pytest.mark.asyncio
    async def test_missing_credentials_is_401(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(None)
        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_bearer("not-a-jwt"))
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_token(self) -> None:
        user = await get_current_user(_bearer(_token(sub="u-9", role="streamer")))
        assert user == CurrentUser("u-9", UserRole.STREAMER)

    @pytest.mark.asyncio
    async def test_require_admin(self) -> None:
        admin = CurrentUser("a-1", UserRole.ADMIN)
        assert await require_admin(admin) is admin
        with pytest.raises(ForbiddenError) as exc_info:
            await require_admin(CurrentUser("u-1"))
        assert exc_info.value.code == 4030
        assert exc_info.value.http_status == 403
