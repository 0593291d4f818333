"""JWT verification for tokens issued by the external auth service.

This service never issues tokens; it only verifies them. HS256 with a shared
JWT_SECRET. Claims used: "sub" (user id), optional "role" (user|streamer|admin).
"""

from dataclasses import dataclass

from jose import JWTError, jwt

from config.settings import settings
from src.rb_common.enums import UserRole


class InvalidTokenError(Exception):
    pass


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


def decode_token(token: str) -> CurrentUser:
    """Decode and validate an access token.

    Raises:
        InvalidTokenError: bad signature, expired, wrong type, or missing subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError as exc:
        raise InvalidTokenError(str(exc)) from exc

    if payload.get("type", "access") != "access":
        raise InvalidTokenError("not an access token")
    user_id = payload.get("sub")
    if not user_id:
        raise InvalidTokenError("missing subject")
    try:
        role = UserRole(payload.get("role", UserRole.USER.value))
    except ValueError:
        role = UserRole.USER
    return CurrentUser(user_id=str(user_id), role=role)
