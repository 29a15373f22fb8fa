from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import Cookie, Depends, Header

from .db import execute_procedure
from .errors import Forbidden, Unauthenticated
from .procedures import SP_GET_SESSION, decode_session
from .security import hash_session_token

SESSION_COOKIE_NAME = "healthtrack_session"


@dataclass(frozen=True)
class UserContext:
    user_id: int
    role_name: Optional[str]
    username: Optional[str] = None
    full_name: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "username": self.username,
            "fullName": self.full_name,
            "roleName": self.role_name,
        }


def extract_session_token(authorization: Optional[str], cookie_token: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    if cookie_token:
        return cookie_token
    return None


def _is_expired(expires_at) -> bool:
    if not isinstance(expires_at, datetime):
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at < datetime.now(timezone.utc)


def resolve_user(token: str) -> Optional[UserContext]:
    sess = decode_session(execute_procedure(SP_GET_SESSION, {"token_hash": hash_session_token(token)}))
    if sess is None or _is_expired(sess.expires_at):
        return None
    return UserContext(
        user_id=sess.user_id,
        role_name=sess.role_name,
        username=sess.username,
        full_name=sess.full_name,
    )


def get_current_user(
    authorization: Optional[str] = Header(None),
    cookie_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
) -> Optional[UserContext]:
    token = extract_session_token(authorization, cookie_token)
    if not token:
        return None
    return resolve_user(token)


def require_user(user: Optional[UserContext] = Depends(get_current_user)) -> UserContext:
    if user is None:
        raise Unauthenticated()
    return user


def require_role(*roles: str):
    allowed = {r for r in roles if r}

    def _dep(user: UserContext = Depends(require_user)) -> UserContext:
        if user.role_name not in allowed:
            raise Forbidden("Insufficient permissions. Required role: " + " or ".join(roles))
        return user

    return _dep
