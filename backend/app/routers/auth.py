from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import settings
from ..db import execute_procedure
from ..deps import (
    SESSION_COOKIE_NAME,
    UserContext,
    extract_session_token,
    get_current_user,
    require_role,
    require_user,
)
from ..errors import InternalFailure, InvalidArgument, ProcedureError, Unauthenticated
from ..logs import json_log
from ..procedures import SP_AUTHENTICATE_USER, SP_CREATE_SESSION, SP_END_SESSION, first_row
from ..security import hash_session_token, new_session_token
from ..user_admin import UserCreateIn, create_user, list_roles, list_users, user_detail

router = APIRouter(prefix="/auth", tags=["auth"])

require_user_admin = require_role(*settings.user_admin_roles)


class LoginIn(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


def _user_payload(row: dict) -> dict:
    return {
        "userId": row.get("user_id"),
        "username": row.get("username"),
        "fullName": row.get("full_name"),
        "email": row.get("email"),
        "roleName": row.get("role_name"),
        "warehouseId": row.get("default_warehouse_id"),
        "warehouseName": row.get("warehouse_name"),
    }


@router.post("/login")
def login(data: LoginIn):
    username = (data.username or "").strip()
    if not username or not data.password:
        raise InvalidArgument("Username and password are required")

    try:
        user = first_row(execute_procedure(SP_AUTHENTICATE_USER, {"username": username, "password": data.password}))
    except ProcedureError as exc:
        raise InternalFailure("Server error during login") from exc
    if not user or user.get("user_id") is None:
        json_log("warning", "auth.login_failed", username=username)
        raise Unauthenticated("Invalid username or password")

    # Use a strong random token and store only a one-way hash in the DB.
    token = new_session_token()
    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.session_minutes)
    try:
        execute_procedure(
            SP_CREATE_SESSION,
            {"token_hash": hash_session_token(token), "user_id": user["user_id"], "expires_at": expires},
        )
    except ProcedureError as exc:
        raise InternalFailure("Server error during login") from exc

    json_log("info", "auth.login", user_id=user["user_id"], username=user.get("username") or username)
    resp = JSONResponse(
        {
            "success": True,
            # Returned for API clients that send `Authorization: Bearer`.
            "token": token,
            "expiresAt": expires.isoformat(),
            "user": _user_payload(user),
        }
    )
    resp.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=not settings.is_dev,
        max_age=settings.session_minutes * 60,
        path="/",
    )
    return resp


@router.post("/logout")
def logout(
    user: UserContext = Depends(require_user),
    authorization: Optional[str] = Header(None),
    cookie_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
):
    token = extract_session_token(authorization, cookie_token)
    try:
        execute_procedure(SP_END_SESSION, {"token_hash": hash_session_token(token)})
    except ProcedureError as exc:
        raise InternalFailure("Error logging out") from exc
    json_log("info", "auth.logout", user_id=user.user_id)
    resp = JSONResponse({"success": True, "message": "Logged out successfully"})
    resp.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
    return resp


@router.get("/session")
def session(user: Optional[UserContext] = Depends(get_current_user)):
    if user is None:
        return {"loggedIn": False}
    return {"loggedIn": True, "user": user.as_dict()}


@router.get("/roles", dependencies=[Depends(require_user_admin)])
def roles_route():
    return {"success": True, "roles": list_roles()}


@router.get("/users", dependencies=[Depends(require_user_admin)])
def users_route():
    return {"success": True, "users": list_users()}


@router.get("/users/{user_id}", dependencies=[Depends(require_user_admin)])
def user_detail_route(user_id: str):
    return {"success": True, "user": user_detail(user_id)}


@router.post("/users")
def create_user_route(data: UserCreateIn, admin: UserContext = Depends(require_user_admin)):
    return {"success": True, "message": "User created successfully", "userId": create_user(data, admin)}
