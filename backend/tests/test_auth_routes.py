import json
from datetime import datetime, timedelta, timezone

import pytest

from backend.app.deps import SESSION_COOKIE_NAME
from backend.app.errors import InternalFailure, InvalidArgument, Unauthenticated
from backend.app.procedures import SP_AUTHENTICATE_USER, SP_CREATE_SESSION, SP_END_SESSION
from backend.app.routers import auth as auth_router
from backend.app.security import hash_session_token


def _user_row():
    return {
        "user_id": 7,
        "username": "cajero",
        "full_name": "Ana Mora",
        "email": "ana@example.com",
        "role_name": "Cashier",
        "default_warehouse_id": 1,
        "warehouse_name": "Principal",
    }


def test_login_creates_hashed_session_and_sets_cookie(gateway):
    gateway.respond(SP_AUTHENTICATE_USER, [_user_row()])

    resp = auth_router.login(auth_router.LoginIn(username=" cajero ", password="pw"))

    body = json.loads(resp.body)
    assert body["success"] is True
    assert body["user"]["userId"] == 7
    assert body["user"]["roleName"] == "Cashier"
    token = body["token"]

    assert gateway.params_for(SP_AUTHENTICATE_USER) == {"username": "cajero", "password": "pw"}
    session = gateway.params_for(SP_CREATE_SESSION)
    assert session["token_hash"] == hash_session_token(token)
    assert session["user_id"] == 7
    remaining = session["expires_at"] - datetime.now(timezone.utc)
    assert timedelta(minutes=29) < remaining <= timedelta(minutes=30)

    cookie = resp.headers["set-cookie"]
    assert f"{SESSION_COOKIE_NAME}={token}" in cookie
    assert "HttpOnly" in cookie


def test_login_requires_both_fields(gateway):
    with pytest.raises(InvalidArgument) as ei:
        auth_router.login(auth_router.LoginIn(username="ana"))
    assert ei.value.message == "Username and password are required"
    assert gateway.calls == []


def test_bad_credentials_are_unauthenticated(gateway):
    gateway.respond(SP_AUTHENTICATE_USER, [])
    with pytest.raises(Unauthenticated) as ei:
        auth_router.login(auth_router.LoginIn(username="ana", password="nope"))
    assert ei.value.message == "Invalid username or password"
    assert not gateway.called(SP_CREATE_SESSION)


def test_login_store_failure_is_safe(gateway):
    gateway.fail(SP_AUTHENTICATE_USER, "connection refused")
    with pytest.raises(InternalFailure) as ei:
        auth_router.login(auth_router.LoginIn(username="ana", password="pw"))
    assert ei.value.message == "Server error during login"


def test_logout_ends_session_and_clears_cookie(gateway, cashier):
    resp = auth_router.logout(user=cashier, authorization="Bearer tok-1", cookie_token=None)

    assert json.loads(resp.body) == {"success": True, "message": "Logged out successfully"}
    assert gateway.params_for(SP_END_SESSION) == {"token_hash": hash_session_token("tok-1")}
    cookie = resp.headers["set-cookie"]
    assert cookie.startswith(f"{SESSION_COOKIE_NAME}=")
    assert "Max-Age=0" in cookie


def test_session_check(cashier):
    assert auth_router.session(None) == {"loggedIn": False}
    assert auth_router.session(cashier) == {"loggedIn": True, "user": cashier.as_dict()}
