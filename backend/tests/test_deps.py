from datetime import datetime, timedelta, timezone

import pytest

from backend.app.deps import UserContext, extract_session_token, require_role, require_user, resolve_user
from backend.app.errors import Forbidden, Unauthenticated
from backend.app.procedures import SP_GET_SESSION
from backend.app.security import hash_session_token


def test_bearer_header_wins_over_cookie():
    assert extract_session_token("Bearer abc", "cookie-tok") == "abc"
    assert extract_session_token("bearer  xyz ", None) == "xyz"
    assert extract_session_token(None, "cookie-tok") == "cookie-tok"
    assert extract_session_token("Basic Zm9v", None) is None
    assert extract_session_token(None, None) is None


def test_resolve_user_looks_up_hashed_token(gateway):
    gateway.respond(
        SP_GET_SESSION,
        [
            {
                "user_id": 11,
                "role_name": "Pharmacist",
                "username": "farma",
                "full_name": "Luis Soto",
                "expires_at": datetime.now(timezone.utc) + timedelta(minutes=10),
            }
        ],
    )

    user = resolve_user("plain-token")

    assert user == UserContext(user_id=11, role_name="Pharmacist", username="farma", full_name="Luis Soto")
    assert gateway.params_for(SP_GET_SESSION) == {"token_hash": hash_session_token("plain-token")}


def test_expired_or_unknown_sessions_resolve_to_none(gateway):
    assert resolve_user("nope") is None

    gateway.respond(
        SP_GET_SESSION,
        [{"user_id": 11, "role_name": "Cashier", "expires_at": datetime(2020, 1, 1)}],
    )
    assert resolve_user("old") is None


def test_require_user_rejects_anonymous():
    with pytest.raises(Unauthenticated) as ei:
        require_user(None)
    assert ei.value.status_code == 401
    assert ei.value.message == "Not authenticated. Please login."


def test_require_role_checks_allow_list(cashier):
    dep = require_role("Administrator", "Pharmacist")

    with pytest.raises(Forbidden) as ei:
        dep(cashier)
    assert ei.value.status_code == 403
    assert ei.value.message == "Insufficient permissions. Required role: Administrator or Pharmacist"

    admin = UserContext(user_id=1, role_name="Administrator")
    assert dep(admin) is admin


def test_user_context_payload_is_camel_case(cashier):
    assert cashier.as_dict() == {
        "userId": 7,
        "username": "cajero",
        "fullName": "Ana Mora",
        "roleName": "Cashier",
    }
