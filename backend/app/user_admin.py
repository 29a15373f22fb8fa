from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .db import execute_procedure
from .deps import UserContext
from .errors import InternalFailure, InvalidArgument, NotFound, ProcedureError
from .logs import json_log
from .procedures import SP_CREATE_USER, SP_GET_ALL_ROLES, SP_GET_ALL_USERS, SP_GET_USER_DETAILS, first_row, recordset
from .validation import TrimmedStr, parse_optional_int, parse_positive_id


class UserCreateIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    username: TrimmedStr = None
    password: Optional[str] = None
    full_name: TrimmedStr = None
    email: TrimmedStr = None
    role_id: Optional[int] = None
    warehouse_id: Optional[int] = None


def list_roles() -> list[dict]:
    try:
        return recordset(execute_procedure(SP_GET_ALL_ROLES, None))
    except ProcedureError as exc:
        raise InternalFailure("Error loading roles") from exc


def list_users() -> list[dict]:
    try:
        return recordset(execute_procedure(SP_GET_ALL_USERS, None))
    except ProcedureError as exc:
        raise InternalFailure("Error loading users") from exc


def user_detail(user_id) -> dict:
    uid = parse_positive_id(user_id, "Valid user ID required")
    try:
        row = first_row(execute_procedure(SP_GET_USER_DETAILS, {"user_id": uid}))
    except ProcedureError as exc:
        raise InternalFailure("Error loading user details") from exc
    if row is None:
        raise NotFound("User not found")
    return row


def create_user(data: UserCreateIn, admin: UserContext) -> Optional[int]:
    if not data.username or not data.password or not data.full_name or not data.role_id:
        raise InvalidArgument("Username, password, full name, and role are required")
    params = {
        "username": data.username,
        # Hashed inside the store, the same way sp_authenticate_user verifies it.
        "password": data.password,
        "full_name": data.full_name,
        "email": data.email or None,
        "role_id": parse_positive_id(data.role_id, "Valid role ID required"),
        "default_warehouse_id": parse_optional_int(data.warehouse_id),
        "created_by": admin.user_id,
    }
    try:
        row = first_row(execute_procedure(SP_CREATE_USER, params))
    except ProcedureError as exc:
        if exc.mentions("already exists"):
            raise InvalidArgument("Username already exists") from exc
        raise InternalFailure("Error creating user") from exc

    user_id = (row or {}).get("user_id")
    json_log("info", "user.created", user_id=user_id, username=data.username, created_by=admin.user_id)
    return user_id
