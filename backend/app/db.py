import re
from contextlib import contextmanager
from typing import Any, Mapping, Optional

import psycopg
from psycopg import errors as pg_errors
from psycopg import sql
from psycopg.rows import dict_row

# psycopg3 connection pooling lives in a separate package.
from psycopg_pool import ConnectionPool

from .config import settings
from .errors import ProcedureError
from .logs import json_log, redact_params

# Procedure and parameter names are interpolated as identifiers, never as text.
_IDENTIFIER_RE = re.compile(r"^[a-z_][a-z0-9_]*$")

# Opened on app startup; row_factory=dict_row keeps rows as plain dicts for handlers.
_pool = ConnectionPool(
    conninfo=settings.db_url,
    min_size=settings.db_pool_min_size,
    max_size=settings.db_pool_max_size,
    kwargs={"row_factory": dict_row},
    open=False,
)


@contextmanager
def _pooled_conn(pool: ConnectionPool):
    # `with get_conn() as conn:` commits on success, rolls back on exception
    # and returns the connection to the pool.
    with pool.connection() as conn:
        with conn:
            yield conn


def get_conn():
    return _pooled_conn(_pool)


def open_pool() -> None:
    _pool.open()


def close_pool() -> None:
    # Best-effort shutdown hook (e.g. uvicorn shutdown).
    try:
        _pool.close()
    except Exception as exc:
        json_log("warning", "db.pool_close_failed", error=str(exc))


def _set_statement_timeout(cur, timeout_ms: int):
    # `SET ... = %s` is not valid with the extended query protocol; set_config()
    # with is_local=true scopes the timeout to the current transaction.
    cur.execute(
        "SELECT set_config('statement_timeout', %s, true)",
        (str(int(timeout_ms)),),
    )


def _call_statement(procedure: str, params: Mapping[str, Any]) -> sql.Composed:
    args = [
        sql.SQL("{} => {}").format(sql.Identifier(name), sql.Placeholder(name))
        for name in params
    ]
    return sql.SQL("SELECT * FROM {}({})").format(
        sql.Identifier(procedure),
        sql.SQL(", ").join(args),
    )


def _db_message(exc: psycopg.Error) -> str:
    if isinstance(exc, pg_errors.QueryCanceled):
        return "procedure timed out"
    diag = getattr(exc, "diag", None)
    primary = getattr(diag, "message_primary", None) if diag is not None else None
    return primary or str(exc) or exc.__class__.__name__


def _assert_identifier(procedure: str, name: str) -> None:
    if not _IDENTIFIER_RE.match(name or ""):
        raise ProcedureError(procedure, f"invalid identifier: {name!r}")


def execute_procedure(procedure: str, params: Optional[Mapping[str, Any]] = None) -> list[list[dict]]:
    """
    Execute a stored procedure and return its recordsets in order.

    Procedures are PostgreSQL functions returning `SETOF refcursor`: each cursor
    is one recordset, fetched in the order the function opened them. Parameters
    set to None are omitted so the function default applies. The whole call is
    one transaction and is never retried.
    """
    _assert_identifier(procedure, procedure)
    bound = {k: v for k, v in (params or {}).items() if v is not None}
    for name in bound:
        _assert_identifier(procedure, name)

    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                _set_statement_timeout(cur, settings.procedure_timeout_ms)
                cur.execute(_call_statement(procedure, bound), bound)
                cursor_names = [next(iter(row.values())) for row in cur.fetchall()]
                recordsets: list[list[dict]] = []
                for name in cursor_names:
                    cur.execute(sql.SQL("FETCH ALL FROM {}").format(sql.Identifier(name)))
                    recordsets.append(list(cur.fetchall()))
                return recordsets
    except psycopg.Error as exc:
        message = _db_message(exc)
        json_log(
            "error",
            "procedure.error",
            procedure=procedure,
            params=redact_params(bound),
            error=message,
        )
        raise ProcedureError(procedure, message, exc) from exc
