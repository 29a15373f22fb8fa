import pytest

psycopg = pytest.importorskip("psycopg")

from psycopg import errors as pg_errors

from backend.app import db
from backend.app.errors import ProcedureError
from backend.app.procedures import (
    decode_adjustment,
    decode_invoice_detail,
    decode_sale_created,
    decode_session,
    first_row,
    recordset,
)


class _DummyCursor:
    def __init__(self, results, fail_on_call=None):
        # One entry per fetchall(), in order.
        self._results = list(results)
        self._fail_on_call = fail_on_call
        self.executed: list[tuple[object, object]] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, stmt, params=None):
        self.executed.append((stmt, params))
        # executed[0] is the statement timeout, executed[1] the procedure call.
        if self._fail_on_call is not None and len(self.executed) == 2:
            raise self._fail_on_call

    def fetchall(self):
        return self._results.pop(0)


class _DummyConn:
    def __init__(self, cursor: _DummyCursor):
        self._cursor = cursor

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def cursor(self):
        return self._cursor


def _patch_db(monkeypatch, cur):
    conn = _DummyConn(cur)
    monkeypatch.setattr(db, "get_conn", lambda: conn)
    return cur


def test_recordsets_come_back_in_cursor_order(monkeypatch):
    cur = _patch_db(
        monkeypatch,
        _DummyCursor(
            [
                [{"sp_get_invoice_details": "<unnamed portal 1>"}, {"sp_get_invoice_details": "<unnamed portal 2>"}],
                [{"invoice_id": 5}],
                [{"line_item_id": 1}, {"line_item_id": 2}],
            ]
        ),
    )

    out = db.execute_procedure("sp_get_invoice_details", {"invoice_id": 5})

    assert out == [[{"invoice_id": 5}], [{"line_item_id": 1}, {"line_item_id": 2}]]
    # timeout + call + one FETCH per cursor
    assert len(cur.executed) == 4
    assert cur.executed[0][1] == ("15000",)
    assert cur.executed[1][1] == {"invoice_id": 5}


def test_none_parameters_are_omitted(monkeypatch):
    cur = _patch_db(monkeypatch, _DummyCursor([[]]))

    out = db.execute_procedure("sp_get_all_invoices", {"start_date": None, "status": None, "patient_id": 3})

    assert out == []
    assert cur.executed[1][1] == {"patient_id": 3}


def test_driver_failure_becomes_procedure_error_with_redacted_log(monkeypatch):
    _patch_db(monkeypatch, _DummyCursor([], fail_on_call=psycopg.OperationalError("connection lost")))
    logged = []
    monkeypatch.setattr(db, "json_log", lambda level, event, **fields: logged.append((level, event, fields)))

    with pytest.raises(ProcedureError) as ei:
        db.execute_procedure("sp_authenticate_user", {"username": "ana", "password": "s3cret"})

    assert ei.value.procedure == "sp_authenticate_user"
    assert "connection lost" in ei.value.message
    assert isinstance(ei.value.cause, psycopg.OperationalError)
    level, event, fields = logged[0]
    assert (level, event) == ("error", "procedure.error")
    assert fields["params"] == {"username": "ana", "password": "***"}


def test_statement_timeout_is_reported_as_timeout(monkeypatch):
    _patch_db(monkeypatch, _DummyCursor([], fail_on_call=pg_errors.QueryCanceled("canceling statement")))
    monkeypatch.setattr(db, "json_log", lambda *a, **k: None)

    with pytest.raises(ProcedureError) as ei:
        db.execute_procedure("sp_report_overview")

    assert ei.value.message == "procedure timed out"


@pytest.mark.parametrize("name", ["sp_x; DROP TABLE users", "Sp_Upper", "", "1abc"])
def test_unsafe_procedure_names_are_rejected(name):
    with pytest.raises(ProcedureError):
        db.execute_procedure(name)


def test_unsafe_parameter_names_are_rejected():
    with pytest.raises(ProcedureError):
        db.execute_procedure("sp_search_invoices", {"search_term) --": "x"})


def test_recordset_helpers_tolerate_missing_sets():
    assert recordset([], 0) == []
    assert recordset([[{"a": 1}]], 2) == []
    assert first_row([[]]) is None
    assert first_row([[{"a": 1}, {"a": 2}]]) == {"a": 1}


def test_invoice_detail_decodes_three_recordsets():
    detail = decode_invoice_detail([[{"invoice_id": 1}], [{"line_item_id": 9}], [{"refund_id": 4}]])
    assert detail.header == {"invoice_id": 1}
    assert detail.items == [{"line_item_id": 9}]
    assert detail.refunds == [{"refund_id": 4}]

    missing = decode_invoice_detail([[]])
    assert missing.header is None
    assert missing.items == [] and missing.refunds == []


def test_sale_created_requires_an_invoice_id():
    assert decode_sale_created([]) is None
    assert decode_sale_created([[{"invoice_number": "F-1"}]]) is None
    created = decode_sale_created([[{"invoice_id": "42", "invoice_number": "F-0042"}]])
    assert created.invoice_id == 42
    assert created.invoice_number == "F-0042"


def test_session_and_adjustment_decoders():
    assert decode_session([[]]) is None
    sess = decode_session([[{"user_id": 3, "role_name": "Pharmacist", "username": "u", "full_name": "U"}]])
    assert sess.user_id == 3 and sess.role_name == "Pharmacist"
    assert sess.expires_at is None

    assert decode_adjustment([]) is None
    adj = decode_adjustment([[{"old_quantity": 10, "new_quantity": 4, "message": "ok"}]])
    assert (adj.old_quantity, adj.new_quantity, adj.message) == (10, 4, "ok")
