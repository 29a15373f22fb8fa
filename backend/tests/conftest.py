import importlib
import os
import sys

import pytest


# Allow running pytest from either the repo root or from within `backend/`.
# Tests import `backend.*`, which requires the repo root on sys.path.
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

# Every module that binds `execute_procedure` at import time.
GATEWAY_CALLERS = (
    "backend.app.deps",
    "backend.app.invoice_queries",
    "backend.app.sales_orchestrator",
    "backend.app.invoice_voids",
    "backend.app.refunds",
    "backend.app.reporting",
    "backend.app.inventory_ops",
    "backend.app.patient_records",
    "backend.app.prescribers",
    "backend.app.user_admin",
    "backend.app.routers.auth",
)


class FakeGateway:
    """Stands in for the procedure gateway: canned recordsets, recorded calls."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self._responses: dict[str, list] = {}
        self._errors: dict[str, str] = {}

    def respond(self, procedure: str, *recordsets):
        self._responses[procedure] = [list(rs) for rs in recordsets]

    def fail(self, procedure: str, message: str):
        self._errors[procedure] = message

    def __call__(self, procedure, params=None):
        from backend.app.errors import ProcedureError

        self.calls.append((procedure, dict(params or {})))
        if procedure in self._errors:
            raise ProcedureError(procedure, self._errors[procedure])
        return self._responses.get(procedure, [])

    def called(self, procedure: str) -> bool:
        return any(name == procedure for name, _ in self.calls)

    def params_for(self, procedure: str) -> dict:
        for name, params in self.calls:
            if name == procedure:
                return params
        raise AssertionError(f"{procedure} was not called")


@pytest.fixture
def gateway(monkeypatch):
    fake = FakeGateway()
    for name in GATEWAY_CALLERS:
        monkeypatch.setattr(importlib.import_module(name), "execute_procedure", fake)
    return fake


@pytest.fixture
def cashier():
    from backend.app.deps import UserContext

    return UserContext(user_id=7, role_name="Cashier", username="cajero", full_name="Ana Mora")
