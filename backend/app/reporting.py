from dataclasses import dataclass
from datetime import date
from typing import Optional

from .db import execute_procedure
from .errors import InternalFailure, ProcedureError
from .procedures import (
    SP_GET_DASHBOARD_SUMMARY,
    SP_GET_TOP_PRODUCTS,
    SP_REPORT_INVENTORY_MOVEMENT,
    SP_REPORT_OVERVIEW,
    SP_REPORT_REFUND_SUMMARY,
    SP_REPORT_SALES_TREND,
    SP_REPORT_TOP_PRODUCTS,
    first_row,
    recordset,
)
from .validation import parse_optional_date, parse_optional_int

DEFAULT_TOP = 10
DEFAULT_DASHBOARD_DAYS = 30


@dataclass(frozen=True)
class DateRange:
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def params(self) -> dict:
        return {"start_date": self.start_date, "end_date": self.end_date}


def build_date_range(start_date=None, end_date=None) -> DateRange:
    return DateRange(
        start_date=parse_optional_date(start_date, "startDate"),
        end_date=parse_optional_date(end_date, "endDate"),
    )


def _positive_or(raw, default: int) -> int:
    n = parse_optional_int(raw)
    if n is None or n <= 0:
        return default
    return n


def _call(procedure: str, params: Optional[dict], failure: str) -> list:
    try:
        return execute_procedure(procedure, params)
    except ProcedureError as exc:
        raise InternalFailure(failure) from exc


def overview(r: DateRange) -> dict:
    return first_row(_call(SP_REPORT_OVERVIEW, r.params(), "Error loading overview")) or {}


def sales_trend(r: DateRange) -> list[dict]:
    return recordset(_call(SP_REPORT_SALES_TREND, r.params(), "Error loading sales trend"))


def top_products(r: DateRange, top=None) -> list[dict]:
    params = {**r.params(), "top": _positive_or(top, DEFAULT_TOP)}
    return recordset(_call(SP_REPORT_TOP_PRODUCTS, params, "Error loading top products"))


def refund_summary(r: DateRange) -> list[dict]:
    return recordset(_call(SP_REPORT_REFUND_SUMMARY, r.params(), "Error loading refunds"))


def inventory_movements(r: DateRange) -> list[dict]:
    return recordset(_call(SP_REPORT_INVENTORY_MOVEMENT, r.params(), "Error loading inventory movements"))


def dashboard_summary() -> list[dict]:
    return recordset(_call(SP_GET_DASHBOARD_SUMMARY, None, "Error loading dashboard data"))


def dashboard_top_products(limit=None, days=None) -> list[dict]:
    params = {
        "top_n": _positive_or(limit, DEFAULT_TOP),
        "days_back": _positive_or(days, DEFAULT_DASHBOARD_DAYS),
    }
    return recordset(_call(SP_GET_TOP_PRODUCTS, params, "Error loading top products"))
