from dataclasses import dataclass
from datetime import date
from typing import Optional

from .db import execute_procedure
from .errors import InternalFailure, InvalidArgument, NotFound, ProcedureError
from .procedures import (
    SP_GET_ALL_INVOICES,
    SP_GET_INVOICE_DETAILS,
    SP_GET_INVOICE_STATS,
    SP_SEARCH_INVOICES,
    InvoiceDetailResult,
    decode_invoice_detail,
    first_row,
    recordset,
)
from .validation import normalize_status_filter, parse_optional_date, parse_optional_int


@dataclass(frozen=True)
class InvoiceFilter:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    # None means "every status"; the UI's "All" sentinel never reaches the store.
    status: Optional[str] = None
    patient_id: Optional[int] = None


def build_invoice_filter(start_date=None, end_date=None, status=None, patient_id=None) -> InvoiceFilter:
    return InvoiceFilter(
        start_date=parse_optional_date(start_date, "startDate"),
        end_date=parse_optional_date(end_date, "endDate"),
        status=normalize_status_filter(status),
        patient_id=parse_optional_int(patient_id),
    )


def is_voided(invoice: Optional[dict]) -> bool:
    return bool((invoice or {}).get("is_voided"))


def list_invoices(f: InvoiceFilter) -> list[dict]:
    try:
        recordsets = execute_procedure(
            SP_GET_ALL_INVOICES,
            {
                "start_date": f.start_date,
                "end_date": f.end_date,
                "status": f.status,
                "patient_id": f.patient_id,
            },
        )
    except ProcedureError as exc:
        raise InternalFailure("Error loading invoices") from exc
    return recordset(recordsets)


def search_invoices(term=None, invoice_id=None) -> list[dict]:
    term = (term or "").strip() or None
    invoice_id = parse_optional_int(invoice_id)
    if not term and invoice_id is None:
        raise InvalidArgument("Search term or invoice ID required")
    try:
        recordsets = execute_procedure(SP_SEARCH_INVOICES, {"search_term": term, "invoice_id": invoice_id})
    except ProcedureError as exc:
        raise InternalFailure("Error searching invoices") from exc
    return recordset(recordsets)


def get_invoice_detail(invoice_id: int) -> InvoiceDetailResult:
    try:
        recordsets = execute_procedure(SP_GET_INVOICE_DETAILS, {"invoice_id": invoice_id})
    except ProcedureError as exc:
        raise InternalFailure("Error loading invoice details") from exc
    detail = decode_invoice_detail(recordsets)
    if detail.header is None:
        raise NotFound("Invoice not found")
    return detail


def invoice_stats() -> dict:
    try:
        recordsets = execute_procedure(SP_GET_INVOICE_STATS)
    except ProcedureError as exc:
        raise InternalFailure("Error loading statistics") from exc
    return first_row(recordsets) or {}
