from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from ..deps import UserContext, require_user
from ..invoice_pdf import render_invoice_pdf
from ..invoice_queries import build_invoice_filter, get_invoice_detail, invoice_stats, list_invoices, search_invoices
from ..invoice_voids import VoidIn, void_invoice
from ..refunds import RefundIn, process_refund
from ..sales_orchestrator import SaleIn, create_sale
from ..validation import parse_positive_id

router = APIRouter(prefix="/invoices", tags=["invoices"])

INVALID_ID = "Valid invoice ID required"


@router.get("")
def list_invoices_route(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    status: Optional[str] = None,
    patient_id: Optional[str] = Query(None, alias="patientId"),
):
    f = build_invoice_filter(start_date=start_date, end_date=end_date, status=status, patient_id=patient_id)
    return {"success": True, "invoices": list_invoices(f)}


@router.post("")
def create_invoice_route(data: SaleIn, user: UserContext = Depends(require_user)):
    # Same workflow as POST /sales/invoice.
    return {"success": True, "message": "Sale processed successfully", **create_sale(data, user)}


@router.get("/stats")
def invoice_stats_route():
    return {"success": True, "stats": invoice_stats()}


@router.get("/search")
def search_invoices_route(
    term: Optional[str] = None,
    invoice_id: Optional[str] = Query(None, alias="invoiceId"),
):
    return {"success": True, "invoices": search_invoices(term=term, invoice_id=invoice_id)}


@router.get("/{invoice_id}")
def get_invoice_route(invoice_id: str):
    detail = get_invoice_detail(parse_positive_id(invoice_id, INVALID_ID))
    return {"success": True, "invoice": detail.header, "items": detail.items, "refunds": detail.refunds}


@router.post("/{invoice_id}/void")
def void_invoice_route(invoice_id: str, data: VoidIn, user: UserContext = Depends(require_user)):
    row = void_invoice(parse_positive_id(invoice_id, INVALID_ID), data.void_reason, user)
    return {"success": True, "message": "Invoice voided successfully", "invoice": row}


@router.post("/{invoice_id}/refund")
def refund_invoice_route(invoice_id: str, data: RefundIn, user: UserContext = Depends(require_user)):
    row = process_refund(parse_positive_id(invoice_id, INVALID_ID), data, user)
    return {"success": True, "message": "Refund processed successfully", "refund": row}


@router.get("/{invoice_id}/pdf")
def invoice_pdf_route(invoice_id: str):
    iid = parse_positive_id(invoice_id, INVALID_ID)
    detail = get_invoice_detail(iid)
    pdf = render_invoice_pdf(detail.header, detail.items, detail.refunds)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=invoice-{iid}.pdf"},
    )
