from __future__ import annotations

import os
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from io import BytesIO
from typing import Any, Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .config import settings
from .money import format_money, to_decimal

WALK_IN_NAMES = {"", "mostrador", "walk-in"}
WALK_IN_LABEL = "Walk-in customer"

PAGE_W, PAGE_H = A4
LEFT = 18 * mm
RIGHT = PAGE_W - 18 * mm
TOP = PAGE_H - 15 * mm
# Cursor positions below this start a new page.
BOTTOM_LIMIT = 30 * mm

# Item table columns: product, qty, unit price, line total (right aligned).
COL_QTY = LEFT + 100 * mm
COL_UNIT = LEFT + 120 * mm


def _fmt_date(d: Any) -> str:
    if not d:
        return "N/A"
    if isinstance(d, (datetime, date)):
        return d.strftime("%d/%m/%Y")
    s = str(d).strip()
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).strftime("%d/%m/%Y")
    except ValueError:
        return s


def _money(v: Any) -> str:
    return format_money(v, settings.currency_code)


def _text(v: Any, default: str = "N/A") -> str:
    s = str(v).strip() if v is not None else ""
    return s or default


def invoice_status_label(invoice: dict, refunds: Sequence[dict]) -> str:
    if (invoice or {}).get("is_voided"):
        return "VOIDED"
    if refunds:
        return "REFUNDED"
    return "ACTIVE"


def buyer_lines(invoice: dict) -> list[str]:
    name = str(invoice.get("patient_name") or "").strip()
    if name.lower() in WALK_IN_NAMES:
        return [f"Customer: {WALK_IN_LABEL}"]
    return [f"Customer: {name}", f"Document: {_text(invoice.get('patient_document'))}"]


def tax_label(invoice: dict) -> str:
    """Tax caption with the rate the invoice was actually charged at."""
    subtotal = to_decimal(invoice.get("subtotal"))
    if subtotal <= 0:
        return "Tax:"
    # Totals are stored rounded to cents, so the derived rate is rounded to a tenth.
    rate = (to_decimal(invoice.get("tax_total")) / subtotal * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"Tax ({rate.normalize():f}%):"


def totals_rows(invoice: dict) -> list[tuple[str, str, bool]]:
    """Label, formatted amount and bold flag for each line of the totals block."""
    rows = [
        ("Subtotal:", _money(invoice.get("subtotal")), False),
        (tax_label(invoice), _money(invoice.get("tax_total")), False),
    ]
    if to_decimal(invoice.get("discount_total")) > 0:
        rows.append(("Discount:", _money(invoice.get("discount_total")), False))
    insured = to_decimal(invoice.get("insurance_coverage")) > 0
    if insured:
        rows.append(("Insurance coverage:", _money(invoice.get("insurance_coverage")), False))
    rows.append(("TOTAL:", _money(invoice.get("grand_total")), True))
    if insured:
        rows.append(("Patient pays:", _money(invoice.get("patient_pays")), True))
    return rows


def _read_logo() -> Optional[ImageReader]:
    path = settings.pdf_logo_path
    if not path or not os.path.isfile(path):
        return None
    try:
        return ImageReader(path)
    except OSError:
        return None


def _draw_branding(c: canvas.Canvas) -> float:
    logo = _read_logo()
    if logo is not None:
        iw, ih = logo.getSize()
        draw_w = 50 * mm
        draw_h = draw_w * float(ih) / float(iw or 1)
        c.drawImage(logo, LEFT, TOP - draw_h, width=draw_w, height=draw_h, preserveAspectRatio=True, mask="auto")

    y = TOP - 4 * mm
    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 11)
    c.drawRightString(RIGHT, y, settings.pdf_company_name)
    c.setFont("Helvetica", 9)
    for line in (settings.pdf_tagline, settings.pdf_phone, settings.pdf_email):
        if line:
            y -= 5 * mm
            c.drawRightString(RIGHT, y, line)
    return TOP - 28 * mm


def _draw_table_header(c: canvas.Canvas, y: float) -> float:
    c.setFont("Helvetica-Bold", 10)
    c.drawString(LEFT, y, "Product")
    c.drawString(COL_QTY, y, "Qty")
    c.drawString(COL_UNIT, y, "Unit price")
    c.drawRightString(RIGHT, y, "Total")
    y -= 3 * mm
    c.setLineWidth(0.4)
    c.line(LEFT, y, RIGHT, y)
    return y - 5 * mm


def _new_page(c: canvas.Canvas) -> float:
    c.showPage()
    return TOP


def _ensure_room(c: canvas.Canvas, y: float, needed: float) -> float:
    if y - needed < BOTTOM_LIMIT:
        return _new_page(c)
    return y


def _draw_items(c: canvas.Canvas, y: float, items: Sequence[dict]) -> float:
    y = _draw_table_header(c, y)
    c.setFont("Helvetica", 9)
    for it in items:
        if y < BOTTOM_LIMIT:
            y = _draw_table_header(c, _new_page(c))
            c.setFont("Helvetica", 9)
        c.drawString(LEFT, y, str(it.get("product_name") or "")[:55])
        c.drawString(COL_QTY, y, _text(it.get("quantity"), ""))
        c.drawString(COL_UNIT, y, _money(it.get("unit_price")))
        c.drawRightString(RIGHT, y, _money(it.get("line_total")))
        y -= 7 * mm
    return y


def _draw_totals(c: canvas.Canvas, y: float, invoice: dict) -> float:
    rows = totals_rows(invoice)
    y = _ensure_room(c, y, (len(rows) + 2) * 7 * mm)
    y -= 4 * mm
    c.setLineWidth(0.6)
    c.line(LEFT, y, RIGHT, y)
    y -= 6 * mm
    label_x = RIGHT - 70 * mm
    for label, amount, bold in rows:
        c.setFont("Helvetica-Bold" if bold else "Helvetica", 11 if bold else 10)
        c.drawString(label_x, y, label)
        c.drawRightString(RIGHT, y, amount)
        y -= 7 * mm
    return y


def _draw_refunds(c: canvas.Canvas, y: float, refunds: Sequence[dict]) -> float:
    y = _ensure_room(c, y - 6 * mm, 12 * mm)
    c.setFont("Helvetica-Bold", 12)
    c.drawString(LEFT, y, "REFUND HISTORY")
    y -= 7 * mm
    for r in refunds:
        y = _ensure_room(c, y, 26 * mm)
        c.setFont("Helvetica-Bold", 9)
        c.drawString(LEFT, y, f"Refund #{_text(r.get('refund_id'))} - {_fmt_date(r.get('processed_at'))}")
        c.setFont("Helvetica", 9)
        for line in (
            f"Amount: {_money(r.get('refund_amount'))}",
            f"Method: {_text(r.get('refund_method'))}",
            f"Reason: {_text(r.get('refund_reason'))}",
            f"Processed by: {_text(r.get('processed_by_name'))}",
        ):
            y -= 5 * mm
            c.drawString(LEFT + 6 * mm, y, line[:90])
        y -= 8 * mm
    return y


def _draw_void_banner(c: canvas.Canvas, y: float, invoice: dict) -> float:
    y = _ensure_room(c, y - 6 * mm, 28 * mm)
    c.setFillColor(colors.red)
    c.setFont("Helvetica-Bold", 12)
    c.drawString(LEFT, y, "INVOICE VOIDED")
    c.setFillColor(colors.black)
    c.setFont("Helvetica", 9)
    for line in (
        f"Reason: {_text(invoice.get('void_reason'))}",
        f"Voided by: {_text(invoice.get('voided_by_name'))}",
        f"Date: {_fmt_date(invoice.get('voided_at'))}",
    ):
        y -= 5 * mm
        c.drawString(LEFT + 6 * mm, y, line[:90])
    return y - 6 * mm


def _draw_footer(c: canvas.Canvas) -> None:
    c.setFillColor(colors.grey)
    c.setFont("Helvetica", 8)
    c.drawCentredString(PAGE_W / 2, 16 * mm, "Thank you for your purchase")
    c.drawCentredString(PAGE_W / 2, 12 * mm, f"{settings.pdf_company_name} - Pharmacy Management System")
    c.setFillColor(colors.black)


def render_invoice_pdf(invoice: dict, items: Sequence[dict], refunds: Sequence[dict]) -> bytes:
    """
    Render a printable invoice document.

    Pure presentation over the invoice detail recordsets; nothing is looked up
    here. Long item lists continue on following pages with the table header
    repeated.
    """
    invoice = invoice or {}
    items = list(items or [])
    refunds = list(refunds or [])

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4, invariant=True)
    c.setTitle(f"Invoice {_text(invoice.get('invoice_number'), str(invoice.get('invoice_id') or ''))}")

    y = _draw_branding(c)

    c.setFont("Helvetica-Bold", 20)
    c.drawCentredString(PAGE_W / 2, y, "INVOICE")
    y -= 12 * mm

    meta_y = y
    c.setFont("Helvetica", 10)
    for line in (
        f"Invoice #: {_text(invoice.get('invoice_id'))}",
        f"Number: {_text(invoice.get('invoice_number'))}",
        f"Date: {_fmt_date(invoice.get('invoice_date'))}",
        f"Seller: {_text(invoice.get('sold_by_name'))}",
    ):
        c.drawString(LEFT, y, line)
        y -= 6 * mm

    buyer_x = PAGE_W / 2 + 10 * mm
    by = meta_y
    for line in buyer_lines(invoice):
        c.drawString(buyer_x, by, line[:50])
        by -= 6 * mm
    c.setFont("Helvetica-Bold", 10)
    c.drawString(buyer_x, meta_y - 18 * mm, f"Status: {invoice_status_label(invoice, refunds)}")

    y -= 2 * mm
    c.setLineWidth(0.6)
    c.line(LEFT, y, RIGHT, y)
    y -= 8 * mm

    y = _draw_items(c, y, items)
    y = _draw_totals(c, y, invoice)
    if refunds:
        y = _draw_refunds(c, y, refunds)
    if invoice.get("is_voided"):
        y = _draw_void_banner(c, y, invoice)

    _draw_footer(c)
    c.showPage()
    c.save()
    return buf.getvalue()
