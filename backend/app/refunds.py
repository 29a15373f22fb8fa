import json
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .db import execute_procedure
from .deps import UserContext
from .errors import InternalFailure, InvalidArgument, InvoiceVoided, ProcedureError
from .invoice_queries import get_invoice_detail, is_voided
from .logs import json_log
from .money import q2, to_decimal
from .procedures import SP_PROCESS_REFUND, first_row
from .validation import REFUND_METHODS, MethodCode, TrimmedStr


class RefundLineIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    line_item_id: Optional[int] = None
    quantity: Optional[Decimal] = None


class RefundIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    refund_amount: Optional[Decimal] = None
    refund_reason: TrimmedStr = None
    refund_method: MethodCode = None
    notes: TrimmedStr = None
    # Absent or empty means a full refund.
    items: Optional[List[RefundLineIn]] = None


def requested_quantities(lines: Optional[List[RefundLineIn]]) -> dict[int, int]:
    """Sum requested quantities per invoice line, preserving first-seen order."""
    out: dict[int, int] = {}
    for ln in lines or []:
        if ln.line_item_id is None or ln.line_item_id <= 0:
            raise InvalidArgument("Each refund item needs a valid line item")
        if ln.quantity is None or ln.quantity <= 0 or ln.quantity != ln.quantity.to_integral_value():
            raise InvalidArgument("Refund quantity must be a whole number greater than 0")
        qty = int(ln.quantity)
        out[ln.line_item_id] = out.get(ln.line_item_id, 0) + qty
    return out


def assert_refundable(items: list[dict], requested: dict[int, int]) -> None:
    by_id = {int(it["line_item_id"]): it for it in items if it.get("line_item_id") is not None}
    for line_id, qty in requested.items():
        line = by_id.get(line_id)
        if line is None:
            raise InvalidArgument(f"Line item {line_id} does not belong to this invoice")
        remaining = to_decimal(line.get("quantity")) - to_decimal(line.get("quantity_refunded"))
        if qty > remaining:
            raise InvalidArgument(
                f"Refund quantity for line item {line_id} exceeds refundable quantity ({remaining})"
            )


def process_refund(invoice_id: int, data: RefundIn, user: UserContext) -> Optional[dict]:
    if data.refund_amount is None or data.refund_amount <= 0:
        raise InvalidArgument("Valid refund amount required")
    if not data.refund_reason:
        raise InvalidArgument("Refund reason is required")
    if data.refund_method not in REFUND_METHODS:
        raise InvalidArgument("Valid refund method required (CASH, CARD, or CREDIT_NOTE)")
    requested = requested_quantities(data.items)

    detail = get_invoice_detail(invoice_id)
    if is_voided(detail.header):
        raise InvoiceVoided()
    if requested:
        assert_refundable(detail.items, requested)

    items_json = None
    if requested:
        items_json = json.dumps(
            [{"line_item_id": line_id, "quantity": qty} for line_id, qty in requested.items()],
            default=str,
        )
    amount = q2(data.refund_amount)

    try:
        recordsets = execute_procedure(
            SP_PROCESS_REFUND,
            {
                "invoice_id": invoice_id,
                "refund_amount": amount,
                "refund_reason": data.refund_reason,
                "refund_method": data.refund_method,
                "processed_by": user.user_id,
                "notes": data.notes or None,
                "items_json": items_json,
            },
        )
    except ProcedureError as exc:
        if exc.mentions("is voided"):
            raise InvoiceVoided() from exc
        raise InternalFailure("Error processing refund") from exc

    json_log(
        "info",
        "refund.processed",
        invoice_id=invoice_id,
        user_id=user.user_id,
        amount=amount,
        method=data.refund_method,
        mode="partial" if requested else "full",
    )
    return first_row(recordsets)
