import json
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .config import settings
from .db import execute_procedure
from .deps import UserContext
from .errors import InternalFailure, InvalidArgument, ProcedureError
from .logs import json_log
from .money import q2
from .procedures import SP_CREATE_SALES_INVOICE, decode_sale_created
from .validation import PAYMENT_METHODS, MethodCode, TrimmedStr


class CartItemIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: Optional[int] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = None
    # Client-side convenience value; the line total is always recomputed here.
    subtotal: Optional[Decimal] = None


class SaleIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    patient_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    items: List[CartItemIn] = []
    payment_method: MethodCode = None
    payment_reference: TrimmedStr = None
    cash_received: Optional[Decimal] = None
    insurance_reference: TrimmedStr = None
    notes: TrimmedStr = None


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class CartTotals:
    lines: tuple
    subtotal: Decimal
    tax_total: Decimal
    grand_total: Decimal


def _cart_lines(items: List[CartItemIn]) -> list[CartLine]:
    if not items:
        raise InvalidArgument("Items are required")
    lines = []
    for idx, it in enumerate(items, start=1):
        if it.product_id is None or it.product_id <= 0:
            raise InvalidArgument(f"Item {idx}: valid product ID required")
        if it.quantity is None or it.quantity <= 0:
            raise InvalidArgument(f"Item {idx}: quantity must be greater than 0")
        if it.unit_price is None or it.unit_price < 0:
            raise InvalidArgument(f"Item {idx}: unit price must be 0 or greater")
        unit_price = q2(it.unit_price)
        lines.append(CartLine(it.product_id, it.quantity, unit_price, q2(unit_price * it.quantity)))
    return lines


def compute_cart_totals(items: List[CartItemIn], tax_rate: Decimal) -> CartTotals:
    lines = _cart_lines(items)
    subtotal = q2(sum((ln.line_total for ln in lines), Decimal("0")))
    tax_total = q2(subtotal * tax_rate)
    return CartTotals(lines=tuple(lines), subtotal=subtotal, tax_total=tax_total, grand_total=q2(subtotal + tax_total))


def _check_payment(data: SaleIn, grand_total: Decimal) -> None:
    method = data.payment_method
    if method not in PAYMENT_METHODS:
        raise InvalidArgument("Invalid payment method")
    if method in ("CARD", "TRANSFER") and not data.payment_reference:
        raise InvalidArgument("Reference/authorization number is required for card/transfer payments")
    if method == "INSURANCE" and not data.insurance_reference:
        raise InvalidArgument("Insurance reference/claim number is required for insurance payments")
    if method == "CASH":
        if data.cash_received is None or data.cash_received <= 0:
            raise InvalidArgument("Cash received must be greater than 0")
        if q2(data.cash_received) < grand_total:
            raise InvalidArgument("Cash received is less than total amount")


def sale_parameters(data: SaleIn, totals: CartTotals, user: UserContext) -> dict:
    """
    Build the canonical `sp_create_sales_invoice` parameter set.

    Only the tender fields of the chosen method are forwarded: a CARD/TRANSFER
    sale carries a payment reference, a CASH sale carries cash received and
    change due, an INSURANCE sale carries an insurance reference.
    """
    method = data.payment_method
    cash_received = change_due = None
    if method == "CASH":
        cash_received = q2(data.cash_received)
        change_due = max(Decimal("0.00"), q2(cash_received - totals.grand_total))
    items_json = json.dumps(
        [
            {
                "product_id": ln.product_id,
                "quantity": ln.quantity,
                "unit_price": ln.unit_price,
                "line_total": ln.line_total,
            }
            for ln in totals.lines
        ],
        default=str,
    )
    return {
        "patient_id": data.patient_id or None,
        "warehouse_id": data.warehouse_id or settings.default_warehouse_id,
        "user_id": user.user_id,
        "payment_method": method,
        "subtotal": totals.subtotal,
        "tax_total": totals.tax_total,
        "discount_total": Decimal("0.00"),
        "grand_total": totals.grand_total,
        "payment_reference": data.payment_reference if method in ("CARD", "TRANSFER") else None,
        "cash_received": cash_received,
        "change_due": change_due,
        "insurance_reference": data.insurance_reference if method == "INSURANCE" else None,
        "notes": data.notes or None,
        "items_json": items_json,
    }


def create_sale(data: SaleIn, user: UserContext) -> dict:
    totals = compute_cart_totals(data.items, settings.tax_rate)
    _check_payment(data, totals.grand_total)
    params = sale_parameters(data, totals, user)

    try:
        recordsets = execute_procedure(SP_CREATE_SALES_INVOICE, params)
    except ProcedureError as exc:
        if exc.mentions("insufficient stock"):
            raise InvalidArgument("Insufficient stock for one or more items") from exc
        raise InternalFailure("Error creating invoice") from exc

    created = decode_sale_created(recordsets)
    if created is None:
        # No row and no error: never guess the invoice through a second lookup.
        json_log("error", "sale.create_no_result", user_id=user.user_id, grand_total=totals.grand_total)
        raise InternalFailure("Invoice creation did not return an invoice")

    json_log(
        "info",
        "sale.created",
        invoice_id=created.invoice_id,
        invoice_number=created.invoice_number,
        user_id=user.user_id,
        payment_method=params["payment_method"],
        items=len(totals.lines),
        grand_total=totals.grand_total,
    )
    return {
        "invoiceId": created.invoice_id,
        "invoiceNumber": created.invoice_number,
        "paymentMethod": params["payment_method"],
        "subtotal": totals.subtotal,
        "taxTotal": totals.tax_total,
        "grandTotal": totals.grand_total,
        "cashReceived": params["cash_received"],
        "changeDue": params["change_due"],
    }
