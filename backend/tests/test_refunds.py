import json
from decimal import Decimal

import pytest

from backend.app.errors import InternalFailure, InvalidArgument, InvoiceVoided, NotFound
from backend.app.procedures import SP_GET_INVOICE_DETAILS, SP_PROCESS_REFUND
from backend.app.refunds import RefundIn, process_refund, requested_quantities


def _invoice(gateway, *, voided=False):
    gateway.respond(
        SP_GET_INVOICE_DETAILS,
        [{"invoice_id": 20, "is_voided": voided, "grand_total": Decimal("2260.00")}],
        [
            {"line_item_id": 1, "product_id": 10, "quantity": 2, "quantity_refunded": 0},
            {"line_item_id": 2, "product_id": 11, "quantity": 5, "quantity_refunded": 3},
        ],
        [],
    )


def _refund(**overrides) -> RefundIn:
    body = {"refundAmount": "1130", "refundReason": "damaged", "refundMethod": "cash"}
    body.update(overrides)
    return RefundIn.model_validate(body)


def test_full_refund_sends_no_items(gateway, cashier):
    _invoice(gateway)
    gateway.respond(SP_PROCESS_REFUND, [{"refund_id": 3, "refund_amount": Decimal("1130.00")}])

    row = process_refund(20, _refund(notes=" box opened "), cashier)

    assert row == {"refund_id": 3, "refund_amount": Decimal("1130.00")}
    assert gateway.params_for(SP_PROCESS_REFUND) == {
        "invoice_id": 20,
        "refund_amount": Decimal("1130.00"),
        "refund_reason": "damaged",
        "refund_method": "CASH",
        "processed_by": 7,
        "notes": "box opened",
        "items_json": None,
    }


def test_partial_refund_aggregates_quantities_per_line(gateway, cashier):
    _invoice(gateway)

    process_refund(
        20,
        _refund(items=[{"lineItemId": 2, "quantity": 1}, {"lineItemId": 2, "quantity": 1}, {"lineItemId": 1, "quantity": 1}]),
        cashier,
    )

    items = json.loads(gateway.params_for(SP_PROCESS_REFUND)["items_json"])
    assert items == [{"line_item_id": 2, "quantity": 2}, {"line_item_id": 1, "quantity": 1}]


def test_partial_refund_cannot_exceed_remaining_quantity(gateway, cashier):
    _invoice(gateway)

    with pytest.raises(InvalidArgument) as ei:
        process_refund(20, _refund(items=[{"lineItemId": 2, "quantity": 3}]), cashier)

    assert ei.value.message == "Refund quantity for line item 2 exceeds refundable quantity (2)"
    assert not gateway.called(SP_PROCESS_REFUND)


def test_partial_refund_rejects_foreign_lines(gateway, cashier):
    _invoice(gateway)
    with pytest.raises(InvalidArgument) as ei:
        process_refund(20, _refund(items=[{"lineItemId": 99, "quantity": 1}]), cashier)
    assert ei.value.message == "Line item 99 does not belong to this invoice"


def test_request_lines_need_positive_quantities():
    with pytest.raises(InvalidArgument):
        requested_quantities(RefundIn.model_validate({"items": [{"lineItemId": 1, "quantity": 0}]}).items)
    assert requested_quantities(None) == {}


@pytest.mark.parametrize("qty", ["0.5", "1.25"])
def test_partial_refund_rejects_fractional_units(gateway, cashier, qty):
    with pytest.raises(InvalidArgument) as ei:
        process_refund(20, _refund(items=[{"lineItemId": 1, "quantity": qty}]), cashier)
    assert ei.value.message == "Refund quantity must be a whole number greater than 0"
    assert gateway.calls == []


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"refundAmount": "0"}, "Valid refund amount required"),
        ({"refundAmount": None}, "Valid refund amount required"),
        ({"refundReason": "   "}, "Refund reason is required"),
        ({"refundMethod": "BITCOIN"}, "Valid refund method required (CASH, CARD, or CREDIT_NOTE)"),
        ({"refundMethod": "TRANSFER"}, "Valid refund method required (CASH, CARD, or CREDIT_NOTE)"),
    ],
)
def test_request_validation_happens_before_lookup(gateway, cashier, overrides, message):
    with pytest.raises(InvalidArgument) as ei:
        process_refund(20, _refund(**overrides), cashier)
    assert ei.value.message == message
    assert gateway.calls == []


def test_missing_invoice_is_not_found(gateway, cashier):
    with pytest.raises(NotFound):
        process_refund(20, _refund(), cashier)


def test_voided_invoice_cannot_be_refunded(gateway, cashier):
    _invoice(gateway, voided=True)
    with pytest.raises(InvoiceVoided) as ei:
        process_refund(20, _refund(), cashier)
    assert ei.value.status_code == 400
    assert ei.value.message == "Cannot refund a voided invoice"
    assert not gateway.called(SP_PROCESS_REFUND)


def test_procedure_messages_are_mapped(gateway, cashier):
    _invoice(gateway)
    gateway.fail(SP_PROCESS_REFUND, "Invoice 20 is voided")
    with pytest.raises(InvoiceVoided):
        process_refund(20, _refund(), cashier)

    gateway.fail(SP_PROCESS_REFUND, "Refund amount exceeds invoice balance")
    with pytest.raises(InternalFailure) as ei:
        process_refund(20, _refund(), cashier)
    assert ei.value.message == "Error processing refund"
