from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .db import execute_procedure
from .deps import UserContext
from .errors import AlreadyVoided, HasRefunds, InternalFailure, InvalidArgument, ProcedureError
from .invoice_queries import get_invoice_detail, is_voided
from .logs import json_log
from .procedures import SP_VOID_INVOICE, InvoiceDetailResult, first_row


class VoidIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    void_reason: Optional[str] = None


def assert_voidable(detail: InvoiceDetailResult) -> None:
    if is_voided(detail.header):
        raise AlreadyVoided()
    # Once money has moved back through a refund the invoice can only be refunded further.
    if detail.refunds:
        raise HasRefunds()


def void_invoice(invoice_id: int, reason: Optional[str], user: UserContext) -> Optional[dict]:
    """
    Transition an invoice from active to voided.

    The precondition checks here fail fast; the procedure re-checks them inside
    its own transaction and restores inventory as part of the same call.
    """
    reason = (reason or "").strip()
    if not reason:
        raise InvalidArgument("Void reason is required")

    assert_voidable(get_invoice_detail(invoice_id))

    try:
        recordsets = execute_procedure(
            SP_VOID_INVOICE,
            {"invoice_id": invoice_id, "voided_by": user.user_id, "void_reason": reason},
        )
    except ProcedureError as exc:
        if exc.mentions("already voided"):
            raise AlreadyVoided() from exc
        if exc.mentions("existing refunds"):
            raise HasRefunds() from exc
        raise InternalFailure("Error voiding invoice") from exc

    json_log("info", "invoice.voided", invoice_id=invoice_id, user_id=user.user_id, reason=reason)
    return first_row(recordsets)
