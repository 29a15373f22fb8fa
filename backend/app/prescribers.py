from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .db import execute_procedure
from .errors import InternalFailure, InvalidArgument, NotFound, ProcedureError
from .money import q2
from .procedures import (
    SP_CALCULATE_PRESCRIPTION_DISCOUNT,
    SP_GET_ALL_PRESCRIBERS,
    SP_GET_INSURANCE_DISCOUNT_RATES,
    SP_GET_PRESCRIBER_DETAILS,
    PrescriberDetailResult,
    decode_prescriber_detail,
    first_row,
    recordset,
)
from .validation import parse_optional_int, parse_positive_id


class DiscountQuoteIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    patient_id: Optional[int] = None
    prescriber_id: Optional[int] = None
    prescription_amount: Optional[Decimal] = None


def list_prescribers() -> list[dict]:
    try:
        return recordset(execute_procedure(SP_GET_ALL_PRESCRIBERS, None))
    except ProcedureError as exc:
        raise InternalFailure("Error loading prescribers") from exc


def prescriber_detail(prescriber_id) -> PrescriberDetailResult:
    pid = parse_positive_id(prescriber_id, "Valid prescriber ID required")
    try:
        recordsets = execute_procedure(SP_GET_PRESCRIBER_DETAILS, {"prescriber_id": pid})
    except ProcedureError as exc:
        raise InternalFailure("Error loading prescriber details") from exc
    detail = decode_prescriber_detail(recordsets)
    if detail.prescriber is None:
        raise NotFound("Prescriber not found")
    return detail


def discount_rates(insurance_provider_id=None) -> list[dict]:
    params = {"insurance_provider_id": parse_optional_int(insurance_provider_id)}
    try:
        return recordset(execute_procedure(SP_GET_INSURANCE_DISCOUNT_RATES, params))
    except ProcedureError as exc:
        raise InternalFailure("Error loading discount rates") from exc


def no_discount(amount: Decimal) -> dict:
    return {
        "insurance_provider_id": None,
        "discount_percentage": Decimal("0"),
        "original_amount": amount,
        "discount_amount": Decimal("0.00"),
        "final_amount": amount,
        "discount_applied": False,
    }


def quote_discount(data: DiscountQuoteIn) -> dict:
    """
    Preview the insurance discount a prescription would get.

    Nothing is persisted; the sale itself still carries its own discount total.
    A patient/prescriber pair with no shared insurer quotes the full amount.
    """
    if data.prescription_amount is None or data.prescription_amount <= 0:
        raise InvalidArgument("Valid prescription amount required")
    params = {
        "patient_id": parse_positive_id(data.patient_id, "Valid patient ID required"),
        "prescriber_id": parse_positive_id(data.prescriber_id, "Valid prescriber ID required"),
        "prescription_amount": q2(data.prescription_amount),
    }
    try:
        recordsets = execute_procedure(SP_CALCULATE_PRESCRIPTION_DISCOUNT, params)
    except ProcedureError as exc:
        raise InternalFailure("Error calculating discount") from exc
    return first_row(recordsets) or no_discount(params["prescription_amount"])
