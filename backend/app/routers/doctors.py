from typing import Optional

from fastapi import APIRouter, Query

from ..prescribers import DiscountQuoteIn, discount_rates, list_prescribers, prescriber_detail, quote_discount

router = APIRouter(prefix="/doctors", tags=["doctors"])


@router.get("")
def list_doctors_route():
    return {"success": True, "doctors": list_prescribers()}


@router.get("/discounts/rates")
def discount_rates_route(insurance_provider_id: Optional[str] = Query(None, alias="insuranceProviderId")):
    return {"success": True, "discountRates": discount_rates(insurance_provider_id)}


@router.post("/discounts/calculate")
def calculate_discount_route(data: DiscountQuoteIn):
    return {"success": True, "discount": quote_discount(data)}


@router.get("/{prescriber_id}")
def get_doctor_route(prescriber_id: str):
    detail = prescriber_detail(prescriber_id)
    return {"success": True, "doctor": detail.prescriber, "insurance": detail.insurance, "stats": detail.stats}
