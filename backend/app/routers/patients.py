from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..deps import UserContext, require_user
from ..patient_records import (
    active_patients,
    deactivated_patients,
    insurance_providers,
    patient_detail,
    patient_prescriptions,
    prescriber_choices,
    purchase_history,
    reactivate_patient,
)

router = APIRouter(prefix="/patients", tags=["patients"])


@router.get("")
def list_patients_route(search_term: Optional[str] = Query(None, alias="searchTerm")):
    return {"success": True, "patients": active_patients(search_term)}


@router.get("/insurance/providers")
def insurance_providers_route():
    return {"success": True, "providers": insurance_providers()}


@router.get("/prescribers/list")
def prescriber_choices_route():
    return {"success": True, "prescribers": prescriber_choices()}


@router.get("/deactivated")
def deactivated_patients_route():
    return {"success": True, "patients": deactivated_patients()}


@router.get("/{patient_id}/history")
def patient_history_route(patient_id: str):
    return {"success": True, "history": purchase_history(patient_id)}


@router.get("/{patient_id}/prescriptions")
def patient_prescriptions_route(patient_id: str):
    return {"success": True, "prescriptions": patient_prescriptions(patient_id)}


@router.get("/{patient_id}")
def get_patient_route(patient_id: str):
    detail = patient_detail(patient_id)
    return {
        "success": True,
        "patient": detail.patient,
        "insurance": detail.insurance,
        "prescriptions": detail.prescriptions,
    }


@router.post("/{patient_id}/reactivate")
def reactivate_patient_route(patient_id: str, user: UserContext = Depends(require_user)):
    return {"success": True, "message": reactivate_patient(patient_id, user)}
