from typing import Optional

from .db import execute_procedure
from .deps import UserContext
from .errors import InternalFailure, NotFound, ProcedureError
from .logs import json_log
from .procedures import (
    SP_GET_DEACTIVATED_PATIENTS,
    SP_GET_INSURANCE_PROVIDERS,
    SP_GET_PATIENT_DETAILS,
    SP_GET_PATIENT_PRESCRIPTIONS,
    SP_GET_PATIENT_PURCHASE_HISTORY,
    SP_GET_PRESCRIBERS,
    SP_REACTIVATE_PATIENT,
    SP_SEARCH_PATIENTS,
    PatientDetailResult,
    decode_patient_detail,
    first_row,
    recordset,
)
from .validation import parse_positive_id

INVALID_PATIENT_ID = "Valid patient ID required"


def _read(procedure: str, params: Optional[dict], failure: str) -> list[dict]:
    try:
        return recordset(execute_procedure(procedure, params))
    except ProcedureError as exc:
        raise InternalFailure(failure) from exc


def active_patients(term=None) -> list[dict]:
    return _read(SP_SEARCH_PATIENTS, {"search_term": (term or "").strip() or None}, "Error loading patients")


def deactivated_patients() -> list[dict]:
    return _read(SP_GET_DEACTIVATED_PATIENTS, None, "Error loading deactivated patients")


def insurance_providers() -> list[dict]:
    return _read(SP_GET_INSURANCE_PROVIDERS, None, "Error loading insurance providers")


def prescriber_choices() -> list[dict]:
    return _read(SP_GET_PRESCRIBERS, None, "Error loading prescribers")


def patient_detail(patient_id) -> PatientDetailResult:
    pid = parse_positive_id(patient_id, INVALID_PATIENT_ID)
    try:
        recordsets = execute_procedure(SP_GET_PATIENT_DETAILS, {"patient_id": pid})
    except ProcedureError as exc:
        raise InternalFailure("Error loading patient details") from exc
    detail = decode_patient_detail(recordsets)
    if detail.patient is None:
        raise NotFound("Patient not found")
    return detail


def purchase_history(patient_id) -> list[dict]:
    pid = parse_positive_id(patient_id, INVALID_PATIENT_ID)
    return _read(SP_GET_PATIENT_PURCHASE_HISTORY, {"patient_id": pid}, "Error loading patient history")


def patient_prescriptions(patient_id) -> list[dict]:
    pid = parse_positive_id(patient_id, INVALID_PATIENT_ID)
    return _read(SP_GET_PATIENT_PRESCRIPTIONS, {"patient_id": pid}, "Error loading patient prescriptions")


def reactivate_patient(patient_id, user: UserContext) -> str:
    pid = parse_positive_id(patient_id, INVALID_PATIENT_ID)
    try:
        recordsets = execute_procedure(SP_REACTIVATE_PATIENT, {"patient_id": pid, "reactivated_by": user.user_id})
    except ProcedureError as exc:
        raise InternalFailure("Error reactivating patient") from exc
    json_log("info", "patient.reactivated", patient_id=pid, user_id=user.user_id)
    row = first_row(recordsets) or {}
    return row.get("message") or "Patient reactivated successfully"
