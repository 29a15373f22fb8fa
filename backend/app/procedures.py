"""
Canonical stored-procedure names and typed decoding of their recordsets.

Callers never index recordsets positionally; each procedure with more than a
plain row list gets a named result decoded here, once.
"""
from typing import NamedTuple, Optional

SP_AUTHENTICATE_USER = "sp_authenticate_user"
SP_CREATE_SESSION = "sp_create_session"
SP_GET_SESSION = "sp_get_session"
SP_END_SESSION = "sp_end_session"

SP_GET_ALL_INVOICES = "sp_get_all_invoices"
SP_SEARCH_INVOICES = "sp_search_invoices"
SP_GET_INVOICE_DETAILS = "sp_get_invoice_details"
SP_GET_INVOICE_STATS = "sp_get_invoice_stats"
SP_CREATE_SALES_INVOICE = "sp_create_sales_invoice"
SP_VOID_INVOICE = "sp_void_invoice"
SP_PROCESS_REFUND = "sp_process_refund"

SP_REPORT_OVERVIEW = "sp_report_overview"
SP_REPORT_SALES_TREND = "sp_report_sales_trend"
SP_REPORT_TOP_PRODUCTS = "sp_report_top_products"
SP_REPORT_REFUND_SUMMARY = "sp_report_refund_summary"
SP_REPORT_INVENTORY_MOVEMENT = "sp_report_inventory_movement"

SP_GET_DASHBOARD_SUMMARY = "sp_get_dashboard_summary"
SP_GET_TOP_PRODUCTS = "sp_get_top_products"

SP_GET_INVENTORY_LEVELS = "sp_get_inventory_levels"
SP_GET_AVAILABLE_PRODUCTS = "sp_get_available_products"
SP_GET_LOW_STOCK_PRODUCTS = "sp_get_low_stock_products"
SP_GET_EXPIRING_PRODUCTS = "sp_get_expiring_products"
SP_SEARCH_PRODUCTS = "sp_search_products"
SP_ADJUST_INVENTORY = "sp_adjust_inventory"
SP_GET_ALL_PRODUCTS = "sp_get_all_products"
SP_GET_AVAILABLE_BATCHES = "sp_get_available_batches"
SP_GET_CATEGORIES = "sp_get_categories"
SP_GET_UNITS = "sp_get_units"

SP_SEARCH_PATIENTS = "sp_search_patients"
SP_GET_PATIENT_DETAILS = "sp_get_patient_details"
SP_GET_PATIENT_PURCHASE_HISTORY = "sp_get_patient_purchase_history"
SP_GET_PATIENT_PRESCRIPTIONS = "sp_get_patient_prescriptions"
SP_GET_DEACTIVATED_PATIENTS = "sp_get_deactivated_patients"
SP_REACTIVATE_PATIENT = "sp_reactivate_patient"
SP_GET_INSURANCE_PROVIDERS = "sp_get_insurance_providers"
SP_GET_PRESCRIBERS = "sp_get_prescribers"

SP_GET_ALL_PRESCRIBERS = "sp_get_all_prescribers"
SP_GET_PRESCRIBER_DETAILS = "sp_get_prescriber_details"
SP_GET_INSURANCE_DISCOUNT_RATES = "sp_get_insurance_discount_rates"
SP_CALCULATE_PRESCRIPTION_DISCOUNT = "sp_calculate_prescription_discount"

SP_GET_ALL_ROLES = "sp_get_all_roles"
SP_GET_ALL_USERS = "sp_get_all_users"
SP_GET_USER_DETAILS = "sp_get_user_details"
SP_CREATE_USER = "sp_create_user"


def recordset(recordsets: list, index: int = 0) -> list[dict]:
    if recordsets is None or index >= len(recordsets):
        return []
    return list(recordsets[index] or [])


def first_row(recordsets: list, index: int = 0) -> Optional[dict]:
    rows = recordset(recordsets, index)
    return rows[0] if rows else None


class InvoiceDetailResult(NamedTuple):
    header: Optional[dict]
    items: list
    refunds: list


def decode_invoice_detail(recordsets: list) -> InvoiceDetailResult:
    return InvoiceDetailResult(
        header=first_row(recordsets, 0),
        items=recordset(recordsets, 1),
        refunds=recordset(recordsets, 2),
    )


class SaleCreatedResult(NamedTuple):
    invoice_id: int
    invoice_number: Optional[str]


def decode_sale_created(recordsets: list) -> Optional[SaleCreatedResult]:
    row = first_row(recordsets)
    if not row or row.get("invoice_id") is None:
        return None
    return SaleCreatedResult(invoice_id=int(row["invoice_id"]), invoice_number=row.get("invoice_number"))


class SessionResult(NamedTuple):
    user_id: int
    role_name: Optional[str]
    username: Optional[str]
    full_name: Optional[str]
    expires_at: object


def decode_session(recordsets: list) -> Optional[SessionResult]:
    row = first_row(recordsets)
    if not row or row.get("user_id") is None:
        return None
    return SessionResult(
        user_id=int(row["user_id"]),
        role_name=row.get("role_name"),
        username=row.get("username"),
        full_name=row.get("full_name"),
        expires_at=row.get("expires_at"),
    )


class AdjustmentResult(NamedTuple):
    old_quantity: object
    new_quantity: object
    message: Optional[str]


def decode_adjustment(recordsets: list) -> Optional[AdjustmentResult]:
    row = first_row(recordsets)
    if not row:
        return None
    return AdjustmentResult(
        old_quantity=row.get("old_quantity"),
        new_quantity=row.get("new_quantity"),
        message=row.get("message"),
    )


class PatientDetailResult(NamedTuple):
    patient: Optional[dict]
    insurance: list
    prescriptions: list


def decode_patient_detail(recordsets: list) -> PatientDetailResult:
    return PatientDetailResult(
        patient=first_row(recordsets, 0),
        insurance=recordset(recordsets, 1),
        prescriptions=recordset(recordsets, 2),
    )


class PrescriberDetailResult(NamedTuple):
    prescriber: Optional[dict]
    insurance: list
    stats: dict


def decode_prescriber_detail(recordsets: list) -> PrescriberDetailResult:
    return PrescriberDetailResult(
        prescriber=first_row(recordsets, 0),
        insurance=recordset(recordsets, 1),
        stats=first_row(recordsets, 2) or {},
    )
