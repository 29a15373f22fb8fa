from typing import Optional

from fastapi import APIRouter, Query

from .. import reporting

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/overview")
def report_overview(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    return {"success": True, "overview": reporting.overview(reporting.build_date_range(start_date, end_date))}


@router.get("/sales-trend")
def report_sales_trend(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    return {"success": True, "rows": reporting.sales_trend(reporting.build_date_range(start_date, end_date))}


@router.get("/top-products")
def report_top_products(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    top: Optional[str] = None,
):
    rows = reporting.top_products(reporting.build_date_range(start_date, end_date), top=top)
    return {"success": True, "rows": rows}


@router.get("/refunds")
def report_refunds(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    return {"success": True, "rows": reporting.refund_summary(reporting.build_date_range(start_date, end_date))}


@router.get("/inventory-movements")
def report_inventory_movements(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    rows = reporting.inventory_movements(reporting.build_date_range(start_date, end_date))
    return {"success": True, "rows": rows}
