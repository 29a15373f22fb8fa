from typing import Optional

from fastapi import APIRouter

from .. import reporting

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary")
def dashboard_summary():
    return {"success": True, "data": reporting.dashboard_summary()}


@router.get("/top-products")
def dashboard_top_products(limit: Optional[str] = None, days: Optional[str] = None):
    return {"success": True, "products": reporting.dashboard_top_products(limit=limit, days=days)}
