from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..config import settings
from ..deps import UserContext, require_role
from ..inventory_ops import (
    AdjustIn,
    adjust_inventory,
    available_products,
    categories,
    expiring_products,
    inventory_levels,
    low_stock_products,
    units,
)

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/levels")
def get_inventory_levels(
    low_stock_only: Optional[str] = Query(None, alias="lowStockOnly"),
    warehouse_id: Optional[str] = Query(None, alias="warehouseId"),
):
    return {"success": True, "inventory": inventory_levels(low_stock_only=low_stock_only, warehouse_id=warehouse_id)}


@router.get("/available")
def get_available_products():
    return {"success": True, "products": available_products()}


@router.get("/low-stock")
def get_low_stock_products():
    return {"success": True, "lowStock": low_stock_products()}


@router.get("/expiring")
def get_expiring_products(days_threshold: Optional[str] = Query(None, alias="daysThreshold")):
    return {"success": True, "expiring": expiring_products(days_threshold)}


@router.get("/categories")
def get_categories():
    return {"success": True, "categories": categories()}


@router.get("/units")
def get_units():
    return {"success": True, "units": units()}


@router.post("/adjust")
def post_inventory_adjustment(
    data: AdjustIn,
    user: UserContext = Depends(require_role(*settings.inventory_adjust_roles)),
):
    return {"success": True, **adjust_inventory(data, user)}
