from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .db import execute_procedure
from .deps import UserContext
from .errors import InternalFailure, InvalidArgument, ProcedureError
from .logs import json_log
from .procedures import (
    SP_ADJUST_INVENTORY,
    SP_GET_ALL_PRODUCTS,
    SP_GET_AVAILABLE_BATCHES,
    SP_GET_AVAILABLE_PRODUCTS,
    SP_GET_CATEGORIES,
    SP_GET_EXPIRING_PRODUCTS,
    SP_GET_INVENTORY_LEVELS,
    SP_GET_LOW_STOCK_PRODUCTS,
    SP_GET_UNITS,
    SP_SEARCH_PRODUCTS,
    decode_adjustment,
    recordset,
)
from .validation import ADJUSTMENT_TYPES, MethodCode, TrimmedStr, parse_optional_int, parse_positive_id

DEFAULT_EXPIRY_DAYS = 90


class AdjustIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: Optional[int] = None
    batch_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    location_id: Optional[int] = None
    adjustment_type: MethodCode = None
    quantity: Optional[Decimal] = None
    reason: TrimmedStr = None


def _truthy(raw) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


def _read(procedure: str, params: Optional[dict], failure: str) -> list[dict]:
    try:
        return recordset(execute_procedure(procedure, params))
    except ProcedureError as exc:
        raise InternalFailure(failure) from exc


def inventory_levels(low_stock_only=None, warehouse_id=None) -> list[dict]:
    params = {"low_stock_only": _truthy(low_stock_only), "warehouse_id": parse_optional_int(warehouse_id)}
    return _read(SP_GET_INVENTORY_LEVELS, params, "Error loading inventory")


def available_products() -> list[dict]:
    return _read(SP_GET_AVAILABLE_PRODUCTS, None, "Error loading products")


def low_stock_products() -> list[dict]:
    return _read(SP_GET_LOW_STOCK_PRODUCTS, None, "Error loading low stock products")


def expiring_products(days=None) -> list[dict]:
    n = parse_optional_int(days)
    if n is None or n <= 0:
        n = DEFAULT_EXPIRY_DAYS
    return _read(SP_GET_EXPIRING_PRODUCTS, {"days_threshold": n}, "Error loading expiring products")


def search_products(term=None, category_id=None, warehouse_id=None) -> list[dict]:
    params = {
        "search_term": (term or "").strip() or None,
        "category_id": parse_optional_int(category_id),
        "warehouse_id": parse_optional_int(warehouse_id),
    }
    return _read(SP_SEARCH_PRODUCTS, params, "Error searching products")


def all_products() -> list[dict]:
    return _read(SP_GET_ALL_PRODUCTS, None, "Error loading products")


def product_batches(product_id, warehouse_id=None) -> list[dict]:
    # Batch ids feed /inventory/adjust.
    params = {
        "product_id": parse_positive_id(product_id, "Valid product ID required"),
        "warehouse_id": parse_optional_int(warehouse_id),
    }
    return _read(SP_GET_AVAILABLE_BATCHES, params, "Error loading product batches")


def categories() -> list[dict]:
    return _read(SP_GET_CATEGORIES, None, "Error loading categories")


def units() -> list[dict]:
    return _read(SP_GET_UNITS, None, "Error loading units")


def adjust_inventory(data: AdjustIn, user: UserContext) -> dict:
    if data.adjustment_type not in ADJUSTMENT_TYPES:
        raise InvalidArgument("Invalid adjustment type (ADD, SUBTRACT or SET)")
    if data.quantity is None or data.quantity < 0 or data.quantity != data.quantity.to_integral_value():
        raise InvalidArgument("Quantity must be a whole number of 0 or greater")
    params = {
        "product_id": parse_positive_id(data.product_id, "Valid product ID required"),
        "batch_id": parse_positive_id(data.batch_id, "Valid batch ID required"),
        "warehouse_id": parse_positive_id(data.warehouse_id, "Valid warehouse ID required"),
        "location_id": parse_positive_id(data.location_id, "Valid location ID required"),
        "adjustment_type": data.adjustment_type,
        "quantity": int(data.quantity),
        "reason": data.reason or None,
        "user_id": user.user_id,
    }

    try:
        recordsets = execute_procedure(SP_ADJUST_INVENTORY, params)
    except ProcedureError as exc:
        if exc.mentions("negative"):
            raise InvalidArgument("Not enough stock: the resulting quantity cannot be negative") from exc
        raise InternalFailure("Error adjusting inventory") from exc

    result = decode_adjustment(recordsets)
    if result is None:
        raise InternalFailure("Adjustment did not return a result")

    json_log(
        "info",
        "inventory.adjusted",
        product_id=params["product_id"],
        batch_id=params["batch_id"],
        warehouse_id=params["warehouse_id"],
        adjustment_type=params["adjustment_type"],
        quantity=params["quantity"],
        old_quantity=result.old_quantity,
        new_quantity=result.new_quantity,
        user_id=user.user_id,
    )
    return {
        "oldQuantity": result.old_quantity,
        "newQuantity": result.new_quantity,
        "message": result.message,
    }
