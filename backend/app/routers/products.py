from typing import Optional

from fastapi import APIRouter, Query

from ..inventory_ops import all_products, product_batches, search_products

router = APIRouter(prefix="/products", tags=["products"])


@router.get("")
def list_products_route():
    return {"success": True, "products": all_products()}


@router.get("/search")
def search_products_route(
    search_term: Optional[str] = Query(None, alias="searchTerm"),
    category_id: Optional[str] = Query(None, alias="categoryId"),
    warehouse_id: Optional[str] = Query(None, alias="warehouseId"),
):
    return {
        "success": True,
        "products": search_products(term=search_term, category_id=category_id, warehouse_id=warehouse_id),
    }


@router.get("/{product_id}/batches")
def product_batches_route(product_id: str, warehouse_id: Optional[str] = Query(None, alias="warehouseId")):
    return {"success": True, "batches": product_batches(product_id, warehouse_id=warehouse_id)}
