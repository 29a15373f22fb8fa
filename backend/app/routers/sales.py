from fastapi import APIRouter, Depends

from ..deps import UserContext, require_user
from ..sales_orchestrator import SaleIn, create_sale

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("/invoice")
def create_sales_invoice(data: SaleIn, user: UserContext = Depends(require_user)):
    return {"success": True, "message": "Sale processed successfully", **create_sale(data, user)}
