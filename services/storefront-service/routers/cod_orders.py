"""COD orders API router."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_cod_order_service, get_notification_client
from schemas import CodOrderCreate, CodOrderStatusUpdate
from services.cod_order_service import CodOrderService
from services.external_service import NotificationClient

router = APIRouter(prefix="/cod-orders", tags=["cod-orders"])


@router.post("/create")
async def create_cod_order(
    request: CodOrderCreate,
    db: Session = Depends(get_db),
    cod_order_service: CodOrderService = Depends(get_cod_order_service),
    notifications: NotificationClient = Depends(get_notification_client)
):
    """Place a cash-on-delivery order. Only totals of ₹1000 and above qualify."""
    order = cod_order_service.create_order(db, request)
    await notifications.cod_order_created(order)
    return {"success": True, "cod_order": order}


@router.get("/all")
async def get_all_cod_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    cod_order_service: CodOrderService = Depends(get_cod_order_service)
):
    return {"success": True, **cod_order_service.list_orders(db, page=page, limit=limit)}


@router.put("/status/{order_id}")
async def update_cod_order_status(
    order_id: int,
    request: CodOrderStatusUpdate,
    db: Session = Depends(get_db),
    cod_order_service: CodOrderService = Depends(get_cod_order_service),
    notifications: NotificationClient = Depends(get_notification_client)
):
    order = cod_order_service.update_status(db, order_id, request.status)
    await notifications.cod_order_status_changed(order)
    return {
        "success": True,
        "cod_order": order,
        "message": "COD order status updated successfully"
    }


@router.get("/user/{user_id}")
async def get_user_cod_orders(
    user_id: str,
    db: Session = Depends(get_db),
    cod_order_service: CodOrderService = Depends(get_cod_order_service)
):
    return {"success": True, "cod_orders": cod_order_service.list_user_orders(db, user_id)}
