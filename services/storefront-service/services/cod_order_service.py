"""Cash-on-delivery orders."""
import logging
import math
from datetime import datetime
from typing import Any, Dict, List
from sqlalchemy.orm import Session, selectinload
from opentelemetry import trace

from config import COD_MINIMUM_ORDER_TOTAL
from errors import NotFoundError, ValidationError
from models import CodOrder, Product, COD_ORDER_STATUSES
from monitoring import cod_orders_counter, cod_order_amount_histogram
from schemas import CodOrderCreate

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("user_id", "product_id", "user_name", "product_name", "product_total_price", "user_address")


def cod_order_record(order: CodOrder) -> Dict[str, Any]:
    data = {column.name: getattr(order, column.name) for column in CodOrder.__table__.columns}
    product = order.product
    data["product"] = {"name": product.name, "image": product.image} if product else None
    return data


class CodOrderService:
    """Service for COD orders.

    An order is a snapshot of user, product, price and address taken when it
    is placed; it is only accepted at or above the COD minimum total.
    """

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def create_order(self, db: Session, request: CodOrderCreate) -> Dict[str, Any]:
        """
        Place a COD order.

        Raises:
            ValidationError: If a required field is missing or the total is below the minimum
            NotFoundError: If the product does not exist
        """
        if any(not getattr(request, name) for name in _REQUIRED_FIELDS):
            cod_orders_counter.add(1, {"outcome": "invalid"})
            raise ValidationError("Missing required fields")

        if request.product_total_price < COD_MINIMUM_ORDER_TOTAL:
            cod_orders_counter.add(1, {"outcome": "below_minimum"})
            raise ValidationError(f"COD is only available for orders above ₹{COD_MINIMUM_ORDER_TOTAL:g}")

        if request.quantity <= 0:
            raise ValidationError("Quantity must be a positive integer.")

        if not db.get(Product, request.product_id):
            raise NotFoundError("Product not found")

        order = CodOrder(
            user_id=request.user_id,
            product_id=request.product_id,
            user_name=request.user_name,
            product_name=request.product_name,
            product_total_price=request.product_total_price,
            user_address=request.user_address,
            user_location=request.user_location,
            quantity=request.quantity,
            status="pending",
        )

        with self.tracer.start_as_current_span("db.query.insert_cod_order") as db_span:
            db_span.set_attribute("db.operation", "INSERT")
            db_span.set_attribute("db.table", "cod_orders")
            db_span.set_attribute("user.id", request.user_id)
            db.add(order)
            db.commit()
            db.refresh(order)

        cod_orders_counter.add(1, {"outcome": "accepted"})
        cod_order_amount_histogram.record(request.product_total_price)
        logger.info("COD order placed", extra={
            "cod_order_id": order.id,
            "user_id": order.user_id,
            "product_id": order.product_id,
            "amount": order.product_total_price
        })
        return cod_order_record(order)

    def list_orders(self, db: Session, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        query = db.query(CodOrder).options(selectinload(CodOrder.product))
        total = query.count()
        orders = (
            query.order_by(CodOrder.created_at.desc(), CodOrder.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "cod_orders": [cod_order_record(o) for o in orders],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit) if limit else 0,
            },
        }

    def update_status(self, db: Session, order_id: int, status: str) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: If the status is not a known COD status
            NotFoundError: If the order does not exist
        """
        if status not in COD_ORDER_STATUSES:
            raise ValidationError(f"Invalid status. Allowed: {', '.join(COD_ORDER_STATUSES)}")

        order = db.get(CodOrder, order_id)
        if not order:
            raise NotFoundError("COD order not found")

        previous = order.status
        order.status = status
        order.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(order)

        logger.info("COD order status updated", extra={
            "cod_order_id": order_id,
            "from_status": previous,
            "to_status": status
        })
        return cod_order_record(order)

    def list_user_orders(self, db: Session, user_id: str) -> List[Dict[str, Any]]:
        orders = (
            db.query(CodOrder)
            .options(selectinload(CodOrder.product))
            .filter(CodOrder.user_id == user_id)
            .order_by(CodOrder.created_at.desc(), CodOrder.id.desc())
            .all()
        )
        return [cod_order_record(o) for o in orders]
