"""Product stock reads and writes shared by the cart flows."""
import logging
from sqlalchemy import func, update
from sqlalchemy.orm import Session
from opentelemetry import trace

from errors import InsufficientStockError
from models import Product
from monitoring import stock_adjustments_counter

logger = logging.getLogger(__name__)

# Legacy rows may only carry one of the two stock columns
_ON_HAND = func.coalesce(Product.stock_quantity, Product.stock, 0)


def current_stock(product: Product) -> int:
    """Quantity on hand: the first of ``stock_quantity``, ``stock`` that is set, else 0."""
    if product.stock_quantity is not None:
        return product.stock_quantity
    if product.stock is not None:
        return product.stock
    return 0


class StockService:
    """Applies stock deltas to products.

    Every write sets ``stock_quantity`` and ``stock`` to the same value and
    recomputes ``in_stock`` in a single UPDATE. Nothing here commits; the
    caller owns the transaction so the stock change and the cart write land
    together.
    """

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def reserve(self, db: Session, product_id: int, quantity: int) -> None:
        """
        Take ``quantity`` units out of a product's stock.

        The availability check is part of the UPDATE's WHERE clause, so two
        concurrent requests can never both take the last units.

        Args:
            db: Database session
            product_id: Product identifier
            quantity: Units to take, > 0

        Raises:
            InsufficientStockError: If stock on hand is below ``quantity``
        """
        with self.tracer.start_as_current_span("db.query.reserve_stock") as db_span:
            db_span.set_attribute("db.operation", "UPDATE")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)
            db_span.set_attribute("quantity", quantity)

            remaining = _ON_HAND - quantity
            result = db.execute(
                update(Product)
                .where(Product.id == product_id, _ON_HAND >= quantity)
                .values(stock_quantity=remaining, stock=remaining, in_stock=remaining > 0)
                .execution_options(synchronize_session=False)
            )
            db_span.set_attribute("db.rows_affected", result.rowcount)

        if result.rowcount == 0:
            stock_adjustments_counter.add(1, {"operation": "reserve", "outcome": "rejected"})
            available = db.query(_ON_HAND).filter(Product.id == product_id).scalar() or 0
            raise InsufficientStockError(
                f"Insufficient stock. Available: {available}, Requested: {quantity}",
                available=available,
                requested=quantity,
            )

        stock_adjustments_counter.add(1, {"operation": "reserve", "outcome": "applied"})
        logger.info("Reserved product stock", extra={
            "product_id": product_id,
            "quantity": quantity
        })

    def release(self, db: Session, product_id: int, quantity: int) -> bool:
        """
        Put ``quantity`` units back into a product's stock.

        Returns:
            False if the product no longer exists
        """
        with self.tracer.start_as_current_span("db.query.release_stock") as db_span:
            db_span.set_attribute("db.operation", "UPDATE")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)
            db_span.set_attribute("quantity", quantity)

            restored = _ON_HAND + quantity
            result = db.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(stock_quantity=restored, stock=restored, in_stock=restored > 0)
                .execution_options(synchronize_session=False)
            )
            db_span.set_attribute("db.rows_affected", result.rowcount)

        if result.rowcount == 0:
            stock_adjustments_counter.add(1, {"operation": "release", "outcome": "missing_product"})
            logger.warning("Cannot restore stock of missing product", extra={
                "product_id": product_id,
                "quantity": quantity
            })
            return False

        stock_adjustments_counter.add(1, {"operation": "release", "outcome": "applied"})
        return True
