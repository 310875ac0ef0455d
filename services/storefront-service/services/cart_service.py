"""Cart management service."""
import logging
from typing import List, Dict, Any, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from opentelemetry import trace

from errors import ValidationError, NotFoundError, InsufficientStockError
from models import CartItem, Product
from monitoring import cart_additions_counter, cart_removals_counter, insufficient_stock_counter
from services.product_service import product_record
from services.stock_service import StockService, current_stock

logger = logging.getLogger(__name__)


def cart_item_record(item: CartItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "user_id": item.user_id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "added_at": item.added_at,
    }


class CartService:
    """Service for managing shopping carts.

    Cart rows hold a claim on product stock: adding to the cart takes the
    units out of the product, and updating, removing or clearing puts them
    back. Each operation commits the stock change and the cart change in
    one transaction.
    """

    def __init__(self, stock_service: StockService):
        """
        Initialize cart service.

        Args:
            stock_service: Applies stock deltas to products
        """
        self.stock_service = stock_service
        self.tracer = trace.get_tracer(__name__)

    def get_cart_items(self, db: Session, user_id: str) -> List[Dict[str, Any]]:
        """
        Get cart items for user, each merged with its product's fields.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Product fields plus ``cart_item_id``, ``quantity`` and ``added_at``
        """
        with self.tracer.start_as_current_span("db.query.get_cart_items") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            rows = (
                db.query(CartItem, Product)
                .join(Product, Product.id == CartItem.product_id)
                .filter(CartItem.user_id == user_id)
                .order_by(CartItem.added_at, CartItem.id)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(rows))

        return [
            {
                **product_record(product),
                "cart_item_id": item.id,
                "quantity": item.quantity,
                "added_at": item.added_at,
            }
            for item, product in rows
        ]

    def _find_cart_item(self, db: Session, user_id: str, product_id: int) -> Optional[CartItem]:
        return db.query(CartItem).filter(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id
        ).first()

    def add_to_cart(
        self,
        db: Session,
        user_id: Optional[str],
        product_id: Optional[int],
        quantity: int
    ) -> Dict[str, Any]:
        """
        Add a product to the user's cart, taking the units out of stock.

        Args:
            db: Database session
            user_id: User identifier
            product_id: Product identifier
            quantity: Units to add

        Returns:
            ``cart_item``, ``created`` (True when a new row was inserted) and ``message``

        Raises:
            ValidationError: If identifiers are missing or quantity is not positive
            NotFoundError: If the product is missing or inactive
            InsufficientStockError: If stock cannot cover the cart's new total
        """
        if not user_id or not product_id:
            raise ValidationError("user_id and product_id are required.")
        if quantity <= 0:
            raise ValidationError("Quantity must be a positive integer.")

        span = trace.get_current_span()
        span.set_attribute("product.id", product_id)
        span.set_attribute("quantity", quantity)

        with self.tracer.start_as_current_span("db.query.get_product") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)

            product = db.query(Product).filter(
                Product.id == product_id,
                Product.active.is_(True)
            ).first()

            db_span.set_attribute("db.rows_returned", 1 if product else 0)

        if not product:
            raise NotFoundError("Product not found or inactive.")

        stock = current_stock(product)
        if stock < quantity:
            insufficient_stock_counter.add(1, {"operation": "add_to_cart"})
            raise InsufficientStockError(
                f"Insufficient stock. Available: {stock}, Requested: {quantity}",
                available=stock,
                requested=quantity,
            )

        existing = self._find_cart_item(db, user_id, product_id)

        if existing and stock < existing.quantity + quantity:
            total = existing.quantity + quantity
            insufficient_stock_counter.add(1, {"operation": "add_to_cart"})
            raise InsufficientStockError(
                f"Insufficient stock. Available: {stock}, Total requested: {total}",
                available=stock,
                requested=total,
            )

        try:
            # Stock first, then the cart row, in one transaction
            self.stock_service.reserve(db, product_id, quantity)

            with self.tracer.start_as_current_span("db.query.upsert_cart_item") as db_span:
                db_span.set_attribute("db.table", "cart_items")
                db_span.set_attribute("user.id", user_id)
                if existing:
                    db_span.set_attribute("db.operation", "UPDATE")
                    existing.quantity = existing.quantity + quantity
                    cart_item = existing
                else:
                    db_span.set_attribute("db.operation", "INSERT")
                    cart_item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
                    db.add(cart_item)

            db.commit()
        except InsufficientStockError:
            # Another request took the stock between our read and the update
            db.rollback()
            insufficient_stock_counter.add(1, {"operation": "add_to_cart"})
            raise
        except IntegrityError:
            db.rollback()
            # Retry as an increment only when another request inserted the same row first
            if existing is not None or self._find_cart_item(db, user_id, product_id) is None:
                raise
            logger.info("Cart row already exists, adding to it", extra={
                "user_id": user_id,
                "product_id": product_id
            })
            return self.add_to_cart(db, user_id, product_id, quantity)
        except Exception:
            db.rollback()
            raise

        db.refresh(cart_item)
        new_stock = stock - quantity

        cart_additions_counter.add(1, {"product_id": str(product_id)})
        logger.info("Added product to cart", extra={
            "user_id": user_id,
            "product_id": product_id,
            "product_name": product.name,
            "quantity": quantity,
            "stock_before": stock,
            "stock_after": new_stock
        })

        return {
            "cart_item": cart_item_record(cart_item),
            "created": existing is None,
            "message": f"Added {quantity} items to cart. Stock reduced from {stock} to {new_stock}",
        }

    def update_cart_item(self, db: Session, cart_item_id: int, quantity: Optional[int]) -> Dict[str, Any]:
        """
        Set a cart item's quantity and move the difference in or out of stock.

        Raises:
            ValidationError: If quantity is not a positive integer
            NotFoundError: If the cart item or its product is missing
            InsufficientStockError: If stock cannot cover an increase
        """
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be a positive integer.")

        cart_item = db.get(CartItem, cart_item_id)
        if not cart_item:
            raise NotFoundError("Cart item not found.")

        product = db.get(Product, cart_item.product_id)
        if not product:
            raise NotFoundError("Product not found.")

        stock = current_stock(product)
        delta = quantity - cart_item.quantity

        if delta > 0 and stock < delta:
            insufficient_stock_counter.add(1, {"operation": "update_cart_item"})
            raise InsufficientStockError(
                f"Insufficient stock. Available: {stock}, Additional needed: {delta}",
                available=stock,
                requested=delta,
            )

        try:
            if delta > 0:
                self.stock_service.reserve(db, cart_item.product_id, delta)
            elif delta < 0:
                self.stock_service.release(db, cart_item.product_id, -delta)

            cart_item.quantity = quantity
            db.commit()
        except InsufficientStockError:
            db.rollback()
            insufficient_stock_counter.add(1, {"operation": "update_cart_item"})
            raise
        except Exception:
            db.rollback()
            raise

        db.refresh(cart_item)
        new_stock = stock - delta

        logger.info("Updated cart item quantity", extra={
            "cart_item_id": cart_item_id,
            "product_id": cart_item.product_id,
            "quantity": quantity,
            "delta": delta
        })

        return {
            "cart_item": cart_item_record(cart_item),
            "message": f"Cart updated. Stock adjusted from {stock} to {new_stock}",
        }

    def remove_cart_item(self, db: Session, cart_item_id: int) -> Dict[str, Any]:
        """
        Remove a cart item and put its quantity back into stock.

        Raises:
            NotFoundError: If the cart item is missing
        """
        cart_item = db.get(CartItem, cart_item_id)
        if not cart_item:
            raise NotFoundError("Cart item not found.")

        product = db.get(Product, cart_item.product_id)
        stock = current_stock(product) if product else 0
        product_id = cart_item.product_id
        quantity = cart_item.quantity

        try:
            restored = self.stock_service.release(db, product_id, quantity)

            with self.tracer.start_as_current_span("db.query.delete_cart_item") as db_span:
                db_span.set_attribute("db.operation", "DELETE")
                db_span.set_attribute("db.table", "cart_items")
                db.delete(cart_item)

            db.commit()
        except Exception:
            db.rollback()
            raise

        cart_removals_counter.add(1, {"operation": "remove"})
        logger.info("Removed cart item", extra={
            "cart_item_id": cart_item_id,
            "product_id": product_id,
            "quantity": quantity,
            "stock_restored": restored
        })

        if not restored:
            return {"message": "Item removed successfully. Product no longer exists, no stock restored"}
        return {
            "message": f"Item removed successfully. Stock restored from {stock} to {stock + quantity}"
        }

    def clear_cart(self, db: Session, user_id: str) -> Dict[str, Any]:
        """
        Clear user's cart, restoring stock for every item.

        Items whose product has disappeared are reported under ``failed``
        and their rows are still deleted.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            ``restored`` and ``failed`` item lists and a summary ``message``
        """
        with self.tracer.start_as_current_span("db.query.delete_cart_items") as db_span:
            db_span.set_attribute("db.operation", "DELETE")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            cart_items = db.query(CartItem).filter(CartItem.user_id == user_id).all()

            restored = []
            failed = []
            try:
                for item in cart_items:
                    entry = {
                        "cart_item_id": item.id,
                        "product_id": item.product_id,
                        "quantity": item.quantity,
                    }
                    if self.stock_service.release(db, item.product_id, item.quantity):
                        restored.append(entry)
                    else:
                        failed.append({**entry, "error": "Product not found"})

                deleted_count = db.query(CartItem).filter(
                    CartItem.user_id == user_id
                ).delete(synchronize_session=False)
                db.commit()
            except Exception:
                db.rollback()
                raise

            db_span.set_attribute("db.rows_affected", deleted_count)

        if cart_items:
            cart_removals_counter.add(len(cart_items), {"operation": "clear"})
        if failed:
            logger.warning("Stock not restored for some cleared cart items", extra={
                "user_id": user_id,
                "failed": failed
            })

        return {
            "restored": restored,
            "failed": failed,
            "message": f"Cart cleared successfully. Stock restored for {len(restored)} items.",
        }
