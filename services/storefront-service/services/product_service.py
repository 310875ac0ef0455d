"""Catalog queries and the quick-picks ranking."""
import logging
import math
from typing import Any, Dict, List, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, Query
from opentelemetry import trace

from config import FEATURED_PRODUCTS_LIMIT
from errors import NotFoundError
from models import Category, OrderItem, Product
from monitoring import quick_picks_backfill_counter

logger = logging.getLogger(__name__)

_STOREFRONT_FIELDS = (
    "id", "name", "description", "price", "old_price", "image", "images", "video",
    "in_stock", "popular", "featured", "most_orders", "top_sale", "category",
    "subcategory_id", "group_id", "uom", "uom_value", "uom_unit", "brand_name",
    "specifications", "created_at",
)


def product_record(product: Product) -> Dict[str, Any]:
    """Every column of a product row, as stored."""
    return {column.name: getattr(product, column.name) for column in Product.__table__.columns}


def storefront_product(product: Product) -> Dict[str, Any]:
    """Product as shown to shoppers, with display defaults filled in."""
    data = {name: getattr(product, name) for name in _STOREFRONT_FIELDS}
    data["rating"] = product.rating if product.rating is not None else 4.0
    data["review_count"] = product.review_count or 0
    data["discount"] = product.discount or 0
    data["shipping_amount"] = product.shipping_amount or 0
    category = product.category_info
    data["category_info"] = (
        {
            "id": category.id,
            "name": category.name,
            "description": category.description,
            "image_url": category.image_url,
        }
        if category else None
    )
    return data


class ProductService:
    """Read-only access to the active catalog."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def _active(self, db: Session) -> Query:
        return db.query(Product).filter(Product.active.is_(True))

    def list_products(self, db: Session) -> List[Dict[str, Any]]:
        products = self._active(db).order_by(Product.id).all()
        return [storefront_product(p) for p in products]

    def list_by_category(self, db: Session, category: str) -> List[Dict[str, Any]]:
        products = self._active(db).filter(Product.category == category).order_by(Product.id).all()
        return [storefront_product(p) for p in products]

    def list_by_subcategory(self, db: Session, subcategory_id: int) -> List[Dict[str, Any]]:
        products = self._active(db).filter(Product.subcategory_id == subcategory_id).order_by(Product.id).all()
        return [storefront_product(p) for p in products]

    def list_by_group(self, db: Session, group_id: int) -> List[Dict[str, Any]]:
        products = self._active(db).filter(Product.group_id == group_id).order_by(Product.id).all()
        return [storefront_product(p) for p in products]

    def list_featured(self, db: Session) -> List[Dict[str, Any]]:
        products = (
            self._active(db)
            .filter(Product.featured.is_(True))
            .order_by(Product.id)
            .limit(FEATURED_PRODUCTS_LIMIT)
            .all()
        )
        return [storefront_product(p) for p in products]

    def list_categories(self, db: Session) -> List[Dict[str, Any]]:
        """
        Categories from the categories table, or, when it is empty, the
        distinct category names found on active products.
        """
        categories = db.query(Category).filter(Category.active.is_(True)).order_by(Category.id).all()
        if categories:
            return [
                {
                    "id": c.id,
                    "name": c.name,
                    "description": c.description,
                    "image_url": c.image_url,
                    "featured": c.featured,
                    "icon": c.icon,
                }
                for c in categories
            ]

        names = (
            db.query(Product.category)
            .filter(Product.active.is_(True), Product.category.isnot(None))
            .distinct()
            .order_by(Product.category)
            .all()
        )
        return [
            {"id": None, "name": name, "description": None, "image_url": None, "featured": False, "icon": None}
            for (name,) in names
            if name
        ]

    def get_product(self, db: Session, product_id: int) -> Dict[str, Any]:
        product = self._active(db).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("Product not found")
        return storefront_product(product)

    def filter_products(
        self,
        db: Session,
        page: int = 1,
        limit: int = 20,
        category: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        featured: bool = False,
        popular: bool = False,
        most_orders: bool = False,
        top_sale: bool = False,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Filtered, paginated catalog listing.

        ``category`` matches either the product's own category name or the
        name of its linked category row.

        Returns:
            ``products`` for the page and ``pagination`` totals
        """
        query = self._active(db)

        if category:
            query = query.outerjoin(Category, Product.category_id == Category.id).filter(
                or_(Product.category == category, Category.name == category)
            )
        if min_price is not None:
            query = query.filter(Product.price >= min_price)
        if max_price is not None:
            query = query.filter(Product.price <= max_price)
        if featured:
            query = query.filter(Product.featured.is_(True))
        if popular:
            query = query.filter(Product.popular.is_(True))
        if most_orders:
            query = query.filter(Product.most_orders.is_(True))
        if top_sale:
            query = query.filter(Product.top_sale.is_(True))
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))

        with self.tracer.start_as_current_span("db.query.filter_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")

            total = query.count()
            products = query.order_by(Product.id).offset((page - 1) * limit).limit(limit).all()

            db_span.set_attribute("db.rows_returned", len(products))

        return {
            "products": [storefront_product(p) for p in products],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit) if limit else 0,
            },
        }

    def top_selling_product_ids(self, db: Session, limit: int) -> List[int]:
        """Product ids ranked by total quantity ordered, highest first."""
        with self.tracer.start_as_current_span("db.query.rank_order_items") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "order_items")

            total_sold = func.sum(OrderItem.quantity)
            rows = (
                db.query(OrderItem.product_id, total_sold)
                .filter(OrderItem.product_id.isnot(None), OrderItem.quantity > 0)
                .group_by(OrderItem.product_id)
                .order_by(total_sold.desc(), OrderItem.product_id)
                .limit(limit)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(rows))

        return [product_id for product_id, _ in rows]

    def quick_picks(self, db: Session, limit: int) -> List[Dict[str, Any]]:
        """
        Best sellers first, topped up with the newest products.

        The ``limit`` best-selling product ids are fetched and kept in sales
        order, skipping any that are no longer active. If that leaves fewer
        than ``limit`` products, the most recently created active products not
        already picked fill the remainder.
        """
        ranked_ids = self.top_selling_product_ids(db, limit)

        picks: List[Product] = []
        if ranked_ids:
            by_id = {p.id: p for p in self._active(db).filter(Product.id.in_(ranked_ids)).all()}
            picks = [by_id[pid] for pid in ranked_ids if pid in by_id]

        remaining = limit - len(picks)
        if remaining > 0:
            query = self._active(db)
            if picks:
                query = query.filter(Product.id.notin_([p.id for p in picks]))
            latest = query.order_by(Product.created_at.desc(), Product.id.desc()).limit(remaining).all()
            if latest:
                quick_picks_backfill_counter.add(len(latest))
            picks.extend(latest)

        logger.info("Quick picks computed", extra={
            "limit": limit,
            "top_selling": len(ranked_ids),
            "returned": len(picks)
        })

        return [storefront_product(p) for p in picks]
