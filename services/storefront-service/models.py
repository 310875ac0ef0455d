"""Database models for the storefront service."""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, JSON, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

WAREHOUSE_TYPES = ("central", "zonal")
COD_ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")


class Category(Base):
    """Catalog category."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    image_url = Column(String)
    icon = Column(String)
    featured = Column(Boolean, default=False)
    active = Column(Boolean, default=True)


class Product(Base):
    """Product model.

    ``stock_quantity`` and ``stock`` hold the same number and are always
    written together; ``in_stock`` mirrors ``stock_quantity > 0``.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    description = Column(Text)
    price = Column(Float, nullable=False, default=0.0)
    old_price = Column(Float)
    rating = Column(Float)
    review_count = Column(Integer)
    discount = Column(Float)
    image = Column(String)
    images = Column(JSON)
    video = Column(String)
    category = Column(String, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"))
    subcategory_id = Column(Integer, index=True)
    group_id = Column(Integer, index=True)
    uom = Column(String)
    uom_value = Column(Float)
    uom_unit = Column(String)
    brand_name = Column(String)
    shipping_amount = Column(Float)
    specifications = Column(Text)
    popular = Column(Boolean, default=False)
    featured = Column(Boolean, default=False)
    most_orders = Column(Boolean, default=False)
    top_sale = Column(Boolean, default=False)
    stock_quantity = Column(Integer)
    stock = Column(Integer)
    in_stock = Column(Boolean, default=False)
    active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    category_info = relationship("Category")
    variants = relationship("ProductVariant", back_populates="product")


class ProductVariant(Base):
    """Variant with its own pricing and stock, independent of the parent product."""
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    variant_name = Column(String, nullable=False)
    variant_price = Column(Float, nullable=False)
    variant_old_price = Column(Float)
    variant_discount = Column(Integer, default=0)
    variant_stock = Column(Integer, default=0)
    variant_weight = Column(String)
    variant_unit = Column(String)
    shipping_amount = Column(Float, default=0.0)
    is_default = Column(Boolean, default=False)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="variants")


class CartItem(Base):
    """Cart item model."""
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("user_id", "product_id", name="uq_cart_items_user_product"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    added_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product")


class Order(Base):
    """Order model."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True)
    total_amount = Column(Float)
    payment_method = Column(String)
    status = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)

    items = relationship("OrderItem", back_populates="order")


class OrderItem(Base):
    """Line item of an order."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True)
    product_id = Column(Integer, ForeignKey("products.id"), index=True)
    quantity = Column(Integer)
    price = Column(Float)

    order = relationship("Order", back_populates="items")


class DeliveryZone(Base):
    """Named group of pincodes used for delivery eligibility."""
    __tablename__ = "delivery_zones"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    pincodes = relationship(
        "ZonePincode", back_populates="zone", cascade="all, delete-orphan", order_by="ZonePincode.pincode"
    )


class ZonePincode(Base):
    """Pincode belonging to a delivery zone."""
    __tablename__ = "zone_pincodes"
    __table_args__ = (UniqueConstraint("zone_id", "pincode", name="uq_zone_pincodes_zone_pincode"),)

    id = Column(Integer, primary_key=True, index=True)
    zone_id = Column(Integer, ForeignKey("delivery_zones.id"), nullable=False, index=True)
    pincode = Column(String(6), nullable=False, index=True)
    city = Column(String)
    state = Column(String)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    zone = relationship("DeliveryZone", back_populates="pincodes")


class Warehouse(Base):
    """Warehouse model. Central warehouses are top-level, zonal ones hang off a central parent."""
    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    location = Column(String)
    address = Column(Text)
    contact_person = Column(String)
    contact_phone = Column(String)
    contact_email = Column(String)
    parent_warehouse_id = Column(Integer, ForeignKey("warehouses.id"))
    hierarchy_level = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    parent = relationship("Warehouse", remote_side=[id])
    zone_links = relationship("WarehouseZone", back_populates="warehouse", cascade="all, delete-orphan")


class WarehouseZone(Base):
    """Mapping between a warehouse and a delivery zone it serves."""
    __tablename__ = "warehouse_zones"
    __table_args__ = (UniqueConstraint("warehouse_id", "zone_id", name="uq_warehouse_zones_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    zone_id = Column(Integer, ForeignKey("delivery_zones.id"), nullable=False, index=True)
    priority = Column(Integer, default=1)
    is_active = Column(Boolean, default=True)

    warehouse = relationship("Warehouse", back_populates="zone_links")
    zone = relationship("DeliveryZone")


class ProductWarehouseStock(Base):
    """Stock of one product held in one warehouse."""
    __tablename__ = "product_warehouse_stock"
    __table_args__ = (UniqueConstraint("warehouse_id", "product_id", name="uq_product_warehouse_stock_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)
    minimum_threshold = Column(Integer, nullable=False, default=0)
    cost_per_unit = Column(Float, default=0.0)
    last_restocked_at = Column(DateTime, default=datetime.utcnow)
    is_active = Column(Boolean, default=True)

    product = relationship("Product")

    @property
    def available_quantity(self) -> int:
        return (self.stock_quantity or 0) - (self.reserved_quantity or 0)

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.minimum_threshold or 0)


class CodOrder(Base):
    """Cash-on-delivery order, a snapshot of user, product, price and address."""
    __tablename__ = "cod_orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    user_name = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    product_total_price = Column(Float, nullable=False)
    user_address = Column(Text, nullable=False)
    user_location = Column(JSON)
    quantity = Column(Integer, default=1)
    status = Column(String, default="pending")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product")
