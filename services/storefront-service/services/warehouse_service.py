"""Warehouse hierarchy, zone mappings and per-warehouse product stock."""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session, selectinload
from opentelemetry import trace

from config import DEFAULT_MINIMUM_THRESHOLD
from errors import NotFoundError, ValidationError
from models import (
    DeliveryZone,
    Product,
    ProductWarehouseStock,
    Warehouse,
    WarehouseZone,
    WAREHOUSE_TYPES,
)
from schemas import WarehouseCreate, WarehouseUpdate, WarehouseProductCreate, WarehouseProductUpdate

logger = logging.getLogger(__name__)

_CONTACT_FIELDS = ("location", "address", "contact_person", "contact_phone", "contact_email")


def _zone_record(zone: DeliveryZone) -> Dict[str, Any]:
    return {
        "id": zone.id,
        "name": zone.name,
        "pincodes": [
            {"pincode": p.pincode, "city": p.city, "state": p.state}
            for p in zone.pincodes
        ],
    }


def warehouse_record(warehouse: Warehouse, include_zones: bool = True) -> Dict[str, Any]:
    data = {column.name: getattr(warehouse, column.name) for column in Warehouse.__table__.columns}
    # Clients read the warehouse pincode from ``pincode``
    data["pincode"] = warehouse.location
    if include_zones:
        data["zones"] = [
            _zone_record(link.zone)
            for link in sorted(warehouse.zone_links, key=lambda link: (link.priority or 0, link.zone_id))
            if link.is_active and link.zone is not None
        ]
    return data


def stock_record(stock: ProductWarehouseStock) -> Dict[str, Any]:
    product = stock.product
    return {
        "product_id": stock.product_id,
        "product_name": product.name if product else "Unknown Product",
        "product_price": product.price if product else None,
        "image_url": product.image if product else None,
        "stock_quantity": stock.stock_quantity,
        "reserved_quantity": stock.reserved_quantity or 0,
        "available_quantity": stock.available_quantity,
        "minimum_threshold": stock.minimum_threshold or 0,
        "cost_per_unit": stock.cost_per_unit,
        "last_restocked_at": stock.last_restocked_at,
        "is_low_stock": stock.is_low_stock,
    }


def _unique(ids: Iterable[int]) -> List[int]:
    return list(dict.fromkeys(ids))


class WarehouseService:
    """Service for managing warehouses.

    Hierarchy rules: central warehouses are top-level (level 0); zonal
    warehouses (level 1) serve at least one delivery zone and, when they
    have a parent, the parent is central.
    """

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def _load(self, db: Session, warehouse_id: int) -> Warehouse:
        warehouse = (
            db.query(Warehouse)
            .options(selectinload(Warehouse.zone_links).selectinload(WarehouseZone.zone).selectinload(DeliveryZone.pincodes))
            .filter(Warehouse.id == warehouse_id)
            .first()
        )
        if not warehouse:
            raise NotFoundError("Warehouse not found")
        return warehouse

    def list_warehouses(
        self,
        db: Session,
        warehouse_type: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[Dict[str, Any]]:
        query = db.query(Warehouse).options(
            selectinload(Warehouse.zone_links).selectinload(WarehouseZone.zone).selectinload(DeliveryZone.pincodes)
        )
        if warehouse_type:
            query = query.filter(Warehouse.type == warehouse_type)
        if is_active is not None:
            query = query.filter(Warehouse.is_active.is_(is_active))

        with self.tracer.start_as_current_span("db.query.list_warehouses") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "warehouses")
            warehouses = query.order_by(Warehouse.name, Warehouse.id).all()
            db_span.set_attribute("db.rows_returned", len(warehouses))

        return [warehouse_record(w) for w in warehouses]

    def get_warehouse(self, db: Session, warehouse_id: int) -> Dict[str, Any]:
        return warehouse_record(self._load(db, warehouse_id))

    def _validate_type_and_zones(
        self,
        db: Session,
        name: Optional[str],
        warehouse_type: Optional[str],
        zone_ids: Optional[List[int]]
    ) -> None:
        if not name or warehouse_type not in WAREHOUSE_TYPES:
            raise ValidationError("Name and valid type (central/zonal) are required")

        if warehouse_type == "zonal":
            if not zone_ids:
                raise ValidationError("Zonal warehouses must be mapped to at least one zone")
            wanted = set(zone_ids)
            found = {zid for (zid,) in db.query(DeliveryZone.id).filter(DeliveryZone.id.in_(wanted)).all()}
            missing = sorted(wanted - found)
            if missing:
                raise ValidationError(f"Unknown zone ids: {', '.join(str(z) for z in missing)}")

    def _validate_parent(
        self,
        db: Session,
        warehouse_type: str,
        parent_id: Optional[int],
        warehouse_id: Optional[int] = None
    ) -> None:
        if parent_id is None:
            return
        if warehouse_type == "central":
            raise ValidationError("Central warehouses are top-level and cannot have a parent warehouse")
        if warehouse_id is not None and parent_id == warehouse_id:
            raise ValidationError("A warehouse cannot be its own parent")

        parent = db.get(Warehouse, parent_id)
        if not parent:
            raise ValidationError("Parent warehouse not found")
        if parent.type != "central":
            raise ValidationError("Zonal warehouses can only be children of central warehouses")

    def _sync_zones(self, db: Session, warehouse: Warehouse, zone_ids: List[int]) -> None:
        """Make the warehouse's zone links match ``zone_ids`` by inserting and deleting the difference."""
        desired = _unique(zone_ids)
        current = {link.zone_id: link for link in warehouse.zone_links}

        with self.tracer.start_as_current_span("db.query.sync_warehouse_zones") as db_span:
            db_span.set_attribute("db.table", "warehouse_zones")
            db_span.set_attribute("warehouse.id", warehouse.id)

            removed = [link for zone_id, link in current.items() if zone_id not in desired]
            for link in removed:
                warehouse.zone_links.remove(link)

            added = 0
            for zone_id in desired:
                link = current.get(zone_id)
                if link is None:
                    warehouse.zone_links.append(WarehouseZone(zone_id=zone_id, priority=1, is_active=True))
                    added += 1
                elif not link.is_active:
                    link.is_active = True

            db_span.set_attribute("zones.added", added)
            db_span.set_attribute("zones.removed", len(removed))

    def create_warehouse(self, db: Session, request: WarehouseCreate) -> Dict[str, Any]:
        """
        Create a warehouse and, for zonal ones, its zone mappings.

        Raises:
            ValidationError: On a bad type, missing zones or a hierarchy violation
        """
        self._validate_type_and_zones(db, request.name, request.type, request.zone_ids)
        self._validate_parent(db, request.type, request.parent_warehouse_id)

        warehouse = Warehouse(
            name=request.name,
            type=request.type,
            location=request.location,
            address=request.address,
            contact_person=request.contact_person,
            contact_phone=request.contact_phone,
            contact_email=request.contact_email,
            parent_warehouse_id=request.parent_warehouse_id,
            hierarchy_level=0 if request.type == "central" else 1,
        )
        try:
            db.add(warehouse)
            if request.type == "zonal":
                warehouse.zone_links = [
                    WarehouseZone(zone_id=zone_id, priority=1, is_active=True)
                    for zone_id in _unique(request.zone_ids)
                ]
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Created warehouse", extra={
            "warehouse_id": warehouse.id,
            "type": warehouse.type,
            "zone_ids": request.zone_ids or []
        })
        return self.get_warehouse(db, warehouse.id)

    def update_warehouse(self, db: Session, warehouse_id: int, request: WarehouseUpdate) -> Dict[str, Any]:
        """
        Replace a warehouse's details and resync its zones.

        The hierarchy is checked against the parent the warehouse will have
        after the update, whether or not the request names one.

        Raises:
            NotFoundError: If the warehouse does not exist
            ValidationError: On a bad type, missing zones or a hierarchy violation
        """
        warehouse = self._load(db, warehouse_id)
        provided = request.model_fields_set

        self._validate_type_and_zones(db, request.name, request.type, request.zone_ids)

        parent_id = request.parent_warehouse_id if "parent_warehouse_id" in provided else warehouse.parent_warehouse_id
        self._validate_parent(db, request.type, parent_id, warehouse_id=warehouse.id)

        if request.type == "zonal":
            has_children = db.query(Warehouse.id).filter(Warehouse.parent_warehouse_id == warehouse.id).first()
            if has_children:
                raise ValidationError("Warehouses with child warehouses must stay central")

        try:
            warehouse.name = request.name
            warehouse.type = request.type
            warehouse.hierarchy_level = 0 if request.type == "central" else 1
            warehouse.parent_warehouse_id = parent_id
            for field in _CONTACT_FIELDS:
                if field in provided:
                    setattr(warehouse, field, getattr(request, field))
            if request.is_active is not None:
                warehouse.is_active = request.is_active
            warehouse.updated_at = datetime.utcnow()

            # Only zonal warehouses serve zones
            self._sync_zones(db, warehouse, request.zone_ids if request.type == "zonal" else [])

            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Updated warehouse", extra={
            "warehouse_id": warehouse_id,
            "type": request.type
        })
        return self.get_warehouse(db, warehouse_id)

    def delete_warehouse(self, db: Session, warehouse_id: int) -> None:
        """
        Raises:
            NotFoundError: If the warehouse does not exist
            ValidationError: If it still holds stock or parents other warehouses
        """
        warehouse = self._load(db, warehouse_id)

        has_stock = db.query(ProductWarehouseStock.id).filter(
            ProductWarehouseStock.warehouse_id == warehouse_id
        ).first()
        if has_stock:
            raise ValidationError("Cannot delete warehouse with existing stock records")

        has_children = db.query(Warehouse.id).filter(Warehouse.parent_warehouse_id == warehouse_id).first()
        if has_children:
            raise ValidationError("Cannot delete warehouse with child warehouses")

        try:
            db.delete(warehouse)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Deleted warehouse", extra={"warehouse_id": warehouse_id})

    def get_hierarchy(self, db: Session) -> Dict[str, Any]:
        """
        All warehouses ordered by level then name, also grouped by level.

        Returns:
            ``data`` (flat list), ``grouped`` (level → warehouses) and ``levels``
        """
        warehouses = db.query(Warehouse).order_by(Warehouse.hierarchy_level, Warehouse.name, Warehouse.id).all()
        names = {w.id: w.name for w in warehouses}

        data = []
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for warehouse in warehouses:
            record = warehouse_record(warehouse, include_zones=False)
            record["parent_name"] = names.get(warehouse.parent_warehouse_id)
            data.append(record)
            grouped.setdefault(str(warehouse.hierarchy_level or 0), []).append(record)

        return {
            "data": data,
            "grouped": grouped,
            "levels": [int(level) for level in grouped],
        }

    def get_children(self, db: Session, parent_id: int) -> List[Dict[str, Any]]:
        if not db.get(Warehouse, parent_id):
            raise NotFoundError("Warehouse not found")
        children = (
            db.query(Warehouse)
            .filter(Warehouse.parent_warehouse_id == parent_id)
            .order_by(Warehouse.name, Warehouse.id)
            .all()
        )
        return [warehouse_record(w) for w in children]

    def list_products(self, db: Session, warehouse_id: int) -> Dict[str, Any]:
        warehouse = db.get(Warehouse, warehouse_id)
        if not warehouse:
            raise NotFoundError("Warehouse not found")

        stocks = (
            db.query(ProductWarehouseStock)
            .options(selectinload(ProductWarehouseStock.product))
            .filter(
                ProductWarehouseStock.warehouse_id == warehouse_id,
                ProductWarehouseStock.is_active.is_(True)
            )
            .order_by(ProductWarehouseStock.product_id)
            .all()
        )
        return {
            "data": [stock_record(s) for s in stocks],
            "warehouse": {"id": warehouse.id, "name": warehouse.name, "type": warehouse.type},
        }

    def _get_stock(self, db: Session, warehouse_id: int, product_id: int) -> Optional[ProductWarehouseStock]:
        return db.query(ProductWarehouseStock).filter(
            ProductWarehouseStock.warehouse_id == warehouse_id,
            ProductWarehouseStock.product_id == product_id
        ).first()

    def add_product(self, db: Session, warehouse_id: int, request: WarehouseProductCreate) -> Dict[str, Any]:
        """
        Start stocking a product in a warehouse.

        Raises:
            ValidationError: If fields are missing or the product is already stocked here
            NotFoundError: If the warehouse or product does not exist
        """
        if request.product_id is None or request.stock_quantity is None:
            raise ValidationError("Product ID and stock quantity are required")

        if not db.get(Warehouse, warehouse_id):
            raise NotFoundError("Warehouse not found")
        if not db.get(Product, request.product_id):
            raise NotFoundError("Product not found")
        if self._get_stock(db, warehouse_id, request.product_id):
            raise ValidationError("Product already exists in this warehouse")

        stock = ProductWarehouseStock(
            warehouse_id=warehouse_id,
            product_id=request.product_id,
            stock_quantity=request.stock_quantity,
            reserved_quantity=0,
            minimum_threshold=(
                request.minimum_threshold if request.minimum_threshold is not None else DEFAULT_MINIMUM_THRESHOLD
            ),
            cost_per_unit=request.cost_per_unit or 0.0,
            last_restocked_at=datetime.utcnow(),
            is_active=True,
        )
        db.add(stock)
        db.commit()
        db.refresh(stock)

        logger.info("Added product to warehouse", extra={
            "warehouse_id": warehouse_id,
            "product_id": request.product_id,
            "stock_quantity": request.stock_quantity
        })
        return stock_record(stock)

    def update_product(
        self,
        db: Session,
        warehouse_id: int,
        product_id: int,
        request: WarehouseProductUpdate
    ) -> Dict[str, Any]:
        stock = self._get_stock(db, warehouse_id, product_id)
        if not stock:
            raise NotFoundError("Product not found in this warehouse")

        if request.stock_quantity is not None and request.stock_quantity < (stock.reserved_quantity or 0):
            raise ValidationError(
                f"Stock quantity cannot be lower than reserved quantity ({stock.reserved_quantity})"
            )

        for key, value in request.model_dump(exclude_none=True).items():
            setattr(stock, key, value)
        stock.last_restocked_at = datetime.utcnow()

        db.commit()
        db.refresh(stock)
        return stock_record(stock)

    def remove_product(self, db: Session, warehouse_id: int, product_id: int) -> None:
        stock = self._get_stock(db, warehouse_id, product_id)
        if not stock:
            raise NotFoundError("Product not found in this warehouse")
        db.delete(stock)
        db.commit()
