"""Database connection and session management."""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator
import logging

from config import DATABASE_URL, SEED_DATA
from models import Base, Product, Category, DeliveryZone, ZonePincode, Warehouse, WarehouseZone

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_timeout": 30,
    }


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables and seed data."""
    Base.metadata.create_all(bind=engine)

    if not SEED_DATA:
        return

    db = SessionLocal()
    try:
        if db.query(Product).count() == 0:
            seed_catalog(db)
            logger.info("Seeded database with sample catalog")
    finally:
        db.close()


def seed_catalog(db: Session) -> None:
    """Insert a small demo catalog, two zones and a central/zonal warehouse pair."""
    groceries = Category(name="Groceries", description="Daily essentials", featured=True)
    electronics = Category(name="Electronics", description="Gadgets and appliances")
    db.add_all([groceries, electronics])
    db.flush()

    products = [
        ("Basmati Rice 5kg", 649.0, 120, groceries, True),
        ("Cold Pressed Mustard Oil 1L", 219.0, 80, groceries, False),
        ("Organic Toor Dal 1kg", 189.0, 60, groceries, False),
        ("Bluetooth Speaker", 1499.0, 25, electronics, True),
        ("Mixer Grinder 750W", 3299.0, 10, electronics, True),
        ("LED Bulb 9W (Pack of 4)", 349.0, 0, electronics, False),
    ]
    for name, price, quantity, category, featured in products:
        db.add(Product(
            name=name,
            price=price,
            category=category.name,
            category_id=category.id,
            featured=featured,
            stock_quantity=quantity,
            stock=quantity,
            in_stock=quantity > 0,
            active=True,
        ))

    delhi = DeliveryZone(name="DelhiZone", description="Delhi NCR")
    delhi.pincodes = [
        ZonePincode(pincode="110001", city="New Delhi", state="Delhi"),
        ZonePincode(pincode="122001", city="Gurgaon", state="Haryana"),
    ]
    mumbai = DeliveryZone(name="MumbaiZone", description="Mumbai metro")
    mumbai.pincodes = [ZonePincode(pincode="400001", city="Fort Mumbai", state="Maharashtra")]
    db.add_all([delhi, mumbai])
    db.flush()

    central = Warehouse(name="Central Hub", type="central", location="110001", hierarchy_level=0)
    db.add(central)
    db.flush()
    zonal = Warehouse(
        name="Delhi Fulfilment",
        type="zonal",
        location="110001",
        parent_warehouse_id=central.id,
        hierarchy_level=1,
    )
    db.add(zonal)
    db.flush()
    db.add(WarehouseZone(warehouse_id=zonal.id, zone_id=delhi.id, priority=1))
    db.commit()
