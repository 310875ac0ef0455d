"""Products API router."""
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session
from typing import Optional
from opentelemetry import trace

from config import QUICK_PICKS_DEFAULT_LIMIT
from database import get_db
from dependencies import get_product_service
from services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/allproducts")
async def get_all_products(
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """Get every active product."""
    products = product_service.list_products(db)

    span = trace.get_current_span()
    span.set_attribute("product.count", len(products))
    span.set_attribute("endpoint.type", "product_catalog")

    return {"success": True, "products": products}


@router.get("/categories")
async def get_categories(
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    return {"success": True, "categories": product_service.list_categories(db)}


@router.get("/featured")
async def get_featured_products(
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    return {"success": True, "products": product_service.list_featured(db)}


@router.get("/filter")
async def filter_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    featured: bool = False,
    popular: bool = False,
    most_orders: bool = False,
    top_sale: bool = False,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """
    Filtered, paginated product listing.

    Examples:
    - GET /products/filter?category=Grocery&minPrice=100&maxPrice=500
    - GET /products/filter?featured=true&page=2&limit=10
    - GET /products/filter?search=rice
    """
    result = product_service.filter_products(
        db,
        page=page,
        limit=limit,
        category=category,
        min_price=min_price,
        max_price=max_price,
        featured=featured,
        popular=popular,
        most_orders=most_orders,
        top_sale=top_sale,
        search=search
    )
    return {"success": True, **result}


@router.get("/quick-picks")
async def get_quick_picks(
    limit: int = Query(QUICK_PICKS_DEFAULT_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """
    Best-selling products, topped up with the newest ones.

    Products are ranked by total quantity ordered; if fewer than ``limit``
    have sold, the most recently created products fill the rest.
    """
    products = product_service.quick_picks(db, limit)

    span = trace.get_current_span()
    span.set_attribute("quick_picks.limit", limit)
    span.set_attribute("quick_picks.returned", len(products))

    return {"success": True, "products": products}


@router.get("/category/{category}")
async def get_products_by_category(
    category: str,
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    return {"success": True, "products": product_service.list_by_category(db, category)}


@router.get("/subcategory/{subcategory_id}")
async def get_products_by_subcategory(
    subcategory_id: int,
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    return {"success": True, "products": product_service.list_by_subcategory(db, subcategory_id)}


@router.get("/group/{group_id}")
async def get_products_by_group(
    group_id: int,
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    return {"success": True, "products": product_service.list_by_group(db, group_id)}


@router.get("/{product_id}")
async def get_product(
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """Get a single active product."""
    product = product_service.get_product(db, product_id)

    span = trace.get_current_span()
    span.set_attribute("product.id", product_id)

    return {"success": True, "product": product}
