"""Product variants API router."""
from typing import Any, Dict
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_variant_service
from schemas import VariantCreate
from services.variant_service import VariantService

router = APIRouter(prefix="/variants", tags=["variants"])


@router.get("/products")
async def get_products_with_variants(
    db: Session = Depends(get_db),
    variant_service: VariantService = Depends(get_variant_service)
):
    return {"success": True, "products": variant_service.products_with_variants(db)}


@router.get("/product/{product_id}")
async def get_product_variants(
    product_id: int,
    db: Session = Depends(get_db),
    variant_service: VariantService = Depends(get_variant_service)
):
    return {"success": True, "variants": variant_service.list_variants(db, product_id)}


@router.post("/product/{product_id}", status_code=201)
async def add_product_variant(
    product_id: int,
    request: VariantCreate,
    db: Session = Depends(get_db),
    variant_service: VariantService = Depends(get_variant_service)
):
    variant = variant_service.add_variant(db, product_id, request)
    return {"success": True, "variant": variant, "message": "Variant added successfully"}


@router.put("/{variant_id}")
async def update_product_variant(
    variant_id: int,
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    variant_service: VariantService = Depends(get_variant_service)
):
    """
    Update a variant.

    The raw body is taken so parent product pricing keys can be dropped
    before it is validated.
    """
    variant = variant_service.update_variant(db, variant_id, payload)
    return {"success": True, "variant": variant, "message": "Variant updated successfully"}


@router.delete("/{variant_id}")
async def delete_product_variant(
    variant_id: int,
    db: Session = Depends(get_db),
    variant_service: VariantService = Depends(get_variant_service)
):
    variant_service.delete_variant(db, variant_id)
    return {"success": True, "message": "Variant deleted successfully"}
