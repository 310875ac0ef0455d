"""Product variant management.

Variant pricing is isolated from the parent product: nothing in this module
reads or writes ``products.price``, ``old_price`` or ``discount``, and
updates drop those keys before the body is applied.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session, selectinload

from errors import NotFoundError, ValidationError
from models import Product, ProductVariant
from schemas import VariantCreate, VariantUpdate

logger = logging.getLogger(__name__)

# Keys a variant update must never carry through to the database
PARENT_PRODUCT_FIELDS = ("price", "old_price", "discount", "product_id", "id")


def variant_record(variant: ProductVariant) -> Dict[str, Any]:
    return {column.name: getattr(variant, column.name) for column in ProductVariant.__table__.columns}


def strip_parent_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if key not in PARENT_PRODUCT_FIELDS}


class VariantService:
    """CRUD for product variants."""

    def list_variants(self, db: Session, product_id: int) -> List[Dict[str, Any]]:
        variants = (
            db.query(ProductVariant)
            .filter(ProductVariant.product_id == product_id, ProductVariant.active.is_(True))
            .order_by(ProductVariant.variant_price.asc(), ProductVariant.id)
            .all()
        )
        return [variant_record(v) for v in variants]

    def add_variant(self, db: Session, product_id: int, request: VariantCreate) -> Dict[str, Any]:
        """
        Add a variant to an existing product.

        Raises:
            NotFoundError: If the product does not exist
            ValidationError: If name or price is missing
        """
        if not request.variant_name or request.variant_price is None:
            raise ValidationError("variant_name and variant_price are required")

        if not db.get(Product, product_id):
            raise NotFoundError("Product not found")

        variant = ProductVariant(product_id=product_id, active=True, **request.model_dump())
        db.add(variant)
        db.commit()
        db.refresh(variant)

        logger.info("Added product variant", extra={
            "product_id": product_id,
            "variant_id": variant.id
        })
        return variant_record(variant)

    def update_variant(self, db: Session, variant_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a partial update to a variant.

        Parent product pricing keys and ``product_id`` are silently dropped;
        any other unknown key is rejected.

        Raises:
            ValidationError: If the remaining body does not validate
            NotFoundError: If the variant does not exist
        """
        try:
            update = VariantUpdate.model_validate(strip_parent_fields(payload))
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise ValidationError(f"{field}: {first['msg']}") from e

        variant = db.get(ProductVariant, variant_id)
        if not variant:
            raise NotFoundError("Variant not found")

        for key, value in update.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(variant, key, value)
        variant.updated_at = datetime.utcnow()

        db.commit()
        db.refresh(variant)
        return variant_record(variant)

    def delete_variant(self, db: Session, variant_id: int) -> None:
        variant = db.get(ProductVariant, variant_id)
        if not variant:
            raise NotFoundError("Variant not found")
        db.delete(variant)
        db.commit()

    def products_with_variants(self, db: Session) -> List[Dict[str, Any]]:
        products = (
            db.query(Product)
            .options(selectinload(Product.variants))
            .filter(Product.active.is_(True))
            .order_by(Product.id)
            .all()
        )
        return [
            {
                "id": p.id,
                "name": p.name,
                "price": p.price,
                "old_price": p.old_price,
                "discount": p.discount,
                "image": p.image,
                "product_variants": [variant_record(v) for v in p.variants if v.active],
            }
            for p in products
        ]
