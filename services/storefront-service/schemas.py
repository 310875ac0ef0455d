"""Pydantic schemas for request validation.

Required business fields are declared Optional and checked by the services,
so a missing field produces the same ``{"success": false, "error": ...}``
message the services use for every other validation failure.
"""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt
from typing import Annotated, Any, Dict, List, Optional

# Largest value an INTEGER primary key column holds
MAX_ROW_ID = 2**31 - 1

RowId = Annotated[int, Field(ge=1, le=MAX_ROW_ID)]


class AddToCartRequest(BaseModel):
    """Schema for add to cart request."""
    user_id: Optional[str] = None
    product_id: Optional[RowId] = None
    quantity: StrictInt = Field(1, le=MAX_ROW_ID)


class UpdateCartItemRequest(BaseModel):
    """Schema for changing a cart item's quantity."""
    quantity: Optional[StrictInt] = Field(None, le=MAX_ROW_ID)


class VariantCreate(BaseModel):
    """Schema for adding a variant to a product."""
    variant_name: Optional[str] = None
    variant_price: Optional[float] = None
    variant_old_price: Optional[float] = None
    variant_discount: int = 0
    variant_stock: int = 0
    variant_weight: Optional[str] = None
    variant_unit: Optional[str] = None
    shipping_amount: float = 0.0
    is_default: bool = False


class VariantUpdate(BaseModel):
    """Variant fields that may be changed. Anything else is rejected."""
    model_config = ConfigDict(extra="forbid")

    variant_name: Optional[str] = None
    variant_price: Optional[float] = None
    variant_old_price: Optional[float] = None
    variant_discount: Optional[int] = None
    variant_stock: Optional[int] = None
    variant_weight: Optional[str] = None
    variant_unit: Optional[str] = None
    shipping_amount: Optional[float] = None
    is_default: Optional[bool] = None
    active: Optional[bool] = None


class WarehouseCreate(BaseModel):
    """Schema for creating a warehouse."""
    name: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = Field(None, validation_alias=AliasChoices("location", "pincode"))
    address: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    zone_ids: Optional[List[RowId]] = None
    parent_warehouse_id: Optional[RowId] = None


class WarehouseUpdate(WarehouseCreate):
    """Schema for replacing a warehouse's details."""
    is_active: Optional[bool] = None


class WarehouseProductCreate(BaseModel):
    """Schema for stocking a product in a warehouse."""
    product_id: Optional[RowId] = None
    stock_quantity: Optional[int] = Field(None, ge=0, le=MAX_ROW_ID)
    minimum_threshold: Optional[int] = Field(None, ge=0, le=MAX_ROW_ID)
    cost_per_unit: Optional[float] = Field(None, ge=0)


class WarehouseProductUpdate(BaseModel):
    """Schema for changing a warehouse stock record."""
    stock_quantity: Optional[int] = Field(None, ge=0, le=MAX_ROW_ID)
    minimum_threshold: Optional[int] = Field(None, ge=0, le=MAX_ROW_ID)
    cost_per_unit: Optional[float] = Field(None, ge=0)


class PincodeIn(BaseModel):
    """A pincode entry of a zone."""
    pincode: str
    city: Optional[str] = None
    state: Optional[str] = None


class ZoneCreate(BaseModel):
    """Schema for creating a delivery zone."""
    name: Optional[str] = None
    description: Optional[str] = None
    pincodes: List[PincodeIn] = Field(default_factory=list)


class ZoneUpdate(BaseModel):
    """Schema for updating a delivery zone."""
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class PincodeCheckRequest(BaseModel):
    """Schema for a delivery eligibility check."""
    pincode: Optional[str] = None


class CodOrderCreate(BaseModel):
    """Schema for placing a COD order."""
    user_id: Optional[str] = None
    product_id: Optional[RowId] = None
    user_name: Optional[str] = None
    product_name: Optional[str] = None
    product_total_price: Optional[float] = None
    user_address: Optional[str] = None
    user_location: Optional[Dict[str, Any]] = None
    quantity: StrictInt = Field(1, le=MAX_ROW_ID)


class CodOrderStatusUpdate(BaseModel):
    """Schema for moving a COD order to a new status."""
    status: Optional[str] = None
