"""Warehouses API router."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db
from dependencies import get_warehouse_service
from schemas import WarehouseCreate, WarehouseUpdate, WarehouseProductCreate, WarehouseProductUpdate
from services.warehouse_service import WarehouseService

router = APIRouter(prefix="/warehouse", tags=["warehouses"])


@router.get("")
async def list_warehouses(
    warehouse_type: Optional[str] = Query(None, alias="type"),
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    """List warehouses with the zones and pincodes they serve."""
    warehouses = warehouse_service.list_warehouses(db, warehouse_type=warehouse_type, is_active=is_active)
    return {"success": True, "data": warehouses}


@router.post("", status_code=201)
async def create_warehouse(
    request: WarehouseCreate,
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    """
    Create a central or zonal warehouse.

    Zonal warehouses need at least one zone in ``zone_ids``; a parent, if
    given, must be a central warehouse.
    """
    warehouse = warehouse_service.create_warehouse(db, request)
    return {"success": True, "data": warehouse, "message": "Warehouse created successfully"}


@router.get("/hierarchy")
async def get_warehouse_hierarchy(
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    return {"success": True, **warehouse_service.get_hierarchy(db)}


@router.get("/{warehouse_id}")
async def get_warehouse(
    warehouse_id: int,
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    return {"success": True, "data": warehouse_service.get_warehouse(db, warehouse_id)}


@router.put("/{warehouse_id}")
async def update_warehouse(
    warehouse_id: int,
    request: WarehouseUpdate,
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    warehouse = warehouse_service.update_warehouse(db, warehouse_id, request)
    return {"success": True, "data": warehouse, "message": "Warehouse updated successfully"}


@router.delete("/{warehouse_id}")
async def delete_warehouse(
    warehouse_id: int,
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    warehouse_service.delete_warehouse(db, warehouse_id)
    return {"success": True, "message": "Warehouse deleted successfully"}


@router.get("/{warehouse_id}/children")
async def get_child_warehouses(
    warehouse_id: int,
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    return {"success": True, "data": warehouse_service.get_children(db, warehouse_id)}


@router.get("/{warehouse_id}/products")
async def get_warehouse_products(
    warehouse_id: int,
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    """Stock held in a warehouse, with available quantity and low-stock flags."""
    return {"success": True, **warehouse_service.list_products(db, warehouse_id)}


@router.post("/{warehouse_id}/products", status_code=201)
async def add_warehouse_product(
    warehouse_id: int,
    request: WarehouseProductCreate,
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    stock = warehouse_service.add_product(db, warehouse_id, request)
    return {"success": True, "data": stock, "message": "Product added to warehouse successfully"}


@router.put("/{warehouse_id}/products/{product_id}")
async def update_warehouse_product(
    warehouse_id: int,
    product_id: int,
    request: WarehouseProductUpdate,
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    stock = warehouse_service.update_product(db, warehouse_id, product_id, request)
    return {"success": True, "data": stock, "message": "Warehouse stock updated successfully"}


@router.delete("/{warehouse_id}/products/{product_id}")
async def remove_warehouse_product(
    warehouse_id: int,
    product_id: int,
    db: Session = Depends(get_db),
    warehouse_service: WarehouseService = Depends(get_warehouse_service)
):
    warehouse_service.remove_product(db, warehouse_id, product_id)
    return {"success": True, "message": "Product removed from warehouse successfully"}
