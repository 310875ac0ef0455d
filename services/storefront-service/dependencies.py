"""Dependency injection for services."""
from typing import Any
from fastapi import Depends, Request

from services.cart_service import CartService
from services.cod_order_service import CodOrderService
from services.external_service import NotificationClient
from services.product_service import ProductService
from services.stock_service import StockService
from services.variant_service import VariantService
from services.warehouse_service import WarehouseService
from services.zone_service import ZoneService


def get_http_client(request: Request) -> Any:
    """Get HTTP client from app state."""
    return request.app.state.http_client


def get_stock_service() -> StockService:
    return StockService()


def get_cart_service(stock_service: StockService = Depends(get_stock_service)) -> CartService:
    """Get cart service instance."""
    return CartService(stock_service)


def get_product_service() -> ProductService:
    return ProductService()


def get_variant_service() -> VariantService:
    return VariantService()


def get_warehouse_service() -> WarehouseService:
    return WarehouseService()


def get_zone_service() -> ZoneService:
    return ZoneService()


def get_cod_order_service() -> CodOrderService:
    return CodOrderService()


def get_notification_client(http_client: Any = Depends(get_http_client)) -> NotificationClient:
    """Get notification client bound to the shared HTTP client."""
    return NotificationClient(http_client)
