"""Cart API router."""
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from database import get_db
from schemas import AddToCartRequest, UpdateCartItemRequest
from dependencies import get_cart_service

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("/{user_id}")
async def get_cart(
    user_id: str,
    db: Session = Depends(get_db),
    cart_service = Depends(get_cart_service)
):
    """Get a user's cart items with product details."""
    return {"success": True, "cartItems": cart_service.get_cart_items(db, user_id)}


@router.post("/add")
async def add_to_cart(
    request: AddToCartRequest,
    response: Response,
    db: Session = Depends(get_db),
    cart_service = Depends(get_cart_service)
):
    """
    Add a product to the cart, taking the units out of stock.

    Responds 201 when a new cart row was created and 200 when an existing
    row's quantity was increased.
    """
    result = cart_service.add_to_cart(
        db=db,
        user_id=request.user_id,
        product_id=request.product_id,
        quantity=request.quantity
    )
    if result["created"]:
        response.status_code = 201

    return {
        "success": True,
        "cartItem": result["cart_item"],
        "message": result["message"]
    }


@router.delete("/clear/{user_id}")
async def clear_cart(
    user_id: str,
    db: Session = Depends(get_db),
    cart_service = Depends(get_cart_service)
):
    """Empty a user's cart and restore stock for every item."""
    result = cart_service.clear_cart(db, user_id)
    return {"success": True, **result}


@router.put("/{cart_item_id}")
async def update_cart_item(
    cart_item_id: int,
    request: UpdateCartItemRequest,
    db: Session = Depends(get_db),
    cart_service = Depends(get_cart_service)
):
    """Change a cart item's quantity, moving the difference in or out of stock."""
    result = cart_service.update_cart_item(db, cart_item_id, request.quantity)
    return {
        "success": True,
        "cartItem": result["cart_item"],
        "message": result["message"]
    }


@router.delete("/{cart_item_id}")
async def remove_cart_item(
    cart_item_id: int,
    db: Session = Depends(get_db),
    cart_service = Depends(get_cart_service)
):
    """Remove a cart item and restore its stock."""
    result = cart_service.remove_cart_item(db, cart_item_id)
    return {"success": True, **result}
