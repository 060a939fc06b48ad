from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.api.deps import get_caller
from storefront.db import get_db
from storefront.schemas.cart_schema import CartItemOut, CartOut
from storefront.schemas.order_schema import OrderOut
from storefront.services.auth_service import Caller
from storefront.services.cart_service import CartService, CartView
from storefront.services.checkout_service import CheckoutService

router = APIRouter(prefix="/api/cart", tags=["cart"])


class AddItemIn(BaseModel):
    product_id: int
    quantity: int


class UpdateItemIn(BaseModel):
    quantity: int


class CheckoutIn(BaseModel):
    shipping_address: str = Field(..., min_length=1)
    payment_method: str = Field(..., min_length=1, max_length=100)


def _cart_out(view: CartView) -> CartOut:
    return CartOut(
        id=view.id,
        user_id=view.user_id,
        items=[CartItemOut.model_validate(it) for it in view.items],
        total_items=view.total_items,
        total_amount=view.total_amount,
        created_at=view.created_at,
        updated_at=view.updated_at,
    )


@router.get("", summary="Get cart")
def get_cart(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return {"data": _cart_out(CartService(db).view(caller))}


@router.post("/items", summary="Add item to cart")
def add_item(
    payload: AddItemIn,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    view = CartService(db).add_item(caller, payload.product_id, payload.quantity)
    return {"data": _cart_out(view), "message": "Item added to cart successfully"}


@router.put("/items/{item_id}", summary="Update cart item quantity")
def update_item(
    item_id: int,
    payload: UpdateItemIn,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    view = CartService(db).update_item(caller, item_id, payload.quantity)
    return {"data": _cart_out(view), "message": "Cart item updated successfully"}


@router.delete("/items/{item_id}", summary="Remove item")
def remove_item(
    item_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    view = CartService(db).remove_item(caller, item_id)
    return {"data": _cart_out(view), "message": "Item removed from cart successfully"}


@router.delete("", summary="Clear cart")
def clear_cart(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    CartService(db).clear(caller)
    return {"message": "Cart cleared successfully"}


@router.post("/checkout", status_code=status.HTTP_201_CREATED, summary="Checkout cart")
def checkout(
    payload: CheckoutIn,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    order = CheckoutService(db).checkout(
        caller, payload.shipping_address, payload.payment_method
    )
    return {"data": OrderOut.model_validate(order), "message": "Order placed successfully"}
