from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.api.deps import get_caller
from storefront.db import get_db
from storefront.models.order import OrderStatus
from storefront.schemas.filters import OrderFilter
from storefront.schemas.order_schema import OrderOut, OrderPageOut, StatisticsOut
from storefront.services.auth_service import Caller
from storefront.services.order_service import OrderPage, OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int


class CreateOrderIn(BaseModel):
    shipping_address: str = Field(..., min_length=1)
    payment_method: str = Field(..., min_length=1, max_length=100)
    items: List[OrderItemIn] = Field(..., min_length=1)


class StatusUpdateIn(BaseModel):
    status: OrderStatus


def _page_out(result: OrderPage) -> OrderPageOut:
    return OrderPageOut(
        orders=[OrderOut.model_validate(o) for o in result.orders],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create order")
def create_order(
    payload: CreateOrderIn,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    order = OrderService(db).create(
        caller,
        payload.shipping_address,
        payload.payment_method,
        [(it.product_id, it.quantity) for it in payload.items],
    )
    return {"data": OrderOut.model_validate(order), "message": "Order created successfully"}


@router.get("", summary="List orders")
def list_orders(
    user_id: Optional[int] = Query(None),
    status_: Optional[OrderStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1),
    limit: int = Query(0),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    flt = OrderFilter(
        user_id=user_id,
        status=status_,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return {"data": _page_out(OrderService(db).list(caller, flt))}


@router.get("/my", summary="Orders of the current user")
def my_orders(
    page: int = Query(1),
    limit: int = Query(0),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return {"data": _page_out(OrderService(db).my_orders(caller, page, limit))}


@router.get("/statistics", summary="Order statistics (admin)")
def statistics(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    stats = OrderService(db).statistics(caller)
    return {"data": StatisticsOut(**stats)}


@router.get("/{order_id}", summary="Get order")
def get_order(
    order_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return {"data": OrderOut.model_validate(OrderService(db).get(caller, order_id))}


@router.put("/{order_id}/status", summary="Update order status (admin)")
def update_status(
    order_id: int,
    payload: StatusUpdateIn,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    order = OrderService(db).update_status(caller, order_id, payload.status)
    return {"data": OrderOut.model_validate(order), "message": "Order status updated successfully"}


@router.delete("/{order_id}", summary="Cancel order")
def cancel_order(
    order_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    order = OrderService(db).cancel(caller, order_id)
    return {"data": OrderOut.model_validate(order), "message": "Order cancelled successfully"}
