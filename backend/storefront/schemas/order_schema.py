from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from storefront.models.order import OrderStatus
from storefront.schemas.product_schema import ProductOut


class OrderUserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    email: str
    first_name: str
    last_name: str


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    product_id: int
    quantity: int
    price: Decimal
    line_total: Decimal
    product: Optional[ProductOut] = None


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    user_id: int
    status: OrderStatus
    total_amount: Decimal
    shipping_address: str
    payment_method: str
    user: Optional[OrderUserOut] = None
    items: List[OrderItemOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderPageOut(BaseModel):
    orders: List[OrderOut]
    total: int
    page: int
    limit: int
    pages: int


class StatisticsOut(BaseModel):
    total_orders: int
    total_revenue: Decimal
    orders_by_status: Dict[str, int]
    recent_orders: int
