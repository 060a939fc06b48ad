from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from storefront.schemas.product_schema import ProductOut


class CartItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    product_id: int
    quantity: int
    product: ProductOut
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CartOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    user_id: int
    items: List[CartItemOut]
    total_items: int
    total_amount: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
