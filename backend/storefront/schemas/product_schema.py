# backend/storefront/schemas/product_schema.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from storefront.models.product import ProductStatus


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryWithCountOut(CategoryOut):
    product_count: int


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    category_id: Optional[int] = None
    category: Optional[CategoryOut] = None
    image_url: Optional[str] = None
    status: ProductStatus
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductPageOut(BaseModel):
    products: List[ProductOut]
    total: int
    page: int
    limit: int
    pages: int


class ProductCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(0, ge=0)
    category_id: Optional[int] = None
    image_url: Optional[str] = Field(None, max_length=500)


class ProductUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    category_id: Optional[int] = None
    image_url: Optional[str] = Field(None, max_length=500)


class StockAdjustIn(BaseModel):
    delta: int


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class CategoryUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
