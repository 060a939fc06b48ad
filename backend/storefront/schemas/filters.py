"""
Query options for the paginated list operations.

Defaults and clamping happen once, when the filter is constructed; the
repositories read the fields as-is.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from storefront.config import settings
from storefront.errors import ValidationError
from storefront.models.order import OrderStatus


def clamp_paging(page: Optional[int], limit: Optional[int]) -> Tuple[int, int]:
    page = page if page and page > 0 else 1
    if not limit or limit <= 0:
        limit = settings.DEFAULT_PAGE_SIZE
    return page, min(limit, settings.MAX_PAGE_SIZE)


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


@dataclass
class OrderFilter:
    user_id: Optional[int] = None
    status: Optional[OrderStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = 1
    limit: int = 0

    def __post_init__(self):
        self.page, self.limit = clamp_paging(self.page, self.limit)
        if self.status is not None and not isinstance(self.status, OrderStatus):
            try:
                self.status = OrderStatus(self.status)
            except ValueError:
                raise ValidationError(f"Invalid order status: {self.status}")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError("start_date must not be after end_date")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class ProductFilter:
    category_id: Optional[int] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    search: Optional[str] = None
    include_retired: bool = False
    page: int = 1
    limit: int = 0

    def __post_init__(self):
        self.page, self.limit = clamp_paging(self.page, self.limit)
        if self.search is not None:
            self.search = self.search.strip() or None
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValidationError("min_price must not exceed max_price")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
