from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.models.product import Product
from storefront.schemas.filters import OrderFilter


def _hydrated():
    return (
        joinedload(Order.user),
        selectinload(Order.items)
        .joinedload(OrderItem.product)
        .joinedload(Product.category),
    )


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()
        return order

    def get(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        qry = self.db.query(Order).filter(Order.id == order_id)
        if for_update:
            qry = qry.with_for_update().execution_options(populate_existing=True)
        return qry.first()

    def get_hydrated(self, order_id: int) -> Optional[Order]:
        """Order with its owner and every line's product loaded."""
        return (
            self.db.query(Order)
            .options(*_hydrated())
            .filter(Order.id == order_id)
            .execution_options(populate_existing=True)
            .first()
        )

    def owner_id(self, order_id: int) -> Optional[int]:
        return self.db.query(Order.user_id).filter(Order.id == order_id).scalar()

    def product_ids(self, order_id: int) -> List[int]:
        rows = (
            self.db.query(OrderItem.product_id)
            .filter(OrderItem.order_id == order_id)
            .distinct()
            .all()
        )
        return sorted(pid for (pid,) in rows)

    def list(self, flt: OrderFilter) -> Tuple[List[Order], int]:
        query = self.db.query(Order)
        if flt.user_id is not None:
            query = query.filter(Order.user_id == flt.user_id)
        if flt.status is not None:
            query = query.filter(Order.status == flt.status)
        if flt.start_date is not None:
            query = query.filter(Order.created_at >= flt.start_date)
        if flt.end_date is not None:
            query = query.filter(Order.created_at <= flt.end_date)
        total = query.with_entities(func.count(Order.id)).scalar() or 0
        orders = (
            query.options(*_hydrated())
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(flt.offset)
            .limit(flt.limit)
            .all()
        )
        return orders, total

    def count(self) -> int:
        return self.db.query(func.count(Order.id)).scalar() or 0

    def revenue(self) -> Decimal:
        value = (
            self.db.query(func.coalesce(func.sum(Order.total_amount), 0))
            .filter(Order.status != OrderStatus.CANCELLED)
            .scalar()
        )
        return Decimal(str(value or 0))

    def count_by_status(self) -> Dict[str, int]:
        rows = (
            self.db.query(Order.status, func.count(Order.id))
            .group_by(Order.status)
            .all()
        )
        return {status.value: n for status, n in rows}

    def count_since(self, since: datetime) -> int:
        return (
            self.db.query(func.count(Order.id))
            .filter(Order.created_at >= since)
            .scalar()
            or 0
        )
