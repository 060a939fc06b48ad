from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Set, Tuple

from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.errors import (
    AlreadyCancelled,
    CannotCancelDelivered,
    InvalidState,
    OrderNotFound,
    ValidationError,
)
from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.repositories.order_repo import OrderRepository
from storefront.schemas.filters import OrderFilter, page_count
from storefront.services.auth_service import Caller, require_admin
from storefront.services.stock_ledger import StockLedger, merge_lines, money
from storefront.utils.logging import get_logger
from storefront.utils.transactions import smart_transaction

log = get_logger(__name__)

# forward-only moves an admin may make; cancellation is handled by cancel()
TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


@dataclass
class OrderPage:
    orders: List[Order]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return page_count(self.total, self.limit)


class OrderService:
    def __init__(self, db: Session):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.ledger = StockLedger(db)

    def _visible(self, caller: Caller, order: Order) -> bool:
        return caller.is_admin or order.user_id == caller.user_id

    def create(
        self,
        caller: Caller,
        shipping_address: str,
        payment_method: str,
        items: Iterable[Tuple[int, int]],
    ) -> Order:
        """
        Place an order for `items` ((product_id, quantity) pairs).

        Stock is taken, the order and its lines are written in one
        transaction; any failure leaves stock and orders untouched. Each line
        keeps the unit price the product had at this moment.
        """
        if not shipping_address or not shipping_address.strip():
            raise ValidationError("Shipping address is required")
        if not payment_method or not payment_method.strip():
            raise ValidationError("Payment method is required")
        lines = merge_lines(items)
        if not lines:
            raise ValidationError("Order must contain at least one item")

        with self.ledger.locked(pid for pid, _ in lines):
            with smart_transaction(self.db):
                reservation = self.ledger.reserve(lines)
                order = Order(
                    user_id=caller.user_id,
                    status=OrderStatus.PENDING,
                    total_amount=reservation.total,
                    shipping_address=shipping_address.strip(),
                    payment_method=payment_method.strip(),
                )
                for line in reservation.lines:
                    order.items.append(
                        OrderItem(
                            product_id=line.product_id,
                            quantity=line.quantity,
                            price=line.price,
                        )
                    )
                self.order_repo.add(order)
        log.info(
            "order %s created for user %s: %s lines, total %s",
            order.id,
            caller.user_id,
            len(reservation.lines),
            reservation.total,
        )
        return self.order_repo.get_hydrated(order.id)

    def get(self, caller: Caller, order_id: int) -> Order:
        order = self.order_repo.get_hydrated(order_id)
        # someone else's order is reported exactly like a missing one
        if not order or not self._visible(caller, order):
            raise OrderNotFound()
        return order

    def update_status(
        self, caller: Caller, order_id: int, new_status: OrderStatus
    ) -> Order:
        require_admin(caller)
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Invalid order status: {new_status}")
        if new_status is OrderStatus.CANCELLED:
            return self.cancel(caller, order_id)

        with smart_transaction(self.db):
            order = self.order_repo.get(order_id, for_update=True)
            if not order:
                raise OrderNotFound()
            old_status = order.status
            if new_status not in TRANSITIONS[old_status]:
                raise InvalidState(
                    f"Cannot change order status from {old_status.value} "
                    f"to {new_status.value}",
                    current_status=old_status.value,
                    requested_status=new_status.value,
                )
            order.status = new_status
            self.db.flush()
        log.info(
            "order %s status %s -> %s", order_id, old_status.value, new_status.value
        )
        return self.order_repo.get_hydrated(order_id)

    def cancel(self, caller: Caller, order_id: int) -> Order:
        """
        Cancel an order and put its stock back, in one transaction.

        The order row is locked before its status is read, so of two
        concurrent cancels only the first releases stock; the second sees
        AlreadyCancelled.
        """
        owner_id = self.order_repo.owner_id(order_id)
        if owner_id is None or not (caller.is_admin or owner_id == caller.user_id):
            raise OrderNotFound()
        product_ids = self.order_repo.product_ids(order_id)

        with self.ledger.locked(product_ids):
            with smart_transaction(self.db):
                order = self.order_repo.get(order_id, for_update=True)
                if not order:
                    raise OrderNotFound()
                if order.status is OrderStatus.CANCELLED:
                    raise AlreadyCancelled()
                if order.status is OrderStatus.DELIVERED:
                    raise CannotCancelDelivered()
                order.status = OrderStatus.CANCELLED
                self.db.flush()
                self.ledger.release(order)
        log.info("order %s cancelled by user %s", order_id, caller.user_id)
        return self.order_repo.get_hydrated(order_id)

    def list(self, caller: Caller, flt: OrderFilter) -> OrderPage:
        if not caller.is_admin:
            flt = replace(flt, user_id=caller.user_id)
        orders, total = self.order_repo.list(flt)
        return OrderPage(orders=orders, total=total, page=flt.page, limit=flt.limit)

    def my_orders(self, caller: Caller, page: int = 1, limit: int = 0) -> OrderPage:
        return self.list(
            caller, OrderFilter(user_id=caller.user_id, page=page, limit=limit)
        )

    def statistics(self, caller: Caller) -> Dict:
        require_admin(caller)
        since = datetime.now(timezone.utc) - timedelta(days=settings.STATS_RECENT_DAYS)
        return {
            "total_orders": self.order_repo.count(),
            "total_revenue": money(self.order_repo.revenue()),
            "orders_by_status": self.order_repo.count_by_status(),
            "recent_orders": self.order_repo.count_since(since),
        }
