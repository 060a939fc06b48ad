from sqlalchemy.orm import Session

from storefront.errors import EmptyCart, StoreError
from storefront.models.order import Order
from storefront.services.auth_service import Caller
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService
from storefront.utils.logging import get_logger

log = get_logger(__name__)


class CheckoutService:
    """Turns the caller's cart into an order, then empties the cart."""

    def __init__(self, db: Session):
        self.db = db
        self.carts = CartService(db)
        self.orders = OrderService(db)

    def checkout(self, caller: Caller, shipping_address: str, payment_method: str) -> Order:
        cart = self.carts.view(caller)
        if not cart.items:
            raise EmptyCart()

        order = self.orders.create(
            caller, shipping_address, payment_method, cart.lines
        )

        # the order is already committed; a cart left behind is only cosmetic
        try:
            self.carts.clear(caller)
        except StoreError as e:
            log.warning(
                "order %s placed but cart of user %s was not cleared: %s",
                order.id,
                caller.user_id,
                e,
            )
        log.info("checkout by user %s produced order %s", caller.user_id, order.id)
        return order
