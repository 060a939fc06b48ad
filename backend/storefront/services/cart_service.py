from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.errors import (
    InsufficientStock,
    ItemNotFound,
    ProductNotFound,
    ValidationError,
)
from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services.auth_service import Caller
from storefront.services.stock_ledger import money
from storefront.utils.logging import get_logger
from storefront.utils.transactions import smart_transaction

log = get_logger(__name__)


@dataclass
class CartView:
    id: int
    user_id: int
    items: List[CartItem] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def total_items(self) -> int:
        return sum(it.quantity for it in self.items)

    @property
    def total_amount(self) -> Decimal:
        # priced at the product's current price, not a snapshot
        return money(
            sum((it.product.price * it.quantity for it in self.items), Decimal("0"))
        )

    @property
    def lines(self) -> List[Tuple[int, int]]:
        return [(it.product_id, it.quantity) for it in self.items]


def _check_quantity(qty: int):
    if qty is None or qty <= 0:
        raise ValidationError("Quantity must be greater than 0")


class CartService:
    def __init__(self, db: Session):
        self.db = db
        self.cart_repo = CartRepository(db)
        self.product_repo = ProductRepository(db)

    def _get_or_create(self, user_id: int) -> Cart:
        cart = self.cart_repo.get_by_user(user_id)
        if cart:
            return cart
        # two first requests for the same user may race on the unique user_id
        try:
            with self.db.begin_nested():
                cart = self.cart_repo.create(user_id)
        except IntegrityError:
            cart = self.cart_repo.get_by_user(user_id)
            if cart is None:
                raise
        return cart

    def get_or_create_cart(self, user_id: int) -> Cart:
        with smart_transaction(self.db):
            return self._get_or_create(user_id)

    def view(self, caller: Caller) -> CartView:
        with smart_transaction(self.db):
            cart = self._get_or_create(caller.user_id)
            items = self.cart_repo.items(cart.id)
        return CartView(
            id=cart.id,
            user_id=cart.user_id,
            items=items,
            created_at=cart.created_at,
            updated_at=cart.updated_at,
        )

    def add_item(self, caller: Caller, product_id: int, qty: int) -> CartView:
        """
        Add `qty` of a product, merging with an existing line for the same
        product. The merged quantity must fit the product's live stock.
        """
        _check_quantity(qty)
        with smart_transaction(self.db):
            cart = self._get_or_create(caller.user_id)
            product = self.product_repo.get(product_id, for_update=True)
            if not product:
                raise ProductNotFound(product_id)
            item = self.cart_repo.find_item(cart.id, product_id)
            combined = qty + (item.quantity if item else 0)
            if combined > product.stock:
                raise InsufficientStock(product_id, product.stock, combined)
            if item:
                item.quantity = combined
            else:
                self.cart_repo.add_item(cart, product_id, qty)
            self.db.flush()
        return self.view(caller)

    def update_item(self, caller: Caller, item_id: int, qty: int) -> CartView:
        _check_quantity(qty)
        with smart_transaction(self.db):
            item = self.cart_repo.get_owned_item(item_id, caller.user_id)
            if not item:
                raise ItemNotFound()
            product = self.product_repo.get(item.product_id, for_update=True)
            if not product:
                raise ProductNotFound(item.product_id)
            if qty > product.stock:
                raise InsufficientStock(product.id, product.stock, qty)
            item.quantity = qty
            self.db.flush()
        return self.view(caller)

    def remove_item(self, caller: Caller, item_id: int) -> CartView:
        with smart_transaction(self.db):
            item = self.cart_repo.get_owned_item(item_id, caller.user_id)
            if not item:
                raise ItemNotFound()
            self.cart_repo.remove_item(item)
        return self.view(caller)

    def clear(self, caller: Caller):
        with smart_transaction(self.db):
            cart = self.cart_repo.get_by_user(caller.user_id)
            if cart:
                n = self.cart_repo.clear(cart)
                log.debug("cleared %s items from cart %s", n, cart.id)
