from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem
from storefront.models.product import Product


class CartRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: int) -> Optional[Cart]:
        return self.db.query(Cart).filter(Cart.user_id == user_id).first()

    def create(self, user_id: int) -> Cart:
        c = Cart(user_id=user_id)
        self.db.add(c)
        self.db.flush()
        return c

    def items(self, cart_id: int) -> List[CartItem]:
        # live product data (price, stock, status) rides along with each line
        return (
            self.db.query(CartItem)
            .options(joinedload(CartItem.product).joinedload(Product.category))
            .filter(CartItem.cart_id == cart_id)
            .order_by(CartItem.id)
            .execution_options(populate_existing=True)
            .all()
        )

    def find_item(self, cart_id: int, product_id: int) -> Optional[CartItem]:
        return (
            self.db.query(CartItem)
            .filter(CartItem.cart_id == cart_id, CartItem.product_id == product_id)
            .first()
        )

    def get_owned_item(self, item_id: int, user_id: int) -> Optional[CartItem]:
        """Cart item by id, but only if it sits in `user_id`'s cart."""
        return (
            self.db.query(CartItem)
            .join(Cart, Cart.id == CartItem.cart_id)
            .filter(CartItem.id == item_id, Cart.user_id == user_id)
            .first()
        )

    def add_item(self, cart: Cart, product_id: int, qty: int) -> CartItem:
        item = CartItem(cart_id=cart.id, product_id=product_id, quantity=qty)
        self.db.add(item)
        self.db.flush()
        return item

    def remove_item(self, item: CartItem):
        self.db.delete(item)
        self.db.flush()

    def clear(self, cart: Cart) -> int:
        items = self.db.query(CartItem).filter(CartItem.cart_id == cart.id).all()
        for it in items:
            self.db.delete(it)
        self.db.flush()
        return len(items)
