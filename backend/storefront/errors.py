import enum
from typing import Any, Dict, Optional


class ErrorKind(enum.Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid_state"
    INSUFFICIENT_STOCK = "insufficient_stock"
    EMPTY_CART = "empty_cart"
    VALIDATION = "validation_error"
    STORAGE = "storage_error"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"


class StoreError(Exception):
    """
    Base for every error the services raise on purpose.

    Callers branch on `kind`; `message` is for humans only and `details`
    carries structured data the client may need (e.g. stock numbers).
    """

    kind: ErrorKind = ErrorKind.STORAGE
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"kind": self.kind.value, "message": self.message}
        body.update(self.details)
        return body


class NotFound(StoreError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class ProductNotFound(NotFound):
    def __init__(self, product_id: int):
        super().__init__(
            f"Product with ID {product_id} not found or inactive",
            product_id=product_id,
        )


class ItemNotFound(NotFound):
    # also used for items owned by someone else
    default_message = "Cart item not found"


class OrderNotFound(NotFound):
    default_message = "Order not found"


class CategoryNotFound(NotFound):
    default_message = "Category not found"


class UserNotFound(NotFound):
    default_message = "User not found"


class Conflict(StoreError):
    kind = ErrorKind.CONFLICT
    default_message = "Conflict"


class InvalidState(StoreError):
    kind = ErrorKind.INVALID_STATE
    default_message = "Operation not allowed in the current state"


class AlreadyCancelled(InvalidState):
    default_message = "Order is already cancelled"


class CannotCancelDelivered(InvalidState):
    default_message = "Cannot cancel delivered order"


class InsufficientStock(StoreError):
    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, product_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {product_id} "
            f"(available: {available}, requested: {requested})",
            product_id=product_id,
            available=available,
            requested=requested,
        )

    @property
    def product_id(self) -> int:
        return self.details["product_id"]

    @property
    def available(self) -> int:
        return self.details["available"]

    @property
    def requested(self) -> int:
        return self.details["requested"]


class EmptyCart(StoreError):
    kind = ErrorKind.EMPTY_CART
    default_message = "Cart is empty"


class ValidationError(StoreError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid request data"


class StorageError(StoreError):
    kind = ErrorKind.STORAGE
    default_message = "Storage failure"


class Unauthorized(StoreError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Invalid or expired token"


class Forbidden(StoreError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Insufficient permissions"
