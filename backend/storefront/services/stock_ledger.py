import hashlib
import os
import tempfile
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Iterator, List, Tuple

from filelock import FileLock, Timeout
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.errors import (
    InsufficientStock,
    ProductNotFound,
    StorageError,
    ValidationError,
)
from storefront.models.order import Order
from storefront.models.product import Product
from storefront.repositories.product_repo import ProductRepository
from storefront.utils.logging import get_logger
from storefront.utils.transactions import close_idle_transaction

log = get_logger(__name__)

CENTS = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def merge_lines(lines: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """
    Sum quantities of repeated product ids and return the lines sorted by
    product id, which is also the order locks are taken in.
    """
    merged: Dict[int, int] = {}
    for product_id, qty in lines:
        if qty is None or qty <= 0:
            raise ValidationError(
                "Quantity must be greater than 0", product_id=product_id
            )
        merged[product_id] = merged.get(product_id, 0) + qty
    return sorted(merged.items())


@dataclass
class ReservedLine:
    product: Product
    quantity: int
    price: Decimal

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def line_total(self) -> Decimal:
        return money(self.price * self.quantity)


@dataclass
class Reservation:
    lines: List[ReservedLine] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return money(sum((l.line_total for l in self.lines), Decimal("0")))


class StockLedger:
    """
    The only place product stock changes.

    reserve/release/adjust run inside the caller's transaction and never
    commit. Wrap the caller's transaction in `locked()` with the same product
    ids so concurrent writers on SQLite queue up per product.
    """

    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)

    def _uses_file_locks(self) -> bool:
        return self.db.get_bind().dialect.name == "sqlite"

    def _lockfile(self, product_id: int) -> str:
        locks_dir = settings.STOCK_LOCK_DIR or os.path.join(
            tempfile.gettempdir(), "storefront_locks"
        )
        os.makedirs(locks_dir, exist_ok=True)
        db_tag = hashlib.sha1(
            str(self.db.get_bind().url).encode("utf-8")
        ).hexdigest()[:12]
        return os.path.join(locks_dir, f"stock_{db_tag}_{product_id}.lock")

    @contextmanager
    def locked(self, product_ids: Iterable[int]) -> Iterator[None]:
        if not self._uses_file_locks():
            # row locks taken by reserve/release do the job
            yield
            return
        # an open read transaction would hold SQLite's shared lock while we wait
        close_idle_transaction(self.db)
        timeout = settings.STOCK_LOCK_TIMEOUT_SECONDS
        with ExitStack() as stack:
            for pid in sorted(set(product_ids)):
                lock = FileLock(self._lockfile(pid))
                try:
                    lock.acquire(timeout=timeout)
                except Timeout:
                    log.warning("stock lock timeout on product %s", pid)
                    raise StorageError("Could not acquire stock lock; try again")
                stack.callback(lock.release)
            yield

    def reserve(self, lines: Iterable[Tuple[int, int]]) -> Reservation:
        reservation = Reservation()
        for product_id, qty in merge_lines(lines):
            product = self.products.get(product_id, for_update=True)
            if not product:
                raise ProductNotFound(product_id)
            if product.stock < qty:
                raise InsufficientStock(product_id, product.stock, qty)
            price = money(product.price)
            if not self.products.take_stock(product_id, qty):
                available = self.products.current_stock(product_id)
                if available is None:
                    raise ProductNotFound(product_id)
                raise InsufficientStock(product_id, available, qty)
            reservation.lines.append(ReservedLine(product, qty, price))
        return reservation

    def release(self, order: Order):
        for item in order.items:
            self.products.add_stock(item.product_id, item.quantity)
        log.debug("released stock for order %s", order.id)

    def adjust(self, product_id: int, delta: int) -> Product:
        if not delta:
            raise ValidationError("Stock adjustment must be non-zero")
        product = self.products.get(product_id, include_retired=True, for_update=True)
        if not product:
            raise ProductNotFound(product_id)
        if product.stock + delta < 0 or not self.products.add_stock(product_id, delta):
            available = self.products.current_stock(product_id) or 0
            raise InsufficientStock(product_id, available, -delta)
        self.db.refresh(product)
        return product
