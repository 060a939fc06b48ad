from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from storefront.errors import (
    CategoryNotFound,
    Conflict,
    InvalidState,
    ProductNotFound,
    ValidationError,
)
from storefront.models.category import Category
from storefront.models.product import Product, ProductStatus
from storefront.repositories.category_repo import CategoryRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.filters import ProductFilter, clamp_paging, page_count
from storefront.services.auth_service import Caller, require_admin
from storefront.services.stock_ledger import StockLedger, money
from storefront.utils.logging import get_logger
from storefront.utils.transactions import smart_transaction

log = get_logger(__name__)

UNSET = object()


@dataclass
class ProductPage:
    products: List[Product]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return page_count(self.total, self.limit)


@dataclass
class ProductChanges:
    """Partial product update. Fields left as UNSET are not touched."""

    name: object = UNSET
    description: object = UNSET
    price: object = UNSET
    category_id: object = UNSET
    image_url: object = UNSET

    def items(self):
        for key in ("name", "description", "price", "category_id", "image_url"):
            value = getattr(self, key)
            if value is not UNSET:
                yield key, value


class CatalogService:
    def __init__(self, db: Session):
        self.db = db
        self.product_repo = ProductRepository(db)
        self.category_repo = CategoryRepository(db)
        self.ledger = StockLedger(db)

    # products

    def _check_category(self, category_id: Optional[int]):
        if category_id is not None and not self.category_repo.get(category_id):
            raise CategoryNotFound(category_id=category_id)

    def create_product(
        self,
        caller: Caller,
        name: str,
        price: Decimal,
        stock: int = 0,
        description: Optional[str] = None,
        category_id: Optional[int] = None,
        image_url: Optional[str] = None,
    ) -> Product:
        require_admin(caller)
        if not name or not name.strip():
            raise ValidationError("Product name is required")
        if price is None or Decimal(price) < 0:
            raise ValidationError("Price must be non-negative")
        if stock is None or stock < 0:
            raise ValidationError("Stock must be non-negative")
        with smart_transaction(self.db):
            self._check_category(category_id)
            product = self.product_repo.create(
                name=name.strip(),
                description=description,
                price=money(price),
                stock=stock,
                category_id=category_id,
                image_url=image_url,
                status=ProductStatus.ACTIVE,
            )
        log.info("product %s created", product.id)
        return self.get_product(product.id)

    def get_product(self, product_id: int, include_retired: bool = False) -> Product:
        product = self.product_repo.get(product_id, include_retired=include_retired)
        if not product:
            raise ProductNotFound(product_id)
        return product

    def update_product(
        self, caller: Caller, product_id: int, changes: ProductChanges
    ) -> Product:
        require_admin(caller)
        with smart_transaction(self.db):
            product = self.product_repo.get(product_id, include_retired=True)
            if not product:
                raise ProductNotFound(product_id)
            for key, value in changes.items():
                if key == "name" and (not value or not value.strip()):
                    raise ValidationError("Product name is required")
                if key == "price":
                    if value is None or Decimal(value) < 0:
                        raise ValidationError("Price must be non-negative")
                    value = money(value)
                if key == "category_id":
                    self._check_category(value)
                setattr(product, key, value)
            self.db.flush()
        return self.get_product(product_id, include_retired=True)

    def retire_product(self, caller: Caller, product_id: int) -> Product:
        require_admin(caller)
        with smart_transaction(self.db):
            product = self.product_repo.get(product_id, include_retired=True)
            if not product:
                raise ProductNotFound(product_id)
            product.status = ProductStatus.RETIRED
            self.db.flush()
        log.info("product %s retired", product_id)
        return product

    def restock(self, caller: Caller, product_id: int, delta: int) -> Product:
        require_admin(caller)
        with self.ledger.locked([product_id]):
            with smart_transaction(self.db):
                product = self.ledger.adjust(product_id, delta)
        log.info("product %s stock adjusted by %s to %s", product_id, delta, product.stock)
        return product

    def list_products(self, flt: ProductFilter) -> ProductPage:
        products, total = self.product_repo.list(flt)
        return ProductPage(products=products, total=total, page=flt.page, limit=flt.limit)

    def products_by_category(self, category_id: int, limit: int = 0) -> List[Product]:
        self.get_category(category_id)
        _, limit = clamp_paging(1, limit)
        return self.product_repo.by_category(category_id, limit)

    # categories

    def get_category(self, category_id: int) -> Category:
        category = self.category_repo.get(category_id)
        if not category:
            raise CategoryNotFound(category_id=category_id)
        return category

    def list_categories(self) -> List[Category]:
        return self.category_repo.list()

    def category_with_product_count(self, category_id: int):
        category = self.get_category(category_id)
        return category, self.product_repo.count_by_category(category_id)

    def create_category(
        self, caller: Caller, name: str, description: Optional[str] = None
    ) -> Category:
        require_admin(caller)
        if not name or not name.strip():
            raise ValidationError("Category name is required")
        name = name.strip()
        with smart_transaction(self.db):
            if self.category_repo.get_by_name(name):
                raise Conflict("Category with this name already exists")
            category = self.category_repo.create(name, description)
        return category

    def update_category(
        self,
        caller: Caller,
        category_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Category:
        require_admin(caller)
        with smart_transaction(self.db):
            category = self.get_category(category_id)
            if name is not None:
                name = name.strip()
                if not name:
                    raise ValidationError("Category name is required")
                other = self.category_repo.get_by_name(name)
                if other and other.id != category.id:
                    raise Conflict("Category with this name already exists")
                category.name = name
            if description is not None:
                category.description = description
            self.db.flush()
        return category

    def delete_category(self, caller: Caller, category_id: int):
        require_admin(caller)
        with smart_transaction(self.db):
            category = self.get_category(category_id)
            in_use = self.product_repo.count_by_category(category_id, active_only=False)
            if in_use:
                raise InvalidState(
                    "Cannot delete category that is used by products",
                    product_count=in_use,
                )
            self.category_repo.delete(category)
        log.info("category %s deleted", category_id)
