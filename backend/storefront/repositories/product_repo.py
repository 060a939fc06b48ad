from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload

from storefront.models.product import Product, ProductStatus
from storefront.schemas.filters import ProductFilter

products_table = Product.__table__


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(
        self, product_id: int, include_retired: bool = False, for_update: bool = False
    ) -> Optional[Product]:
        """
        Return the product by id. Retired products are skipped unless
        `include_retired` is set; `for_update` takes a row lock where the
        dialect supports one (SQLite silently ignores it).
        """
        qry = (
            self.db.query(Product)
            .filter(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        if not include_retired:
            qry = qry.filter(Product.status == ProductStatus.ACTIVE)
        if for_update:
            qry = qry.with_for_update()
        else:
            qry = qry.options(joinedload(Product.category))
        return qry.first()

    def get_by_name(self, name: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.name == name).first()

    def list(self, flt: ProductFilter) -> Tuple[List[Product], int]:
        query = self.db.query(Product)
        if not flt.include_retired:
            query = query.filter(Product.status == ProductStatus.ACTIVE)
        if flt.category_id is not None:
            query = query.filter(Product.category_id == flt.category_id)
        if flt.min_price is not None:
            query = query.filter(Product.price >= flt.min_price)
        if flt.max_price is not None:
            query = query.filter(Product.price <= flt.max_price)
        if flt.search:
            like = f"%{flt.search}%"
            query = query.filter(
                (Product.name.ilike(like)) | (Product.description.ilike(like))
            )
        total = query.with_entities(func.count(Product.id)).scalar() or 0
        items = (
            query.options(joinedload(Product.category))
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset(flt.offset)
            .limit(flt.limit)
            .all()
        )
        return items, total

    def by_category(self, category_id: int, limit: int) -> List[Product]:
        return (
            self.db.query(Product)
            .options(joinedload(Product.category))
            .filter(
                Product.category_id == category_id,
                Product.status == ProductStatus.ACTIVE,
            )
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
            .all()
        )

    def count_by_category(self, category_id: int, active_only: bool = True) -> int:
        qry = self.db.query(func.count(Product.id)).filter(
            Product.category_id == category_id
        )
        if active_only:
            qry = qry.filter(Product.status == ProductStatus.ACTIVE)
        return qry.scalar() or 0

    def create(self, **fields) -> Product:
        p = Product(**fields)
        self.db.add(p)
        self.db.flush()
        return p

    def current_stock(self, product_id: int) -> Optional[int]:
        return (
            self.db.query(Product.stock)
            .filter(Product.id == product_id)
            .execution_options(populate_existing=True)
            .scalar()
        )

    def stock_levels(self, product_ids: List[int]) -> Dict[int, int]:
        rows = (
            self.db.query(Product.id, Product.stock)
            .filter(Product.id.in_(product_ids))
            .all()
        )
        return {pid: stock for pid, stock in rows}

    # Stock columns are only ever written through the two statements below.
    # Both are single conditional UPDATEs so the check and the write cannot be
    # split by a concurrent writer.

    def take_stock(self, product_id: int, qty: int) -> bool:
        result = self.db.execute(
            update(products_table)
            .where(
                products_table.c.id == product_id,
                products_table.c.stock >= qty,
                products_table.c.status == ProductStatus.ACTIVE,
            )
            .values(stock=products_table.c.stock - qty)
        )
        self._expire_stock(product_id)
        return result.rowcount == 1

    def add_stock(self, product_id: int, delta: int) -> bool:
        result = self.db.execute(
            update(products_table)
            .where(
                products_table.c.id == product_id,
                products_table.c.stock + delta >= 0,
            )
            .values(stock=products_table.c.stock + delta)
        )
        self._expire_stock(product_id)
        return result.rowcount == 1

    def _expire_stock(self, product_id: int):
        p = self.db.identity_map.get(self.db.identity_key(Product, product_id))
        if p is not None:
            self.db.expire(p, ["stock", "updated_at"])
