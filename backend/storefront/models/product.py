import enum
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from storefront.db import Base
from storefront.models.user import enum_values


class ProductStatus(str, enum.Enum):
    ACTIVE = "active"
    RETIRED = "retired"


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_nonneg"),
        CheckConstraint("stock >= 0", name="ck_products_stock_nonneg"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    image_url = Column(String(500), nullable=True)
    status = Column(
        Enum(ProductStatus, name="product_status", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=ProductStatus.ACTIVE,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    category = relationship("Category", back_populates="products")

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE

    def __repr__(self):
        return f"<Product id={self.id} name={self.name} stock={self.stock}>"
