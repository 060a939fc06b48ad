from typing import List, Optional

from sqlalchemy.orm import Session

from storefront.models.category import Category


class CategoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, category_id: int) -> Optional[Category]:
        return self.db.query(Category).filter(Category.id == category_id).first()

    def get_by_name(self, name: str) -> Optional[Category]:
        return self.db.query(Category).filter(Category.name == name).first()

    def list(self) -> List[Category]:
        return self.db.query(Category).order_by(Category.name).all()

    def create(self, name: str, description: Optional[str] = None) -> Category:
        c = Category(name=name, description=description)
        self.db.add(c)
        self.db.flush()
        return c

    def delete(self, category: Category):
        self.db.delete(category)
        self.db.flush()
