from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.schemas.filters import ProductFilter
from storefront.schemas.product_schema import (
    CategoryOut,
    CategoryWithCountOut,
    ProductOut,
    ProductPageOut,
)
from storefront.services.catalog_service import CatalogService

router = APIRouter(tags=["catalogue"])


@router.get("/products", summary="List products")
def list_products(
    category_id: Optional[int] = Query(None),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    search: Optional[str] = Query(None, description="search term"),
    page: int = Query(1),
    limit: int = Query(0, description="page size, defaults to 10, max 100"),
    db: Session = Depends(get_db),
):
    flt = ProductFilter(
        category_id=category_id,
        min_price=min_price,
        max_price=max_price,
        search=search,
        page=page,
        limit=limit,
    )
    result = CatalogService(db).list_products(flt)
    return {
        "data": ProductPageOut(
            products=[ProductOut.model_validate(p) for p in result.products],
            total=result.total,
            page=result.page,
            limit=result.limit,
            pages=result.pages,
        )
    }


@router.get("/products/category/{category_id}", summary="Products in a category")
def products_by_category(
    category_id: int, limit: int = Query(0), db: Session = Depends(get_db)
):
    products = CatalogService(db).products_by_category(category_id, limit)
    return {"data": [ProductOut.model_validate(p) for p in products]}


@router.get("/products/{product_id}", summary="Get product")
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = CatalogService(db).get_product(product_id)
    return {"data": ProductOut.model_validate(product)}


@router.get("/categories", summary="List categories")
def list_categories(db: Session = Depends(get_db)):
    categories = CatalogService(db).list_categories()
    return {"data": [CategoryOut.model_validate(c) for c in categories]}


@router.get("/categories/{category_id}", summary="Get category")
def get_category(category_id: int, db: Session = Depends(get_db)):
    return {"data": CategoryOut.model_validate(CatalogService(db).get_category(category_id))}


@router.get("/categories/{category_id}/with-products", summary="Category with product count")
def category_with_products(category_id: int, db: Session = Depends(get_db)):
    category, count = CatalogService(db).category_with_product_count(category_id)
    out = CategoryWithCountOut(
        **CategoryOut.model_validate(category).model_dump(), product_count=count
    )
    return {"data": out}
