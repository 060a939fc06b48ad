from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront.api.deps import get_admin
from storefront.db import get_db
from storefront.schemas.product_schema import (
    CategoryIn,
    CategoryOut,
    CategoryUpdateIn,
    ProductCreateIn,
    ProductOut,
    ProductUpdateIn,
    StockAdjustIn,
)
from storefront.services.auth_service import Caller
from storefront.services.catalog_service import CatalogService, ProductChanges

router = APIRouter(prefix="/api", tags=["admin"])


@router.post("/products", status_code=status.HTTP_201_CREATED, summary="Create product")
def create_product(
    payload: ProductCreateIn,
    caller: Caller = Depends(get_admin),
    db: Session = Depends(get_db),
):
    product = CatalogService(db).create_product(caller, **payload.model_dump())
    return {"data": ProductOut.model_validate(product), "message": "Product created successfully"}


@router.put("/products/{product_id}", summary="Update product")
def update_product(
    product_id: int,
    payload: ProductUpdateIn,
    caller: Caller = Depends(get_admin),
    db: Session = Depends(get_db),
):
    changes = ProductChanges(**payload.model_dump(exclude_unset=True))
    product = CatalogService(db).update_product(caller, product_id, changes)
    return {"data": ProductOut.model_validate(product), "message": "Product updated successfully"}


@router.delete("/products/{product_id}", summary="Retire product")
def retire_product(
    product_id: int,
    caller: Caller = Depends(get_admin),
    db: Session = Depends(get_db),
):
    product = CatalogService(db).retire_product(caller, product_id)
    return {"data": ProductOut.model_validate(product), "message": "Product retired successfully"}


@router.patch("/products/{product_id}/stock", summary="Adjust stock")
def adjust_stock(
    product_id: int,
    payload: StockAdjustIn,
    caller: Caller = Depends(get_admin),
    db: Session = Depends(get_db),
):
    product = CatalogService(db).restock(caller, product_id, payload.delta)
    return {"data": ProductOut.model_validate(product), "message": "Stock updated successfully"}


@router.post("/categories", status_code=status.HTTP_201_CREATED, summary="Create category")
def create_category(
    payload: CategoryIn,
    caller: Caller = Depends(get_admin),
    db: Session = Depends(get_db),
):
    category = CatalogService(db).create_category(caller, payload.name, payload.description)
    return {"data": CategoryOut.model_validate(category), "message": "Category created successfully"}


@router.put("/categories/{category_id}", summary="Update category")
def update_category(
    category_id: int,
    payload: CategoryUpdateIn,
    caller: Caller = Depends(get_admin),
    db: Session = Depends(get_db),
):
    category = CatalogService(db).update_category(
        caller, category_id, payload.name, payload.description
    )
    return {"data": CategoryOut.model_validate(category), "message": "Category updated successfully"}


@router.delete("/categories/{category_id}", summary="Delete category")
def delete_category(
    category_id: int,
    caller: Caller = Depends(get_admin),
    db: Session = Depends(get_db),
):
    CatalogService(db).delete_category(caller, category_id)
    return {"message": "Category deleted successfully"}
