#!/usr/bin/env python3
"""
Seed categories and products from a JSON file, or from a small built-in
catalogue when no file is given.

Existing categories and products (matched by name) are left in place; only
their descriptive fields are refreshed. Stock of existing products is never
touched here, use PATCH /api/products/{id}/stock for that.

Usage:
    python scripts/seed_products.py
    python scripts/seed_products.py --file catalogue.json
    python scripts/seed_products.py --stats
"""
import argparse
import json
import os
import sys
from decimal import Decimal, InvalidOperation

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.db import SessionLocal, init_db
from storefront.repositories.category_repo import CategoryRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services.stock_ledger import money
from storefront.utils.transactions import smart_transaction

DEFAULT_CATEGORIES = [
    ("Electronics", "Electronic devices and gadgets"),
    ("Clothing", "Fashion and apparel"),
    ("Home & Garden", "Home improvement and garden supplies"),
    ("Sports", "Sports equipment and accessories"),
    ("Books", "Books and literature"),
    ("Toys", "Toys and games"),
    ("Automotive", "Automotive parts and accessories"),
    ("Health", "Health and beauty products"),
    ("Jewelry", "Jewelry and accessories"),
    ("Food", "Food and beverages"),
]

DEFAULT_PRODUCTS = [
    {"name": "Wireless Headphones", "price": "59.99", "stock": 25, "category": "Electronics",
     "description": "Over-ear bluetooth headphones"},
    {"name": "USB-C Charger", "price": "19.50", "stock": 80, "category": "Electronics",
     "description": "65W fast charger"},
    {"name": "Cotton T-Shirt", "price": "12.00", "stock": 120, "category": "Clothing",
     "description": "Plain crew neck tee"},
    {"name": "Garden Hose 20m", "price": "24.90", "stock": 15, "category": "Home & Garden"},
    {"name": "Yoga Mat", "price": "18.75", "stock": 40, "category": "Sports"},
    {"name": "Paperback Novel", "price": "9.99", "stock": 60, "category": "Books"},
    {"name": "Building Blocks Set", "price": "34.00", "stock": 30, "category": "Toys"},
    {"name": "Silver Ring", "price": "45.00", "stock": 10, "category": "Jewelry"},
    {"name": "Ground Coffee 500g", "price": "7.25", "stock": 200, "category": "Food"},
]


def _normalize_entry(entry):
    """Return a normalized dict with keys: name, price, stock, description, image_url, category"""
    name = (entry.get("name") or entry.get("title") or "").strip()
    try:
        price = money(str(entry.get("price", 0)))
    except InvalidOperation:
        price = Decimal("0.00")
    try:
        stock = int(entry.get("stock", entry.get("quantity", 0)) or 0)
    except (TypeError, ValueError):
        stock = 0
    return {
        "name": name,
        "price": price,
        "stock": max(stock, 0),
        "description": entry.get("description") or "",
        "image_url": entry.get("image_url") or entry.get("image"),
        "category": entry.get("category"),
    }


def _load(path):
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        return data.get("categories", []), data.get("products", data.get("items", []))
    return [], data


def seed(categories, products):
    db = SessionLocal()
    cat_repo = CategoryRepository(db)
    prod_repo = ProductRepository(db)
    created = updated = 0
    try:
        with smart_transaction(db):
            by_name = {}
            for name, description in categories:
                c = cat_repo.get_by_name(name) or cat_repo.create(name, description)
                by_name[name] = c
            for entry in map(_normalize_entry, products):
                if not entry["name"]:
                    continue
                cat_name = entry.pop("category")
                category = by_name.get(cat_name) or (
                    cat_repo.get_by_name(cat_name) if cat_name else None
                )
                if category is None and cat_name:
                    category = by_name[cat_name] = cat_repo.create(cat_name)
                stock = entry.pop("stock")
                p = prod_repo.get_by_name(entry["name"])
                if p:
                    p.price = entry["price"]
                    p.description = entry["description"]
                    p.image_url = entry["image_url"]
                    p.category_id = category.id if category else None
                    updated += 1
                else:
                    prod_repo.create(
                        stock=stock, category_id=category.id if category else None, **entry
                    )
                    created += 1
        print(f"Seeded products: {created} created, {updated} updated")
    finally:
        db.close()


def show_stats():
    db = SessionLocal()
    try:
        print("Categories:", len(CategoryRepository(db).list()))
        print("Orders:", OrderRepository(db).count())
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Database seeding tool")
    parser.add_argument("--file", "-f", help="JSON with a products list (optionally categories)")
    parser.add_argument("--stats", action="store_true", help="print database statistics")
    args = parser.parse_args()

    init_db()
    if args.file:
        if not os.path.exists(args.file):
            print("File not found:", args.file)
            sys.exit(1)
        file_categories, file_products = _load(args.file)
        cats = [(c["name"], c.get("description")) if isinstance(c, dict) else (c, None)
                for c in file_categories]
        seed(cats or DEFAULT_CATEGORIES, file_products)
    else:
        seed(DEFAULT_CATEGORIES, DEFAULT_PRODUCTS)
    if args.stats:
        show_stats()
