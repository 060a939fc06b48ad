"""
Fire concurrent orders or checkouts at a running server and report how many
went through. With stock N and W workers each asking for one unit, exactly
min(N, W) requests must succeed; the rest must come back 409
insufficient_stock.

    python tools/concurrency_checkout.py orders --product 1 --workers 8
    python tools/concurrency_checkout.py checkout --product 1 --workers 8
"""
import argparse
import concurrent.futures
import os
from collections import Counter
from uuid import uuid4

import requests

BASE = os.environ.get("STOREFRONT_BASE", "http://127.0.0.1:8000")


def register(i):
    payload = {
        "email": f"load-{uuid4().hex[:8]}-{i}@example.com",
        "password": "secret123",
        "first_name": "Load",
        "last_name": f"Tester{i}",
    }
    r = requests.post(f"{BASE}/auth/register", json=payload, timeout=10)
    r.raise_for_status()
    return r.json()["data"]["token"]


def order_task(i, token, product_id, qty):
    payload = {
        "shipping_address": f"{i} Load Street",
        "payment_method": "card",
        "items": [{"product_id": product_id, "quantity": qty}],
    }
    headers = {"Authorization": f"Bearer {token}"}
    try:
        r = requests.post(f"{BASE}/api/orders", json=payload, headers=headers, timeout=20)
        return (i, r.status_code, r.json())
    except requests.RequestException as e:
        return (i, "ERR", str(e))


def checkout_task(i, token, product_id, qty):
    headers = {"Authorization": f"Bearer {token}"}
    try:
        r = requests.post(
            f"{BASE}/api/cart/checkout",
            json={"shipping_address": f"{i} Load Street", "payment_method": "card"},
            headers=headers,
            timeout=20,
        )
        return (i, r.status_code, r.json())
    except requests.RequestException as e:
        return (i, "ERR", str(e))


def fill_cart(token, product_id, qty):
    headers = {"Authorization": f"Bearer {token}"}
    r = requests.post(
        f"{BASE}/api/cart/items",
        json={"product_id": product_id, "quantity": qty},
        headers=headers,
        timeout=10,
    )
    r.raise_for_status()


def run(mode, workers, product_id, qty):
    print(f"Running {mode} test: workers={workers}, product={product_id}, qty={qty}")
    tokens = [register(i) for i in range(workers)]
    if mode == "checkout":
        for t in tokens:
            fill_cart(t, product_id, qty)
        task = checkout_task
    else:
        task = order_task

    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(task, i, t, product_id, qty) for i, t in enumerate(tokens)]
        results = [f.result() for f in futures]

    for r in results:
        print(r)
    print("Status codes:", dict(Counter(r[1] for r in results)))
    order_ids = [r[2]["data"]["id"] for r in results if r[1] == 201]
    print("Orders created:", sorted(order_ids))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrent order/checkout load tool.")
    parser.add_argument("mode", choices=["orders", "checkout"])
    parser.add_argument("--product", type=int, required=True)
    parser.add_argument("--qty", type=int, default=1)
    parser.add_argument("--workers", type=int, default=8)
    args = parser.parse_args()
    run(args.mode, args.workers, args.product, args.qty)
