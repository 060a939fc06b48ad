import logging
from decimal import Decimal

import pytest

from storefront.errors import EmptyCart, InsufficientStock, StorageError
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService

CHECKOUT = {"shipping_address": "5 Market Square", "payment_method": "card"}


def test_checkout_turns_cart_into_order(client, customer, auth_headers, make_product, stock_of):
    tea = make_product(name="Tea", price="3.00", stock=5)
    jam = make_product(name="Jam", price="4.50", stock=5)
    headers = auth_headers(customer)
    client.post("/api/cart/items", json={"product_id": tea.id, "quantity": 2}, headers=headers)
    client.post("/api/cart/items", json={"product_id": jam.id, "quantity": 1}, headers=headers)

    res = client.post("/api/cart/checkout", json=CHECKOUT, headers=headers)
    assert res.status_code == 201
    order = res.json()["data"]
    assert Decimal(order["total_amount"]) == Decimal("10.50")
    prices = {it["product_id"]: Decimal(it["price"]) for it in order["items"]}
    assert prices == {tea.id: Decimal("3.00"), jam.id: Decimal("4.50")}

    assert client.get("/api/cart", headers=headers).json()["data"]["items"] == []
    assert stock_of(tea.id) == 3
    assert stock_of(jam.id) == 4


def test_empty_cart_checkout(client, customer, auth_headers):
    res = client.post("/api/cart/checkout", json=CHECKOUT, headers=auth_headers(customer))
    assert res.status_code == 400
    assert res.json()["error"]["kind"] == "empty_cart"


def test_failed_checkout_keeps_cart(db_session, customer, as_caller, make_product, stock_of):
    p = make_product(stock=3)
    caller = as_caller(customer)
    CartService(db_session).add_item(caller, p.id, 3)
    # stock drops after the item went into the cart
    p.stock = 1
    db_session.commit()

    with pytest.raises(InsufficientStock):
        CheckoutService(db_session).checkout(caller, **CHECKOUT)
    assert CartService(db_session).view(caller).total_items == 3
    assert stock_of(p.id) == 1


def test_cart_clear_failure_does_not_fail_checkout(
    db_session, customer, as_caller, make_product, monkeypatch, caplog
):
    p = make_product(stock=3)
    caller = as_caller(customer)
    CartService(db_session).add_item(caller, p.id, 1)

    def broken_clear(self, caller):
        raise StorageError()

    monkeypatch.setattr(CartService, "clear", broken_clear)
    with caplog.at_level(logging.WARNING, logger="storefront"):
        order = CheckoutService(db_session).checkout(caller, **CHECKOUT)

    assert order.id
    assert any(
        r.levelno == logging.WARNING and str(order.id) in r.getMessage()
        for r in caplog.records
    )


def test_checkout_with_empty_cart_raises(db_session, customer, as_caller):
    with pytest.raises(EmptyCart):
        CheckoutService(db_session).checkout(as_caller(customer), **CHECKOUT)
