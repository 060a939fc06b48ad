from decimal import Decimal

import pytest

from storefront.errors import (
    InsufficientStock,
    ItemNotFound,
    ProductNotFound,
    ValidationError,
)
from storefront.models.product import ProductStatus
from storefront.services.cart_service import CartService


def test_add_item_to_cart(client, customer, auth_headers, make_product):
    p = make_product(name="Test Coffee", price="4.99", stock=10)
    res = client.post(
        "/api/cart/items",
        json={"product_id": p.id, "quantity": 2},
        headers=auth_headers(customer),
    )
    assert res.status_code == 200
    cart = res.json()["data"]
    assert cart["user_id"] == customer.id
    assert cart["total_items"] == 2
    assert Decimal(cart["total_amount"]) == Decimal("9.98")
    assert cart["items"][0]["product"]["name"] == "Test Coffee"


def test_get_cart_creates_empty_cart(client, customer, auth_headers):
    res = client.get("/api/cart", headers=auth_headers(customer))
    assert res.status_code == 200
    body = res.json()["data"]
    assert body["items"] == []
    assert body["total_items"] == 0
    assert Decimal(body["total_amount"]) == Decimal("0")


def test_adding_same_product_merges_lines(db_session, customer, as_caller, make_product):
    p = make_product(stock=10)
    svc = CartService(db_session)
    svc.add_item(as_caller(customer), p.id, 2)
    view = svc.add_item(as_caller(customer), p.id, 3)
    assert len(view.items) == 1
    assert view.items[0].quantity == 5


def test_merged_quantity_is_checked_against_stock(db_session, customer, as_caller, make_product):
    p = make_product(stock=4)
    svc = CartService(db_session)
    svc.add_item(as_caller(customer), p.id, 2)
    with pytest.raises(InsufficientStock) as exc:
        svc.add_item(as_caller(customer), p.id, 3)
    assert exc.value.available == 4
    assert exc.value.requested == 5
    assert svc.view(as_caller(customer)).items[0].quantity == 2


def test_insufficient_stock_maps_to_409(client, customer, auth_headers, make_product):
    p = make_product(stock=1)
    res = client.post(
        "/api/cart/items",
        json={"product_id": p.id, "quantity": 2},
        headers=auth_headers(customer),
    )
    assert res.status_code == 409
    err = res.json()["error"]
    assert err["kind"] == "insufficient_stock"
    assert err["product_id"] == p.id
    assert err["available"] == 1
    assert err["requested"] == 2


@pytest.mark.parametrize("qty", [0, -1])
def test_non_positive_quantity_is_rejected(db_session, customer, as_caller, make_product, qty):
    p = make_product()
    with pytest.raises(ValidationError):
        CartService(db_session).add_item(as_caller(customer), p.id, qty)


def test_retired_or_missing_product_cannot_be_added(db_session, customer, as_caller, make_product):
    retired = make_product(status=ProductStatus.RETIRED)
    svc = CartService(db_session)
    with pytest.raises(ProductNotFound):
        svc.add_item(as_caller(customer), retired.id, 1)
    with pytest.raises(ProductNotFound):
        svc.add_item(as_caller(customer), 999, 1)


def test_update_item_overwrites_quantity(client, customer, auth_headers, make_product):
    p = make_product(stock=10)
    headers = auth_headers(customer)
    cart = client.post(
        "/api/cart/items", json={"product_id": p.id, "quantity": 2}, headers=headers
    ).json()["data"]
    item_id = cart["items"][0]["id"]

    res = client.put(f"/api/cart/items/{item_id}", json={"quantity": 7}, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["items"][0]["quantity"] == 7

    res = client.put(f"/api/cart/items/{item_id}", json={"quantity": 11}, headers=headers)
    assert res.status_code == 409

    res = client.put(f"/api/cart/items/{item_id}", json={"quantity": 0}, headers=headers)
    assert res.status_code == 422


def test_foreign_item_looks_missing(db_session, make_user, as_caller, make_product):
    alice, bob = make_user(), make_user()
    p = make_product()
    svc = CartService(db_session)
    item_id = svc.add_item(as_caller(alice), p.id, 1).items[0].id

    with pytest.raises(ItemNotFound):
        svc.update_item(as_caller(bob), item_id, 2)
    with pytest.raises(ItemNotFound):
        svc.remove_item(as_caller(bob), item_id)
    assert svc.view(as_caller(alice)).items[0].quantity == 1


def test_remove_item_and_clear(client, customer, auth_headers, make_product):
    a = make_product(name="A")
    b = make_product(name="B")
    headers = auth_headers(customer)
    client.post("/api/cart/items", json={"product_id": a.id, "quantity": 1}, headers=headers)
    cart = client.post(
        "/api/cart/items", json={"product_id": b.id, "quantity": 1}, headers=headers
    ).json()["data"]
    first = cart["items"][0]["id"]

    res = client.delete(f"/api/cart/items/{first}", headers=headers)
    assert res.status_code == 200
    assert [it["product_id"] for it in res.json()["data"]["items"]] == [b.id]
    assert client.delete(f"/api/cart/items/{first}", headers=headers).status_code == 404

    assert client.delete("/api/cart", headers=headers).status_code == 200
    assert client.get("/api/cart", headers=headers).json()["data"]["items"] == []
    # clearing an empty cart is fine
    assert client.delete("/api/cart", headers=headers).status_code == 200


def test_cart_total_follows_current_price(db_session, customer, as_caller, make_product):
    p = make_product(price="2.00")
    svc = CartService(db_session)
    svc.add_item(as_caller(customer), p.id, 3)
    p.price = Decimal("2.50")
    db_session.commit()
    assert svc.view(as_caller(customer)).total_amount == Decimal("7.50")


def test_get_or_create_cart_is_stable(db_session, customer):
    svc = CartService(db_session)
    assert svc.get_or_create_cart(customer.id).id == svc.get_or_create_cart(customer.id).id


def test_add_beyond_stock_leaves_cart_unchanged(db_session, customer, as_caller, make_product):
    p = make_product(stock=5)
    svc = CartService(db_session)
    with pytest.raises(InsufficientStock) as exc:
        svc.add_item(as_caller(customer), p.id, 10)
    assert (exc.value.available, exc.value.requested) == (5, 10)
    assert svc.view(as_caller(customer)).items == []
