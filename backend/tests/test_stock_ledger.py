import threading
from decimal import Decimal

import pytest

from storefront.errors import InsufficientStock, ProductNotFound, ValidationError
from storefront.models.cart import Cart
from storefront.models.order import Order
from storefront.models.product import ProductStatus
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService
from storefront.services.stock_ledger import StockLedger, merge_lines
from storefront.utils.transactions import smart_transaction


def test_merge_lines_sums_duplicates_and_sorts():
    assert merge_lines([(3, 1), (1, 2), (3, 4)]) == [(1, 2), (3, 5)]
    with pytest.raises(ValidationError):
        merge_lines([(1, 0)])


def test_reserve_takes_stock_and_captures_prices(db_session, make_product, stock_of):
    a = make_product(name="A", price="1.10", stock=5)
    b = make_product(name="B", price="2.25", stock=3)
    ledger = StockLedger(db_session)
    with smart_transaction(db_session):
        reservation = ledger.reserve([(b.id, 1), (a.id, 2), (b.id, 1)])
    assert [(l.product_id, l.quantity) for l in reservation.lines] == [(a.id, 2), (b.id, 2)]
    assert reservation.total == Decimal("6.70")
    assert stock_of(a.id) == 3
    assert stock_of(b.id) == 1


def test_failed_reserve_changes_nothing(db_session, make_product, stock_of):
    a = make_product(name="A", stock=5)
    b = make_product(name="B", stock=1)
    ledger = StockLedger(db_session)
    with pytest.raises(InsufficientStock) as exc:
        with smart_transaction(db_session):
            ledger.reserve([(a.id, 2), (b.id, 2)])
    assert exc.value.product_id == b.id
    assert stock_of(a.id) == 5
    assert stock_of(b.id) == 1


def test_reserve_rejects_retired_product(db_session, make_product):
    p = make_product(status=ProductStatus.RETIRED)
    with pytest.raises(ProductNotFound):
        with smart_transaction(db_session):
            StockLedger(db_session).reserve([(p.id, 1)])


def test_release_puts_stock_back(db_session, customer, as_caller, make_product, stock_of):
    p = make_product(stock=5)
    order = OrderService(db_session).create(as_caller(customer), "1 Road", "card", [(p.id, 3)])
    assert stock_of(p.id) == 2
    with smart_transaction(db_session):
        StockLedger(db_session).release(db_session.get(Order, order.id))
    assert stock_of(p.id) == 5


def test_adjust(db_session, make_product, stock_of):
    p = make_product(stock=1, status=ProductStatus.RETIRED)
    ledger = StockLedger(db_session)
    with smart_transaction(db_session):
        ledger.adjust(p.id, 4)
    assert stock_of(p.id) == 5
    with pytest.raises(ValidationError):
        with smart_transaction(db_session):
            ledger.adjust(p.id, 0)


def test_concurrent_orders_never_oversell(session_factory, make_user, as_caller, make_product, stock_of):
    stock, workers = 3, 8
    p = make_product(stock=stock)
    callers = [as_caller(make_user()) for _ in range(workers)]
    results = []
    lock = threading.Lock()
    start = threading.Barrier(workers)

    def buy(caller):
        db = session_factory()
        try:
            start.wait()
            OrderService(db).create(caller, "1 Road", "card", [(p.id, 1)])
            outcome = "ok"
        except InsufficientStock:
            outcome = "out"
        finally:
            db.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=buy, args=(c,)) for c in callers]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert results.count("ok") == stock
    assert results.count("out") == workers - stock
    assert stock_of(p.id) == 0


def _run_together(jobs):
    """Start every job at once on its own thread; return outcomes in job order."""
    results = [None] * len(jobs)
    start = threading.Barrier(len(jobs))

    def run(i, job):
        start.wait()
        try:
            job()
            results[i] = "ok"
        except Exception as exc:
            results[i] = f"{type(exc).__name__}: {exc}"

    threads = [threading.Thread(target=run, args=(i, j)) for i, j in enumerate(jobs)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=90)
    return results


def test_concurrent_orders_on_different_products_all_succeed(
    session_factory, make_user, as_caller, make_product, stock_of
):
    workers = 8
    products = [make_product(name=f"Item {i}", stock=5) for i in range(workers)]
    callers = [as_caller(make_user()) for _ in range(workers)]

    def order(caller, product):
        def job():
            db = session_factory()
            try:
                OrderService(db).create(caller, "1 Road", "card", [(product.id, 1)])
            finally:
                db.close()

        return job

    results = _run_together([order(c, p) for c, p in zip(callers, products)])

    assert results == ["ok"] * workers
    assert [stock_of(p.id) for p in products] == [4] * workers


def test_concurrent_first_cart_access_by_different_users(
    session_factory, db_session, make_user, as_caller, make_product
):
    workers = 8
    p = make_product(stock=50)
    callers = [as_caller(make_user()) for _ in range(workers)]

    def add(caller):
        def job():
            db = session_factory()
            try:
                CartService(db).add_item(caller, p.id, 1)
            finally:
                db.close()

        return job

    results = _run_together([add(c) for c in callers])

    assert results == ["ok"] * workers
    owners = {c.user_id for c in db_session.query(Cart).all()}
    assert owners == {c.user_id for c in callers}


def test_concurrent_cart_and_order_traffic_all_succeeds(
    session_factory, make_user, as_caller, make_product, stock_of
):
    workers = 8
    products = [make_product(name=f"Item {i}", stock=5) for i in range(workers)]
    callers = [as_caller(make_user()) for _ in range(workers)]

    def job_for(i):
        caller, product = callers[i], products[i]

        def job():
            db = session_factory()
            try:
                if i % 2:
                    OrderService(db).create(caller, "1 Road", "card", [(product.id, 1)])
                else:
                    CartService(db).add_item(caller, product.id, 2)
            finally:
                db.close()

        return job

    results = _run_together([job_for(i) for i in range(workers)])

    assert results == ["ok"] * workers
    assert [stock_of(p.id) for p in products] == [5 if i % 2 == 0 else 4 for i in range(workers)]
