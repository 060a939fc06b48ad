import os
import tempfile
from decimal import Decimal
from typing import Generator

# point the app at a throwaway database before storefront.config is imported
_tmp = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_tmp, "app.db")
os.environ["STOCK_LOCK_DIR"] = os.path.join(_tmp, "locks")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from storefront.db import get_db, init_db, make_engine
from storefront.main import app
from storefront.models.category import Category
from storefront.models.product import Product, ProductStatus
from storefront.models.user import User, UserRole
from storefront.services.auth_service import Caller, JWTAuthProvider, pwd_context


@pytest.fixture(scope="function")
def engine(tmp_path):
    # file-backed so threads can hold separate connections
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=UserRole.CUSTOMER, email=None, password="secret123"):
        counter["n"] += 1
        u = User(
            email=email or f"user{counter['n']}@example.com",
            password_hash=pwd_context.hash(password),
            first_name="Test",
            last_name=f"User{counter['n']}",
            role=role,
        )
        db_session.add(u)
        db_session.commit()
        return u

    return _make


@pytest.fixture
def make_category(db_session):
    def _make(name="Groceries", description=None):
        c = Category(name=name, description=description)
        db_session.add(c)
        db_session.commit()
        return c

    return _make


@pytest.fixture
def make_product(db_session):
    def _make(
        name="Tea 100g",
        price="3.00",
        stock=10,
        category=None,
        status=ProductStatus.ACTIVE,
    ):
        p = Product(
            name=name,
            description=f"{name} description",
            price=Decimal(price),
            stock=stock,
            category_id=category.id if category else None,
            status=status,
        )
        db_session.add(p)
        db_session.commit()
        return p

    return _make


@pytest.fixture
def stock_of(db_session):
    """Current stock straight from the table, bypassing the identity map."""

    def _read(product_id):
        return (
            db_session.query(Product.stock).filter(Product.id == product_id).scalar()
        )

    return _read


def caller_for(user: User) -> Caller:
    return Caller(user_id=user.id, role=user.role, email=user.email)


@pytest.fixture
def as_caller():
    return caller_for


@pytest.fixture
def auth_headers():
    provider = JWTAuthProvider()

    def _headers(user: User):
        return {"Authorization": f"Bearer {provider.issue(user)}"}

    return _headers


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role=UserRole.ADMIN, email="admin@example.com")
