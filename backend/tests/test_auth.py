from storefront.models.user import UserRole


def _register(client, email="alice@example.com", password="secret123"):
    return client.post(
        "/auth/register",
        json={
            "email": email,
            "password": password,
            "first_name": "Alice",
            "last_name": "Smith",
        },
    )


def test_register_returns_token_and_customer_role(client):
    res = _register(client)
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["token"]
    assert data["user"]["email"] == "alice@example.com"
    assert data["user"]["role"] == UserRole.CUSTOMER.value
    assert "password_hash" not in data["user"]


def test_register_duplicate_email_is_conflict(client):
    assert _register(client).status_code == 201
    res = _register(client)
    assert res.status_code == 409
    assert res.json()["error"]["kind"] == "conflict"


def test_register_rejects_bad_email(client):
    res = _register(client, email="not-an-email")
    assert res.status_code == 422
    assert res.json()["error"]["kind"] == "validation_error"


def test_login_and_profile(client):
    _register(client)
    res = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "secret123"}
    )
    assert res.status_code == 200
    token = res.json()["data"]["token"]

    res = client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.json()["data"]["email"] == "alice@example.com"


def test_login_failures_look_the_same(client):
    _register(client)
    wrong_pw = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "nope-nope"}
    )
    unknown = client.post(
        "/auth/login", json={"email": "bob@example.com", "password": "secret123"}
    )
    assert wrong_pw.status_code == unknown.status_code == 401
    assert wrong_pw.json()["error"]["message"] == unknown.json()["error"]["message"]


def test_protected_route_requires_token(client):
    res = client.get("/api/cart")
    assert res.status_code == 401
    assert res.json()["error"]["kind"] == "unauthorized"


def test_garbage_token_is_rejected(client):
    res = client.get("/api/cart", headers={"Authorization": "Bearer not.a.jwt"})
    assert res.status_code == 401


def test_customer_cannot_reach_admin_routes(client, customer, auth_headers):
    res = client.post(
        "/api/categories", json={"name": "Tools"}, headers=auth_headers(customer)
    )
    assert res.status_code == 403
    assert res.json()["error"]["kind"] == "forbidden"
