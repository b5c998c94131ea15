import os

os.environ.setdefault("POS_ENABLE_RESET", "true")

import pytest
from fastapi.testclient import TestClient

from posledger import auth, database
from posledger.main import app

PASSWORD = "Secret#123"


@pytest.fixture(autouse=True)
def reset_state(monkeypatch):
    # cheap hashes keep registration/login fast
    monkeypatch.setattr(auth, "PASSWORD_ITERATIONS", 1_000)
    database.reset_all()
    yield
    database.reset_all()


@pytest.fixture
def client():
    return TestClient(app)


def login(client, name, email, password=PASSWORD):
    r = client.post("/api/users/register", json={"name": name, "email": email, "password": password})
    assert r.status_code == 201, r.text
    r = client.post("/api/users/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    # callers authenticate with the bearer header, not the cookie jar
    client.cookies.clear()
    return {"Authorization": f"Bearer {r.json()['accessToken']}"}


@pytest.fixture
def admin_headers(client):
    return login(client, "Ada Admin", "ada@pos.io")


@pytest.fixture
def seller_headers(client):
    return login(client, "Sam Seller", "sam@shop.com")


@pytest.fixture
def make_product(client, admin_headers):
    def _make(name="Coffee", price=10.0, stock=20, category="drinks"):
        r = client.post(
            "/api/products",
            json={"name": name, "price": price, "stock": stock, "category": category},
            headers=admin_headers,
        )
        assert r.status_code == 201, r.text
        return r.json()["product"]
    return _make


def stock_of(product_id):
    return database.inventory.products[product_id].stock
