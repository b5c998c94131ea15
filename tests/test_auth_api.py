# tests/test_auth_api.py
from conftest import PASSWORD, login


def _register(client, email, password=PASSWORD, name="Someone"):
    return client.post("/api/users/register", json={"name": name, "email": email, "password": password})


def test_register_assigns_role_by_email_domain(client):
    r = _register(client, "boss@pos.io")
    assert r.status_code == 201
    assert r.json()["role"] == "admin"
    assert _register(client, "clerk@shop.com").json()["role"] == "seller"


def test_register_rejects_duplicates_and_weak_passwords(client):
    assert _register(client, "a@shop.com").status_code == 201
    r = _register(client, "A@shop.com")
    assert r.status_code == 400
    assert r.json()["message"] == "A user with that email already exists"

    assert _register(client, "b@shop.com", password="password").status_code == 400
    assert _register(client, "not-an-email").status_code == 400


def test_login_with_cookie(client):
    _register(client, "c@shop.com", name="Cleo")

    r = client.post("/api/users/login", json={"email": "c@shop.com", "password": "Wrong#123"})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid credentials"

    r = client.post("/api/users/login", json={"email": "c@shop.com", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["name"] == "Cleo"
    assert "token" in r.cookies

    me = client.get("/api/users/me")
    assert me.status_code == 200
    assert me.json()["email"] == "c@shop.com"
    assert "passwordHash" not in me.json()

    client.post("/api/users/logout")
    client.cookies.clear()
    assert client.get("/api/users/me").status_code == 401


def test_update_profile(client):
    headers = login(client, "Dana", "dana@shop.com")

    r = client.put("/api/users/me", json={"name": "Dana K", "password": "Another#456"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["user"]["name"] == "Dana K"

    r = client.post("/api/users/login", json={"email": "dana@shop.com", "password": "Another#456"})
    assert r.status_code == 200


def test_user_administration(client, admin_headers, seller_headers):
    assert client.get("/api/users", headers=seller_headers).status_code == 403

    users = client.get("/api/users", headers=admin_headers).json()
    seller = next(u for u in users if u["email"] == "sam@shop.com")

    r = client.put(f"/api/users/{seller['id']}", json={"role": "admin"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["user"]["role"] == "admin"

    r = client.put(f"/api/users/{seller['id']}", json={"role": "owner"}, headers=admin_headers)
    assert r.status_code == 400

    assert client.delete(f"/api/users/{seller['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/users/{seller['id']}", headers=admin_headers).status_code == 404


def test_service_endpoints(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.post("/reset").json() == {"status": "reset"}
