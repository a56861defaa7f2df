"""HTTP-level tests: authentication filter, session lifecycle and order endpoints."""

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from tests.conftest import book_counters, make_book, make_user

PASSWORD = "secret123"


@pytest.fixture
def client(db_engine, store):
    app = create_app(db_engine=db_engine, credential_store=store)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def session_factory_for(client):
    return client.app.state.session_factory


def login(client, username: str, password: str = PASSWORD) -> dict:
    resp = client.post("/api/v1/user/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestAuthEndpoints:
    def test_register_login_profile(self, client):
        resp = client.post(
            "/api/v1/user/register",
            json={"username": "alice", "password": PASSWORD, "email": "Alice@Example.com"},
        )
        assert resp.status_code == 201, resp.text
        assert resp.json()["email"] == "alice@example.com"

        body = login(client, "alice")
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == 7200
        assert body["user"]["username"] == "alice"

        profile = client.get("/api/v1/user/profile", headers=bearer(body["access_token"]))
        assert profile.status_code == 200
        assert profile.json()["username"] == "alice"

    def test_duplicate_registration(self, client):
        payload = {"username": "alice", "password": PASSWORD, "email": "alice@example.com"}
        assert client.post("/api/v1/user/register", json=payload).status_code == 201
        assert client.post("/api/v1/user/register", json=payload).status_code == 409

    def test_bad_password(self, client, session_factory_for):
        make_user(session_factory_for, "alice", password=PASSWORD)
        resp = client.post("/api/v1/user/login", json={"username": "alice", "password": "wrong-pass"})
        assert resp.status_code == 401

    def test_second_login_kicks_first_session(self, client, session_factory_for):
        make_user(session_factory_for, "alice", password=PASSWORD)
        first = login(client, "alice")
        second = login(client, "alice")

        assert client.get("/api/v1/user/profile", headers=bearer(first["access_token"])).status_code == 401
        assert client.get("/api/v1/user/profile", headers=bearer(second["access_token"])).status_code == 200

    def test_refresh_token_cannot_open_api(self, client, session_factory_for):
        make_user(session_factory_for, "alice", password=PASSWORD)
        body = login(client, "alice")
        resp = client.get("/api/v1/user/profile", headers=bearer(body["refresh_token"]))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token"

    def test_refresh_rotates(self, client, session_factory_for):
        make_user(session_factory_for, "alice", password=PASSWORD)
        body = login(client, "alice")

        resp = client.post("/api/v1/user/refresh", json={"refresh_token": body["refresh_token"]})
        assert resp.status_code == 200
        fresh = resp.json()

        assert client.get("/api/v1/user/profile", headers=bearer(fresh["access_token"])).status_code == 200
        reused = client.post("/api/v1/user/refresh", json={"refresh_token": body["refresh_token"]})
        assert reused.status_code == 401
        wrong_kind = client.post("/api/v1/user/refresh", json={"refresh_token": fresh["access_token"]})
        assert wrong_kind.status_code == 401

    def test_logout_revokes(self, client, session_factory_for):
        make_user(session_factory_for, "alice", password=PASSWORD)
        body = login(client, "alice")
        headers = bearer(body["access_token"])

        assert client.delete("/api/v1/user/logout", headers=headers).status_code == 200
        assert client.get("/api/v1/user/profile", headers=headers).status_code == 401

    def test_missing_header(self, client):
        assert client.get("/api/v1/user/profile").status_code == 401

    def test_store_outage_rejects_request(self, client, session_factory_for, store):
        make_user(session_factory_for, "alice", password=PASSWORD)
        body = login(client, "alice")
        store.available = False

        resp = client.get("/api/v1/user/profile", headers=bearer(body["access_token"]))
        assert resp.status_code == 503
        assert resp.json()["code"] == "SERVICE_UNAVAILABLE"


class TestAdminEndpoints:
    def test_revoke_all_requires_admin(self, client, session_factory_for):
        make_user(session_factory_for, "alice", password=PASSWORD)
        body = login(client, "alice")
        resp = client.post("/api/v1/admin/tokens/revoke-all", headers=bearer(body["access_token"]))
        assert resp.status_code == 403

    def test_revoke_all(self, client, session_factory_for):
        make_user(session_factory_for, "root", password=PASSWORD, is_admin=True)
        make_user(session_factory_for, "alice", password=PASSWORD)
        admin = login(client, "root")
        alice = login(client, "alice")

        resp = client.post("/api/v1/admin/tokens/revoke-all", headers=bearer(admin["access_token"]))
        assert resp.status_code == 200
        assert resp.json()["revoked"] == 2
        assert client.get("/api/v1/user/profile", headers=bearer(alice["access_token"])).status_code == 401
        assert client.get("/api/v1/user/profile", headers=bearer(admin["access_token"])).status_code == 401

    def test_revoke_single_user(self, client, session_factory_for):
        make_user(session_factory_for, "root", password=PASSWORD, is_admin=True)
        alice_id = make_user(session_factory_for, "alice", password=PASSWORD)
        admin = login(client, "root")
        alice = login(client, "alice")

        resp = client.delete(f"/api/v1/admin/users/{alice_id}/tokens", headers=bearer(admin["access_token"]))
        assert resp.status_code == 200
        assert client.get("/api/v1/user/profile", headers=bearer(alice["access_token"])).status_code == 401
        assert client.get("/api/v1/user/profile", headers=bearer(admin["access_token"])).status_code == 200


class TestOrderEndpoints:
    def test_create_pay_flow(self, client, session_factory_for):
        make_user(session_factory_for, "alice", password=PASSWORD)
        book = make_book(session_factory_for, stock=5, price=1000)
        headers = bearer(login(client, "alice")["access_token"])

        resp = client.post(
            "/api/v1/order/create",
            json={"items": [{"book_id": book, "quantity": 2, "price": 1000}]},
            headers=headers,
        )
        assert resp.status_code == 201, resp.text
        order = resp.json()
        assert order["total_amount"] == 2000
        assert order["status"] == 0
        assert order["is_paid"] is False
        assert order["items"][0]["subtotal"] == 2000

        paid = client.post(f"/api/v1/order/{order['id']}/pay", headers=headers)
        assert paid.status_code == 200
        assert paid.json()["is_paid"] is True
        assert book_counters(session_factory_for, book) == (3, 2)

        again = client.post(f"/api/v1/order/{order['id']}/pay", headers=headers)
        assert again.status_code == 409
        assert again.json()["code"] == "ALREADY_PAID"

        by_no = client.get(f"/api/v1/order/no/{order['order_no']}", headers=headers)
        assert by_no.status_code == 200
        assert by_no.json()["id"] == order["id"]

        stats = client.get("/api/v1/order/statistics", headers=headers).json()
        assert stats == {"total_orders": 1, "total_amount": 2000, "paid_orders": 1, "pending_orders": 0}

        page = client.get("/api/v1/order/list", params={"page": 1, "page_size": 10}, headers=headers).json()
        assert page["total"] == 1
        assert page["total_pages"] == 1
        assert page["orders"][0]["order_no"] == order["order_no"]

    def test_business_errors_are_surfaced(self, client, session_factory_for):
        make_user(session_factory_for, "alice", password=PASSWORD)
        book = make_book(session_factory_for, stock=1)
        headers = bearer(login(client, "alice")["access_token"])

        empty = client.post("/api/v1/order/create", json={"items": []}, headers=headers)
        assert empty.status_code == 400
        assert empty.json()["code"] == "EMPTY_ORDER"

        too_many = client.post(
            "/api/v1/order/create",
            json={"items": [{"book_id": book, "quantity": 3, "price": 1000}]},
            headers=headers,
        )
        assert too_many.status_code == 409
        assert too_many.json()["code"] == "INSUFFICIENT_STOCK"

        missing = client.get("/api/v1/order/999", headers=headers)
        assert missing.status_code == 404

    def test_orders_of_other_users_are_hidden(self, client, session_factory_for):
        make_user(session_factory_for, "alice", password=PASSWORD)
        make_user(session_factory_for, "bob", password=PASSWORD)
        book = make_book(session_factory_for, stock=5)
        alice = bearer(login(client, "alice")["access_token"])
        bob = bearer(login(client, "bob")["access_token"])

        order = client.post(
            "/api/v1/order/create",
            json={"items": [{"book_id": book, "quantity": 1, "price": 1000}]},
            headers=alice,
        ).json()

        assert client.get(f"/api/v1/order/{order['id']}", headers=bob).status_code == 404
        assert client.post(f"/api/v1/order/{order['id']}/pay", headers=bob).status_code == 404
        assert book_counters(session_factory_for, book) == (5, 0)

    def test_orders_require_authentication(self, client):
        assert client.get("/api/v1/order/list").status_code == 401


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_healthz_reports_credential_store_outage(client, store):
    store.available = False
    resp = client.get("/healthz")
    assert resp.status_code == 503
    assert resp.json()["credential_store"] == "unavailable"


def test_book_lookup(client, session_factory_for):
    book = make_book(session_factory_for, stock=4, price=2590)
    resp = client.get(f"/api/v1/book/{book}")
    assert resp.status_code == 200
    assert resp.json()["price"] == 2590
    assert client.get("/api/v1/book/999").status_code == 404
