from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from spendwise.crud import ExpenseRepository


def _create(client: TestClient, headers: dict[str, str], **overrides) -> dict:
    payload = {"amount": 12.5, "category": "Food", "date": "2024-01-05"}
    payload.update(overrides)
    response = client.post("/expenses", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["expense"]


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_register_login_create_and_summarise(client: TestClient) -> None:
    register = client.post("/register", json={"email": "a@x.com", "password": "secret1"})
    assert register.status_code == 201
    user = register.json()["user"]
    assert user["email"] == "a@x.com"
    assert "password" not in user and "password_hash" not in user

    login = client.post("/login", json={"email": "a@x.com", "password": "secret1"})
    assert login.status_code == 200
    body = login.json()
    assert body["token"]
    assert body["user"]["id"] == user["id"]
    headers = {"Authorization": f"Bearer {body['token']}"}

    create = client.post(
        "/expenses",
        json={"amount": 12.5, "category": "Food", "date": "2024-01-05"},
        headers=headers,
    )
    assert create.status_code == 201
    expense = create.json()["expense"]
    assert expense["id"]
    assert expense["amount"] == 12.5
    assert expense["user_id"] == user["id"]

    listing = client.get("/expenses", headers=headers)
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [expense["id"]]

    analytics = client.get("/expenses/analytics", headers=headers)
    assert analytics.status_code == 200
    summary = analytics.json()
    assert summary["total"] == 12.5
    assert summary["categoryBreakdown"] == [{"category": "Food", "total": 12.5, "count": 1}]
    assert summary["monthlySpending"] == [{"month": "2024-01", "total": 12.5}]
    assert [item["id"] for item in summary["recentExpenses"]] == [expense["id"]]


def test_register_duplicate_email(client: TestClient) -> None:
    client.post("/register", json={"email": "a@x.com", "password": "secret1"})
    duplicate = client.post("/register", json={"email": "a@x.com", "password": "secret2"})

    assert duplicate.status_code == 409
    assert duplicate.json() == {"error": "User already exists"}


def test_register_keeps_email_exactly_as_submitted(client: TestClient) -> None:
    first = client.post("/register", json={"email": "Alice@Example.COM", "password": "secret1"})
    second = client.post("/register", json={"email": "Alice@example.com", "password": "secret2"})

    assert first.status_code == second.status_code == 201
    assert first.json()["user"]["email"] == "Alice@Example.COM"
    assert second.json()["user"]["email"] == "Alice@example.com"

    login = client.post("/login", json={"email": "Alice@Example.COM", "password": "secret1"})
    assert login.status_code == 200
    assert login.json()["user"]["id"] == first.json()["user"]["id"]


@pytest.mark.parametrize(
    ("payload", "field"),
    [
        ({"email": "not-an-email", "password": "secret1"}, "email"),
        ({"email": "a@x.com", "password": "short"}, "password"),
        ({"password": "secret1"}, "email"),
    ],
)
def test_register_invalid_input(client: TestClient, payload: dict, field: str) -> None:
    response = client.post("/register", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid input"
    assert field in {detail["field"] for detail in body["details"]}


def test_login_failures_look_the_same(client: TestClient, auth_headers) -> None:
    auth_headers("a@x.com", "secret1")

    wrong_password = client.post("/login", json={"email": "a@x.com", "password": "secret2"})
    unknown_email = client.post("/login", json={"email": "b@x.com", "password": "secret1"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "Invalid credentials"}


def test_login_requires_password(client: TestClient) -> None:
    response = client.post("/login", json={"email": "a@x.com", "password": ""})
    assert response.status_code == 400


def test_expense_routes_require_token(client: TestClient) -> None:
    for method, path in [
        ("GET", "/expenses"),
        ("POST", "/expenses"),
        ("GET", "/expenses/analytics"),
        ("PUT", "/expenses/some-id"),
        ("DELETE", "/expenses/some-id"),
    ]:
        response = client.request(method, path, json={} if method in {"POST", "PUT"} else None)
        assert response.status_code == 401, (method, path)
        assert response.json() == {"error": "Access token required"}


def test_invalid_token_is_forbidden(client: TestClient) -> None:
    response = client.get("/expenses", headers={"Authorization": "Bearer forged.token.value"})

    assert response.status_code == 403
    assert response.json() == {"error": "Invalid or expired token"}


def test_create_expense_validation(client: TestClient, auth_headers) -> None:
    headers = auth_headers()
    response = client.post("/expenses", json={"category": "Food", "amount": "lots"}, headers=headers)

    assert response.status_code == 400
    fields = {detail["field"] for detail in response.json()["details"]}
    assert {"amount", "date"} <= fields


def test_create_ignores_client_supplied_owner(client: TestClient, auth_headers) -> None:
    headers = auth_headers()
    expense = _create(client, headers, user_id="someone-else", description="Coffee")

    me = client.get("/expenses", headers=headers).json()
    assert me[0]["user_id"] == expense["user_id"] != "someone-else"
    assert me[0]["description"] == "Coffee"


def test_negative_amounts_are_accepted(client: TestClient, auth_headers) -> None:
    headers = auth_headers()
    expense = _create(client, headers, amount=-3.25)
    assert expense["amount"] == -3.25


def test_get_and_update_expense(client: TestClient, auth_headers) -> None:
    headers = auth_headers()
    expense = _create(client, headers, description="Pizza")

    fetched = client.get(f"/expenses/{expense['id']}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["description"] == "Pizza"

    updated = client.put(f"/expenses/{expense['id']}", json={"amount": 50}, headers=headers)
    assert updated.status_code == 200
    body = updated.json()
    assert body["amount"] == 50
    assert body["category"] == "Food"
    assert body["description"] == "Pizza"
    assert body["date"] == "2024-01-05"

    again = client.put(f"/expenses/{expense['id']}", json={"amount": 50}, headers=headers)
    assert again.json() == body


@pytest.mark.parametrize("category", ["", "x" * 101, "Très long / catégorie libre " * 20])
def test_any_category_string_is_accepted(client: TestClient, auth_headers, category: str) -> None:
    headers = auth_headers()
    expense = _create(client, headers, category=category)
    assert expense["category"] == category

    other = _create(client, headers, category="Food")
    updated = client.put(f"/expenses/{other['id']}", json={"category": category}, headers=headers)
    assert updated.status_code == 200, updated.text
    assert updated.json()["category"] == category


@pytest.mark.parametrize("amount", [12.345, 12345678901.5, -0.001])
def test_amounts_keep_their_precision_and_size(client: TestClient, auth_headers, amount: float) -> None:
    headers = auth_headers()
    expense = _create(client, headers, amount=amount)
    assert expense["amount"] == amount

    listed = client.get("/expenses", headers=headers).json()
    assert listed[0]["amount"] == amount

    updated = client.put(f"/expenses/{expense['id']}", json={"amount": amount * 2}, headers=headers)
    assert updated.status_code == 200, updated.text
    assert updated.json()["amount"] == amount * 2


def test_other_user_gets_not_found(client: TestClient, auth_headers) -> None:
    alice = auth_headers("alice@x.com", "secret1")
    bob = auth_headers("bob@x.com", "secret1")
    expense = _create(client, alice)

    assert client.get("/expenses", headers=bob).json() == []
    assert client.get(f"/expenses/{expense['id']}", headers=bob).status_code == 404
    assert client.put(f"/expenses/{expense['id']}", json={"amount": 1}, headers=bob).status_code == 404
    deleted = client.delete(f"/expenses/{expense['id']}", headers=bob)
    assert deleted.status_code == 404
    assert deleted.json() == {"error": "Expense not found"}
    assert client.get("/expenses/analytics", headers=bob).json()["total"] == 0

    alice_view = client.get("/expenses", headers=alice).json()
    assert [item["id"] for item in alice_view] == [expense["id"]]
    assert alice_view[0]["amount"] == 12.5


def test_delete_then_delete_again(client: TestClient, auth_headers) -> None:
    headers = auth_headers()
    expense = _create(client, headers)

    first = client.delete(f"/expenses/{expense['id']}", headers=headers)
    assert first.status_code == 204
    assert first.content == b""

    second = client.delete(f"/expenses/{expense['id']}", headers=headers)
    assert second.status_code == 404


def test_unknown_route(client: TestClient) -> None:
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Route not found"}


@pytest.mark.parametrize("method, path", [("PATCH", "/expenses"), ("PATCH", "/register"), ("GET", "/login")])
def test_unsupported_method_is_route_not_found(client: TestClient, method: str, path: str) -> None:
    response = client.request(method, path, json={})
    assert response.status_code == 404
    assert response.json() == {"error": "Route not found"}


def test_unexpected_failure_is_reported_generically(
    app,
    auth_headers,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    headers = auth_headers()

    def explode(self, user_id):
        raise RuntimeError("database on fire at /var/lib/secret")

    monkeypatch.setattr(ExpenseRepository, "list_expenses", explode)
    with TestClient(app, raise_server_exceptions=False) as client:
        with caplog.at_level(logging.ERROR, logger="spendwise.server"):
            response = client.get("/expenses", headers=headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert "secret" not in response.text
    assert "database on fire" in caplog.text
    record = next(r for r in caplog.records if r.name == "spendwise.server")
    assert (record.method, record.path, record.status_code) == ("GET", "/expenses", 500)
