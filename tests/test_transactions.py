import pytest
from fastapi.testclient import TestClient

from wallet_api.db import dynamo
from wallet_api.main import app


@pytest.fixture
def add_transaction(client, headers):
    def _add(amount=10.0, category="Products", date="2024-03-15", is_income=False, comment=None, auth=None):
        payload = {"amount": amount, "category": category, "date": date, "isIncome": is_income}
        if comment is not None:
            payload["comment"] = comment
        response = client.post("/api/transactions", json=payload, headers=auth or headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _add


@pytest.fixture
def other_headers(register_user, auth_header):
    other = register_user(email="mallory@example.com", name="Mallory")
    return auth_header(other["accessToken"])


def test_create_transaction(add_transaction, registered):
    body = add_transaction(amount=42.5, category="Car", date="15/03/2024", comment="fuel")
    assert body["amount"] == 42.5
    assert body["category"] == "Car"
    assert body["date"] == "15-03-2024"
    assert body["isIncome"] is False
    assert body["comment"] == "fuel"
    assert body["user"] == registered["user"]["id"]
    assert body["id"]
    assert "sortDate" not in body


def test_income_forces_category(add_transaction):
    body = add_transaction(amount=1000, category="Car", is_income=True)
    assert body["category"] == "Income"
    assert body["isIncome"] is True

    body = add_transaction(amount=1000, category=None, is_income=True)
    assert body["category"] == "Income"


@pytest.mark.parametrize(
    "payload, error",
    [
        ({"amount": 0, "category": "Car", "date": "2024-03-15", "isIncome": False}, "The amount must be positive"),
        ({"amount": -5, "category": "Car", "date": "2024-03-15", "isIncome": False}, "The amount must be positive"),
        ({"amount": 5, "category": "Car", "date": "someday", "isIncome": False}, "Invalid date format"),
        ({"amount": 5, "category": "Yachts", "date": "2024-03-15", "isIncome": False}, "Invalid category"),
        ({"amount": 5, "date": "2024-03-15", "isIncome": False}, "Invalid category"),
    ],
)
def test_create_rejects_bad_input(client, headers, payload, error):
    response = client.post("/api/transactions", json=payload, headers=headers)
    assert response.status_code == 400
    assert response.json() == {"error": error}


def test_create_requires_fields(client, headers):
    response = client.post("/api/transactions", json={"amount": 5, "category": "Car"}, headers=headers)
    assert response.status_code == 400
    errors = response.json()["errors"]
    assert any(message.startswith("date") for message in errors)
    assert any(message.startswith("isIncome") for message in errors)


def test_create_requires_auth(client):
    response = client.post(
        "/api/transactions",
        json={"amount": 5, "category": "Car", "date": "2024-03-15", "isIncome": False},
    )
    assert response.status_code == 401


def test_filter_by_month_and_year(client, headers, add_transaction):
    late = add_transaction(date="2024-03-20")
    early = add_transaction(date="2024-03-02")
    add_transaction(date="2024-04-01")
    add_transaction(date="2023-03-15")

    response = client.get("/api/transactions/3/2024", headers=headers)
    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [early["id"], late["id"]]


def test_filter_only_returns_own_transactions(client, headers, other_headers, add_transaction):
    add_transaction(date="2024-03-20", auth=other_headers)
    assert client.get("/api/transactions/3/2024", headers=headers).json() == []


@pytest.mark.parametrize("path", ["/api/transactions/13/2024", "/api/transactions/0/2024", "/api/transactions/3/abc"])
def test_filter_rejects_bad_period(client, headers, path):
    response = client.get(path, headers=headers)
    assert response.status_code == 400
    assert "errors" in response.json()


def test_deleted_transaction_disappears(client, headers, add_transaction):
    kept = add_transaction(amount=5, date="2024-03-10")
    removed = add_transaction(amount=7, date="2024-03-11")

    response = client.delete(f"/api/transactions/{removed['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Transaction removed"}

    listed = client.get("/api/transactions/3/2024", headers=headers).json()
    assert [item["id"] for item in listed] == [kept["id"]]
    totals = client.get("/api/transactions/categories/totals/3/2024", headers=headers).json()
    assert totals["expense"] == 5

    again = client.delete(f"/api/transactions/{removed['id']}", headers=headers)
    assert again.status_code == 404
    assert again.json() == {"error": "Transaction not found or already deleted"}


def test_delete_requires_ownership(client, other_headers, add_transaction):
    tx = add_transaction()
    response = client.delete(f"/api/transactions/{tx['id']}", headers=other_headers)
    assert response.status_code == 401
    assert response.json() == {"error": "Not authorized"}
    assert dynamo.get_transaction(tx["id"]) is not None


def test_update_transaction(client, headers, add_transaction):
    tx = add_transaction(amount=10, category="Car", date="2024-03-15", comment="old")
    response = client.put(
        f"/api/transactions/{tx['id']}",
        json={"amount": 12.75, "date": "01.04.2024", "comment": None},
        headers=headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["amount"] == 12.75
    assert body["date"] == "01-04-2024"
    assert body["category"] == "Car"
    assert body.get("comment") is None

    assert client.get("/api/transactions/3/2024", headers=headers).json() == []
    assert len(client.get("/api/transactions/4/2024", headers=headers).json()) == 1


def test_update_switches_between_income_and_expense(client, headers, add_transaction):
    tx = add_transaction(category="Car")
    to_income = client.put(f"/api/transactions/{tx['id']}", json={"isIncome": True}, headers=headers)
    assert to_income.status_code == 200
    assert to_income.json()["category"] == "Income"

    back_without_category = client.put(f"/api/transactions/{tx['id']}", json={"isIncome": False}, headers=headers)
    assert back_without_category.status_code == 400
    assert back_without_category.json() == {"error": "Invalid category"}

    back = client.put(
        f"/api/transactions/{tx['id']}", json={"isIncome": False, "category": "Leisure"}, headers=headers
    )
    assert back.status_code == 200
    assert back.json()["category"] == "Leisure"


def test_update_validation(client, headers, other_headers, add_transaction):
    tx = add_transaction()
    url = f"/api/transactions/{tx['id']}"

    assert client.put(url, json={}, headers=headers).json() == {"error": "No fields to update"}
    assert client.put(url, json={"amount": -1}, headers=headers).json() == {"error": "The amount must be positive"}
    assert client.put(url, json={"date": "nope"}, headers=headers).json() == {"error": "Invalid date format"}
    assert client.put(url, json={"category": "Yachts"}, headers=headers).json() == {"error": "Invalid category"}

    foreign = client.put(url, json={"amount": 99}, headers=other_headers)
    assert foreign.status_code == 401
    missing = client.put("/api/transactions/does-not-exist", json={"amount": 99}, headers=headers)
    assert missing.status_code == 404


def test_category_totals(client, headers, add_transaction):
    add_transaction(amount=10.1, category="Products", date="2024-03-01")
    add_transaction(amount=20.2, category="Products", date="2024-04-01")
    add_transaction(amount=50, category="Car", date="2024-03-05")
    add_transaction(amount=500, is_income=True, date="2024-03-10")

    response = client.get("/api/transactions/categories/totals", headers=headers)
    assert response.status_code == 200
    assert response.json() == {
        "categories": [
            {"category": "Car", "total": 50.0, "transactionCount": 1},
            {"category": "Products", "total": 30.3, "transactionCount": 2},
        ],
        "income": 500.0,
        "expense": 80.3,
        "difference": 419.7,
    }

    march = client.get("/api/transactions/categories/totals/3/2024", headers=headers).json()
    assert march["month"] == 3
    assert march["year"] == 2024
    assert march["expense"] == 60.1
    assert march["difference"] == 439.9


def test_category_totals_default_to_zero(client, headers):
    response = client.get("/api/transactions/categories/totals/1/1999", headers=headers)
    assert response.status_code == 200
    assert response.json() == {
        "categories": [],
        "income": 0.0,
        "expense": 0.0,
        "difference": 0.0,
        "month": 1,
        "year": 1999,
    }


def test_category_totals_independent_of_insertion_order(client, register_user, auth_header):
    amounts = [("Products", 0.1), ("Car", 0.2), ("Products", 0.7), ("Car", 19.99), ("Leisure", 3.33)]

    first = auth_header(register_user(email="a@example.com")["accessToken"])
    second = auth_header(register_user(email="b@example.com")["accessToken"])
    for auth, ordered in ((first, amounts), (second, list(reversed(amounts)))):
        for category, amount in ordered:
            response = client.post(
                "/api/transactions",
                json={"amount": amount, "category": category, "date": "2024-05-05", "isIncome": False},
                headers=auth,
            )
            assert response.status_code == 201

    totals_first = client.get("/api/transactions/categories/totals", headers=first).json()
    totals_second = client.get("/api/transactions/categories/totals", headers=second).json()
    assert totals_first == totals_second


def test_unexpected_failure_returns_generic_500(monkeypatch, headers):
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(dynamo, "get_transactions_for_user", explode)
    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/api/transactions/categories/totals", headers=headers)
    assert response.status_code == 500
    assert response.json() == {"error": "Something went wrong"}


def test_failed_write_returns_500(monkeypatch, client, headers):
    monkeypatch.setattr(dynamo, "put_transaction", lambda item: False)
    response = client.post(
        "/api/transactions",
        json={"amount": 5, "category": "Car", "date": "2024-03-15", "isIncome": False},
        headers=headers,
    )
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to save transaction"}


@pytest.mark.parametrize("amount", [1e130, 1_000_000_000_001])
def test_create_rejects_amount_out_of_range(client, headers, amount):
    response = client.post(
        "/api/transactions",
        json={"amount": amount, "category": "Car", "date": "2024-03-15", "isIncome": False},
        headers=headers,
    )
    assert response.status_code == 400
    assert any(message.startswith("amount") for message in response.json()["errors"])


def test_update_rejects_amount_out_of_range(client, headers, add_transaction):
    tx = add_transaction()
    response = client.put(f"/api/transactions/{tx['id']}", json={"amount": 1e130}, headers=headers)
    assert response.status_code == 400
    assert "errors" in response.json()
    assert dynamo.get_transaction(tx["id"])["amount"] == 10


def test_amounts_are_kept_to_the_cent(client, headers, add_transaction):
    assert add_transaction(amount=12.3456)["amount"] == 12.35

    response = client.post(
        "/api/transactions",
        json={"amount": 0.001, "category": "Car", "date": "2024-03-15", "isIncome": False},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json() == {"error": "The amount must be positive"}


@pytest.mark.parametrize("body", [{"amount": None}, {"date": None, "isIncome": None}, {"category": None}])
def test_update_with_only_nulls_has_nothing_to_update(client, headers, add_transaction, body):
    tx = add_transaction(comment="kept")
    response = client.put(f"/api/transactions/{tx['id']}", json=body, headers=headers)
    assert response.status_code == 400
    assert response.json() == {"error": "No fields to update"}
    assert dynamo.get_transaction(tx["id"])["comment"] == "kept"
