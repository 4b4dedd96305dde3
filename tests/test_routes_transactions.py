from datetime import datetime

from models import Transaction

HEADERS = {"X-User-Id": "user-1"}


def _create(client, headers=HEADERS, **overrides):
    payload = {
        "kind": "expense",
        "amount": "12.99",
        "date": "2024-01-15T00:00:00",
        "category": "Entertainment",
        "description": "Streaming",
    }
    payload.update(overrides)
    return client.post("/transactions", json=payload, headers=headers)


def test_root_health(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "My finance app is running"}


def test_requests_without_identity_are_rejected(client):
    assert client.get("/transactions").status_code == 401
    assert client.get("/transactions", headers={"X-User-Id": "bad id!"}).status_code == 401
    assert client.post("/transactions/recurring").status_code == 401


def test_create_transaction_returns_row(client):
    response = _create(client, recurring=True, frequency="monthly", vendor="StreamCo")

    assert response.status_code == 201
    body = response.json()
    assert body["owner_id"] == "user-1"
    assert body["kind"] == "expense"
    assert body["amount"] == "12.99"
    assert body["date"] == "2024-01-15T00:00:00"
    assert body["recurring"] is True
    assert body["frequency"] == "monthly"
    assert body["recurring_paused"] is False
    assert body["series_id"] is None


def test_create_validates_kind_and_frequency(client):
    assert _create(client, kind="transfer").status_code == 422
    assert _create(client, amount="abc").status_code == 422
    assert _create(client, recurring=True).status_code == 422
    assert _create(client, recurring=True, frequency="weekly").status_code == 422


def test_list_filters_by_owner_type_and_month(client):
    _create(client, date="2024-01-15T00:00:00")
    _create(client, date="2024-02-03T10:00:00", kind="income", amount="1000")
    _create(client, date="2024-02-20T00:00:00")
    _create(client, headers={"X-User-Id": "user-2"}, date="2024-02-21T00:00:00")

    everything = client.get("/transactions", headers=HEADERS).json()
    assert [t["date"] for t in everything] == [
        "2024-02-20T00:00:00",
        "2024-02-03T10:00:00",
        "2024-01-15T00:00:00",
    ]

    february = client.get("/transactions", params={"month": "2024-02"}, headers=HEADERS).json()
    assert len(february) == 2

    income = client.get("/transactions", params={"type": "Income"}, headers=HEADERS).json()
    assert [t["kind"] for t in income] == ["income"]


def test_list_rejects_malformed_month(client):
    response = client.get("/transactions", params={"month": "2024-13"}, headers=HEADERS)
    assert response.status_code == 400


def test_pause_and_resume_through_update(client):
    created = _create(client, recurring=True, frequency="monthly").json()

    paused = client.put(
        f"/transactions/{created['id']}", json={"recurring_paused": True}, headers=HEADERS
    )
    assert paused.status_code == 200
    assert paused.json()["recurring_paused"] is True
    assert paused.json()["amount"] == "12.99"

    resumed = client.put(
        f"/transactions/{created['id']}", json={"recurring_paused": False}, headers=HEADERS
    )
    assert resumed.json()["recurring_paused"] is False


def test_update_requires_frequency_for_recurring_rows(client):
    created = _create(client).json()

    response = client.put(f"/transactions/{created['id']}", json={"recurring": True}, headers=HEADERS)
    assert response.status_code == 422

    response = client.put(
        f"/transactions/{created['id']}",
        json={"recurring": True, "frequency": "yearly"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["frequency"] == "yearly"


def test_other_owners_rows_are_not_found(client):
    created = _create(client).json()
    other = {"X-User-Id": "user-2"}

    assert client.put(f"/transactions/{created['id']}", json={"amount": "1"}, headers=other).status_code == 404
    assert client.delete(f"/transactions/{created['id']}", headers=other).status_code == 404


def test_delete_transaction(client):
    created = _create(client).json()

    assert client.delete(f"/transactions/{created['id']}", headers=HEADERS).status_code == 204
    assert client.get("/transactions", headers=HEADERS).json() == []
    assert client.delete(f"/transactions/{created['id']}", headers=HEADERS).status_code == 404


def test_apply_recurring_generates_missed_occurrences_once(client, db_session):
    template = _create(client, recurring=True, frequency="monthly").json()

    response = client.post(
        "/transactions/recurring", params={"as_of": "2024-04-20T00:00:00"}, headers=HEADERS
    )
    assert response.status_code == 200
    assert response.json() == {"generated_count": 3, "skipped_count": 0}

    again = client.post(
        "/transactions/recurring", params={"as_of": "2024-04-20T00:00:00"}, headers=HEADERS
    )
    assert again.json() == {"generated_count": 0, "skipped_count": 0}

    rows = client.get("/transactions", headers=HEADERS).json()
    generated = [r for r in rows if r["series_id"] == template["id"]]
    assert [r["date"] for r in generated] == [
        "2024-04-15T00:00:00",
        "2024-03-15T00:00:00",
        "2024-02-15T00:00:00",
    ]

    stored = db_session.get(Transaction, template["id"])
    assert stored.last_generated == datetime(2024, 4, 15)


def test_apply_recurring_ignores_paused_series(client):
    template = _create(client, recurring=True, frequency="monthly").json()
    client.put(f"/transactions/{template['id']}", json={"recurring_paused": True}, headers=HEADERS)

    response = client.post(
        "/transactions/recurring", params={"as_of": "2025-01-01T00:00:00"}, headers=HEADERS
    )

    assert response.json() == {"generated_count": 0, "skipped_count": 0}


def test_generated_occurrence_refuses_series_settings(client):
    template = _create(client, recurring=True, frequency="monthly").json()
    client.post("/transactions/recurring", params={"as_of": "2024-02-20T00:00:00"}, headers=HEADERS)
    rows = client.get("/transactions", headers=HEADERS).json()
    (occurrence,) = [r for r in rows if r["series_id"] == template["id"]]

    for change in ({"recurring_paused": True}, {"frequency": "yearly"}, {"recurring": False}):
        response = client.put(f"/transactions/{occurrence['id']}", json=change, headers=HEADERS)
        assert response.status_code == 422

    edited = client.put(
        f"/transactions/{occurrence['id']}", json={"vendor": "NewCo"}, headers=HEADERS
    )
    assert edited.status_code == 200
    assert edited.json()["vendor"] == "NewCo"
    assert edited.json()["recurring_paused"] is False
