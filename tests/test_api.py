"""Tests for API endpoints."""
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from balance import main
from balance.main import app, get_backend
from balance.services.hosted import HostedBackend

client = TestClient(app)


def _payload(**overrides):
    data = {
        "type": "expense",
        "amount": 45.99,
        "currency": "EUR",
        "category": "groceries",
        "description": "Weekly shop",
        "date": "2024-01-15",
    }
    data.update(overrides)
    return data


def _add(**overrides):
    response = client.post("/transactions", json=_payload(**overrides), params={"intentional": True})
    assert response.status_code == 201
    return response.json()


def test_root_endpoint():
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()
    assert client.get("/health").json()["status"] == "ok"


def test_create_and_list_transactions():
    created = _add()
    assert created["id"]
    assert created["amount"] == 45.99

    _add(type="income", category="salary", amount=1000, description="Pay", date="2024-02-01")

    assert len(client.get("/transactions").json()) == 2
    incomes = client.get("/transactions", params={"type": "income"}).json()
    assert [t["category"] for t in incomes] == ["salary"]
    january = client.get("/transactions", params={"start": "2024-01-01", "end": "2024-01-31"}).json()
    assert [t["id"] for t in january] == [created["id"]]


def test_duplicate_submission_is_rejected():
    assert client.post("/transactions", json=_payload()).status_code == 201
    assert client.post("/transactions", json=_payload()).status_code == 409
    assert client.post("/transactions", json=_payload(), params={"intentional": True}).status_code == 201


def test_other_category_needs_description():
    response = client.post("/transactions", json=_payload(category="other", description="abc"))
    assert response.status_code == 422


def test_missing_transaction():
    assert client.get("/transactions/missing").status_code == 404
    assert client.delete("/transactions/missing").status_code == 404
    response = client.patch("/transactions/missing", json={"amount": 10})
    assert response.status_code == 404
    assert "missing" in response.json()["detail"]


def test_update_and_delete():
    created = _add()
    response = client.patch(f"/transactions/{created['id']}", json={"description": "Market"})
    assert response.json()["description"] == "Market"
    assert response.json()["amount"] == 45.99

    assert client.delete(f"/transactions/{created['id']}").json()["transaction_count"] == 0


def test_patch_to_other_category_needs_description():
    created = _add(description="")
    response = client.patch(f"/transactions/{created['id']}", json={"category": "other"})
    assert response.status_code == 422
    assert "Other" in response.json()["detail"]


def test_search():
    _add(description="Coffee beans")
    _add(category="transport", description="Bus ticket")

    found = client.get("/transactions/search", params={"q": "COFFEE"}).json()
    assert [t["description"] for t in found] == ["Coffee beans"]
    assert len(client.get("/transactions/search", params={"q": "transport"}).json()) == 1


def test_dedupe():
    _add()
    _add()
    _add(description="Something else")

    response = client.post("/transactions/dedupe")
    assert response.json()["transaction_count"] == 2
    assert len(client.get("/transactions").json()) == 2


def test_summary_and_category_totals():
    _add(type="income", category="salary", amount=1000, description="Pay")
    _add()

    summary = client.get("/summary").json()
    assert summary["total_income"] == 1000
    assert summary["total_expenses"] == 45.99
    assert summary["balance"] == 954.01

    totals = {t["category"]: t["amount"] for t in client.get("/categories/totals").json()}
    assert totals == {"salary": 1000, "groceries": 45.99}


def test_categories():
    groups = client.get("/categories", params={"type": "income"}).json()["groups"]
    values = [c["value"] for tags in groups.values() for c in tags]
    assert "salary" in values


def test_spending_analysis_for_custom_period():
    _add(amount=30, date="2024-03-05")
    _add(amount=10, currency="USD", category="transport", description="Taxi", date="2024-03-06")
    _add(amount=99, date="2024-04-01")

    response = client.get(
        "/analytics/spending",
        params={"period": "custom", "start": "2024-03-01", "end": "2024-03-10", "base_currency": "EUR"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 38.5
    assert data["period_days"] == 10
    assert [c["category"] for c in data["categories"]] == ["groceries", "transport"]

    detail = client.get(
        "/analytics/spending/categories/transport",
        params={"period": "custom", "start": "2024-03-01", "end": "2024-03-10"},
    ).json()
    assert [t["converted_amount"] for t in detail] == [8.5]


def test_unknown_analysis():
    assert client.get("/analytics/savings").status_code == 404


def test_analytics_totals():
    _add(type="income", category="salary", amount=100, currency="USD", description="Pay")
    _add(amount=10)

    totals = client.get("/analytics/totals", params={"base_currency": "EUR"}).json()
    assert totals["income"] == 85
    assert totals["expenses"] == 10
    assert totals["net_balance"] == 75


def test_currency_endpoints():
    response = client.get("/currency/convert", params={"amount": 100, "from": "EUR", "to": "USD"})
    assert response.status_code == 200
    data = response.json()
    assert data["rate"] == 1.18
    assert data["converted_amount"] == 118
    assert data["symbol"] == "$"

    codes = [c["code"] for c in client.get("/currency/supported").json()]
    assert "EUR" in codes


def test_backup_restore_needs_confirmation():
    _add(description="First")
    _add(description="Second")
    backups = client.get("/backups").json()
    oldest = len(backups) - 1
    assert backups[oldest]["transaction_count"] == 1

    response = client.post(f"/backups/{oldest}/restore")
    assert response.status_code == 409
    assert len(client.get("/transactions").json()) == 2

    response = client.post(f"/backups/{oldest}/restore", json={"confirm": True})
    assert response.status_code == 200
    assert [t["description"] for t in client.get("/transactions").json()] == ["First"]


def test_restore_invalid_index():
    assert client.post("/backups/7/restore", json={"confirm": True}).status_code == 404


def test_manual_backup():
    _add()
    response = client.post("/backups", json={"description": "Before cleanup"})
    assert response.status_code == 201
    assert response.json()["description"] == "Before cleanup"
    assert client.get("/backups/info").json()["count"] >= 1

    client.delete("/backups")
    assert client.get("/backups").json() == []


def test_export_and_import():
    _add()
    response = client.get("/export", params={"include_backups": True})
    assert response.status_code == 200
    assert response.headers["content-disposition"].startswith('attachment; filename="balance-backup-')
    exported = response.text
    assert json.loads(exported)["totalTransactions"] == 1

    _add(description="Not in export")
    assert client.post("/import", content=exported).status_code == 409

    response = client.post("/import", content=exported, params={"confirm": True})
    assert response.status_code == 200
    assert response.json()["transaction_count"] == 1


def test_import_file_upload():
    document = {"transactions": [_payload(id="imported-1")], "exportDate": "2024-01-01", "totalTransactions": 1}
    response = client.post(
        "/import",
        files={"file": ("export.json", json.dumps(document), "application/json")},
    )
    assert response.status_code == 200
    assert [t["id"] for t in client.get("/transactions").json()] == ["imported-1"]


def test_import_runs_off_the_event_loop(monkeypatch):
    offload = AsyncMock(side_effect=lambda func, *args: func(*args))
    monkeypatch.setattr(main, "run_in_threadpool", offload)
    document = {"transactions": [_payload(id="imported-1")], "exportDate": "2024-01-01", "totalTransactions": 1}

    response = client.post("/import", content=json.dumps(document))

    assert response.status_code == 200
    offload.assert_awaited_once()
    assert offload.await_args.args[0] is main._import_local


def test_invalid_import():
    _add()
    response = client.post("/import", content="not json", params={"confirm": True})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid import data"
    assert len(client.get("/transactions").json()) == 1


def test_backup_mode_setting():
    assert client.get("/settings/backup-mode").json() == {"backup_mode": "manual"}
    response = client.put("/settings/backup-mode", json={"backup_mode": "automatic"})
    assert response.json() == {"backup_mode": "automatic"}
    assert client.get("/settings/backup-mode").json() == {"backup_mode": "automatic"}


@pytest.fixture
def cloud(supabase):
    app.dependency_overrides[get_backend] = lambda: HostedBackend(
        "https://project.supabase.test", "anon-key", transport=supabase.transport(),
    )
    yield supabase
    app.dependency_overrides.clear()


def _sign_in(email="ana@example.com"):
    response = client.post("/cloud/auth/signin", json={"email_or_username": email, "password": "secret123"})
    assert response.status_code == 200
    return response.json()


def test_cloud_sign_up_and_first_sign_in_migrates(cloud):
    _add()
    response = client.post(
        "/cloud/auth/signup",
        json={"email": "ana@example.com", "password": "secret123", "username": "ana"},
    )
    assert response.status_code == 201

    session = _sign_in()
    assert session["migrated_transactions"] == 1

    headers = {"Authorization": f"Bearer {session['access_token']}"}
    hosted = client.get("/cloud/transactions", headers=headers).json()
    assert [t["description"] for t in hosted] == ["Weekly shop"]
    assert _sign_in()["migrated_transactions"] == 0


def test_cloud_requires_auth(cloud):
    assert client.get("/cloud/transactions").status_code == 401
    response = client.get("/cloud/transactions", headers={"Authorization": "Bearer forged"})
    assert response.status_code == 401


def test_cloud_bad_credentials(cloud):
    response = client.post("/cloud/auth/signin", json={"email_or_username": "nobody", "password": "x"})
    assert response.status_code == 401


def test_cloud_backups(cloud):
    session = cloud.add_user("ana@example.com", "secret123")
    headers = {"Authorization": f"Bearer {session['access_token']}"}
    client.post("/cloud/transactions", json=_payload(), headers=headers)

    created = client.post("/cloud/backups", headers=headers)
    assert created.status_code == 201
    backup_id = created.json()["id"]
    assert created.json()["transaction_count"] == 1

    assert client.post(f"/cloud/backups/{backup_id}/verify", headers=headers).json()["valid"]
    assert client.post(f"/cloud/backups/{backup_id}/restore", headers=headers).status_code == 409

    response = client.post(f"/cloud/backups/{backup_id}/restore", json={"confirm": True}, headers=headers)
    assert response.status_code == 200
    assert response.json()["transactions_restored"] == 1


def test_cloud_sync_pulls_hosted_data(cloud):
    _add(description="Local only")
    session = cloud.add_user("ana@example.com", "secret123")
    headers = {"Authorization": f"Bearer {session['access_token']}"}
    client.post("/cloud/transactions", json=_payload(description="Hosted"), headers=headers)

    response = client.post("/cloud/sync", headers=headers)
    assert response.json()["transaction_count"] == 1
    assert [t["description"] for t in client.get("/transactions").json()] == ["Hosted"]


def test_cloud_import_always_needs_confirmation(cloud):
    session = cloud.add_user("ana@example.com", "secret123")
    headers = {"Authorization": f"Bearer {session['access_token']}"}
    document = json.dumps({"transactions": [_payload(id="x")], "exportDate": "2024-01-01", "totalTransactions": 1})

    assert client.post("/cloud/import", content=document, headers=headers).status_code == 409
    response = client.post("/cloud/import", content=document, headers=headers, params={"confirm": True})
    assert response.json()["transaction_count"] == 1
