from fastapi.testclient import TestClient

import main
from database import Base, create_store_engine, make_session_factory
from loader import LedgerLoader
from main import DashboardRegistry, app, get_db, get_registry
from periods import local_now


def make_client():
    engine = create_store_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    factory = make_session_factory(engine)
    registry = DashboardRegistry(loader=LedgerLoader(factory))

    def override_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_registry] = lambda: registry
    return TestClient(app), registry


def teardown_function() -> None:
    app.dependency_overrides.clear()


def test_missing_owner_is_rejected() -> None:
    client, _ = make_client()
    assert client.get("/api/dashboard").status_code == 401


def test_dashboard_reflects_created_transactions() -> None:
    client, registry = make_client()
    headers = {"X-Owner-Id": "api-owner-1"}
    today = local_now().replace(microsecond=0)

    empty = client.get("/api/dashboard", headers=headers)
    assert empty.status_code == 200
    assert empty.json()["total_transactions"] == 0
    assert empty.json()["transaction_frequency"] == "Monthly"

    category = client.post(
        "/api/categories",
        json={"name": "Streaming", "budgeted_amount": 20},
        headers=headers,
    )
    assert category.status_code == 201
    category_id = category.json()["id"]

    created = client.post(
        "/api/transactions",
        json={
            "amount": -15.0,
            "description": "Netflix",
            "category_id": category_id,
            "transaction_date": today.isoformat(),
        },
        headers=headers,
    )
    assert created.status_code == 201

    body = client.get("/api/dashboard", headers=headers).json()
    assert body["total_expenses"] == 15.0
    assert body["subscriptions"][0]["name"] == "Netflix"
    assert body["category_budgets"][0]["percentage"] == 75.0
    assert body["insight_count"] == 1

    deleted = client.delete(
        f"/api/transactions/{created.json()['id']}", headers=headers
    )
    assert deleted.status_code == 204
    assert client.get("/api/dashboard", headers=headers).json()["total_expenses"] == 0

    registry.close_all()


def test_preferences_update_rescales_summary() -> None:
    client, registry = make_client()
    headers = {"X-Owner-Id": "api-owner-2"}
    client.post(
        "/api/categories",
        json={"name": "Groceries", "budgeted_amount": 600},
        headers=headers,
    )

    resp = client.put(
        "/api/preferences",
        json={"budget_period": "yearly", "fixed_costs": [{"amount": 100}]},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["granularity"] == "yearly"

    body = client.post("/api/dashboard/refresh", headers=headers).json()
    assert body["period_budget_total"] == 7200
    assert body["fixed_costs_total"] == 1200
    assert body["granularity"] == "yearly"

    status = client.get("/api/dashboard/status", headers=headers).json()
    assert status["state"] == "subscribed"
    assert status["loading"] is False
    assert status["owner_id"] == "api-owner-2"

    bad = client.put(
        "/api/preferences", json={"budget_period": "weekly"}, headers=headers
    )
    assert bad.status_code == 422

    registry.close_all()


def test_unknown_transaction_delete_is_404() -> None:
    client, registry = make_client()
    resp = client.delete("/api/transactions/nope", headers={"X-Owner-Id": "api-owner-3"})
    assert resp.status_code == 404
    registry.close_all()


def test_module_registry_is_default_dependency() -> None:
    assert get_registry() is main.registry
