from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, build_engine
from main import app, get_db
from recurrence import local_today


@pytest.fixture
def client():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    engine.dispose()


def _series_payload(**overrides):
    payload = {
        "name": "Rent",
        "type": "expense",
        "amount": "900.00",
        "category": "Housing",
        "frequency": "monthly",
        "account_id": "checking",
        "start_date": local_today().isoformat(),
    }
    payload.update(overrides)
    return payload


def _transaction(client, **overrides):
    payload = {
        "account_id": "checking",
        "amount": "100.00",
        "type": "expense",
        "category": "Groceries",
        "date": local_today().isoformat(),
    }
    payload.update(overrides)
    resp = client.post("/api/transactions", json=payload)
    assert resp.status_code == 201
    return resp.json()


def test_series_lifecycle(client):
    resp = client.post("/api/recurring", json=_series_payload())
    assert resp.status_code == 201
    series_id = resp.json()["id"]

    dashboard = client.get("/api/recurring/dashboard").json()
    assert [s["id"] for s in dashboard["due_today"]] == [series_id]

    preview = client.post("/api/recurring/execute", params={"dry_run": "true"})
    assert preview.json()["summary"]["successful_executions"] == 1
    assert client.get("/api/transactions").json() == []

    manual = client.post(
        "/api/recurring", json=_series_payload(name="Tax", auto_execute=False)
    ).json()

    run = client.post("/api/recurring/execute", params={"dry_run": "false"})
    assert run.status_code == 200
    assert len(run.json()["executed"]) == 1

    series = client.get(f"/api/recurring/{series_id}").json()
    assert series["total_executions"] == 1
    assert series["due_date"] > local_today().isoformat()

    waiting = client.get(f"/api/recurring/{manual['id']}").json()
    assert waiting["auto_execute"] is False
    assert waiting["total_executions"] == 0

    forced = client.post(
        "/api/recurring/execute", params={"dry_run": "false", "force": "true"}
    )
    assert len(forced.json()["executed"]) == 1

    report = client.get(f"/api/recurring/{series_id}/reconciliation").json()
    assert report["summary"]["actual_executions"] == 1


def test_pause_resume_and_deactivate(client):
    series_id = client.post("/api/recurring", json=_series_payload()).json()["id"]
    until = (local_today() + timedelta(days=30)).isoformat()

    paused = client.post(f"/api/recurring/{series_id}/pause", json={"until": until})
    assert paused.json()["is_paused"] is True
    assert client.get("/api/recurring/dashboard").json()["due_today"] == []

    resumed = client.post(f"/api/recurring/{series_id}/resume")
    assert resumed.json()["is_paused"] is False

    gone = client.delete(f"/api/recurring/{series_id}")
    assert gone.json()["is_active"] is False
    assert client.get("/api/recurring/stats").json()["total_active_series"] == 0


def test_invalid_requests(client):
    transfer = client.post("/api/recurring", json=_series_payload(type="transfer"))
    assert transfer.status_code == 422

    assert client.get("/api/recurring/missing").status_code == 404
    bad = client.post("/api/recurring/execute", params={"max_days_overdue": -1})
    assert bad.status_code == 400


def test_link_conflicts_map_to_409(client):
    first = _transaction(client)
    second = _transaction(client)
    refund = _transaction(client, type="income", amount="40.00")

    same_kind = client.post(f"/api/transactions/{first['id']}/link/{second['id']}")
    assert same_kind.status_code == 409
    assert same_kind.json()["detail"]["code"] == "SAME_KIND_LINK"

    linked = client.post(f"/api/transactions/{first['id']}/link/{refund['id']}")
    assert linked.status_code == 200
    assert {t["linked_transaction_id"] for t in linked.json()} == {
        first["id"],
        refund["id"],
    }

    detail = client.get(f"/api/transactions/{first['id']}").json()
    assert float(detail["effective_amount"]) == 60.0
    assert detail["is_primary"] is True
    assert float(detail["remaining_amount"]) == 60.0
    assert detail["has_available_amount"] is True

    again = client.post(f"/api/transactions/{second['id']}/link/{refund['id']}")
    assert again.json()["detail"]["code"] == "ALREADY_RECONCILED"

    assert client.delete(f"/api/transactions/{refund['id']}/link").status_code == 204
    not_linked = client.delete(f"/api/transactions/{refund['id']}/link")
    assert not_linked.status_code == 409
    assert not_linked.json()["detail"]["code"] == "NOT_RECONCILED"

    missing = client.post(f"/api/transactions/missing/link/{refund['id']}")
    assert missing.status_code == 404


def test_budget_period_close(client):
    today = local_today()
    budget = client.post(
        "/api/budgets",
        json={"description": "Food", "amount": "500.00", "categories": ["Groceries"]},
    )
    assert budget.status_code == 201
    _transaction(client, amount="620.00")

    started = client.post(
        "/api/budget-periods", json={"start_date": today.isoformat()}
    )
    assert started.status_code == 201
    period_id = started.json()["id"]

    closed = client.post(
        f"/api/budget-periods/{period_id}/close",
        json={"end_date": today.isoformat()},
    )
    assert closed.status_code == 200
    body = closed.json()
    assert float(body["total_spent"]) == 620.0
    assert float(body["total_saved"]) == 0.0

    active = client.get("/api/budget-periods/active").json()
    assert active["start_date"] == (today + timedelta(days=1)).isoformat()
    assert len(client.get("/api/budget-periods").json()) == 2

    backwards = client.post(
        f"/api/budget-periods/{period_id}/close",
        json={"end_date": (today - timedelta(days=1)).isoformat()},
    )
    assert backwards.status_code == 400
