from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.core import get_db
from app.core.database import get_session_factory
from main import app


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def stocked(client):
    response = client.put(
        "/api/inventory/lines",
        params={"actor": "admin"},
        json={"sku": "HERB-01", "city": "Sorriso", "state": "MT", "total_volume": 1000,
              "product_name": "Herbicida X"},
    )
    assert response.status_code == 200
    return response.json()


def _reserve(client, proposal_id, volume, **extra):
    payload = {"proposal_id": proposal_id, "opportunity_id": f"OP-{proposal_id}", "sku": "HERB-01",
               "city": "Sorriso", "state": "MT", "volume": volume}
    payload.update(extra)
    return client.post("/api/reservations", json=payload)


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/api/status").json()["status"] == "ok"


def test_stock_line_upsert_and_list(client, stocked):
    assert stocked["total_volume"] == 1000.0
    assert stocked["unit"] == "liters"

    lines = client.get("/api/inventory/lines").json()
    assert [line["sku"] for line in lines] == ["HERB-01"]

    movements = client.get("/api/inventory/movements", params={"sku": "HERB-01"}).json()
    assert movements[0]["movement_type"] == "IN"


def test_reservation_flow(client, stocked):
    created = _reserve(client, "P1", 600, representative_id="rep-1")
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "active"
    assert body["reserved_volume"] == 600.0

    overbook = _reserve(client, "P2", 500)
    assert overbook.status_code == 409
    assert overbook.json()["error"] == "OverbookError"

    row = client.get("/api/inventory/availability/HERB-01", params={"city": "Sorriso", "state": "MT"}).json()
    assert row["available_volume"] == 400.0
    assert row["band"] == "partially_reserved"
    assert row["active_reservation_count"] == 1

    report = client.get("/api/inventory/availability").json()
    assert report[0]["reserved_volume"] == 600.0

    fetched = client.get(f"/api/reservations/{body['id']}")
    assert fetched.status_code == 200
    assert [r["proposal_id"] for r in client.get("/api/reservations/active").json()] == ["P1"]
    assert len(client.get("/api/reservations/active", params={"representative_id": "rep-1"}).json()) == 1

    cancelled = client.post("/api/proposals/P1/cancel", json={"actor": "rep-1", "reason": "lost deal"})
    assert cancelled.status_code == 200
    assert cancelled.json()[0]["status"] == "cancelled"

    again = client.post("/api/proposals/P1/cancel")
    assert again.status_code == 200
    assert again.json() == []

    assert _reserve(client, "P2", 500).status_code == 201
    confirmed = client.post("/api/proposals/P2/confirm")
    assert confirmed.status_code == 200
    assert confirmed.json()[0]["status"] == "consumed"

    line = client.get("/api/inventory/lines").json()[0]
    assert line["total_volume"] == 500.0

    stats = client.get("/api/reservations/stats").json()
    assert stats["consumed_count"] == 1
    assert stats["cancelled_count"] == 1
    assert stats["conversion_rate"] == 100.0


def test_lowering_total_below_reserved_is_conflict(client, stocked):
    _reserve(client, "P1", 600)
    response = client.put(
        "/api/inventory/lines",
        json={"sku": "HERB-01", "city": "Sorriso", "state": "MT", "total_volume": 100},
    )
    assert response.status_code == 409


@pytest.mark.parametrize("method,path,status", [
    ("post", "/api/proposals/UNKNOWN/confirm", 404),
    ("post", "/api/proposals/UNKNOWN/cancel", 404),
    ("get", f"/api/reservations/{uuid4()}", 404),
    ("get", "/api/inventory/availability/NOPE?city=Sorriso&state=MT", 404),
])
def test_not_found(client, method, path, status):
    response = getattr(client, method)(path)
    assert response.status_code == status


def test_reject_unknown_proposal_is_empty(client):
    response = client.post("/api/proposals/UNKNOWN/reject")
    assert response.status_code == 200
    assert response.json() == []


def test_invalid_reservation_payload(client, stocked):
    assert _reserve(client, "P1", 0).status_code == 422
    assert _reserve(client, "", 10).status_code == 422
    assert _reserve(client, "P1", 10, ttl_hours=-1).status_code == 422


def test_reserve_without_stock_line(client):
    response = _reserve(client, "P1", 10)
    assert response.status_code == 404
    assert response.json()["error"] == "StockLineNotFoundError"


def test_manual_sweep(client, stocked):
    _reserve(client, "P1", 100)

    response = client.post("/api/reservations/expire")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["expired_count"] == 0

    latest = client.get("/api/reservations/sweeps/latest").json()
    assert latest["status"] == "success"


def test_expiring_and_listing(client, stocked):
    _reserve(client, "P1", 100, ttl_hours=2)
    _reserve(client, "P2", 100)

    expiring = client.get("/api/reservations/expiring").json()
    assert [r["proposal_id"] for r in expiring] == ["P1"]

    assert len(client.get("/api/reservations", params={"status": "all"}).json()) == 2
    assert len(client.get("/api/proposals/P1/reservations").json()) == 1


def test_volumes_finer_than_column_scale_are_rejected(client, stocked):
    assert _reserve(client, "P1", 0.0004).status_code == 422
    assert _reserve(client, "P1", "NaN").status_code == 422
    response = client.put(
        "/api/inventory/lines",
        json={"sku": "HERB-01", "city": "Sorriso", "state": "MT", "total_volume": 1.2345},
    )
    assert response.status_code == 422

    assert client.get("/api/reservations", params={"status": "all"}).json() == []
    assert _reserve(client, "P1", 0.5).json()["reserved_volume"] == 0.5


def test_reservations_carry_expiry_alert(client, stocked):
    assert _reserve(client, "P1", 100).json()["alert"] == "active"
    assert _reserve(client, "P2", 100, ttl_hours=2).json()["alert"] == "expiring_soon"

    cancelled = client.post("/api/proposals/P1/cancel").json()
    assert cancelled[0]["alert"] is None

    listed = {r["proposal_id"]: r["alert"] for r in client.get("/api/proposals/P2/reservations").json()}
    assert listed == {"P2": "expiring_soon"}
