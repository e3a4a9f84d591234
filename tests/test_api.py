import pytest
from fastapi.testclient import TestClient
from appointment_service import config
from appointment_service.api import app, build_service, get_service
from appointment_service.client import HttpPartyDirectory
from appointment_service.database import SqlSchedulingStore
from appointment_service.errors import StoreError


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def book(client, **overrides):
    body = {"provider_id": "P1", "requester_id": "R1", "scheduled_time": "2025-03-10T09:00:00"}
    body.update(overrides)
    return client.post("/appointments", json=body)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}

def test_booking_lifecycle(client):
    resp = book(client)
    assert resp.status_code == 201
    first = resp.json()
    assert first["status"] == "BOOKED"
    assert first["scheduled_time"] == "2025-03-10T09:00:00"

    clash = book(client)
    assert clash.status_code == 409
    assert "already taken" in clash.json()["detail"]

    cancel = client.post(f"/appointments/{first['id']}/cancel", json={"cancelled_by": "R1"})
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "CANCELLED"
    assert cancel.json()["cancelled_by"] == "R1"

    again = book(client)
    assert again.status_code == 201
    assert again.json()["id"] != first["id"]

def test_missing_body_is_invalid(client):
    resp = client.post("/appointments")
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Appointment data is required"}

def test_missing_field_is_invalid(client):
    resp = client.post("/appointments", json={"provider_id": "P1", "scheduled_time": "2025-03-10T09:00:00"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "requester_id is required"

def test_unknown_party_is_404(client):
    assert book(client, requester_id="R9").status_code == 404

def test_cancel_without_body_and_twice(client):
    appt_id = book(client).json()["id"]
    assert client.post(f"/appointments/{appt_id}/cancel").status_code == 200
    resp = client.post(f"/appointments/{appt_id}/cancel")
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"

def test_get_appointment(client):
    appt_id = book(client).json()["id"]
    assert client.get(f"/appointments/{appt_id}").json()["id"] == appt_id
    assert client.get("/appointments/999").status_code == 404

def test_status_change(client):
    appt_id = book(client).json()["id"]
    resp = client.post(f"/appointments/{appt_id}/status", json={"status": "COMPLETED"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "COMPLETED"
    assert client.post(f"/appointments/{appt_id}/status", json={}).status_code == 400
    missing = client.post(f"/appointments/{appt_id}/status")
    assert missing.status_code == 400
    assert missing.json() == {"detail": "status is required"}

def test_reschedule(client):
    appt_id = book(client).json()["id"]
    book(client, requester_id="R2", scheduled_time="2025-03-10T10:00:00")

    taken = client.post(f"/appointments/{appt_id}/reschedule", json={"scheduled_time": "2025-03-10T10:00:00"})
    assert taken.status_code == 409

    moved = client.post(f"/appointments/{appt_id}/reschedule", json={"scheduled_time": "2025-03-10T11:00:00"})
    assert moved.status_code == 200
    assert moved.json()["scheduled_time"] == "2025-03-10T11:00:00"

    missing = client.post(f"/appointments/{appt_id}/reschedule")
    assert missing.status_code == 400
    assert missing.json() == {"detail": "scheduled_time is required"}

def test_provider_day_listing(client):
    book(client, scheduled_time="2025-03-10T23:59:59.999999")
    book(client, scheduled_time="2025-03-11T00:00:00")

    resp = client.get("/providers/P1/appointments", params={"date": "2025-03-10"})
    assert resp.status_code == 200
    assert [a["scheduled_time"] for a in resp.json()] == ["2025-03-10T23:59:59.999999"]

    assert client.get("/providers/P1/appointments").status_code == 422

def test_provider_day_listing_with_utc_booking(client):
    assert book(client, scheduled_time="2025-03-10T09:00:00Z").status_code == 201
    book(client, scheduled_time="2025-03-10T09:00:00")

    resp = client.get("/providers/P1/appointments", params={"date": "2025-03-10"})
    assert resp.status_code == 200
    assert len(resp.json()) == 2

def test_provider_day_listing_by_requester_name(client):
    book(client)
    book(client, requester_id="R2", scheduled_time="2025-03-10T10:00:00")

    resp = client.get("/providers/P1/appointments", params={"date": "2025-03-10", "requester_name": "mary"})
    assert resp.status_code == 200
    assert [a["requester_id"] for a in resp.json()] == ["R2"]

def test_requester_listing(client):
    book(client)
    book(client, scheduled_time="2025-04-01T08:00:00")
    resp = client.get("/requesters/R1/appointments")
    assert len(resp.json()) == 2
    assert client.get("/requesters/R2/appointments").json() == []

def test_store_failure_is_503(client, store, monkeypatch):
    async def broken(*args, **kwargs):
        raise StoreError("Appointment store read failed")

    monkeypatch.setattr(store, "find_by_requester", broken)
    resp = client.get("/requesters/R1/appointments")
    assert resp.status_code == 503
    assert resp.json() == {"detail": "Appointment store read failed"}

# Application wiring ---------------------------------------------------------

def test_offline_lifespan_uses_demo_parties(monkeypatch):
    monkeypatch.setattr(config, "OFFLINE_MODE", True)
    monkeypatch.setattr(config, "OFFLINE_PROVIDER_IDS", ["demo-provider"])
    monkeypatch.setattr(config, "OFFLINE_REQUESTER_IDS", ["demo-requester"])
    with TestClient(app) as c:
        resp = c.post("/appointments", json={
            "provider_id": "demo-provider",
            "requester_id": "demo-requester",
            "scheduled_time": "2025-03-10T09:00:00",
        })
        assert resp.status_code == 201
        assert c.get("/requesters/demo-requester/appointments").json()[0]["id"] == resp.json()["id"]

def test_lifespan_wires_sql_store(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "OFFLINE_MODE", False)
    monkeypatch.setattr(config, "DATABASE_URL", f"sqlite:///{tmp_path / 'appointments.db'}")
    service = build_service()
    assert isinstance(service.store, SqlSchedulingStore)
    assert isinstance(service.providers, HttpPartyDirectory)
    assert service.providers.resource == "Practitioner"
    assert service.requesters.resource == "Patient"

    with TestClient(app) as c:
        assert c.get("/requesters/R1/appointments").json() == []
        assert c.get("/appointments/1").status_code == 404
        assert c.get("/appointments/99999999999999999999999").status_code == 404
