"""HTTP surface, exercised through FastAPI's TestClient with an in-memory store."""
import pytest
from fastapi.testclient import TestClient

from clinic_scheduler.dependencies import clock_dep, notifier_dep, store_dep
from clinic_scheduler.errors import StoreError
from clinic_scheduler.main import app
from clinic_scheduler.store import MemoryStore

from helpers import TOMORROW


@pytest.fixture
def client(store, clock, notifier):
    app.dependency_overrides[store_dep] = lambda: store
    app.dependency_overrides[clock_dep] = lambda: clock
    app.dependency_overrides[notifier_dep] = lambda: notifier
    # Not used as a context manager: startup would open the configured store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _booking(**overrides):
    body = {"userName": "Ana Souza", "userEmail": "ana@example.com", "date": TOMORROW, "time": "09:00"}
    body.update(overrides)
    return body


class TestSlots:
    def test_bookable_slots(self, client):
        r = client.get("/slots", params={"date": TOMORROW})
        assert r.status_code == 200
        slots = r.json()
        assert slots[0] == {"time": "09:00", "available": True, "remainingSlots": 1}
        assert "12:00" not in [s["time"] for s in slots]

    def test_status_view(self, client):
        r = client.get("/slots/status", params={"date": TOMORROW})
        assert r.status_code == 200
        by_time = {s["time"]: s for s in r.json()}
        assert by_time["12:00"]["available"] is False
        assert by_time["12:00"]["blockedReason"] == "lunch"
        assert "blockedReason" not in by_time["09:00"]

    def test_bad_date(self, client):
        r = client.get("/slots", params={"date": "2030-13-45"})
        assert r.status_code == 422
        assert r.json()["success"] is False

    def test_missing_date(self, client):
        r = client.get("/slots")
        assert r.status_code == 422
        assert "date" in r.json()["fieldErrors"]


class TestBooking:
    def test_book_then_conflict(self, client, notifier):
        r = client.post("/book", json=_booking())
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["message"] == "Appointment created successfully!"
        assert body["appointment"]["userEmail"] == "ana@example.com"
        assert len(notifier.sent) == 1

        r = client.post("/book", json=_booking(userEmail="other@example.com"))
        assert r.status_code == 409
        assert r.json()["success"] is False

        listed = client.get("/appointments", params={"date": TOMORROW}).json()
        assert len(listed) == 1

    def test_field_errors(self, client):
        r = client.post("/book", json=_booking(userName="A", time=""))
        assert r.status_code == 422
        errors = r.json()["fieldErrors"]
        assert set(errors) == {"userName", "time"}

    def test_delete_appointment(self, client):
        appt_id = client.post("/book", json=_booking()).json()["appointment"]["id"]
        r = client.delete(f"/appointments/{appt_id}")
        assert r.status_code == 200
        assert r.json()["message"] == "Appointment deleted successfully!"
        assert client.get("/appointments").json() == []
        assert client.delete(f"/appointments/{appt_id}").status_code == 404


class TestAdmin:
    def test_settings_round_trip(self, client):
        assert client.get("/admin/settings").json()["maxConcurrentAppointments"] == 1
        form = {"workHoursStart": "08:00", "workHoursEnd": "16:00", "lunchTimeEnabled": False,
                "maxConcurrentAppointments": 2}
        r = client.put("/admin/settings", json=form)
        assert r.status_code == 200
        assert r.json()["settings"]["workHours"] == {"start": "08:00", "end": "16:00"}
        assert client.get("/slots", params={"date": TOMORROW}).json()[0]["remainingSlots"] == 2

    def test_invalid_settings_change_nothing(self, client):
        before = client.get("/admin/settings").json()
        r = client.put("/admin/settings", json={"workHoursStart": "10:00", "workHoursEnd": "09:00"})
        assert r.status_code == 422
        assert "workHoursEnd" in r.json()["fieldErrors"]
        assert client.get("/admin/settings").json() == before

    def test_blocked_times_crud(self, client):
        r = client.post("/admin/blocked-times", json={
            "date": TOMORROW, "startTime": "09:00", "endTime": "10:00", "reason": "Staff meeting",
        })
        assert r.status_code == 200
        blocked_id = r.json()["blockedTime"]["id"]

        slots = client.get("/slots", params={"date": TOMORROW}).json()
        assert slots[0]["time"] == "10:00"

        listed = client.get("/admin/blocked-times", params={"date": TOMORROW}).json()
        assert [b["id"] for b in listed] == [blocked_id]

        assert client.delete(f"/admin/blocked-times/{blocked_id}").status_code == 200
        assert client.delete(f"/admin/blocked-times/{blocked_id}").status_code == 404

    def test_db_verify_and_init(self, client):
        r = client.post("/admin/db/init")
        assert r.status_code == 200
        assert r.json()["data"]["appointments"] == 0

        r = client.get("/admin/db/verify")
        data = r.json()
        assert data["success"] is True
        assert data["data"]["settingsExist"] is True

    def test_clear_appointments(self, client):
        client.post("/book", json=_booking())
        r = client.post("/admin/appointments/clear")
        assert r.json()["deleted"] == 1


def test_store_outage_is_reported_as_try_again(client):
    class DownStore(MemoryStore):
        def get(self, key):
            raise StoreError()

    app.dependency_overrides[store_dep] = lambda: DownStore()
    r = client.get("/slots", params={"date": TOMORROW})
    assert r.status_code == 503
    assert "try again" in r.json()["message"]


def test_non_json_store_entries_still_answer(client, store):
    store._lists["clinic:appointments"] = ["garbage-not-json"]
    store._values["clinic:settings"] = "{corrupt"
    r = client.get("/slots", params={"date": TOMORROW})
    assert r.status_code == 200
    assert r.json()[0]["time"] == "09:00"
    assert client.get("/appointments").json() == []
