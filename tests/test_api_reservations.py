import pytest
from fastapi import status

from app.core.errors import ConflictError
from app.core.security import Role
from app.services.reservations import SlotReservationEngine
from tests.conftest import PRO, bearer

DAY = "2025-01-06"


@pytest.fixture
def generated(client, admin_headers):
    r = client.post(
        "/api/v1/availability/generate",
        json={"professional_id": PRO, "dates": [DAY]},
        headers=admin_headers,
    )
    assert r.status_code == 201


def _slots(client, duration=120):
    r = client.get("/api/v1/slots", params={"professional_id": PRO, "date": DAY, "duration": duration})
    assert r.status_code == 200
    return [s["start"] for s in r.json()["slots"]]


def _lock(client, headers, **extra):
    return client.post(
        "/api/v1/reservations/lock",
        json={"professional_id": PRO, "date": DAY, "duration": 120, **extra},
        headers=headers,
    )


def _confirm(client, headers, hold, booking_id):
    return client.post(
        "/api/v1/reservations/confirm",
        json={
            "professional_id": PRO,
            "date": DAY,
            "hold_id": hold["hold_id"],
            "booking_id": booking_id,
            "start": hold["start"],
            "duration": hold["duration_minutes"],
        },
        headers=headers,
    )


def test_slots_are_public(client, generated):
    r = client.get("/api/v1/slots", params={"professional_id": PRO, "date": DAY, "duration": 120})
    assert r.status_code == 200
    body = r.json()
    assert body["duration"] == 120
    assert body["slots"][0] == {"start": "09:00", "end": "11:00", "duration": 120}
    assert [s["start"] for s in body["slots"]] == ["09:00", "10:00", "11:00", "14:00", "15:00", "16:00"]


def test_slots_for_unknown_day_is_empty(client):
    r = client.get("/api/v1/slots", params={"professional_id": PRO, "date": DAY, "duration": 60})
    assert r.status_code == 200
    assert r.json()["slots"] == []


def test_slots_validates_duration(client):
    r = client.get("/api/v1/slots", params={"professional_id": PRO, "date": DAY, "duration": 0})
    assert r.status_code == 422


def test_lock_confirm_flow(client, generated, customer_headers):
    r = _lock(client, customer_headers)
    assert r.status_code == status.HTTP_201_CREATED
    hold = r.json()
    assert (hold["start"], hold["end"]) == ("09:00", "11:00")
    assert [s["start"] for s in hold["slots"]] == ["09:00", "10:00"]
    assert hold["locked_until"]
    assert _slots(client) == ["11:00", "14:00", "15:00", "16:00"]

    r = _confirm(client, customer_headers, hold, "bk-1")
    assert r.status_code == 200
    assert r.json()["booking_id"] == "bk-1"
    assert (r.json()["start"], r.json()["end"]) == ("09:00", "11:00")
    assert _slots(client) == ["11:00", "14:00", "15:00", "16:00"]


def test_confirm_unknown_hold_is_gone(client, generated, customer_headers):
    r = _confirm(client, customer_headers, {"hold_id": "nope", "start": "09:00", "duration_minutes": 60}, "bk-1")
    assert r.status_code == status.HTTP_410_GONE
    assert r.json()["error"] == "ExpiredLockError"


def test_release(client, generated, customer_headers):
    hold = _lock(client, customer_headers).json()
    r = client.post(
        "/api/v1/reservations/release",
        json={"professional_id": PRO, "date": DAY, "hold_id": hold["hold_id"]},
        headers=customer_headers,
    )
    assert r.json() == {"released": 2}
    assert _slots(client)[0] == "09:00"


def test_lock_without_room_is_409(client, generated, customer_headers):
    r = _lock(client, customer_headers, duration=300)
    assert r.status_code == status.HTTP_409_CONFLICT
    assert r.json()["detail"] == "No slot available"


def test_lock_at_chosen_start(client, generated, customer_headers):
    r = _lock(client, customer_headers, duration=60, start="16:00")
    assert r.json()["start"] == "16:00"
    r = _lock(client, customer_headers, duration=60, start="16:00")
    assert r.status_code == 409

    r = _lock(client, customer_headers, duration=60, start="4pm")
    assert r.status_code == 422


def test_lock_requires_customer_role(client, generated, pro_headers):
    assert _lock(client, {}).status_code == 401
    assert _lock(client, pro_headers).status_code == 403


def test_lost_race_is_503_with_retry_after(client, generated, customer_headers, monkeypatch):
    def always_conflict(self, *args, **kwargs):
        raise ConflictError()

    monkeypatch.setattr(SlotReservationEngine, "find_and_lock", always_conflict)
    r = _lock(client, customer_headers)
    assert r.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert r.headers["Retry-After"] == "1"
    assert "retry" in r.json()["detail"]


def test_cancel_by_owner(client, generated, customer_headers, pro_headers):
    hold = _lock(client, customer_headers).json()
    _confirm(client, customer_headers, hold, "bk-1")
    payload = {"professional_id": PRO, "date": DAY, "booking_id": "bk-1"}

    r = client.post("/api/v1/reservations/cancel", json=payload, headers=customer_headers)
    assert r.status_code == 403
    r = client.post(
        "/api/v1/reservations/cancel", json=payload, headers=bearer("pro-2", Role.PROFESSIONAL)
    )
    assert r.status_code == 403

    r = client.post("/api/v1/reservations/cancel", json=payload, headers=pro_headers)
    assert r.json() == {"released": 2}
    assert _slots(client)[0] == "09:00"

    r = client.post("/api/v1/reservations/cancel", json=payload, headers=pro_headers)
    assert r.status_code == 404


def test_reap_is_admin_only(client, generated, admin_headers, customer_headers):
    assert client.post("/api/v1/reservations/reap", headers=customer_headers).status_code == 403

    _lock(client, customer_headers)
    r = client.post("/api/v1/reservations/reap", headers=admin_headers)
    assert r.status_code == 200
    # fresh holds are still active
    assert r.json() == {"reaped_count": 0, "records_touched": 0}


def test_confirm_needs_the_held_run(client, generated, customer_headers):
    hold = _lock(client, customer_headers, duration=90).json()
    assert hold["end"] == "10:30"

    r = client.post(
        "/api/v1/reservations/confirm",
        json={"professional_id": PRO, "date": DAY, "hold_id": hold["hold_id"], "booking_id": "bk-1"},
        headers=customer_headers,
    )
    assert r.status_code == 422

    r = _confirm(client, customer_headers, {**hold, "duration_minutes": 60}, "bk-1")
    assert r.status_code == status.HTTP_410_GONE

    r = _confirm(client, customer_headers, hold, "bk-1")
    assert r.status_code == 200
    assert (r.json()["start"], r.json()["end"]) == ("09:00", "10:30")
