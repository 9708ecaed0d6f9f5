from datetime import timedelta

from fastapi import status

from app.core.security import Role
from app.utils.tz import today_local
from tests.conftest import PRO, bearer

BASE = "/api/v1/availability"


def _generate(client, headers, dates=("2025-01-06",), **extra):
    return client.post(
        f"{BASE}/generate",
        json={"professional_id": PRO, "dates": list(dates), **extra},
        headers=headers,
    )


def test_healthz_and_version(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "X-Request-ID" in r.headers

    r = client.get("/version", headers={"X-Request-ID": "abc-123"})
    assert r.status_code == 200
    assert "git_sha" in r.json()
    assert r.headers["X-Request-ID"] == "abc-123"


def test_generate_as_admin(client, admin_headers):
    r = _generate(client, admin_headers, dates=("2025-01-05", "2025-01-06"))
    assert r.status_code == status.HTTP_201_CREATED
    data = r.json()
    assert data["generated_count"] == 2
    sunday, monday = data["records"]
    assert sunday["is_working_day"] is False
    assert sunday["time_slots"] == []
    assert monday["day_of_week"] == 1
    assert len(monday["time_slots"]) == 8
    assert monday["time_slots"][0] == {
        "start": "09:00",
        "end": "10:00",
        "available": True,
        "locked": False,
        "locked_until": None,
        "booking_id": None,
        "hold_id": None,
    }

    # idempotent
    r = _generate(client, admin_headers)
    assert r.json()["generated_count"] == 0


def test_generate_by_start_and_days(client, pro_headers):
    r = client.post(
        f"{BASE}/generate",
        json={
            "professional_id": PRO,
            "start_date": "2025-01-06",
            "days": 3,
            "base_schedule": {"start": "10:00", "end": "12:00", "lunch_break": None},
        },
        headers=pro_headers,
    )
    assert r.status_code == 201
    records = r.json()["records"]
    assert [rec["date"] for rec in records] == ["2025-01-06", "2025-01-07", "2025-01-08"]
    assert [s["start"] for s in records[0]["time_slots"]] == ["10:00", "11:00"]


def test_generate_permissions(client, customer_headers):
    assert _generate(client, {}).status_code == status.HTTP_401_UNAUTHORIZED
    assert _generate(client, {"Authorization": "Bearer garbage"}).status_code == 401
    assert _generate(client, customer_headers).status_code == status.HTTP_403_FORBIDDEN
    other_pro = bearer("pro-2", Role.PROFESSIONAL)
    assert _generate(client, other_pro).status_code == status.HTTP_403_FORBIDDEN


def test_generate_rejects_invalid_payloads(client, admin_headers):
    r = _generate(client, admin_headers, base_schedule={"start": "25:00"})
    assert r.status_code == 422

    r = client.post(
        f"{BASE}/generate",
        json={"professional_id": PRO, "dates": ["2025-01-06"], "start_date": "2025-01-06", "days": 2},
        headers=admin_headers,
    )
    assert r.status_code == 422

    r = client.post(f"{BASE}/generate", json={"professional_id": PRO}, headers=admin_headers)
    assert r.status_code == 422


def test_get_record_and_range(client, admin_headers, customer_headers):
    _generate(client, admin_headers, dates=("2025-01-07", "2025-01-06"))

    r = client.get(f"{BASE}/{PRO}/2025-01-06", headers=customer_headers)
    assert r.status_code == 200
    assert r.json()["date"] == "2025-01-06"

    r = client.get(
        BASE,
        params={"professional_id": PRO, "start": "2025-01-01", "end": "2025-01-31"},
        headers=customer_headers,
    )
    assert r.status_code == 200
    assert [rec["date"] for rec in r.json()] == ["2025-01-06", "2025-01-07"]

    assert client.get(f"{BASE}/{PRO}/2025-01-06").status_code == 401


def test_get_missing_record_is_404(client, customer_headers):
    r = client.get(f"{BASE}/{PRO}/2025-01-06", headers=customer_headers)
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.json()["error"] == "NotFoundError"


def test_range_with_start_after_end_is_422(client, customer_headers):
    r = client.get(
        BASE,
        params={"professional_id": PRO, "start": "2025-02-01", "end": "2025-01-01"},
        headers=customer_headers,
    )
    assert r.status_code == 422
    assert r.json()["error"] == "ValidationError"


def test_exceptions_round_trip(client, pro_headers):
    _generate(client, pro_headers)

    r = client.post(
        f"{BASE}/{PRO}/2025-01-06/exceptions",
        json={"all_day": True, "reason": "Feriado"},
        headers=pro_headers,
    )
    assert r.status_code == status.HTTP_201_CREATED
    assert r.json()["is_working_day"] is False
    assert r.json()["time_slots"] == []

    r = client.delete(f"{BASE}/{PRO}/2025-01-06/exceptions/0", headers=pro_headers)
    assert r.status_code == 200
    assert r.json()["is_working_day"] is True
    assert len(r.json()["time_slots"]) == 8

    r = client.delete(f"{BASE}/{PRO}/2025-01-06/exceptions/0", headers=pro_headers)
    assert r.status_code == 422


def test_exception_on_missing_record_is_404(client, admin_headers):
    r = client.post(
        f"{BASE}/{PRO}/2025-01-06/exceptions",
        json={"start": "10:00", "end": "11:00"},
        headers=admin_headers,
    )
    assert r.status_code == 404


def test_exception_over_booking_requires_force(client, admin_headers, customer_headers):
    _generate(client, admin_headers)
    hold = client.post(
        "/api/v1/reservations/lock",
        json={"professional_id": PRO, "date": "2025-01-06", "duration": 60},
        headers=customer_headers,
    ).json()
    # hold uses the real clock; a past date does not prevent the lock
    client.post(
        "/api/v1/reservations/confirm",
        json={
            "professional_id": PRO,
            "date": "2025-01-06",
            "hold_id": hold["hold_id"],
            "booking_id": "b1",
            "start": hold["start"],
            "duration": hold["duration_minutes"],
        },
        headers=customer_headers,
    )

    url = f"{BASE}/{PRO}/2025-01-06/exceptions"
    r = client.post(url, json={"all_day": True}, headers=admin_headers)
    assert r.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert "b1" in r.json()["detail"]

    r = client.post(url, params={"force": "true"}, json={"all_day": True}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["is_working_day"] is False


def test_update_base_schedule(client, pro_headers):
    today = today_local()
    dates = [(today + timedelta(days=i)).isoformat() for i in range(7)]
    _generate(client, pro_headers, dates=dates)

    r = client.put(
        f"{BASE}/{PRO}/base-schedule",
        json={"start": "10:00", "end": "12:00", "lunch_break": None, "working_days": [0, 1, 2, 3, 4, 5, 6]},
        headers=pro_headers,
    )
    assert r.status_code == 200
    assert r.json() == {"updated_count": 7, "skipped_dates": []}

    r = client.get(f"{BASE}/{PRO}/{dates[0]}", headers=pro_headers)
    assert [s["start"] for s in r.json()["time_slots"]] == ["10:00", "11:00"]


def test_update_base_schedule_other_professional_forbidden(client):
    r = client.put(
        f"{BASE}/{PRO}/base-schedule",
        json={"start": "10:00"},
        headers=bearer("pro-2", Role.PROFESSIONAL),
    )
    assert r.status_code == 403
