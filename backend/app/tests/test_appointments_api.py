from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Dict

import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from app.main import app

ADMIN_HEADERS = {"X-Actor-Id": "7", "X-Actor-Name": "Dr. Rivera"}


def _next_weekday(days_ahead: int) -> date:
    day = datetime.now(timezone.utc).date() + timedelta(days=days_ahead)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


def _at(day: date, hour: int, minute: int = 0) -> str:
    return datetime.combine(day, time(hour, minute)).isoformat()


@pytest.fixture
def api_client(scheduling_data: Dict[str, int], notification_backend) -> TestClient:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def booking_day() -> date:
    return _next_weekday(7)


def _book(client: TestClient, scheduling_data: Dict[str, int], when: str):
    return client.post(
        "/api/v1/appointments/",
        json={
            "service_id": scheduling_data["service_id"],
            "client_id": scheduling_data["client_id"],
            "date_time": when,
            "notes": "Referred by GP",
        },
        headers=ADMIN_HEADERS,
    )


def test_availability_lists_slots(api_client: TestClient, scheduling_data: Dict[str, int], booking_day: date) -> None:
    response = api_client.get(
        "/api/v1/appointments/availability",
        params={"date": booking_day.isoformat(), "service_id": scheduling_data["service_id"]},
    )

    assert response.status_code == 200
    slots = response.json()
    assert slots[0]["date_time"] == _at(booking_day, 9)
    assert all(slot["available"] for slot in slots)


def test_availability_for_unknown_service(api_client: TestClient, booking_day: date) -> None:
    response = api_client.get(
        "/api/v1/appointments/availability",
        params={"date": booking_day.isoformat(), "service_id": 987654},
    )

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "SERVICE_NOT_FOUND"


def test_booking_and_double_booking(
    api_client: TestClient, scheduling_data: Dict[str, int], booking_day: date
) -> None:
    created = _book(api_client, scheduling_data, _at(booking_day, 10))
    clash = _book(api_client, scheduling_data, _at(booking_day, 10))

    assert created.status_code == 201
    body = created.json()
    assert body["appointment"]["status"] == "PENDING"
    assert body["history_record"]["actor_id"] == 7
    assert body["history_record"]["actor_name"] == "Dr. Rivera"

    assert clash.status_code == 409
    detail = clash.json()["detail"]
    assert detail["conflict"]["conflict_type"] == "APPOINTMENT"
    assert len(detail["conflict"]["conflicting_appointments"]) == 1
    assert 0 < len(detail["conflict"]["suggested_alternatives"]) <= 6


def test_booking_too_soon_is_a_bad_request(api_client: TestClient, scheduling_data: Dict[str, int]) -> None:
    response = _book(api_client, scheduling_data, _at(datetime.now(timezone.utc).date(), 9))

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_conflict_check_endpoint(api_client: TestClient, scheduling_data: Dict[str, int], booking_day: date) -> None:
    response = api_client.post(
        "/api/v1/appointments/conflicts",
        json={"date_time": _at(booking_day, 18), "service_id": scheduling_data["service_id"]},
    )

    assert response.status_code == 200
    assert response.json()["has_conflict"] is True
    assert response.json()["conflict_type"] == "OUTSIDE_HOURS"


def test_reschedule_cancel_and_history_flow(
    api_client: TestClient, scheduling_data: Dict[str, int], booking_day: date
) -> None:
    appointment_id = _book(api_client, scheduling_data, _at(booking_day, 10)).json()["appointment"]["id"]

    policy = api_client.get(f"/api/v1/appointments/{appointment_id}/policy")
    assert policy.status_code == 200
    assert policy.json()["cancellation"]["refund_percentage"] == 100
    assert policy.json()["rescheduling"]["can_reschedule"] is True

    confirmed = api_client.post(f"/api/v1/appointments/{appointment_id}/confirm", headers=ADMIN_HEADERS)
    assert confirmed.json()["appointment"]["status"] == "CONFIRMED"

    moved = api_client.post(
        f"/api/v1/appointments/{appointment_id}/reschedule",
        json={"new_date_time": _at(booking_day, 14), "reason": "Clinic closure"},
        headers=ADMIN_HEADERS,
    )
    assert moved.status_code == 200
    assert moved.json()["appointment"]["status"] == "PENDING"
    assert moved.json()["appointment"]["date_time"] == _at(booking_day, 14)
    assert moved.json()["policy"]["fee"] in ("0", "0.00")

    cancelled = api_client.post(
        f"/api/v1/appointments/{appointment_id}/cancel",
        json={"reason": "Moving away"},
        headers=ADMIN_HEADERS,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["appointment"]["status"] == "CANCELLED"
    assert cancelled.json()["notification_sent"] is True

    again = api_client.post(
        f"/api/v1/appointments/{appointment_id}/cancel",
        json={"reason": "Duplicate click"},
        headers=ADMIN_HEADERS,
    )
    assert again.status_code == 409
    assert again.json()["detail"]["current_status"] == "CANCELLED"
    assert again.json()["detail"]["message"] == "This appointment can no longer be modified."

    history = api_client.get(f"/api/v1/appointments/{appointment_id}/history")
    assert history.status_code == 200
    actions = [item["action"] for item in history.json()["items"]]
    assert actions == ["CANCELLED", "RESCHEDULED", "STATUS_CHANGED", "CREATED"]


def test_notes_and_no_show(api_client: TestClient, scheduling_data: Dict[str, int], booking_day: date) -> None:
    appointment_id = _book(api_client, scheduling_data, _at(booking_day, 11)).json()["appointment"]["id"]

    notes = api_client.put(
        f"/api/v1/appointments/{appointment_id}/notes",
        json={"notes": "Prefers video sessions", "field": "client_notes"},
        headers=ADMIN_HEADERS,
    )
    no_show = api_client.post(f"/api/v1/appointments/{appointment_id}/no-show", headers=ADMIN_HEADERS)

    assert notes.status_code == 200
    assert notes.json()["appointment"]["client_notes"] == "Prefers video sessions"
    assert no_show.status_code == 200
    assert no_show.json()["appointment"]["status"] == "NO_SHOW"


def test_manual_reminder_is_stamped(
    api_client: TestClient, scheduling_data: Dict[str, int], booking_day: date, notification_backend
) -> None:
    appointment_id = _book(api_client, scheduling_data, _at(booking_day, 15)).json()["appointment"]["id"]
    notification_backend.sent.clear()

    response = api_client.post(
        f"/api/v1/appointments/{appointment_id}/notify",
        json={"kind": "reminder"},
        headers=ADMIN_HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["notification_sent"] is True
    assert response.json()["appointment"]["reminder_sent_at"] is not None
    assert notification_backend.sent[0].subject == "Appointment reminder"


def test_missing_appointment_is_not_found(api_client: TestClient) -> None:
    response = api_client.post("/api/v1/appointments/555555/complete", headers=ADMIN_HEADERS)

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "APPOINTMENT_NOT_FOUND"


def test_invalid_actor_header(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/v1/appointments/1/complete",
        headers={"X-Actor-Id": "not-a-number"},
    )

    assert response.status_code == 400
