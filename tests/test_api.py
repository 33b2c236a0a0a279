from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from rest_framework.test import APIClient

from availability.models import AvailabilityRecord
from availability.services import ledger
from core.dates import DateRange
from reservations.models import Reservation
from rooms.models import IndividualRoom
from rooms.services import registry
from structures.models import Structure

pytestmark = pytest.mark.django_db


def reservation_payload(room_type, check_in="2024-01-10", check_out="2024-01-12", **extra):
    payload = {
        "room_type": room_type.pk,
        "check_in_date": check_in,
        "check_out_date": check_out,
        "guest": {"email": "guest@example.com", "first_name": "Lea"},
        "adults": 1,
    }
    payload.update(extra)
    return payload


def test_requires_authentication():
    response = APIClient().get("/api/reservations/")
    assert response.status_code == 401


def test_create_and_cancel_reservation(api_client, room_type):
    response = api_client.post("/api/reservations/", reservation_payload(room_type), format="json")
    assert response.status_code == 201, response.data
    body = response.json()
    assert body["status"] == "tentative"
    assert body["total_amount"] == "220.00"
    assert body["guest"]["email"] == "guest@example.com"
    assert body["needs_assignment"] is True

    cancel = api_client.post(f"/api/reservations/{body['id']}/cancel/", {}, format="json")
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "cancelled"


def test_insufficient_inventory_error_envelope(api_client, make_room_type):
    room_type = make_room_type(quantity=1)
    assert api_client.post("/api/reservations/", reservation_payload(room_type), format="json").status_code == 201

    response = api_client.post(
        "/api/reservations/",
        reservation_payload(room_type, "2024-01-11", "2024-01-13"),
        format="json",
    )
    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "insufficient_inventory"
    assert body["retryable"] is False
    assert body["dates"] == ["2024-01-11"]


def test_reversed_dates_are_rejected(api_client, room_type):
    response = api_client.post(
        "/api/reservations/",
        reservation_payload(room_type, "2024-01-12", "2024-01-10"),
        format="json",
    )
    assert response.status_code == 400
    assert not Reservation.objects.exists()


def test_invalid_transition_is_a_conflict(api_client, room_type):
    created = api_client.post("/api/reservations/", reservation_payload(room_type), format="json").json()
    response = api_client.post(
        f"/api/reservations/{created['id']}/status/", {"status": "checked_out"}, format="json"
    )
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"


def test_generate_rooms_collision(api_client, room_type):
    registry.create(room_type, "203")
    response = api_client.post(
        f"/api/room-types/{room_type.pk}/generate-rooms/",
        {"prefix": "2", "start_number": 1, "count": 5},
        format="json",
    )
    assert response.status_code == 409
    body = response.json()
    assert body["conflicts"] == ["203"]
    assert body["suggested_start"] == 4
    assert IndividualRoom.objects.count() == 1


def test_generate_rooms(api_client, room_type):
    response = api_client.post(
        f"/api/room-types/{room_type.pk}/generate-rooms/",
        {"prefix": "3", "start_number": 1, "count": 3, "floor_number": 3},
        format="json",
    )
    assert response.status_code == 201
    assert [r["room_number"] for r in response.json()["data"]] == ["301", "302", "303"]


def test_block_and_unblock(api_client, room_type):
    response = api_client.post(
        "/api/availability/block/",
        {"room_type": room_type.pk, "start_date": "2024-01-10", "end_date": "2024-01-11", "reason": "Works"},
        format="json",
    )
    assert response.status_code == 200
    assert [d["quantity"] for d in response.json()["data"]] == [0, 0]

    response = api_client.post(
        "/api/availability/unblock/",
        {"room_type": room_type.pk, "start_date": "2024-01-10", "end_date": "2024-01-11"},
        format="json",
    )
    assert [d["quantity"] for d in response.json()["data"]] == [2, 2]


def test_block_synced_room_type_is_forbidden(api_client, make_room_type):
    room_type = make_room_type(is_synced=True)
    response = api_client.post(
        "/api/availability/block/",
        {"room_type": room_type.pk, "start_date": "2024-01-10", "end_date": "2024-01-11"},
        format="json",
    )
    assert response.status_code == 403
    assert response.json()["code"] == "read_only_entity"


def test_pricing_rule_and_resolve(api_client, room_type):
    response = api_client.post(
        "/api/rates/rules/",
        {"room_type": room_type.pk, "start_date": "2024-01-10", "end_date": "2024-01-15",
         "price_per_night": "150.00"},
        format="json",
    )
    assert response.status_code == 201, response.data

    resolved = api_client.get(
        "/api/rates/resolve/",
        {"room_type_id": room_type.pk, "check_in": "2024-01-09", "check_out": "2024-01-11"},
    )
    assert resolved.status_code == 200
    prices = [n["price"] for n in resolved.json()["data"]["nights"]]
    assert prices == ["100.00", "150.00"]


def test_calendar_endpoint(api_client, room_type, structure):
    response = api_client.get(
        "/api/dashboard/calendar/",
        {"scope": "structure", "scope_id": structure.pk, "start_date": "2024-01-10", "end_date": "2024-01-16"},
    )
    assert response.status_code == 200
    assert len(response.json()["data"]["dates"]) == 7


def test_calendar_hides_other_owners_structures(api_client, structure):
    stranger = User.objects.create_user(username="stranger", password="secret-pass")
    other = Structure.objects.create(user=stranger, name="Elsewhere")
    response = api_client.get(
        "/api/dashboard/calendar/",
        {"scope": "structure", "scope_id": other.pk, "start_date": "2024-01-10", "end_date": "2024-01-11"},
    )
    assert response.status_code == 404


def test_dashboard_widgets(api_client, room_type, structure):
    response = api_client.get("/api/dashboard/widgets", {"structure_id": structure.pk})
    assert response.status_code == 200
    overview = response.json()["overview"]
    assert overview["available_units_today"] == 2
    assert overview["needs_assignment"] == 0


def test_synced_flag_cannot_be_cleared_through_the_api(api_client, make_room_type):
    room_type = make_room_type(is_synced=True)
    url = f"/api/room-types/{room_type.pk}/"

    assert api_client.patch(url, {"base_price": "80.00"}, format="json").status_code == 403

    response = api_client.patch(url, {"is_synced": False}, format="json")
    assert response.status_code == 200
    assert response.json()["is_synced"] is True

    response = api_client.patch(url, {"base_price": "80.00"}, format="json")
    assert response.status_code == 403
    room_type.refresh_from_db()
    assert room_type.is_synced is True
    assert room_type.base_price == Decimal("100.00")


def test_structure_pms_connection_is_fixed_after_creation(api_client, structure):
    response = api_client.patch(
        f"/api/structures/{structure.pk}/", {"pms_type": Structure.PMS_EXTERNAL}, format="json"
    )
    assert response.status_code == 400
    structure.refresh_from_db()
    assert structure.pms_type == Structure.PMS_INTERNAL


def test_room_type_quantity_change_resizes_the_ledger(api_client, room_type):
    api_client.post("/api/reservations/", reservation_payload(room_type), format="json")

    response = api_client.patch(f"/api/room-types/{room_type.pk}/", {"quantity": 5}, format="json")
    assert response.status_code == 200
    availability = api_client.get(
        "/api/availability/",
        {"room_type_id": room_type.pk, "start_date": "2024-01-10", "end_date": "2024-01-10"},
    )
    assert availability.json()["data"][0]["quantity"] == 4


def test_oversized_block_window_is_rejected(api_client, room_type):
    response = api_client.post(
        "/api/availability/block/",
        {"room_type": room_type.pk, "start_date": "2024-01-01", "end_date": "9999-12-31"},
        format="json",
    )
    assert response.status_code == 400
    assert not AvailabilityRecord.objects.exists()


@pytest.mark.parametrize(
    "url, params",
    [
        ("/api/availability/", {"start_date": "2024-01-01", "end_date": "9999-12-31"}),
        ("/api/rates/resolve/", {"check_in": "2024-01-01", "check_out": "9999-12-31"}),
    ],
)
def test_oversized_read_windows_are_rejected(api_client, room_type, url, params):
    response = api_client.get(url, {"room_type_id": room_type.pk, **params})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_date_range"


def test_year_long_window_is_accepted(api_client, room_type):
    response = api_client.get(
        "/api/availability/",
        {"room_type_id": room_type.pk, "start_date": "2024-01-01", "end_date": "2024-12-31"},
    )
    assert response.status_code == 200
    assert len(response.json()["data"]) == 366


def test_oversized_stay_is_rejected(api_client, room_type):
    response = api_client.post(
        "/api/reservations/", reservation_payload(room_type, "2024-01-01", "9999-12-31"), format="json"
    )
    assert response.status_code == 400
    assert not Reservation.objects.exists()
    assert not AvailabilityRecord.objects.exists()


def test_oversized_calendar_window_is_rejected(api_client, structure):
    response = api_client.get(
        "/api/dashboard/calendar/",
        {"scope": "structure", "scope_id": structure.pk, "start_date": "2024-01-01", "end_date": "2025-01-01"},
    )
    assert response.status_code == 400


def test_unblock_can_release_withheld_units(api_client, room_type):
    ledger.initialize(room_type, DateRange.inclusive("2024-01-10", "2024-01-10"), quantity=1)
    window = {"room_type": room_type.pk, "start_date": "2024-01-10", "end_date": "2024-01-10"}

    response = api_client.post("/api/availability/unblock/", window, format="json")
    assert [d["quantity"] for d in response.json()["data"]] == [1]

    response = api_client.post(
        "/api/availability/unblock/", {**window, "release_withheld": True}, format="json"
    )
    assert [d["quantity"] for d in response.json()["data"]] == [2]
