from datetime import date
from decimal import Decimal

import pytest

from availability.services import ledger
from core.exceptions import NotFound
from dashboard.services import get_calendar
from rates.services import resolver
from reservations.services import manager
from rooms.services import registry

pytestmark = pytest.mark.django_db


def test_room_type_calendar(room_type, stay):
    r101, r102 = registry.generate(room_type, "1", 1, 2)
    first = manager.create(room_type, stay("2024-01-09", "2024-01-12"))
    second = manager.create(room_type, stay("2024-01-12", "2024-01-14"))
    ledger.block(room_type, stay("2024-01-15", "2024-01-16"), reason="Works")
    resolver.create_rule(room_type, date(2024, 1, 13), date(2024, 1, 13), Decimal("130"))

    window = stay("2024-01-10", "2024-01-17")
    calendar = get_calendar("room_type", room_type.pk, window)

    assert calendar["dates"][0] == "2024-01-10"
    assert len(calendar["dates"]) == 7
    summary, room_row_101, room_row_102 = calendar["rows"]

    assert [c["available_quantity"] for c in summary["cells"]] == [1, 1, 1, 1, 2, 0, 2]
    assert summary["cells"][5]["status"] == "blocked"
    assert summary["cells"][3]["price"] == "130.00"

    # Both stays land on 101 back to back; the first is clipped at the window start
    assert room_row_101["label"] == r101.room_number
    assert [s["reservation_id"] for s in room_row_101["spans"]] == [first.pk, second.pk]
    assert room_row_101["spans"][0]["clipped_start"] is True
    assert room_row_101["spans"][0]["colspan"] == 2
    assert room_row_102["spans"] == []
    assert sum(c["colspan"] for c in room_row_101["cells"]) == 7
    assert len(calendar["cells"]) == len(calendar["rows"])


def test_unassigned_reservations_get_lanes(room_type, stay):
    manager.create(room_type, stay("2024-01-10", "2024-01-12"))
    manager.create(room_type, stay("2024-01-11", "2024-01-13"))

    calendar = get_calendar("room_type", room_type.pk, stay("2024-01-10", "2024-01-14"))
    lanes = [row for row in calendar["rows"] if row["kind"] == "unassigned"]
    assert len(lanes) == 2


def test_structure_and_room_scopes(room_type, make_room_type, structure, stay):
    make_room_type(name="Suite", quantity=1)
    (room,) = registry.generate(room_type, "1", 1, 1)
    reservation = manager.create(room_type, stay("2024-01-10", "2024-01-12"))

    by_structure = get_calendar("structure", structure.pk, stay("2024-01-10", "2024-01-12"))
    assert {row["label"] for row in by_structure["rows"] if row["kind"] == "room_type"} == {"Double", "Suite"}

    by_room = get_calendar("room", room.pk, stay("2024-01-10", "2024-01-12"))
    (row,) = by_room["rows"]
    assert row["spans"][0]["reservation_id"] == reservation.pk
    assert by_room["reservations"][0]["confirmation_number"] == reservation.confirmation_number


def test_cancelled_reservations_are_not_drawn(room_type, stay):
    registry.generate(room_type, "1", 1, 1)
    reservation = manager.create(room_type, stay("2024-01-10", "2024-01-12"))
    manager.cancel(reservation)

    calendar = get_calendar("room_type", room_type.pk, stay("2024-01-10", "2024-01-12"))
    assert calendar["reservations"] == []


def test_unknown_scope_targets(room_type, stay):
    with pytest.raises(NotFound):
        get_calendar("room", 9999, stay("2024-01-10", "2024-01-12"))
    with pytest.raises(ValueError):
        get_calendar("floor", 1, stay("2024-01-10", "2024-01-12"))
