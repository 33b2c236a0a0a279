from datetime import date
from unittest import mock

import pytest
from django.db import OperationalError

from availability.models import AvailabilityRecord
from availability.services import ledger
from core.exceptions import (
    Conflict,
    InsufficientInventory,
    LedgerInvariantViolation,
    ReadOnlyEntity,
)

pytestmark = pytest.mark.django_db


def reserved_by_date(room_type):
    return dict(
        AvailabilityRecord.objects.filter(room_type=room_type).values_list("date", "reserved_quantity")
    )


def test_missing_record_reports_full_quantity(room_type):
    snapshot = ledger.get_availability(room_type, date(2024, 1, 10))
    assert snapshot["quantity"] == 2
    assert snapshot["status"] == "available"
    assert not AvailabilityRecord.objects.exists()


def test_initialize_is_idempotent_per_date(room_type, stay):
    ledger.initialize(room_type, stay("2024-01-10", "2024-01-13"))
    ledger.reserve(room_type, stay("2024-01-10", "2024-01-11"))
    ledger.initialize(room_type, stay("2024-01-09", "2024-01-14"))

    assert AvailabilityRecord.objects.filter(room_type=room_type).count() == 5
    assert ledger.get_availability(room_type, date(2024, 1, 10))["quantity"] == 1


def test_reserve_decrements_every_night(room_type, stay, assert_ledger_consistent):
    ledger.reserve(room_type, stay("2024-01-10", "2024-01-12"))

    days = ledger.get_range(room_type, stay("2024-01-09", "2024-01-13"))
    assert [d["quantity"] for d in days] == [2, 1, 1, 2]
    assert_ledger_consistent(room_type)


def test_reserve_is_all_or_nothing(room_type, stay):
    ledger.reserve(room_type, stay("2024-01-11", "2024-01-12"), count=2)

    with pytest.raises(InsufficientInventory) as exc:
        ledger.reserve(room_type, stay("2024-01-10", "2024-01-13"))

    assert exc.value.extra["dates"] == ["2024-01-11"]
    assert reserved_by_date(room_type) == {
        date(2024, 1, 10): 0,
        date(2024, 1, 11): 2,
        date(2024, 1, 12): 0,
    }


def test_reserve_refuses_blocked_dates(room_type, stay):
    ledger.block(room_type, stay("2024-01-11", "2024-01-12"), reason="Renovation")

    with pytest.raises(InsufficientInventory):
        ledger.reserve(room_type, stay("2024-01-10", "2024-01-12"))
    assert ledger.get_availability(room_type, date(2024, 1, 10))["quantity"] == 2


def test_release_returns_units(room_type, stay, assert_ledger_consistent):
    ledger.reserve(room_type, stay("2024-01-10", "2024-01-12"))
    ledger.release(room_type, stay("2024-01-10", "2024-01-12"))

    assert [d["quantity"] for d in ledger.get_range(room_type, stay("2024-01-10", "2024-01-12"))] == [2, 2]
    assert_ledger_consistent(room_type)


def test_release_more_than_reserved_is_an_invariant_violation(room_type, stay):
    ledger.reserve(room_type, stay("2024-01-10", "2024-01-11"))

    with pytest.raises(LedgerInvariantViolation):
        ledger.release(room_type, stay("2024-01-10", "2024-01-11"), count=2)
    assert reserved_by_date(room_type)[date(2024, 1, 10)] == 1


def test_block_then_unblock_keeps_active_reservations(make_room_type, stay, assert_ledger_consistent):
    room_type = make_room_type(quantity=3)
    ledger.reserve(room_type, stay("2024-01-10", "2024-01-12"))

    # Inclusive block of 10th to 12th
    window = stay("2024-01-10", "2024-01-13")
    ledger.block(room_type, window, reason="Private event")
    blocked = ledger.get_range(room_type, window)
    assert [d["quantity"] for d in blocked] == [0, 0, 0]
    assert {d["reason"] for d in blocked} == {"Private event"}
    assert_ledger_consistent(room_type)

    ledger.unblock(room_type, window)
    restored = ledger.get_range(room_type, window)
    assert [d["quantity"] for d in restored] == [2, 2, 3]
    assert {d["status"] for d in restored} == {"available"}
    assert_ledger_consistent(room_type)


def test_release_on_blocked_date_keeps_it_closed(room_type, stay):
    ledger.reserve(room_type, stay("2024-01-10", "2024-01-11"))
    ledger.block(room_type, stay("2024-01-10", "2024-01-11"))
    ledger.release(room_type, stay("2024-01-10", "2024-01-11"))

    snapshot = ledger.get_availability(room_type, date(2024, 1, 10))
    assert snapshot["quantity"] == 0
    assert snapshot["reserved"] == 0


def test_maintenance_block_status(room_type, stay):
    ledger.block(room_type, stay("2024-01-10", "2024-01-11"), status=AvailabilityRecord.Status.MAINTENANCE)
    assert ledger.get_availability(room_type, date(2024, 1, 10))["status"] == "maintenance"


def test_synced_room_type_rejects_block_but_allows_reserve(make_room_type, stay):
    room_type = make_room_type(is_synced=True)

    with pytest.raises(ReadOnlyEntity):
        ledger.block(room_type, stay("2024-01-10", "2024-01-11"))
    with pytest.raises(ReadOnlyEntity):
        ledger.unblock(room_type, stay("2024-01-10", "2024-01-11"))
    with pytest.raises(ReadOnlyEntity):
        ledger.resize(room_type, 4)

    ledger.reserve(room_type, stay("2024-01-10", "2024-01-11"))
    assert ledger.get_availability(room_type, date(2024, 1, 10))["quantity"] == 1


def test_resize_applies_to_existing_rows(room_type, stay, assert_ledger_consistent):
    ledger.reserve(room_type, stay("2024-01-10", "2024-01-11"), count=2)

    with pytest.raises(InsufficientInventory):
        ledger.resize(room_type, 1)

    ledger.resize(room_type, 5)
    room_type.refresh_from_db()
    assert room_type.quantity == 5
    assert ledger.get_availability(room_type, date(2024, 1, 10))["quantity"] == 3
    assert_ledger_consistent(room_type)


def test_stale_version_write_raises_conflict(room_type, stay):
    ledger.initialize(room_type, stay("2024-01-10", "2024-01-11"))
    stale = AvailabilityRecord.objects.get(room_type=room_type, date=date(2024, 1, 10))

    # Another writer gets there first
    ledger.reserve(room_type, stay("2024-01-10", "2024-01-11"))

    with pytest.raises(Conflict) as exc:
        ledger._write(stale, available_quantity=0)
    assert exc.value.retryable is True
    assert ledger.get_availability(room_type, date(2024, 1, 10))["quantity"] == 1


def test_is_available(room_type, stay):
    ledger.reserve(room_type, stay("2024-01-10", "2024-01-11"), count=2)
    assert not ledger.is_available(room_type, stay("2024-01-09", "2024-01-11"))
    assert ledger.is_available(room_type, stay("2024-01-11", "2024-01-14"))


def test_partial_initialize_keeps_units_withheld(room_type, stay, assert_ledger_consistent):
    night = stay("2024-01-10", "2024-01-11")
    ledger.initialize(room_type, night, quantity=1)
    assert ledger.get_availability(room_type, date(2024, 1, 10))["withheld"] == 1

    ledger.reserve(room_type, night)
    with pytest.raises(InsufficientInventory):
        ledger.reserve(room_type, night)

    ledger.release(room_type, night)
    assert ledger.get_availability(room_type, date(2024, 1, 10))["quantity"] == 1
    assert_ledger_consistent(room_type)

    ledger.block(room_type, night)
    ledger.unblock(room_type, night)
    assert ledger.get_availability(room_type, date(2024, 1, 10))["quantity"] == 1

    ledger.resize(room_type, 3)
    assert ledger.get_availability(room_type, date(2024, 1, 10))["quantity"] == 2
    assert_ledger_consistent(room_type)

    ledger.unblock(room_type, night, release_withheld=True)
    snapshot = ledger.get_availability(room_type, date(2024, 1, 10))
    assert (snapshot["quantity"], snapshot["withheld"]) == (3, 0)
    assert_ledger_consistent(room_type)


def test_resize_shrinks_withheld_units_first(make_room_type, stay, assert_ledger_consistent):
    room_type = make_room_type(quantity=4)
    night = stay("2024-01-10", "2024-01-11")
    ledger.initialize(room_type, night, quantity=2)
    ledger.reserve(room_type, night)

    ledger.resize(room_type, 2)
    snapshot = ledger.get_availability(room_type, date(2024, 1, 10))
    assert (snapshot["quantity"], snapshot["reserved"], snapshot["withheld"]) == (0, 1, 1)
    assert_ledger_consistent(room_type)


@pytest.mark.parametrize("quantity", [-1, 3])
def test_initialize_rejects_quantity_outside_room_type_size(room_type, stay, quantity):
    with pytest.raises(ValueError):
        ledger.initialize(room_type, stay("2024-01-10", "2024-01-11"), quantity=quantity)
    assert not AvailabilityRecord.objects.exists()


def test_database_lock_errors_surface_as_conflict(room_type, stay):
    locked = OperationalError("database table is locked: availability_records")
    with mock.patch.object(ledger, "_lock_rows", side_effect=locked):
        with pytest.raises(Conflict) as exc:
            ledger.reserve(room_type, stay("2024-01-10", "2024-01-11"))
    assert exc.value.retryable is True
    assert not AvailabilityRecord.objects.filter(reserved_quantity__gt=0).exists()


def test_other_database_errors_propagate(room_type, stay):
    broken = OperationalError("no such column: availability_records.version")
    with mock.patch.object(ledger, "_lock_rows", side_effect=broken):
        with pytest.raises(OperationalError):
            ledger.reserve(room_type, stay("2024-01-10", "2024-01-11"))
