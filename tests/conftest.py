from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from rest_framework.test import APIClient

from availability.models import AvailabilityRecord
from core.dates import DateRange
from rooms.models import RoomType
from structures.models import Structure


@pytest.fixture
def user(db):
    return User.objects.create_user(username="owner", password="secret-pass")


@pytest.fixture
def structure(user):
    return Structure.objects.create(user=user, name="Hotel Aurora")


@pytest.fixture
def make_room_type(structure):
    def make(name="Double", quantity=2, base_price="100.00", **extra):
        extra.setdefault("structure", structure)
        return RoomType.objects.create(
            name=name, quantity=quantity, base_price=Decimal(base_price), **extra
        )
    return make


@pytest.fixture
def room_type(make_room_type):
    return make_room_type()


@pytest.fixture
def stay():
    def make(check_in, check_out):
        return DateRange(date.fromisoformat(check_in), date.fromisoformat(check_out))
    return make


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def assert_ledger_consistent():
    """Every stored row satisfies available = quantity - reserved - withheld, or 0 while blocked."""
    def check(room_type):
        room_type.refresh_from_db()
        for record in AvailabilityRecord.objects.filter(room_type=room_type):
            expected = 0 if record.is_blocked else (
                room_type.quantity - record.reserved_quantity - record.withheld_quantity
            )
            assert record.available_quantity == expected, record
            assert record.available_quantity >= 0
            assert record.reserved_quantity + record.withheld_quantity <= room_type.quantity
    return check
