import logging

from django.db import IntegrityError, transaction
from django.db.models import Case, IntegerField, Value, When

from core.exceptions import RoomNumberCollision, RoomUnavailable
from reservations.models import Reservation
from .models import IndividualRoom

logger = logging.getLogger(__name__)

ROOM_NUMBER_PAD = 2


def format_room_number(prefix, number):
    """``("2", 1) -> "201"``; numbers wider than the pad are kept as is."""
    return f"{prefix}{str(number).zfill(ROOM_NUMBER_PAD)}"


class IndividualRoomRegistry:
    """Physical rooms: numbering, generation, housekeeping status."""

    def list(self, room_type):
        return IndividualRoom.objects.filter(room_type=room_type).order_by("floor_number", "room_number")

    def create(self, room_type, room_number, floor_number=None, **extra):
        room_number = str(room_number).strip()
        if self._taken_numbers(room_type, [room_number]):
            raise RoomNumberCollision(
                f"Room number {room_number} already exists in this structure.",
                conflicts=[room_number],
            )
        try:
            with transaction.atomic():
                room = IndividualRoom.objects.create(
                    structure=room_type.structure,
                    room_type=room_type,
                    room_number=room_number,
                    floor_number=floor_number,
                    **extra,
                )
        except IntegrityError:
            raise RoomNumberCollision(
                f"Room number {room_number} already exists in this structure.",
                conflicts=[room_number],
            )
        logger.info(f"Room {room_number} created for room type {room_type.pk}")
        return room

    def generate(self, room_type, prefix, start_number, count, floor_number=None):
        """
        Create ``count`` rooms numbered ``prefix + zero-padded(n)``.

        Numbers are unique across the whole structure, not only inside the
        room type. Nothing is created if any generated number is taken.
        """
        if count < 1:
            raise ValueError("count must be at least 1")
        if start_number < 0:
            raise ValueError("start_number must be non-negative")
        prefix = prefix or ""

        numbers = [format_room_number(prefix, n) for n in range(start_number, start_number + count)]
        taken = self._structure_numbers(room_type)
        conflicts = [n for n in numbers if n in taken]
        if conflicts:
            suggested = self.next_free_start(taken, prefix, start_number, count)
            logger.info(
                f"Room generation for room type {room_type.pk} collides on {conflicts}, "
                f"suggesting start {suggested}"
            )
            raise RoomNumberCollision(
                f"Room numbers {', '.join(conflicts)} already exist in this structure. "
                f"Try starting at {format_room_number(prefix, suggested)}.",
                conflicts=conflicts,
                suggested_start=suggested,
                suggested_room_number=format_room_number(prefix, suggested),
            )

        rooms = [
            IndividualRoom(
                structure_id=room_type.structure_id,
                room_type=room_type,
                room_number=number,
                floor_number=floor_number,
            )
            for number in numbers
        ]
        try:
            with transaction.atomic():
                IndividualRoom.objects.bulk_create(rooms)
        except IntegrityError:
            # Someone else took a number between the check and the insert
            taken = self._structure_numbers(room_type)
            conflicts = [n for n in numbers if n in taken]
            raise RoomNumberCollision(
                f"Room numbers {', '.join(conflicts)} already exist in this structure.",
                conflicts=conflicts,
                suggested_start=self.next_free_start(taken, prefix, start_number, count),
            )
        # Re-read so every backend hands back saved rows with primary keys
        by_number = {
            room.room_number: room
            for room in IndividualRoom.objects.filter(
                structure_id=room_type.structure_id, room_number__in=numbers
            )
        }
        created = [by_number[number] for number in numbers]
        logger.info(f"Generated {len(created)} rooms for room type {room_type.pk}: {numbers[0]}..{numbers[-1]}")
        return created

    @staticmethod
    def next_free_start(taken, prefix, start_number, count):
        candidate = start_number + 1
        while True:
            run = [format_room_number(prefix, n) for n in range(candidate, candidate + count)]
            if not any(number in taken for number in run):
                return candidate
            candidate += 1

    def set_status(self, room, status):
        if status not in IndividualRoom.Status.values:
            raise ValueError(f"Unknown room status: {status}")
        previous = room.status
        room.status = status
        room.save(update_fields=["status", "updated_at"])
        logger.info(f"Room {room.room_number} status {previous} -> {status}")
        return room

    def delete(self, room):
        if Reservation.objects.filter(
            individual_room=room, status__in=Reservation.ACTIVE_STATUSES
        ).exists():
            raise RoomUnavailable(
                f"Room {room.room_number} still has active reservations assigned."
            )
        number = room.room_number
        room.delete()
        logger.info(f"Room {number} deleted")

    def is_free(self, room, date_range, exclude_reservation=None):
        if room.status in IndividualRoom.UNASSIGNABLE_STATUSES:
            return False
        return not self._overlapping(date_range, exclude_reservation).filter(individual_room=room).exists()

    def find_available_for_range(self, room_type, date_range, exclude_reservation=None):
        """
        Rooms of ``room_type`` that can take a stay over ``date_range``.

        Out-of-order and blocked rooms are skipped, as is any room with an
        active reservation overlapping the range. Clean rooms come first.
        """
        busy = self._overlapping(date_range, exclude_reservation).filter(
            individual_room__isnull=False
        ).values("individual_room_id")
        return (
            IndividualRoom.objects.filter(room_type=room_type)
            .exclude(status__in=IndividualRoom.UNASSIGNABLE_STATUSES)
            .exclude(id__in=busy)
            .annotate(
                clean_rank=Case(
                    When(status=IndividualRoom.Status.CLEAN, then=Value(0)),
                    default=Value(1),
                    output_field=IntegerField(),
                )
            )
            .order_by("clean_rank", "floor_number", "room_number")
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _overlapping(self, date_range, exclude_reservation=None):
        qs = Reservation.objects.filter(
            status__in=Reservation.ACTIVE_STATUSES,
            check_in_date__lt=date_range.end,
            check_out_date__gt=date_range.start,
        )
        if exclude_reservation is not None:
            qs = qs.exclude(pk=exclude_reservation.pk)
        return qs

    def _structure_numbers(self, room_type):
        return set(
            IndividualRoom.objects.filter(structure_id=room_type.structure_id)
            .values_list("room_number", flat=True)
        )

    def _taken_numbers(self, room_type, numbers):
        return list(
            IndividualRoom.objects.filter(
                structure_id=room_type.structure_id, room_number__in=numbers
            ).values_list("room_number", flat=True)
        )


registry = IndividualRoomRegistry()
