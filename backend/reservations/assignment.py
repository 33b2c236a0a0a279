import logging

from django.db import DatabaseError, transaction

from core.exceptions import InventoryError, RoomUnavailable, InvalidTransition
from core.dates import DateRange
from rooms.models import IndividualRoom
from rooms.services import registry

logger = logging.getLogger(__name__)


def stay_range(reservation):
    return DateRange(reservation.check_in_date, reservation.check_out_date)


class RoomAssignmentResolver:
    """Binds reservations to physical rooms without double-booking them."""

    def auto_assign(self, reservation):
        """
        Best effort: bind the first free room of the reservation's type.

        When nothing fits the reservation stays on its room type only and is
        flagged ``needs_assignment``. Never raises for a missing room.
        """
        if not reservation.is_active:
            return None
        try:
            with transaction.atomic():
                room = self._bind_first_free(reservation)
                if room is None:
                    reservation.individual_room = None
                    reservation.needs_assignment = True
                    reservation.save(update_fields=["individual_room", "needs_assignment", "updated_at"])
        except (InventoryError, DatabaseError) as e:
            # Already committed; the stored assignment is left as it was
            logger.warning(f"Auto-assign failed for reservation {reservation.pk}: {e}")
            return None

        if room is None:
            logger.info(f"Reservation {reservation.pk} needs manual room assignment")
            return None

        logger.info(f"Reservation {reservation.pk} auto-assigned to room {room.room_number}")
        return room

    def manual_assign(self, reservation, room):
        """Bind a specific room; same availability rules as ``auto_assign``."""
        if not reservation.is_active:
            raise InvalidTransition(
                f"Reservation {reservation.confirmation_number} is {reservation.status} and cannot be assigned."
            )
        if room.room_type_id != reservation.room_type_id:
            raise RoomUnavailable(
                f"Room {room.room_number} belongs to another room type; move the reservation instead."
            )
        with transaction.atomic():
            locked = IndividualRoom.objects.select_for_update().get(pk=room.pk)
            if not registry.is_free(locked, stay_range(reservation), exclude_reservation=reservation):
                raise RoomUnavailable(
                    f"Room {locked.room_number} is not available from "
                    f"{reservation.check_in_date} to {reservation.check_out_date}."
                )
            self._bind(reservation, locked)
        logger.info(f"Reservation {reservation.pk} manually assigned to room {room.room_number}")
        return locked

    def unassign(self, reservation):
        if reservation.individual_room_id is None:
            return reservation
        number = reservation.individual_room.room_number
        reservation.individual_room = None
        reservation.needs_assignment = reservation.is_active
        reservation.save(update_fields=["individual_room", "needs_assignment", "updated_at"])
        logger.info(f"Reservation {reservation.pk} unassigned from room {number}")
        return reservation

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _bind_first_free(self, reservation):
        date_range = stay_range(reservation)
        candidates = registry.find_available_for_range(
            reservation.room_type, date_range, exclude_reservation=reservation
        )
        for candidate in candidates:
            locked = IndividualRoom.objects.select_for_update().get(pk=candidate.pk)
            # Re-check under the row lock; another assignment may have won
            if registry.is_free(locked, date_range, exclude_reservation=reservation):
                self._bind(reservation, locked)
                return locked
        return None

    def _bind(self, reservation, room):
        reservation.individual_room = room
        reservation.needs_assignment = False
        reservation.save(update_fields=["individual_room", "needs_assignment", "updated_at"])


assigner = RoomAssignmentResolver()

