"""
Reservation lifecycle.

The manager is the only caller of the ledger's mutating operations:
reserve/release for stays, block/unblock/resize for the admin endpoints.
Inventory is consumed once at creation and given back once when a
reservation enters cancelled or no_show; the reservation row is locked
during status changes so a repeated cancel cannot release twice.
"""

import logging
import random
import secrets
import string
import time

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from availability.services import ledger
from core.exceptions import Conflict, InvalidTransition, NotFound, RoomUnavailable, conflict_on_lock
from guests.models import GuestProfile
from guests.services import find_or_create_guest
from rates.services import resolver
from rooms.services import registry
from .assignment import assigner, stay_range
from .models import Reservation, ReservationStatusLog
from .notifications import notify_on_commit

logger = logging.getLogger(__name__)

CONFIRMATION_ALPHABET = string.ascii_uppercase + string.digits
INITIAL_STATUSES = (Reservation.Status.TENTATIVE, Reservation.Status.CONFIRMED)


def generate_confirmation_number(today=None):
    """``YYYYMMDD-XXXX`` with a random upper-case alphanumeric suffix."""
    today = today or timezone.localdate()
    suffix = "".join(secrets.choice(CONFIRMATION_ALPHABET) for _ in range(4))
    return f"{today.strftime('%Y%m%d')}-{suffix}"


def with_retry(func, *args, attempts=None, backoff=None, **kwargs):
    """
    Call ``func`` and retry it on ``Conflict`` with jittered exponential backoff.

    Other errors, and the last Conflict, propagate unchanged.
    """
    attempts = attempts or settings.LEDGER_RETRY_ATTEMPTS
    backoff = settings.LEDGER_RETRY_BACKOFF if backoff is None else backoff
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except Conflict:
            if attempt == attempts:
                raise
            delay = backoff * (2 ** (attempt - 1))
            delay += random.uniform(0, delay)
            logger.warning(f"Conflict on attempt {attempt}/{attempts}, retrying in {delay:.2f}s")
            time.sleep(delay)


class ReservationManager:

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------
    def get(self, reservation_id):
        try:
            return Reservation.objects.select_related(
                "room_type", "room_type__structure", "individual_room", "guest"
            ).get(pk=reservation_id)
        except Reservation.DoesNotExist:
            raise NotFound(f"Reservation {reservation_id} not found.")

    def arrivals(self, structure, day=None):
        """Tentative and confirmed reservations arriving on ``day``."""
        day = day or timezone.localdate()
        return (
            Reservation.objects.filter(
                structure=structure,
                check_in_date=day,
                status__in=INITIAL_STATUSES,
            )
            .select_related("guest", "individual_room", "room_type")
            .order_by("room_type__name", "id")
        )

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------
    def create(
        self,
        room_type,
        date_range,
        guest_ref=None,
        guest_email=None,
        guest_profile=None,
        adults=1,
        children=0,
        infants=0,
        status=None,
        payment_status="pending",
        special_requests="",
        auto_assign=True,
        enforce_stay=True,
    ):
        """
        Price the stay, reserve it on the ledger and persist the reservation.

        The ledger reserve and the insert share one transaction: if either
        fails nothing is written. Room assignment runs afterwards and only
        flags the reservation when no room is free.
        """
        status = status or settings.RESERVATION_DEFAULT_STATUS
        if status not in INITIAL_STATUSES:
            raise ValidationError({"status": f"New reservations must be {' or '.join(INITIAL_STATUSES)}."})
        if not room_type.is_active:
            raise ValidationError({"room_type": "This room type is not bookable."})
        if adults < 1:
            raise ValidationError({"adults": "At least one adult is required."})
        if adults + children > room_type.max_occupancy:
            raise ValidationError(
                {"adults": f"{room_type.name} sleeps at most {room_type.max_occupancy} guests."}
            )

        # Only the idempotent guest lookup commits in here, so a Conflict is safe to retry
        with conflict_on_lock("create the reservation"):
            if guest_ref is None and guest_email:
                guest_ref = find_or_create_guest(guest_email, **(guest_profile or {}))
            guest = None
            if guest_ref is not None:
                guest = GuestProfile.objects.filter(pk=guest_ref).first()
                if guest is None:
                    raise NotFound(f"Guest {guest_ref} not found.")

            quote = resolver.quote(room_type, date_range, enforce_stay=enforce_stay)

            with transaction.atomic():
                ledger.reserve(room_type, date_range)
                reservation = Reservation.objects.create(
                    structure_id=room_type.structure_id,
                    room_type=room_type,
                    guest=guest,
                    confirmation_number=self._unique_confirmation_number(),
                    check_in_date=date_range.start,
                    check_out_date=date_range.end,
                    adults=adults,
                    children=children,
                    infants=infants,
                    status=status,
                    status_changed_at=timezone.now(),
                    special_requests=special_requests or "",
                    rate_breakdown=quote["breakdown"],
                    base_amount=quote["base_amount"],
                    taxes=quote["taxes"],
                    fees=quote["fees"],
                    total_amount=quote["total_amount"],
                    currency=quote["currency"],
                    payment_status=payment_status,
                    needs_assignment=True,
                )
                ReservationStatusLog.objects.create(
                    reservation=reservation, from_status="", to_status=status, note="created"
                )
                notify_on_commit(reservation, "created")

        logger.info(
            f"Reservation {reservation.confirmation_number} created for room type {room_type.pk} "
            f"{date_range.start}→{date_range.end} ({status})"
        )
        if auto_assign:
            assigner.auto_assign(reservation)
        return reservation

    # -------------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------------
    def change_status(self, reservation, new_status, note=""):
        """
        Apply one transition of the reservation state machine.

        Re-applying the current status is a no-op, so a repeated cancel never
        releases inventory twice. Only moves into cancelled / no_show touch
        the ledger.
        """
        if new_status not in Reservation.Status.values:
            raise InvalidTransition(f"Unknown reservation status: {new_status}")

        with conflict_on_lock("change the reservation status"), transaction.atomic():
            locked = Reservation.objects.select_for_update().select_related("room_type").get(pk=reservation.pk)
            previous = locked.status
            if previous == new_status:
                logger.info(f"Reservation {locked.confirmation_number} already {new_status}, nothing to do")
                self._refresh(reservation, locked)
                return reservation
            if not locked.can_transition_to(new_status):
                raise InvalidTransition(
                    f"Cannot change reservation {locked.confirmation_number} from {previous} to {new_status}.",
                    from_status=previous,
                    to_status=new_status,
                )

            if new_status in Reservation.RELEASING_STATUSES:
                ledger.release(locked.room_type, stay_range(locked))
                locked.cancelled_at = timezone.now()

            locked.status = new_status
            locked.status_changed_at = timezone.now()
            if new_status in Reservation.RELEASING_STATUSES:
                locked.needs_assignment = False
            locked.save(update_fields=[
                "status", "status_changed_at", "cancelled_at", "needs_assignment", "updated_at",
            ])
            ReservationStatusLog.objects.create(
                reservation=locked, from_status=previous, to_status=new_status, note=note or ""
            )
            self._sync_room_housekeeping(locked, new_status)
            notify_on_commit(locked, new_status)

        logger.info(f"Reservation {locked.confirmation_number}: {previous} -> {new_status}")
        self._refresh(reservation, locked)
        return reservation

    def confirm(self, reservation):
        return self.change_status(reservation, Reservation.Status.CONFIRMED)

    def check_in(self, reservation):
        return self.change_status(reservation, Reservation.Status.CHECKED_IN)

    def check_out(self, reservation):
        return self.change_status(reservation, Reservation.Status.CHECKED_OUT)

    def cancel(self, reservation, note=""):
        return self.change_status(reservation, Reservation.Status.CANCELLED, note=note)

    def mark_no_show(self, reservation):
        return self.change_status(reservation, Reservation.Status.NO_SHOW)

    def set_payment_status(self, reservation, payment_status):
        """Store a caller-supplied payment status; nothing is computed."""
        valid = [choice[0] for choice in Reservation.PAYMENT_STATUS_CHOICES]
        if payment_status not in valid:
            raise ValidationError({"payment_status": f"Must be one of {', '.join(valid)}."})
        reservation.payment_status = payment_status
        reservation.save(update_fields=["payment_status", "updated_at"])
        return reservation

    # -------------------------------------------------------------------------
    # Inventory administration
    # -------------------------------------------------------------------------
    def block_dates(self, room_type, date_range, reason=None, status=None):
        """Close the range for sale; reservations already on it are kept."""
        kwargs = {"reason": reason}
        if status is not None:
            kwargs["status"] = status
        ledger.block(room_type, date_range, **kwargs)
        return ledger.get_range(room_type, date_range)

    def unblock_dates(self, room_type, date_range, release_withheld=False):
        ledger.unblock(room_type, date_range, release_withheld=release_withheld)
        return ledger.get_range(room_type, date_range)

    def resize_room_type(self, room_type, new_quantity):
        """Change how many units a room type has, on every stored date."""
        if new_quantity != room_type.quantity:
            ledger.resize(room_type, new_quantity)
        return room_type

    # -------------------------------------------------------------------------
    # Move
    # -------------------------------------------------------------------------
    def move(self, reservation, target_room_type=None, target_room=None):
        """
        Move a stay to another room type and/or physical room.

        Everything is validated for the whole stay before anything changes;
        on any failure the reservation keeps its original room type and room.
        """
        if target_room_type is None and target_room is None:
            raise ValidationError("Either a target room type or a target room is required.")
        if target_room is not None:
            if target_room_type is not None and target_room.room_type_id != target_room_type.pk:
                raise ValidationError("The target room does not belong to the target room type.")
            target_room_type = target_room.room_type

        with conflict_on_lock("move the reservation"), transaction.atomic():
            locked = Reservation.objects.select_for_update().select_related(
                "room_type", "individual_room"
            ).get(pk=reservation.pk)
            if not locked.is_active:
                raise InvalidTransition(
                    f"Reservation {locked.confirmation_number} is {locked.status} and cannot be moved."
                )
            date_range = stay_range(locked)
            source_type = locked.room_type
            changes_type = target_room_type.pk != source_type.pk

            # Validate phase
            if target_room is not None:
                room = type(target_room).objects.select_for_update().get(pk=target_room.pk)
                if not registry.is_free(room, date_range, exclude_reservation=locked):
                    raise RoomUnavailable(
                        f"Room {room.room_number} is not available for the whole stay "
                        f"{date_range.start}→{date_range.end}."
                    )
            if changes_type and not target_room_type.is_active:
                raise ValidationError({"room_type": "This room type is not bookable."})
            if changes_type and locked.occupancy > target_room_type.max_occupancy:
                raise ValidationError(
                    {"room_type": f"{target_room_type.name} sleeps at most {target_room_type.max_occupancy} guests."}
                )

            # Commit phase
            if changes_type:
                # Reserve first: a failure here leaves the original units untouched
                ledger.reserve(target_room_type, date_range)
                ledger.release(source_type, date_range)
                quote = resolver.quote(target_room_type, date_range, enforce_stay=False)
                locked.room_type = target_room_type
                locked.rate_breakdown = quote["breakdown"]
                locked.base_amount = quote["base_amount"]
                locked.taxes = quote["taxes"]
                locked.fees = quote["fees"]
                locked.total_amount = quote["total_amount"]
                locked.currency = quote["currency"]

            locked.individual_room = room if target_room is not None else None
            locked.needs_assignment = target_room is None
            locked.save()
            ReservationStatusLog.objects.create(
                reservation=locked,
                from_status=locked.status,
                to_status=locked.status,
                note=f"moved to room type {target_room_type.pk}"
                     + (f" room {room.room_number}" if target_room is not None else ""),
            )
            notify_on_commit(locked, "moved")

        logger.info(
            f"Reservation {locked.confirmation_number} moved from room type {source_type.pk} "
            f"to {target_room_type.pk}"
            + (f", room {locked.individual_room.room_number}" if locked.individual_room_id else "")
        )
        if target_room is None:
            assigner.auto_assign(locked)
        self._refresh(reservation, locked)
        return reservation

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _unique_confirmation_number(self):
        for _ in range(10):
            number = generate_confirmation_number()
            if not Reservation.objects.filter(confirmation_number=number).exists():
                return number
        raise Conflict("Could not allocate a unique confirmation number.")

    def _sync_room_housekeeping(self, reservation, new_status):
        room = reservation.individual_room
        if room is None:
            return
        if new_status == Reservation.Status.CHECKED_IN:
            registry.set_status(room, room.Status.OCCUPIED)
        elif new_status == Reservation.Status.CHECKED_OUT:
            registry.set_status(room, room.Status.DIRTY)

    def _refresh(self, target, source):
        if target is source:
            return
        target.refresh_from_db()


manager = ReservationManager()
