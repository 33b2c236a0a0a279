"""
Availability ledger.

Owns the per (room type, date) counters. Every mutating operation runs as
one transaction over all touched dates: the room type row is locked first
(one writer per room type), then every touched ledger row is locked in
date order and checked before anything is written. Writes are conditional
on the row version so a concurrent writer that slipped past the locks
(e.g. on a backend without row locking) surfaces as ``Conflict``. Database
lock errors raised while the transaction runs are reported as ``Conflict``
too.
"""

import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import (
    Conflict,
    conflict_on_lock,
    InsufficientInventory,
    LedgerInvariantViolation,
    ReadOnlyEntity,
)
from rooms.models import RoomType
from .models import AvailabilityRecord

logger = logging.getLogger(__name__)


class AvailabilityLedger:

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    def get_availability(self, room_type, day):
        record = AvailabilityRecord.objects.filter(room_type=room_type, date=day).first()
        if record is None:
            return {
                "date": day,
                "quantity": room_type.quantity,
                "reserved": 0,
                "withheld": 0,
                "status": AvailabilityRecord.Status.AVAILABLE,
                "reason": None,
            }
        return self._snapshot(record)

    def get_range(self, room_type, date_range):
        """Per-date snapshot for every night of ``date_range``."""
        records = {
            r.date: r
            for r in AvailabilityRecord.objects.filter(
                room_type=room_type,
                date__gte=date_range.start,
                date__lt=date_range.end,
            )
        }
        snapshot = []
        for day in date_range:
            record = records.get(day)
            if record is None:
                snapshot.append({
                    "date": day,
                    "quantity": room_type.quantity,
                    "reserved": 0,
                    "withheld": 0,
                    "status": AvailabilityRecord.Status.AVAILABLE,
                    "reason": None,
                })
            else:
                snapshot.append(self._snapshot(record))
        return snapshot

    def is_available(self, room_type, date_range, count=1):
        return all(
            day["status"] == AvailabilityRecord.Status.AVAILABLE and day["quantity"] >= count
            for day in self.get_range(room_type, date_range)
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------
    def initialize(self, room_type, date_range, quantity=None):
        """
        Create default rows for the window. Existing rows are left alone.

        ``quantity`` below the room type size puts only that many units on
        sale; the rest stay withheld until ``unblock(release_withheld=True)``.
        """
        with conflict_on_lock("initialize availability"), transaction.atomic():
            locked = self._lock_room_type(room_type)
            self._ensure_rows(locked, date_range, quantity)
        logger.info(f"Ledger initialized for room type {room_type.pk} over {date_range}")

    def reserve(self, room_type, date_range, count=1):
        """
        Consume ``count`` units on every night of the range, or nothing at all.

        Raises InsufficientInventory naming the failing dates.
        """
        self._check_count(count)
        with conflict_on_lock("reserve inventory"), transaction.atomic():
            locked = self._lock_room_type(room_type)
            rows = self._lock_rows(locked, date_range)

            short = [
                row.date for row in rows
                if row.is_blocked or row.available_quantity < count
            ]
            if short:
                logger.info(
                    f"Reserve of {count} unit(s) for room type {room_type.pk} refused on {short}"
                )
                raise InsufficientInventory(
                    f"Not enough inventory on {', '.join(d.isoformat() for d in short)}.",
                    dates=[d.isoformat() for d in short],
                )

            for row in rows:
                self._write(
                    row,
                    guard={"available_quantity__gte": count},
                    available_quantity=F("available_quantity") - count,
                    reserved_quantity=F("reserved_quantity") + count,
                )
        logger.info(f"Reserved {count} unit(s) of room type {room_type.pk} over {date_range}")

    def release(self, room_type, date_range, count=1):
        """
        Return ``count`` units on every night of the range.

        The ledger does not remember who reserved what; callers guard
        against double release through their own state.
        """
        self._check_count(count)
        with conflict_on_lock("release inventory"), transaction.atomic():
            locked = self._lock_room_type(room_type)
            rows = self._lock_rows(locked, date_range)

            for row in rows:
                if row.reserved_quantity < count:
                    raise LedgerInvariantViolation(
                        f"Releasing {count} unit(s) of room type {room_type.pk} on {row.date} "
                        f"but only {row.reserved_quantity} reserved"
                    )

            for row in rows:
                reserved = row.reserved_quantity - count
                available = 0 if row.is_blocked else self._free_units(
                    locked, row.date, reserved, row.withheld_quantity
                )
                self._write(row, available_quantity=available, reserved_quantity=reserved)
        logger.info(f"Released {count} unit(s) of room type {room_type.pk} over {date_range}")

    def block(self, room_type, date_range, reason=None, status=AvailabilityRecord.Status.BLOCKED):
        """Take the whole range off sale, regardless of existing reservations."""
        if status == AvailabilityRecord.Status.AVAILABLE:
            raise ValueError("block status must be blocked or maintenance")
        with conflict_on_lock("block dates"), transaction.atomic():
            locked = self._lock_room_type(room_type)
            self._ensure_writable(locked)
            rows = self._lock_rows(locked, date_range)
            for row in rows:
                self._write(row, available_quantity=0, status=status, block_reason=reason)
        logger.info(f"Blocked room type {room_type.pk} over {date_range} ({status}): {reason}")

    def unblock(self, room_type, date_range, release_withheld=False):
        """
        Put the range back on sale.

        Availability is restored to ``quantity - reserved - withheld`` for
        each date, so reservations still active on a blocked date keep their
        units. ``release_withheld`` also puts withheld units on sale.
        """
        with conflict_on_lock("unblock dates"), transaction.atomic():
            locked = self._lock_room_type(room_type)
            self._ensure_writable(locked)
            rows = self._lock_rows(locked, date_range)
            for row in rows:
                withheld = 0 if release_withheld else row.withheld_quantity
                available = self._free_units(locked, row.date, row.reserved_quantity, withheld)
                self._write(
                    row,
                    available_quantity=available,
                    withheld_quantity=withheld,
                    status=AvailabilityRecord.Status.AVAILABLE,
                    block_reason=None,
                )
        logger.info(f"Unblocked room type {room_type.pk} over {date_range}")

    def resize(self, room_type, new_quantity):
        """
        Apply a new room type quantity to every existing ledger row.

        Withheld units shrink first when the new size cannot hold them
        next to the reserved ones.
        """
        if new_quantity < 1:
            raise ValueError("quantity must be at least 1")
        with conflict_on_lock("resize room type"), transaction.atomic():
            locked = self._lock_room_type(room_type)
            self._ensure_writable(locked)
            rows = list(
                AvailabilityRecord.objects.select_for_update()
                .filter(room_type=locked)
                .order_by("date")
            )
            over = [row.date for row in rows if row.reserved_quantity > new_quantity]
            if over:
                raise InsufficientInventory(
                    f"Quantity {new_quantity} is below the units already reserved "
                    f"on {', '.join(d.isoformat() for d in over)}.",
                    dates=[d.isoformat() for d in over],
                )
            locked.quantity = new_quantity
            locked.save(update_fields=["quantity", "updated_at"])
            for row in rows:
                withheld = min(row.withheld_quantity, new_quantity - row.reserved_quantity)
                values = {"withheld_quantity": withheld}
                if not row.is_blocked:
                    values["available_quantity"] = new_quantity - row.reserved_quantity - withheld
                self._write(row, **values)
        room_type.quantity = new_quantity
        logger.info(f"Room type {room_type.pk} resized to {new_quantity}")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _snapshot(self, record):
        return {
            "date": record.date,
            "quantity": record.available_quantity,
            "reserved": record.reserved_quantity,
            "withheld": record.withheld_quantity,
            "status": record.status,
            "reason": record.block_reason,
        }

    def _check_count(self, count):
        if count < 1:
            raise ValueError("count must be at least 1")

    def _ensure_writable(self, room_type):
        if room_type.is_read_only:
            raise ReadOnlyEntity(
                f"Availability of room type {room_type.pk} is managed by an external PMS."
            )

    def _lock_room_type(self, room_type):
        return RoomType.objects.select_for_update().select_related("structure").get(pk=room_type.pk)

    def _free_units(self, room_type, day, reserved, withheld=0):
        free = room_type.quantity - reserved - withheld
        if free < 0:
            raise LedgerInvariantViolation(
                f"Room type {room_type.pk} on {day}: {reserved} reserved and {withheld} withheld "
                f"exceed quantity {room_type.quantity}"
            )
        return free

    def _ensure_rows(self, room_type, date_range, quantity=None):
        if quantity is None:
            quantity = room_type.quantity
        if not 0 <= quantity <= room_type.quantity:
            raise ValueError(
                f"initial quantity must be between 0 and {room_type.quantity}, got {quantity}"
            )
        existing = set(
            AvailabilityRecord.objects.filter(
                room_type=room_type,
                date__gte=date_range.start,
                date__lt=date_range.end,
            ).values_list("date", flat=True)
        )
        missing = [
            AvailabilityRecord(
                room_type=room_type,
                date=day,
                available_quantity=quantity,
                withheld_quantity=room_type.quantity - quantity,
            )
            for day in date_range
            if day not in existing
        ]
        if missing:
            AvailabilityRecord.objects.bulk_create(missing, ignore_conflicts=True)

    def _lock_rows(self, room_type, date_range):
        self._ensure_rows(room_type, date_range)
        rows = list(
            AvailabilityRecord.objects.select_for_update()
            .filter(room_type=room_type, date__gte=date_range.start, date__lt=date_range.end)
            .order_by("date")
        )
        if len(rows) != date_range.nights:
            raise Conflict(f"Ledger rows for room type {room_type.pk} changed while locking.")
        return rows

    def _write(self, row, guard=None, **values):
        lookup = {"pk": row.pk, "version": row.version}
        if guard:
            lookup.update(guard)
        values["version"] = F("version") + 1
        values["updated_at"] = timezone.now()
        updated = AvailabilityRecord.objects.filter(**lookup).update(**values)
        if updated != 1:
            raise Conflict(
                f"Ledger row for room type {row.room_type_id} on {row.date} was modified concurrently."
            )


ledger = AvailabilityLedger()
