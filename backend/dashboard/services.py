"""
Calendar read model.

Builds the ``{dates, rows, cells}`` grid a calendar view consumes from the
ledger, the pricing resolver and the reservations. Read only: nothing here
writes to the database.
"""

import logging

from core.exceptions import NotFound
from availability.services import ledger
from rates.services import resolver
from reservations.models import Reservation
from rooms.models import IndividualRoom, RoomType
from structures.models import Structure
from .spans import calculator

logger = logging.getLogger(__name__)

SCOPES = ("structure", "room_type", "room")


def _reservations_in_window(date_range, **filters):
    return list(
        Reservation.objects.filter(
            status__in=Reservation.ACTIVE_STATUSES,
            check_in_date__lt=date_range.end,
            check_out_date__gt=date_range.start,
            **filters,
        )
        .select_related("guest")
        .order_by("check_in_date", "id")
    )


def _reservation_summary(reservation):
    return {
        "id": reservation.pk,
        "confirmation_number": reservation.confirmation_number,
        "status": reservation.status,
        "guest_name": reservation.guest.full_name if reservation.guest else None,
        "check_in_date": reservation.check_in_date.isoformat(),
        "check_out_date": reservation.check_out_date.isoformat(),
        "individual_room_id": reservation.individual_room_id,
    }


def _room_type_row(room_type, date_range, dates):
    availability = ledger.get_range(room_type, date_range)
    prices = resolver.resolve_range(room_type, date_range)
    cells = [
        {
            "type": "availability",
            "index": i,
            "date": day.isoformat(),
            "available_quantity": availability[i]["quantity"],
            "reserved": availability[i]["reserved"],
            "status": availability[i]["status"],
            "reason": availability[i]["reason"],
            "price": str(prices[i]["price"]),
            "rule_id": prices[i]["rule"].pk if prices[i]["rule"] else None,
            "colspan": 1,
        }
        for i, day in enumerate(dates)
    ]
    return {
        "kind": "room_type",
        "id": room_type.pk,
        "label": room_type.name,
        "quantity": room_type.quantity,
        "cells": cells,
    }


def _room_row(room, dates, reservations):
    spans = calculator.compute(dates, reservations)
    return {
        "kind": "room",
        "id": room.pk,
        "label": room.room_number,
        "room_type_id": room.room_type_id,
        "floor_number": room.floor_number,
        "status": room.status,
        "spans": [s.as_dict() for s in spans],
        "cells": calculator.to_cells(dates, spans),
    }


def _unassigned_rows(room_type, dates, reservations):
    rows = []
    for lane_number, lane in enumerate(calculator.pack_lanes(dates, reservations), start=1):
        rows.append({
            "kind": "unassigned",
            "id": None,
            "label": f"Unassigned {lane_number}",
            "room_type_id": room_type.pk,
            "spans": [s.as_dict() for s in lane],
            "cells": calculator.to_cells(dates, lane),
        })
    return rows


def _rows_for_room_type(room_type, date_range, dates, reservations):
    rows = [_room_type_row(room_type, date_range, dates)]
    by_room = {}
    unassigned = []
    for reservation in reservations:
        if reservation.room_type_id != room_type.pk:
            continue
        if reservation.individual_room_id is None:
            unassigned.append(reservation)
        else:
            by_room.setdefault(reservation.individual_room_id, []).append(reservation)
    for room in room_type.rooms.order_by("floor_number", "room_number"):
        rows.append(_room_row(room, dates, by_room.get(room.pk, [])))
    rows.extend(_unassigned_rows(room_type, dates, unassigned))
    return rows


def get_calendar(scope, scope_id, date_range):
    """
    Calendar grid for a structure, a room type or a single room.

    ``date_range`` is the visible window; reservations that only partly
    overlap it are clipped to it.
    """
    if scope not in SCOPES:
        raise ValueError(f"scope must be one of {', '.join(SCOPES)}")
    dates = date_range.dates()

    if scope == "room":
        room = IndividualRoom.objects.filter(pk=scope_id).first()
        if room is None:
            raise NotFound(f"Room {scope_id} not found.")
        reservations = _reservations_in_window(date_range, individual_room=room)
        rows = [_room_row(room, dates, reservations)]
    elif scope == "room_type":
        room_type = RoomType.objects.select_related("structure").filter(pk=scope_id).first()
        if room_type is None:
            raise NotFound(f"Room type {scope_id} not found.")
        reservations = _reservations_in_window(date_range, room_type=room_type)
        rows = _rows_for_room_type(room_type, date_range, dates, reservations)
    else:
        structure = Structure.objects.filter(pk=scope_id).first()
        if structure is None:
            raise NotFound(f"Structure {scope_id} not found.")
        reservations = _reservations_in_window(date_range, structure=structure)
        rows = []
        for room_type in structure.room_types.filter(is_active=True).select_related("structure"):
            rows.extend(_rows_for_room_type(room_type, date_range, dates, reservations))

    logger.debug(f"Calendar {scope}={scope_id} {date_range}: {len(rows)} rows, {len(reservations)} reservations")
    return {
        "scope": scope,
        "scope_id": scope_id,
        "dates": [d.isoformat() for d in dates],
        "rows": rows,
        "cells": [row["cells"] for row in rows],
        "reservations": [_reservation_summary(r) for r in reservations],
    }
