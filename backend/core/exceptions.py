"""
Error taxonomy shared by the inventory apps.

Validation and inventory errors are raised by the service layer and reach
the API untouched; the DRF exception handler below renders them with the
same ``{"success": False, "message": ...}`` envelope the views use.
"""

import contextlib
import logging

from django.db import OperationalError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InventoryError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Inventory operation failed."
    default_code = "inventory_error"
    retryable = False

    def __init__(self, detail=None, code=None, **extra):
        super().__init__(detail=detail, code=code)
        self.extra = extra

    def as_dict(self):
        payload = {
            "success": False,
            "code": self.default_code,
            "message": str(self.detail),
            "retryable": self.retryable,
        }
        payload.update(self.extra)
        return payload


class InsufficientInventory(InventoryError):
    """Booking would exceed availability on at least one date of the range."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Not enough inventory for the requested dates."
    default_code = "insufficient_inventory"


class InvalidDateRange(InventoryError):
    default_detail = "End date must be after start date."
    default_code = "invalid_date_range"


class RoomUnavailable(InventoryError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The room is not available for the selected dates."
    default_code = "room_unavailable"


class InvalidTransition(InventoryError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Illegal reservation status change."
    default_code = "invalid_transition"


class Conflict(InventoryError):
    """Concurrent modification detected. Safe to retry with backoff."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Concurrent modification detected, retry the request."
    default_code = "conflict"
    retryable = True


class NotFound(InventoryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class ReadOnlyEntity(InventoryError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "This entity is managed by an external PMS and cannot be changed here."
    default_code = "read_only_entity"


class StayConstraintViolation(InventoryError):
    default_detail = "The stay length does not satisfy the pricing constraints."
    default_code = "stay_constraint_violation"


class RoomNumberCollision(InventoryError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Some room numbers already exist in this structure."
    default_code = "room_number_collision"


class LedgerInvariantViolation(RuntimeError):
    """
    The availability ledger would go negative.

    This is never a user error: it means the stored counters disagree with
    the reservations and needs operator attention.
    """


# serialization_failure, deadlock_detected, lock_not_available
LOCK_SQLSTATES = {"40001", "40P01", "55P03"}


def is_lock_error(exc):
    """True for lock and serialization failures a retry can resolve."""
    sqlstate = getattr(exc.__cause__, "sqlstate", None) or getattr(exc.__cause__, "pgcode", None)
    if sqlstate in LOCK_SQLSTATES:
        return True
    # SQLite: "database is locked" / "database table is locked"
    return "locked" in str(exc).lower()


@contextlib.contextmanager
def conflict_on_lock(action):
    """
    Re-raise database lock failures inside the block as ``Conflict``.

    Enter it outside ``transaction.atomic()`` so the transaction has rolled
    back by the time the caller sees the error.
    """
    try:
        yield
    except OperationalError as e:
        if not is_lock_error(e):
            raise
        logger.warning(f"Lock conflict while trying to {action}: {e}")
        raise Conflict(f"Could not {action} because of a concurrent write, retry the request.") from e


def inventory_exception_handler(exc, context):
    if isinstance(exc, LedgerInvariantViolation):
        logger.critical(f"Ledger invariant violated: {exc}")

    response = exception_handler(exc, context)
    if response is not None and isinstance(exc, InventoryError):
        response.data = exc.as_dict()
    return response
