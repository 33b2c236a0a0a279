from django.db import models
from guests.models import GuestProfile
from rooms.models import IndividualRoom, RoomType
from structures.models import Structure


class Reservation(models.Model):

    class Status(models.TextChoices):
        TENTATIVE = "tentative", "Tentative"
        CONFIRMED = "confirmed", "Confirmed"
        CHECKED_IN = "checked_in", "Checked in"
        CHECKED_OUT = "checked_out", "Checked out"
        CANCELLED = "cancelled", "Cancelled"
        NO_SHOW = "no_show", "No show"

    # Statuses that consume inventory
    ACTIVE_STATUSES = (Status.TENTATIVE, Status.CONFIRMED, Status.CHECKED_IN)
    # Entering one of these gives the units back to the ledger
    RELEASING_STATUSES = (Status.CANCELLED, Status.NO_SHOW)

    TRANSITIONS = {
        Status.TENTATIVE: (Status.CONFIRMED, Status.CANCELLED, Status.NO_SHOW),
        Status.CONFIRMED: (Status.CHECKED_IN, Status.CANCELLED, Status.NO_SHOW),
        Status.CHECKED_IN: (Status.CHECKED_OUT,),
        Status.CHECKED_OUT: (),
        Status.CANCELLED: (),
        Status.NO_SHOW: (),
    }

    PAYMENT_STATUS_CHOICES = [
        ("pending", "Pending"),
        ("partially_paid", "Partially Paid"),
        ("fully_paid", "Fully Paid"),
        ("refunded", "Refunded"),
    ]

    # Linked entities
    structure = models.ForeignKey(
        Structure, on_delete=models.PROTECT, related_name="reservations"
    )
    room_type = models.ForeignKey(
        RoomType, on_delete=models.PROTECT, related_name="reservations"
    )
    individual_room = models.ForeignKey(
        IndividualRoom, on_delete=models.SET_NULL, null=True, blank=True, related_name="reservations"
    )
    guest = models.ForeignKey(
        GuestProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name="reservations"
    )
    confirmation_number = models.CharField(max_length=20, unique=True, editable=False)

    # Stay details (check-out is exclusive)
    check_in_date = models.DateField()
    check_out_date = models.DateField()
    nights = models.PositiveIntegerField()
    adults = models.PositiveIntegerField(default=1)
    children = models.PositiveIntegerField(default=0)
    infants = models.PositiveIntegerField(default=0)
    special_requests = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=12,
        choices=Status.choices,
        default=Status.TENTATIVE,
        db_index=True,
    )
    needs_assignment = models.BooleanField(
        default=False,
        help_text="No physical room could be bound yet",
    )

    # Pricing
    rate_breakdown = models.JSONField(default=list, help_text="[{date, price, rule_id}] per night")
    base_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    taxes = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    fees = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    currency = models.CharField(max_length=10, default="EUR")

    # Payment info (stored as supplied, never computed)
    payment_status = models.CharField(max_length=50, choices=PAYMENT_STATUS_CHOICES, default="pending")

    # Timestamps
    status_changed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "reservations"
        ordering = ["check_in_date", "id"]
        indexes = [
            models.Index(fields=["room_type", "check_in_date", "check_out_date"]),
            models.Index(fields=["individual_room", "check_in_date", "check_out_date"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out_date__gt=models.F("check_in_date")),
                name="reservation_check_out_after_check_in",
            ),
        ]

    def __str__(self):
        return f"Reservation {self.confirmation_number} ({self.room_type.name})"

    def save(self, *args, **kwargs):
        """Automatically calculate nights before saving."""
        if self.check_in_date and self.check_out_date:
            self.nights = (self.check_out_date - self.check_in_date).days
        super().save(*args, **kwargs)

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    @property
    def occupancy(self):
        return self.adults + self.children

    def can_transition_to(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, ())


class ReservationStatusLog(models.Model):
    """Audit trail of every status change."""

    reservation = models.ForeignKey(
        Reservation, on_delete=models.CASCADE, related_name="status_logs"
    )
    from_status = models.CharField(max_length=12, choices=Reservation.Status.choices, blank=True)
    to_status = models.CharField(max_length=12, choices=Reservation.Status.choices)
    note = models.CharField(max_length=255, blank=True, default="")
    changed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "reservation_status_logs"
        ordering = ["changed_at", "id"]

    def __str__(self):
        return f"{self.reservation_id}: {self.from_status or '-'} -> {self.to_status}"
