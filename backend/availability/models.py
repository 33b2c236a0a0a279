from django.db import models
from rooms.models import RoomType


class AvailabilityRecord(models.Model):
    """
    Per (room type, date) inventory counter.

    A missing row means the full quantity of the room type is available.
    ``available_quantity`` is always
    ``quantity - reserved_quantity - withheld_quantity`` unless the date is
    blocked, in which case it is 0.
    """

    class Status(models.TextChoices):
        AVAILABLE = "available", "Available"
        BLOCKED = "blocked", "Blocked"
        MAINTENANCE = "maintenance", "Maintenance"

    room_type = models.ForeignKey(
        RoomType,
        on_delete=models.CASCADE,
        related_name="availability_records",
    )
    date = models.DateField()

    available_quantity = models.PositiveIntegerField()
    reserved_quantity = models.PositiveIntegerField(default=0)
    # Units kept off sale on an open date, e.g. a partial initialize
    withheld_quantity = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=12,
        choices=Status.choices,
        default=Status.AVAILABLE,
    )
    block_reason = models.CharField(max_length=255, blank=True, null=True)

    # Bumped on every write; conditional updates compare against it
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "availability_records"
        ordering = ["room_type_id", "date"]
        constraints = [
            models.UniqueConstraint(
                fields=["room_type", "date"], name="unique_availability_per_room_type_date"
            ),
        ]
        indexes = [
            models.Index(fields=["room_type", "date"]),
        ]

    def __str__(self):
        return f"{self.room_type} @ {self.date}: {self.available_quantity} ({self.status})"

    @property
    def is_blocked(self):
        return self.status != self.Status.AVAILABLE

