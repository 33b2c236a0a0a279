from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from structures.models import Structure


class RoomType(models.Model):
    """A bookable category with a fixed daily inventory count."""

    # Foreign key to Structure
    structure = models.ForeignKey(
        Structure,
        on_delete=models.CASCADE,
        related_name="room_types",
        db_index=True,
    )

    # Basic Information
    name = models.CharField(max_length=255, help_text="Room Type Name")
    internal_room_type_id = models.CharField(
        max_length=100, blank=True, null=True, help_text="Optional internal room type ID"
    )

    # Inventory & Pricing
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text="Units sellable per night",
    )
    base_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
        help_text="Default nightly price when no pricing rule applies",
    )
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        blank=True,
        null=True,
        help_text="Tax applied to the nightly subtotal, e.g. 0.1000 for 10%",
    )
    max_occupancy = models.PositiveIntegerField(default=2)
    amenities = models.TextField(
        blank=True, null=True, help_text="Comma-separated amenities list"
    )
    is_active = models.BooleanField(default=True)

    # Channel manager
    is_synced = models.BooleanField(
        default=False,
        help_text="Synced from an external PMS; local price/availability writes are rejected",
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "room_types"
        ordering = ["structure_id", "name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1), name="room_type_quantity_gte_1"
            ),
        ]

    def __str__(self):
        return self.name

    @property
    def is_read_only(self):
        return self.is_synced or self.structure.is_externally_managed


class IndividualRoom(models.Model):
    """A physical room instance belonging to a room type."""

    class Status(models.TextChoices):
        CLEAN = "clean", "Clean"
        DIRTY = "dirty", "Dirty"
        OCCUPIED = "occupied", "Occupied"
        MAINTENANCE = "maintenance", "Maintenance"
        OUT_OF_ORDER = "out_of_order", "Out of order"
        BLOCKED = "blocked", "Blocked"

    # Statuses that take a room out of assignment entirely
    UNASSIGNABLE_STATUSES = (Status.OUT_OF_ORDER, Status.BLOCKED)

    # Foreign Keys
    structure = models.ForeignKey(
        Structure, on_delete=models.CASCADE, related_name="rooms", db_index=True
    )
    room_type = models.ForeignKey(
        RoomType, on_delete=models.CASCADE, related_name="rooms", db_index=True
    )

    # Basic Information
    room_number = models.CharField(max_length=32, help_text="Unique within the structure")
    floor_number = models.IntegerField(blank=True, null=True, help_text="Floor Number")
    wing = models.CharField(max_length=50, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)

    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.CLEAN,
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "individual_rooms"
        ordering = ["floor_number", "room_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["structure", "room_number"], name="unique_room_number_per_structure"
            ),
        ]

    def __str__(self):
        return f"Room {self.room_number}"

    def save(self, *args, **kwargs):
        # The owning structure always follows the room type
        if self.room_type_id and not self.structure_id:
            self.structure_id = self.room_type.structure_id
        super().save(*args, **kwargs)
