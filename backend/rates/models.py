# rates/models.py
from django.db import models
from rooms.models import RoomType
from structures.models import Structure


class PricingTemplate(models.Model):
    """Reusable price adjustment relative to a room type's base price."""

    class AdjustmentType(models.TextChoices):
        PERCENTAGE = "percentage", "Percentage"
        FIXED = "fixed", "Fixed amount"
        MULTIPLIER = "multiplier", "Multiplier"

    structure = models.ForeignKey(
        Structure,
        on_delete=models.CASCADE,
        related_name="pricing_templates",
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    adjustment_type = models.CharField(
        max_length=12,
        choices=AdjustmentType.choices,
        default=AdjustmentType.PERCENTAGE,
    )
    adjustment_value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Percent, amount or factor depending on adjustment_type",
    )
    min_stay = models.PositiveIntegerField(default=1)
    max_stay = models.PositiveIntegerField(null=True, blank=True)
    color_code = models.CharField(max_length=7, default="#3B82F6")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "pricing_templates"
        ordering = ["name"]

    def __str__(self):
        return self.name


class PricingRule(models.Model):
    """Date-range override of the nightly rate and stay constraints."""

    class PricingType(models.TextChoices):
        CUSTOM = "custom", "Custom"
        TEMPLATE = "template", "Template"

    room_type = models.ForeignKey(
        RoomType,
        on_delete=models.CASCADE,
        related_name="pricing_rules",
        db_index=True,
    )
    # Inclusive on both ends
    start_date = models.DateField()
    end_date = models.DateField()

    price_per_night = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Nightly price while the rule applies",
    )
    min_stay = models.PositiveIntegerField(
        default=1,
        help_text="Minimum nights required",
    )
    max_stay = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Maximum nights allowed",
    )

    pricing_type = models.CharField(
        max_length=10,
        choices=PricingType.choices,
        default=PricingType.CUSTOM,
    )
    template = models.ForeignKey(
        PricingTemplate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="rules",
    )

    # Presentation only
    color_code = models.CharField(max_length=7, default="#3B82F6")
    label = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, null=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "pricing_rules"
        ordering = ["room_type_id", "start_date"]
        indexes = [
            models.Index(fields=["room_type", "start_date", "end_date"]),
        ]

    def __str__(self):
        return f"{self.room_type.name} {self.start_date}→{self.end_date}: {self.price_per_night}"

    @property
    def span_days(self):
        return (self.end_date - self.start_date).days

    def covers(self, day):
        return self.start_date <= day <= self.end_date
