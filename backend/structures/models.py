from django.db import models
from django.contrib.auth.models import User


class Structure(models.Model):
    """A lodging property owning room types and physical rooms."""

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]

    PMS_INTERNAL = 'internal'
    PMS_EXTERNAL = 'external'
    PMS_CHOICES = [
        (PMS_INTERNAL, 'Internal'),
        (PMS_EXTERNAL, 'External PMS'),
    ]

    # Structure owner (one-to-many)
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="owned_structures",
        help_text="Owner of the structure"
    )

    # Basic Information
    name = models.CharField(max_length=255, help_text="Structure Name")
    internal_reference_code = models.CharField(
        max_length=100, help_text="Internal Reference Code", blank=True, null=True
    )
    status = models.CharField(max_length=8, choices=STATUS_CHOICES, default='active')

    # Location Information
    street_address = models.CharField(max_length=255, blank=True, null=True)
    zip_code = models.CharField(max_length=20, blank=True, default="")
    country = models.CharField(max_length=100, blank=True, null=True)

    # Operational Settings
    default_currency = models.CharField(max_length=10, default="EUR")
    time_zone = models.CharField(max_length=50, blank=True, null=True)
    default_check_in_time = models.TimeField(blank=True, null=True)
    default_check_out_time = models.TimeField(blank=True, null=True)

    # External PMS: pricing and availability are owned by the channel manager
    pms_type = models.CharField(
        max_length=10,
        choices=PMS_CHOICES,
        default=PMS_INTERNAL,
        help_text="External structures reject local price/availability writes"
    )
    last_synced_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "structures"

    def __str__(self):
        return self.name

    @property
    def is_externally_managed(self):
        return self.pms_type == self.PMS_EXTERNAL
