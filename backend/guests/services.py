import logging

from django.db import IntegrityError, transaction

from .models import GuestProfile

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "phone",
    "nationality",
    "language_preference",
    "special_requests",
)


def normalize_email(email):
    return (email or "").strip().lower()


def find_or_create_guest(email, **profile_fields):
    """
    Return the guest id for ``email``, creating the profile if needed.

    Idempotent on email. Non-empty profile fields refresh the stored ones;
    empty values never overwrite what is already known.
    """
    email = normalize_email(email)
    if not email:
        raise ValueError("email is required")
    fields = {k: v for k, v in profile_fields.items() if k in PROFILE_FIELDS and v not in (None, "")}

    try:
        with transaction.atomic():
            guest, created = GuestProfile.objects.get_or_create(email=email, defaults=fields)
    except IntegrityError:
        # Lost a race with a concurrent create for the same email
        guest, created = GuestProfile.objects.get(email=email), False

    if not created:
        changed = [k for k, v in fields.items() if getattr(guest, k) != v]
        for key in changed:
            setattr(guest, key, fields[key])
        if changed:
            guest.save(update_fields=changed + ["updated_at"])
    else:
        logger.info(f"Guest profile {guest.pk} created for {email}")
    return guest.pk
