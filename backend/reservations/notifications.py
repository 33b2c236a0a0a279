"""
Best-effort guest notifications.

Mails are sent after the surrounding transaction commits and every
failure is logged and dropped; a reservation is never rolled back
because a notification could not be delivered.
"""

import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import transaction
from django.template.loader import render_to_string
from django.utils.html import strip_tags

logger = logging.getLogger(__name__)

SUBJECTS = {
    "created": "Your reservation {number} has been received",
    "confirmed": "Your reservation {number} is confirmed",
    "checked_in": "Welcome! You are checked in ({number})",
    "checked_out": "Thank you for staying with us ({number})",
    "cancelled": "Your reservation {number} has been cancelled",
    "no_show": "Reservation {number} marked as no-show",
    "moved": "Your reservation {number} has been updated",
}


def build_context(reservation, event):
    guest = reservation.guest
    return {
        "reservation": reservation,
        "event": event,
        "headline": SUBJECTS.get(event, "Reservation {number} update").format(
            number=reservation.confirmation_number
        ),
        "guest_name": (guest.full_name if guest else "") or "guest",
        "room_number": reservation.individual_room.room_number if reservation.individual_room_id else None,
        "manage_url": f"{settings.FRONTEND_URL}/reservations/{reservation.confirmation_number}",
    }


def send_reservation_notification(reservation, event):
    """Send one mail for ``event``. Returns True when the mail went out."""
    guest = reservation.guest
    if guest is None or not guest.email:
        logger.info(f"No guest email on reservation {reservation.pk}, skipping {event} notification")
        return False
    try:
        context = build_context(reservation, event)

        html_content = render_to_string("emails/reservation_update.html", context)
        text_content = strip_tags(html_content)

        email = EmailMultiAlternatives(
            subject=context["headline"],
            body=text_content,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[guest.email],
        )
        email.attach_alternative(html_content, "text/html")
        email.send()

        logger.info(f"Reservation {event} email sent to {guest.email}")
        return True

    except Exception as e:
        logger.error(f"Failed to send reservation {event} email to {guest.email}: {e}")
        return False


def notify_on_commit(reservation, event):
    transaction.on_commit(lambda: send_reservation_notification(reservation, event))
