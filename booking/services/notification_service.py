"""
NotificationService
-------------------
Emits booking lifecycle events to the venue operator.

- Every event is recorded as a notifications.Notification row.
- An email goes to settings.OPERATOR_EMAIL through Django's email backend
  (console backend in development, SMTP in production).
- Fire-and-forget: a failed email or record is logged and never raised, so
  it can never roll back a booking or a cancellation.

Events:
- booking_created, receipt_uploaded, booking_confirmed,
  booking_cancelled, booking_rescheduled, package_assigned
"""

import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)

SUBJECTS = {
    "booking_created": "New booking #{booking_id} / 新預約",
    "receipt_uploaded": "Receipt uploaded for booking #{booking_id} / 已上傳收據",
    "booking_confirmed": "Booking #{booking_id} confirmed / 預約已確認",
    "booking_cancelled": "Booking #{booking_id} cancelled / 預約已取消",
    "booking_rescheduled": "Booking #{booking_id} rescheduled / 預約已改期",
    "package_assigned": "Package {package_type} assigned / 已分配套票",
}


def _body(event_type: str, payload: dict) -> str:
    lines = [f"Event: {event_type}"]
    for key in sorted(payload):
        lines.append(f"- {key}: {payload[key]}")
    return "\n".join(lines)


class NotificationService:
    """
    Sends operator notifications.

    Payloads are flat dicts of JSON-friendly values (strings, numbers, bools).
    """

    def notify(self, event_type: str, payload: dict, user_id=None) -> bool:
        """
        Record and email one event. Returns True when the email was handed to
        the backend, False on any failure.
        """
        subject = SUBJECTS.get(event_type, event_type).format_map(_SafeDict(payload))
        body = _body(event_type, payload)
        recipient = getattr(settings, "OPERATOR_EMAIL", "") or ""

        sent = False
        if recipient:
            try:
                send_mail(
                    subject=subject,
                    message=body,
                    from_email=settings.DEFAULT_FROM_EMAIL,
                    recipient_list=[recipient],
                    fail_silently=False,  # raise so we can log; we still catch it below
                )
                sent = True
            except Exception:
                logger.exception("Could not email %s notification to %s", event_type, recipient)
        else:
            logger.info("OPERATOR_EMAIL not configured; %s notification only recorded", event_type)

        try:
            from notifications.models import Notification

            Notification.objects.create(
                user_id=user_id,
                event_type=event_type,
                payload=payload,
                message=body,
                recipient=recipient,
                sent=sent,
            )
        except Exception:
            logger.exception("Could not record %s notification", event_type)
        return sent


class _SafeDict(dict):
    def __missing__(self, key):
        return "?"
