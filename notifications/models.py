# notifications/models.py
#
# Purpose:
# - Record every booking lifecycle event sent to the venue operator.
#
# Design:
# - FK to the auth user the event concerns (null for system events).
# - payload keeps the event data as sent; message is the rendered email body.
# - 'sent' indicates delivery attempt result.
#
from django.conf import settings
from django.db import models


class Notification(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
    )
    event_type = models.CharField(max_length=50)
    payload = models.JSONField(default=dict, blank=True)
    message = models.TextField()
    recipient = models.CharField(max_length=254, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    sent = models.BooleanField(default=False)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.event_type} to {self.recipient or 'operator'} at {self.created_at:%Y-%m-%d %H:%M}"
