from unittest import mock

from django.test import TestCase, override_settings
from django.core import mail
from django.contrib.auth.models import User

from booking.services.notification_service import NotificationService
from notifications.models import Notification


@override_settings(OPERATOR_EMAIL="ops@example.com")
class NotificationTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(
            username="testuser", email="test@example.com", password="pass123"
        )
        self.service = NotificationService()

    def test_email_sent_and_recorded(self):
        sent = self.service.notify(
            "booking_cancelled",
            {"booking_id": 12, "room_name": "Room A", "reason": "sick", "token_deducted": True},
            user_id=self.user.id,
        )

        self.assertTrue(sent)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["ops@example.com"])
        self.assertIn("#12", mail.outbox[0].subject)
        self.assertIn("room_name: Room A", mail.outbox[0].body)

        note = Notification.objects.get()
        self.assertEqual(note.user, self.user)
        self.assertEqual(note.event_type, "booking_cancelled")
        self.assertEqual(note.payload["reason"], "sick")
        self.assertTrue(note.sent)

    def test_missing_subject_fields_do_not_break(self):
        self.service.notify("booking_created", {})
        self.assertIn("#?", mail.outbox[0].subject)

    def test_mail_failure_is_logged_not_raised(self):
        with mock.patch(
            "booking.services.notification_service.send_mail", side_effect=OSError("smtp down")
        ):
            with self.assertLogs("booking.services.notification_service", level="ERROR"):
                sent = self.service.notify("booking_confirmed", {"booking_id": 3}, user_id=self.user.id)

        self.assertFalse(sent)
        self.assertFalse(Notification.objects.get().sent)

    @override_settings(OPERATOR_EMAIL="")
    def test_without_operator_email_only_records(self):
        sent = self.service.notify("package_assigned", {"package_type": "BR15"})
        self.assertFalse(sent)
        self.assertEqual(len(mail.outbox), 0)
        self.assertEqual(Notification.objects.get().recipient, "")
