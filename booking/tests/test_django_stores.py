# booking/tests/test_django_stores.py

from datetime import time, timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth.models import User
from django.core import mail
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.utils import timezone

from booking.exceptions import (
    BookingNotFound,
    ConflictError,
    InsufficientBalanceError,
    InvalidTransition,
    TransientError,
)
from booking.models import BalanceTransaction, Booking, Room, UserBalance
from booking.services.booking_manager import BookingManager
from booking.services.django_stores import DjangoBookingStore, DjangoUserBalanceStore
from booking.services.slot_utils import combine, local_now
from notifications.models import Notification


def next_week_at(hour):
    day = local_now().date() + timedelta(days=7)
    return combine(day, time(hour, 0))


class DjangoBookingStoreTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="mia", email="mia@example.com", password="pass123")
        self.room = Room.objects.create(name="Room A", booking_options=["token", "cash"])
        self.store = DjangoBookingStore()

    def fields(self, start_hour, end_hour, **extra):
        data = {
            "room_id": self.room.id,
            "user_id": self.user.id,
            "start_time": next_week_at(start_hour),
            "end_time": next_week_at(end_hour),
            "status": "pending",
            "payment_method": "cash",
            "total_cost": Decimal("200"),
        }
        data.update(extra)
        return data

    def test_create_and_overlap_check(self):
        record = self.store.create_booking(self.fields(10, 12))
        self.assertEqual(Booking.objects.get(pk=record.id).status, "pending")
        with self.assertRaises(ConflictError):
            self.store.create_booking(self.fields(11, 13))
        # Touching intervals are fine
        self.store.create_booking(self.fields(12, 13))
        self.assertEqual(Booking.objects.count(), 2)

    def test_inactive_bookings_do_not_block(self):
        self.store.create_booking(self.fields(10, 12, status="cancelled"))
        self.assertTrue(self.store.check_availability(self.room.id, next_week_at(10), next_week_at(12)))
        self.store.create_booking(self.fields(10, 12))

    def test_create_for_missing_room(self):
        with self.assertRaises(BookingNotFound):
            self.store.create_booking(self.fields(10, 12, room_id=9999))

    def test_conditional_status_update(self):
        record = self.store.create_booking(self.fields(10, 12))
        cancelled = self.store.update_booking_status(
            record.id, "cancelled", ("pending", "confirmed"), cancelled_by_id=self.user.id
        )
        self.assertEqual(cancelled.status, "cancelled")
        self.assertEqual(cancelled.cancelled_by_id, self.user.id)
        with self.assertRaises(InvalidTransition) as ctx:
            self.store.update_booking_status(record.id, "cancelled", ("pending", "confirmed"))
        self.assertEqual(ctx.exception.details["current_status"], "cancelled")
        with self.assertRaises(BookingNotFound):
            self.store.update_booking_status(9999, "cancelled", ("pending",))

    def test_bookings_by_date_range_filters_room_and_status(self):
        other = Room.objects.create(name="Room B")
        self.store.create_booking(self.fields(10, 11))
        self.store.create_booking(self.fields(10, 11, room_id=other.id))
        self.store.create_booking(self.fields(14, 15, status="rescheduled"))
        found = self.store.get_bookings_by_date_range(next_week_at(0), next_week_at(23), room_id=self.room.id)
        self.assertEqual(len(found), 1)

    def test_database_errors_become_transient(self):
        with mock.patch(
            "booking.services.django_stores.BlockedDate.objects.filter", side_effect=DatabaseError("gone")
        ):
            with self.assertRaises(TransientError):
                self.store.is_date_blocked(next_week_at(10).date())


class DjangoUserBalanceStoreTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="leo", email="leo@example.com", password="pass123")
        self.store = DjangoUserBalanceStore()

    def test_get_user_creates_empty_balance(self):
        record = self.store.get_user(self.user.id)
        self.assertEqual(record.tokens, 0)
        self.assertEqual(record.email, "leo@example.com")
        self.assertTrue(UserBalance.objects.filter(user=self.user).exists())

    def test_unknown_user(self):
        with self.assertRaises(BookingNotFound):
            self.store.get_user(424242)

    def test_adjust_writes_journal(self):
        record = self.store.adjust_balance(self.user.id, "tokens", 5, transaction_type="top_up")
        self.assertEqual(record.tokens, 5)
        record = self.store.adjust_balance(self.user.id, "tokens", -3, transaction_type="booking_payment")
        self.assertEqual(record.tokens, 2)
        journal = list(BalanceTransaction.objects.order_by("id").values_list("change", "new_balance"))
        self.assertEqual(journal, [(5, 5), (-3, 2)])

    def test_balance_never_goes_negative(self):
        self.store.adjust_balance(self.user.id, "tokens", 1, transaction_type="top_up")
        with self.assertRaises(InsufficientBalanceError) as ctx:
            self.store.adjust_balance(self.user.id, "tokens", -2, transaction_type="booking_payment")
        self.assertEqual(ctx.exception.available, 1)
        self.assertEqual(UserBalance.objects.get(user=self.user).tokens, 1)
        self.assertEqual(BalanceTransaction.objects.count(), 1)

    def test_dp20_needs_valid_expiry_except_for_write_off(self):
        now = timezone.now()
        self.store.adjust_balance(self.user.id, "dp20_balance", 20, transaction_type="package_assigned")
        self.store.set_expiry(self.user.id, dp20_expiry=now - timedelta(days=1))
        with self.assertRaises(InsufficientBalanceError) as ctx:
            self.store.adjust_balance(self.user.id, "dp20_balance", -1, transaction_type="booking_payment", now=now)
        self.assertIn("expired", ctx.exception.message)

        self.assertEqual([r.user_id for r in self.store.expired_balances(now)], [self.user.id])
        record = self.store.adjust_balance(self.user.id, "dp20_balance", -20, transaction_type="expired", now=now)
        self.assertEqual(record.dp20_balance, 0)


@override_settings(OPERATOR_EMAIL="ops@example.com")
class BookingManagerDatabaseTests(TestCase):
    """BookingManager wired to the ORM stores and the real NotificationService."""

    def setUp(self):
        self.user = User.objects.create_user(username="ana", email="ana@example.com", password="pass123")
        self.room = Room.objects.create(name="Room A", token_hourly=1, booking_options=["token", "cash"])
        UserBalance.objects.create(user=self.user, tokens=5)
        self.manager = BookingManager()

    def test_book_and_cancel(self):
        record = self.manager.create_booking(
            self.user.id, self.room.id, next_week_at(10), next_week_at(12), "token"
        )
        self.assertEqual(UserBalance.objects.get(user=self.user).tokens, 3)
        self.assertEqual(Notification.objects.filter(event_type="booking_created").count(), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(f"#{record.id}", mail.outbox[0].subject)

        result = self.manager.cancel_booking(record.id, self.user.id, reason="sick")
        self.assertFalse(result.token_deducted)
        self.assertEqual(UserBalance.objects.get(user=self.user).tokens, 5)
        booking = Booking.objects.get(pk=record.id)
        self.assertEqual(booking.status, Booking.Status.CANCELLED)
        self.assertEqual(booking.cancelled_by, self.user)
        self.assertEqual(
            list(booking.transactions.order_by("id").values_list("transaction_type", flat=True)),
            ["booking_payment", "cancellation_refund"],
        )
        self.assertEqual(Notification.objects.filter(event_type="booking_cancelled").count(), 1)

    def test_failed_payment_rolls_back_booking(self):
        with self.assertRaises(InsufficientBalanceError):
            self.manager.create_booking(
                self.user.id, self.room.id, next_week_at(10), next_week_at(18), "token"
            )
        self.assertEqual(Booking.objects.count(), 0)
        self.assertEqual(UserBalance.objects.get(user=self.user).tokens, 5)
