# booking/tests/fakes.py
#
# In-memory BookingStore + UserBalanceStore for engine tests.
# One object plays both roles so atomic() can roll back bookings and
# balances together, like a database transaction.

import copy
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

from django.utils import timezone

from booking.exceptions import (
    BookingNotFound,
    ConflictError,
    InsufficientBalanceError,
    InvalidTransition,
    TransientError,
)
from booking.services.ports import ACTIVE_STATUSES, BookingRecord, RoomRecord, UserBalanceRecord
from booking.services.slot_utils import venue_tz


def local(year, month, day, hour=0, minute=0):
    """Venue-local aware datetime."""
    return timezone.make_aware(datetime(year, month, day, hour, minute), venue_tz())


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, event_type, payload, user_id=None):
        self.events.append((event_type, payload))
        return True

    def types(self):
        return [e for e, _ in self.events]


class MemoryStore:
    def __init__(self):
        self.rooms = {}
        self.bookings = {}
        self.balances = {}
        self.transactions = []
        self.blocked = set()
        self.fail_reads = False
        self._next_id = 1

    # -------- setup helpers --------
    def add_room(self, room_id, name=None, **kwargs):
        room = RoomRecord(id=room_id, name=name or f"Room {room_id}", **kwargs)
        self.rooms[room_id] = room
        return room

    def add_user(self, user_id, **balances):
        record = UserBalanceRecord(user_id=user_id, email=f"user{user_id}@example.com",
                                   name=f"User {user_id}", **balances)
        self.balances[user_id] = record
        return record

    def add_booking(self, room_id, user_id, start, end, status="confirmed", **fields):
        fields.setdefault("payment_method", "token")
        booking = BookingRecord(id=self._next_id, room_id=room_id, user_id=user_id,
                                start_time=start, end_time=end, status=status, **fields)
        self.bookings[booking.id] = booking
        self._next_id += 1
        return booking

    def _read(self):
        if self.fail_reads:
            raise TransientError("store offline")

    # -------- BookingStore --------
    @contextmanager
    def atomic(self):
        snapshot = copy.deepcopy((self.bookings, self.balances, self.transactions, self._next_id))
        try:
            yield
        except Exception:
            self.bookings, self.balances, self.transactions, self._next_id = snapshot
            raise

    def get_room(self, room_id):
        try:
            return self.rooms[room_id]
        except KeyError:
            raise BookingNotFound(f"Room {room_id} does not exist.")

    def get_booking(self, booking_id):
        try:
            return self.bookings[booking_id]
        except KeyError:
            raise BookingNotFound(f"Booking {booking_id} does not exist.")

    def get_bookings_by_date_range(self, start, end, room_id=None, exclude_booking_id=None,
                                   statuses=ACTIVE_STATUSES):
        self._read()
        found = [
            b for b in self.bookings.values()
            if b.start_time < end and b.end_time > start and b.status in statuses
            and (room_id is None or b.room_id == room_id)
            and b.id != exclude_booking_id
        ]
        return sorted(found, key=lambda b: b.start_time)

    def check_availability(self, room_id, start, end, exclude_booking_id=None):
        return not self.get_bookings_by_date_range(start, end, room_id, exclude_booking_id)

    def create_booking(self, fields, exclude_booking_id=None):
        fields = dict(fields)
        clash = [
            b for b in self.bookings.values()
            if b.room_id == fields["room_id"] and b.is_active and b.id != exclude_booking_id
            and b.start_time < fields["end_time"] and b.end_time > fields["start_time"]
        ]
        if clash:
            raise ConflictError("This time slot has just been booked by another user.")
        fields.setdefault("total_cost", Decimal("0"))
        booking = BookingRecord(id=self._next_id, **fields)
        self.bookings[booking.id] = booking
        self._next_id += 1
        return booking

    def update_booking_status(self, booking_id, status, from_statuses, **fields):
        booking = self.get_booking(booking_id)
        if booking.status not in from_statuses:
            raise InvalidTransition(f"Booking {booking_id} is {booking.status}.", current_status=booking.status)
        updated = replace(booking, status=status, **fields)
        self.bookings[booking_id] = updated
        return updated

    def get_user_cancellations(self, user_id, start, end):
        self._read()
        return [
            b for b in self.bookings.values()
            if b.user_id == user_id and b.status == "cancelled"
            and b.cancelled_at is not None and start <= b.cancelled_at < end
        ]

    def is_date_blocked(self, day):
        self._read()
        return day in self.blocked

    # -------- UserBalanceStore --------
    def get_user(self, user_id):
        try:
            return self.balances[user_id]
        except KeyError:
            raise BookingNotFound(f"User {user_id} does not exist.")

    def adjust_balance(self, user_id, balance_field, delta, *, transaction_type,
                       booking_id=None, description="", now=None):
        now = now or timezone.now()
        record = self.get_user(user_id)
        current = record.get(balance_field)
        if delta < 0:
            dp20_expired = (
                balance_field == "dp20_balance" and transaction_type != "expired"
                and (record.dp20_expiry is None or record.dp20_expiry <= now)
            )
            if current + delta < 0 or dp20_expired:
                raise InsufficientBalanceError(
                    "Insufficient balance.", field=balance_field, required=-delta, available=current
                )
        updated = replace(record, **{balance_field: current + delta})
        self.balances[user_id] = updated
        self.transactions.append((user_id, balance_field, delta, transaction_type, booking_id))
        return updated

    def set_expiry(self, user_id, **expiry_fields):
        updated = replace(self.get_user(user_id), **expiry_fields)
        self.balances[user_id] = updated
        return updated

    def expired_balances(self, now):
        return [
            r for r in self.balances.values()
            if (r.dp20_balance > 0 and r.dp20_expiry and r.dp20_expiry <= now)
            or (r.tokens > 0 and r.token_valid_until and r.token_valid_until <= now)
        ]
