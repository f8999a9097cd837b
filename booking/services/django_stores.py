"""
django_stores.py
----------------
BookingStore and UserBalanceStore on the Django ORM.

Concurrency:
- create_booking locks the room row (SELECT ... FOR UPDATE on PostgreSQL) and
  re-checks overlap inside the write transaction. On PostgreSQL the
  booking_no_overlapping_active exclusion constraint is the final authority;
  its violation is reported as ConflictError.
- update_booking_status is a conditional UPDATE (WHERE status IN ...), so two
  concurrent cancellations of the same booking cannot both succeed.
- adjust_balance is a conditional UPDATE ... SET f = f + delta WHERE f >= -delta,
  never a read-modify-write of a cached value.

Any other DatabaseError surfaces as TransientError.
"""

import functools
import logging

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from ..exceptions import (
    BookingNotFound,
    BookingValidationError,
    ConflictError,
    InsufficientBalanceError,
    InvalidTransition,
    TransientError,
)
from ..models import BalanceTransaction, BlockedDate, Booking, Room, UserBalance
from .ports import ACTIVE_STATUSES, BALANCE_FIELDS, BookingRecord, RoomRecord, UserBalanceRecord

logger = logging.getLogger(__name__)

OVERLAP_CONSTRAINT = "booking_no_overlapping_active"


def _db_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as exc:
            logger.exception("Database error in %s", func.__name__)
            raise TransientError("The booking database is unavailable, please try again.") from exc
    return wrapper


def room_record(room: Room) -> RoomRecord:
    return RoomRecord(
        id=room.id,
        name=room.name,
        capacity=room.capacity,
        token_hourly=room.token_hourly,
        cash_hourly=room.cash_hourly,
        cash_daily=room.cash_daily,
        cash_monthly=room.cash_monthly,
        booking_options=tuple(room.booking_options or ()),
        per_guest_pricing=room.per_guest_pricing,
        supports_equipment=room.supports_equipment,
        hidden=room.hidden,
    )


def booking_record(b: Booking) -> BookingRecord:
    return BookingRecord(
        id=b.id,
        room_id=b.room_id,
        user_id=b.user_id,
        start_time=b.start_time,
        end_time=b.end_time,
        status=b.status,
        payment_method=b.payment_method,
        payment_status=b.payment_status,
        rental_type=b.rental_type,
        balance_field=b.balance_field,
        token_cost=b.token_cost,
        total_cost=b.total_cost,
        notes=b.notes or {},
        receipt_url=b.receipt_url,
        receipt_uploaded_at=b.receipt_uploaded_at,
        payment_confirmed_at=b.payment_confirmed_at,
        payment_confirmed_by_id=b.payment_confirmed_by_id,
        admin_notes=b.admin_notes,
        cancelled_at=b.cancelled_at,
        cancelled_by_id=b.cancelled_by_id,
        cancellation_reason=b.cancellation_reason,
        cancellation_hours_before=b.cancellation_hours_before,
        token_deducted_for_cancellation=b.token_deducted_for_cancellation,
        rescheduled_to_id=b.rescheduled_to_id,
    )


def _overlapping(room_id, start, end, exclude_booking_id=None):
    qs = Booking.objects.filter(
        room_id=room_id,
        status__in=ACTIVE_STATUSES,
        start_time__lt=end,
        end_time__gt=start,
    )
    if exclude_booking_id is not None:
        qs = qs.exclude(pk=exclude_booking_id)
    return qs


class DjangoBookingStore:
    def atomic(self):
        return transaction.atomic()

    @_db_errors
    def get_room(self, room_id) -> RoomRecord:
        try:
            return room_record(Room.objects.get(pk=room_id))
        except Room.DoesNotExist:
            raise BookingNotFound(f"Room {room_id} does not exist.")

    @_db_errors
    def get_booking(self, booking_id) -> BookingRecord:
        try:
            return booking_record(Booking.objects.get(pk=booking_id))
        except Booking.DoesNotExist:
            raise BookingNotFound(f"Booking {booking_id} does not exist.")

    @_db_errors
    def get_bookings_by_date_range(self, start, end, room_id=None, exclude_booking_id=None,
                                   statuses=ACTIVE_STATUSES) -> list:
        # Overlap with the window: start_time < end AND end_time > start
        qs = Booking.objects.filter(start_time__lt=end, end_time__gt=start, status__in=list(statuses))
        if room_id is not None:
            qs = qs.filter(room_id=room_id)
        if exclude_booking_id is not None:
            qs = qs.exclude(pk=exclude_booking_id)
        return [booking_record(b) for b in qs.order_by("start_time")]

    @_db_errors
    def check_availability(self, room_id, start, end, exclude_booking_id=None) -> bool:
        return not _overlapping(room_id, start, end, exclude_booking_id).exists()

    @_db_errors
    def create_booking(self, fields: dict, exclude_booking_id=None) -> BookingRecord:
        room_id = fields["room_id"]
        try:
            with transaction.atomic():
                # Serialise writers of the same room
                if not Room.objects.select_for_update().filter(pk=room_id).exists():
                    raise BookingNotFound(f"Room {room_id} does not exist.")
                if _overlapping(room_id, fields["start_time"], fields["end_time"], exclude_booking_id).exists():
                    raise ConflictError("This time slot has just been booked by another user.")
                booking = Booking.objects.create(**fields)
        except IntegrityError as exc:
            if OVERLAP_CONSTRAINT in str(exc):
                logger.warning("Exclusion constraint rejected booking for room %s", room_id)
                raise ConflictError(
                    "This time slot is already booked. Please select a different time."
                ) from exc
            raise BookingValidationError(f"Booking could not be saved: {exc}") from exc
        logger.info("Booking #%s created for room %s", booking.id, room_id)
        return booking_record(booking)

    @_db_errors
    def update_booking_status(self, booking_id, status, from_statuses, **fields) -> BookingRecord:
        updated = Booking.objects.filter(pk=booking_id, status__in=list(from_statuses)).update(
            status=status, updated_at=timezone.now(), **fields
        )
        if not updated:
            current = Booking.objects.filter(pk=booking_id).values_list("status", flat=True).first()
            if current is None:
                raise BookingNotFound(f"Booking {booking_id} does not exist.")
            raise InvalidTransition(
                f"Booking {booking_id} is {current}; cannot change it to {status}.",
                current_status=current,
            )
        return booking_record(Booking.objects.get(pk=booking_id))

    @_db_errors
    def get_user_cancellations(self, user_id, start, end) -> list:
        qs = Booking.objects.filter(
            user_id=user_id,
            status=Booking.Status.CANCELLED,
            cancelled_at__gte=start,
            cancelled_at__lt=end,
        ).order_by("-cancelled_at")
        return [booking_record(b) for b in qs]

    @_db_errors
    def is_date_blocked(self, day) -> bool:
        return BlockedDate.objects.filter(blocked_date=day).exists()


class DjangoUserBalanceStore:
    def atomic(self):
        return transaction.atomic()

    @staticmethod
    def _record(balance: UserBalance) -> UserBalanceRecord:
        user = balance.user
        return UserBalanceRecord(
            user_id=balance.user_id,
            tokens=balance.tokens,
            br15_balance=balance.br15_balance,
            br30_balance=balance.br30_balance,
            dp20_balance=balance.dp20_balance,
            dp20_expiry=balance.dp20_expiry,
            token_valid_until=balance.token_valid_until,
            email=user.email,
            name=user.get_full_name() or user.get_username(),
        )

    @staticmethod
    def _ensure(user_id) -> UserBalance:
        if not get_user_model().objects.filter(pk=user_id).exists():
            raise BookingNotFound(f"User {user_id} does not exist.")
        balance, _ = UserBalance.objects.select_related("user").get_or_create(user_id=user_id)
        return balance

    @_db_errors
    def get_user(self, user_id) -> UserBalanceRecord:
        return self._record(self._ensure(user_id))

    @_db_errors
    def adjust_balance(self, user_id, balance_field, delta, *, transaction_type,
                       booking_id=None, description="", now=None) -> UserBalanceRecord:
        if balance_field not in BALANCE_FIELDS:
            raise BookingValidationError(f"Unknown balance field {balance_field!r}.")
        now = now or timezone.now()
        self._ensure(user_id)
        # Expired visits can still be written off
        needs_valid_dp20 = balance_field == "dp20_balance" and delta < 0 and transaction_type != "expired"

        with transaction.atomic():
            qs = UserBalance.objects.filter(user_id=user_id)
            if delta < 0:
                qs = qs.filter(**{f"{balance_field}__gte": -delta})
                if needs_valid_dp20:
                    qs = qs.filter(dp20_expiry__gt=now)
            updated = qs.update(**{balance_field: F(balance_field) + delta, "updated_at": now})
            balance = UserBalance.objects.select_related("user").get(user_id=user_id)
            if not updated:
                available = getattr(balance, balance_field)
                if needs_valid_dp20 and (balance.dp20_expiry is None or balance.dp20_expiry <= now):
                    message = "Your DP20 package has expired."
                else:
                    message = f"Insufficient balance: {-delta} required, {available} available."
                raise InsufficientBalanceError(
                    message, field=balance_field, required=-delta, available=available
                )
            BalanceTransaction.objects.create(
                user_id=user_id,
                field=balance_field,
                change=delta,
                new_balance=getattr(balance, balance_field),
                transaction_type=transaction_type,
                booking_id=booking_id,
                description=description,
            )
        logger.info(
            "Balance %s of user %s changed by %+d (%s) -> %s",
            balance_field, user_id, delta, transaction_type, getattr(balance, balance_field),
        )
        return self._record(balance)

    @_db_errors
    def set_expiry(self, user_id, **expiry_fields) -> UserBalanceRecord:
        unknown = set(expiry_fields) - {"dp20_expiry", "token_valid_until"}
        if unknown:
            raise BookingValidationError(f"Unknown expiry fields: {sorted(unknown)}")
        self._ensure(user_id)
        UserBalance.objects.filter(user_id=user_id).update(updated_at=timezone.now(), **expiry_fields)
        return self._record(UserBalance.objects.select_related("user").get(user_id=user_id))

    @_db_errors
    def expired_balances(self, now) -> list:
        qs = UserBalance.objects.select_related("user").filter(
            Q(dp20_balance__gt=0, dp20_expiry__lte=now) | Q(tokens__gt=0, token_valid_until__lte=now)
        )
        return [self._record(b) for b in qs]
