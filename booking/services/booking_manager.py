"""
booking_manager.py
------------------
Coordinates every booking state transition and the balance changes that go
with it.

Transitions:
- create_booking         -> pending (token/package paid immediately, cash awaits receipt)
- upload_receipt         pending -> to_be_confirmed (cash only)
- confirm_payment        pending | to_be_confirmed -> confirmed (admin)
- cancel_booking         pending | to_be_confirmed | confirmed -> cancelled (member, policy fee)
- admin_cancel_booking   same, without fee and outside the member's quota
- reschedule_booking     old -> rescheduled, linked to a newly created booking

Balance rules:
- booking write and balance deduction happen in one store transaction
- cancellation refunds the full original charge first, then takes the policy
  fee; if the fee cannot be paid nothing changes and CancellationFeeError is raised
- notifications are sent after the transaction and never undo it
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.utils import timezone

from ..exceptions import (
    BookingValidationError,
    CancellationFeeError,
    ConflictError,
    InsufficientBalanceError,
    InvalidTransition,
    TransientError,
)
from . import pricing
from .availability_engine import AvailabilityEngine
from .cancellation_policy import CancellationPolicyEngine
from .conflict_validator import ConflictValidator
from .ports import ACTIVE_STATUSES, BookingRecord
from .slot_utils import booking_setting, format_hhmm, get_business_hours, local_now, venue_tz

logger = logging.getLogger(__name__)

PACKAGE_BY_FIELD = {
    "tokens": None,
    "br15_balance": "BR15",
    "br30_balance": "BR30",
    "dp20_balance": "DP20",
}


@dataclass(frozen=True)
class CancellationResult:
    booking: BookingRecord
    token_deducted: bool
    refunded: int
    fee: int
    hours_before_booking: float
    reason: str


def _local_iso(value) -> str:
    return timezone.localtime(value, venue_tz()).isoformat() if value else ""


class BookingManager:
    def __init__(self, bookings=None, balances=None, notifier=None, receipts=None, clock=None):
        if bookings is None or balances is None:
            from .django_stores import DjangoBookingStore, DjangoUserBalanceStore
            bookings = bookings or DjangoBookingStore()
            balances = balances or DjangoUserBalanceStore()
        if notifier is None:
            from .notification_service import NotificationService
            notifier = NotificationService()
        if receipts is None:
            from .receipt_storage import ReceiptStorage
            receipts = ReceiptStorage(clock=clock)
        self.bookings = bookings
        self.balances = balances
        self.notifier = notifier
        self.receipts = receipts
        self.clock = clock or timezone.now
        self.availability = AvailabilityEngine(bookings, self.clock)
        self.validator = ConflictValidator(bookings)
        self.policy = CancellationPolicyEngine(bookings, self.clock)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _aware(self, value, label):
        if value is None:
            raise BookingValidationError(f"{label} is required.")
        if timezone.is_naive(value):
            value = timezone.make_aware(value, venue_tz())
        return value

    def _validate_interval(self, start, end, now, rental_type="hourly"):
        if start >= end:
            raise BookingValidationError("End time must be after start time.")
        if start <= now:
            raise BookingValidationError("Start time must be in the future.")
        if rental_type == "hourly":
            self._validate_hourly_window(local_now(start), local_now(end))
        if self.bookings.is_date_blocked(local_now(start).date()):
            raise BookingValidationError("This date is not available for booking.")

    def _validate_hourly_window(self, start, end):
        """Hourly bookings follow the same grid as the start/end options."""
        if start.date() != end.date():
            raise BookingValidationError("Booking must start and end on the same day.")

        open_time, close_time = get_business_hours()
        if start.time() < open_time or end.time() > close_time:
            raise BookingValidationError(
                f"Bookings must be between {format_hhmm(open_time)} and {format_hhmm(close_time)}."
            )

        slot = timedelta(minutes=booking_setting("SLOT_MINUTES"))
        opening = datetime.combine(start.date(), open_time, tzinfo=start.tzinfo)
        for value in (start, end):
            if (value - opening) % slot:
                raise BookingValidationError(
                    f"Bookings must start and end on {booking_setting('SLOT_MINUTES')}-minute steps."
                )

        min_minutes = booking_setting("MIN_BOOKING_MINUTES")
        if end - start < timedelta(minutes=min_minutes):
            raise BookingValidationError(f"Bookings must be at least {min_minutes} minutes long.")

    def _ensure_free(self, room_id, start, end, exclude_booking_id=None):
        try:
            available = self.validator.check_availability(
                room_id, start, end, exclude_booking_id=exclude_booking_id
            )
        except TransientError:
            # Unknown: the store write re-checks under lock
            logger.warning("Availability pre-check failed for room %s; relying on the write", room_id)
            return
        if not available:
            raise ConflictError("This time slot has just been booked by another user.")

    def _check_funds(self, user_id, quote_):
        if not quote_.balance_field:
            return
        user = self.balances.get_user(user_id)
        available = user.get(quote_.balance_field)
        if available < quote_.token_cost:
            raise InsufficientBalanceError(
                f"This booking requires {quote_.token_cost} but you only have {available}.",
                field=quote_.balance_field,
                required=quote_.token_cost,
                available=available,
            )
        if quote_.balance_field == "dp20_balance" and (
            user.dp20_expiry is None or user.dp20_expiry <= self.clock()
        ):
            raise InsufficientBalanceError(
                "Your DP20 package has expired.", field="dp20_balance", required=1, available=available
            )

    def _event_payload(self, booking: BookingRecord, **extra) -> dict:
        room = self.bookings.get_room(booking.room_id)
        user = self.balances.get_user(booking.user_id)
        payload = {
            "booking_id": booking.id,
            "room_id": booking.room_id,
            "room_name": room.name,
            "start_time": _local_iso(booking.start_time),
            "end_time": _local_iso(booking.end_time),
            "status": booking.status,
            "payment_method": booking.payment_method,
            "requester_id": booking.user_id,
            "requester_email": user.email,
            "requester_name": user.name,
        }
        payload.update(extra)
        return payload

    def _notify(self, event_type, booking, **extra):
        # The booking is already committed; a failed notification is only logged
        try:
            payload = self._event_payload(booking, **extra)
            self.notifier.notify(event_type, payload, user_id=booking.user_id)
        except Exception:
            logger.exception("Could not send %s notification for booking %s", event_type, booking.id)

    # ------------------------------------------------------------------
    # creation
    # ------------------------------------------------------------------
    def create_booking(self, user_id, room_id, start_time, end_time, payment_method,
                       package=None, rental_type="hourly", guests=1, with_equipment=False,
                       notes=None) -> BookingRecord:
        """
        Create a booking after validation, conflict re-check and payment.

        Raises:
            BookingValidationError: missing/invalid fields, blocked date, hidden room.
            ConflictError: the interval overlaps an active booking of the room.
            InsufficientBalanceError: token/package balance too low.
            TransientError: the store failed; nothing was written.
        """
        if not user_id or not room_id or not payment_method:
            raise BookingValidationError("user, room and payment method are required.")
        now = self.clock()
        start = self._aware(start_time, "Start time")
        end = self._aware(end_time, "End time")
        self._validate_interval(start, end, now, rental_type)

        room = self.bookings.get_room(room_id)
        if room.hidden:
            raise BookingValidationError(f"{room.name} is not available for booking.")
        quote_ = pricing.quote(
            room, start, end, payment_method, package=package, rental_type=rental_type,
            guests=guests, with_equipment=with_equipment,
        )
        self._check_funds(user_id, quote_)
        self._ensure_free(room_id, start, end)

        booking_notes = dict(notes or {})
        booking_notes.update({"guests": guests, "equipment": bool(with_equipment)})
        fields = {
            "room_id": room_id,
            "user_id": user_id,
            "start_time": start,
            "end_time": end,
            "status": "pending",
            "rental_type": rental_type,
            "payment_method": quote_.payment_method,
            "payment_status": "completed" if quote_.balance_field else "pending",
            "balance_field": quote_.balance_field,
            "token_cost": quote_.token_cost,
            "total_cost": quote_.total_cost,
            "notes": booking_notes,
        }

        with self.bookings.atomic():
            booking = self.bookings.create_booking(fields)
            if quote_.balance_field:
                self.balances.adjust_balance(
                    user_id,
                    quote_.balance_field,
                    -quote_.token_cost,
                    transaction_type="booking_payment",
                    booking_id=booking.id,
                    description=f"Booking #{booking.id} ({quote_.hours}h {room.name})",
                    now=now,
                )

        logger.info(
            "User %s booked room %s %s-%s (%s, cost %s)",
            user_id, room_id, start, end, quote_.payment_method, quote_.token_cost or quote_.total_cost,
        )
        self._notify("booking_created", booking, total_cost=str(booking.total_cost), token_cost=booking.token_cost)
        return booking

    # ------------------------------------------------------------------
    # cash payment flow
    # ------------------------------------------------------------------
    def upload_receipt(self, booking_id, user_id, uploaded_file) -> BookingRecord:
        booking = self.bookings.get_booking(booking_id)
        if booking.user_id != user_id:
            raise BookingValidationError("You can only upload receipts for your own bookings.")
        if booking.payment_method != "cash":
            raise BookingValidationError("Receipts are only needed for cash bookings.")
        allowed = ("pending", "to_be_confirmed")
        if booking.status not in allowed:
            raise InvalidTransition(f"Booking {booking_id} is {booking.status}; receipt not accepted.")

        url = self.receipts.upload_receipt(booking_id, uploaded_file)
        updated = self.bookings.update_booking_status(
            booking_id, "to_be_confirmed", allowed,
            receipt_url=url, receipt_uploaded_at=self.clock(),
        )
        self._notify("receipt_uploaded", updated, receipt_url=url)
        return updated

    def confirm_payment(self, booking_id, admin_id, admin_notes="") -> BookingRecord:
        updated = self.bookings.update_booking_status(
            booking_id, "confirmed", ("pending", "to_be_confirmed"),
            payment_status="completed",
            payment_confirmed_at=self.clock(),
            payment_confirmed_by_id=admin_id,
            admin_notes=admin_notes or "",
        )
        logger.info("Admin %s confirmed booking %s", admin_id, booking_id)
        self._notify("booking_confirmed", updated, confirmed_by=admin_id)
        return updated

    # ------------------------------------------------------------------
    # cancellation
    # ------------------------------------------------------------------
    def _cancel(self, booking, actor_id, reason, fee, now, hours):
        refund = booking.token_cost if booking.balance_field and booking.payment_status == "completed" else 0
        fee_field = booking.balance_field or "tokens"
        status_fields = {
            "cancelled_at": now,
            "cancelled_by_id": actor_id,
            "cancellation_reason": reason or "",
            "cancellation_hours_before": hours,
            "token_deducted_for_cancellation": bool(fee),
        }
        if refund:
            status_fields["payment_status"] = "refunded"

        with self.bookings.atomic():
            cancelled = self.bookings.update_booking_status(
                booking.id, "cancelled", ACTIVE_STATUSES, **status_fields
            )
            # Refund first, then the fee: the fee may be paid out of the refund
            if refund:
                self.balances.adjust_balance(
                    booking.user_id, booking.balance_field, refund,
                    transaction_type="cancellation_refund", booking_id=booking.id,
                    description=f"Refund for cancelled booking #{booking.id}", now=now,
                )
            if fee:
                try:
                    self.balances.adjust_balance(
                        booking.user_id, fee_field, -fee,
                        transaction_type="cancellation_fee", booking_id=booking.id,
                        description=f"Cancellation fee for booking #{booking.id} ({hours:.0f}h before)",
                        now=now,
                    )
                except InsufficientBalanceError as exc:
                    raise CancellationFeeError(
                        f"Insufficient balance for cancellation. You need {fee} to cancel this booking.",
                        field=fee_field, required=fee, available=exc.available,
                    ) from exc
        return cancelled, refund

    def cancel_booking(self, booking_id, user_id, reason="", policy_check=None) -> CancellationResult:
        """
        Member cancellation with the monthly free-cancellation policy.

        Raises:
            BookingValidationError: not the owner, or the booking already started.
            InvalidTransition: already cancelled/rescheduled.
            CancellationFeeError: fee due but not payable; nothing changed.
        """
        booking = self.bookings.get_booking(booking_id)
        if booking.user_id != user_id:
            raise BookingValidationError("You can only cancel your own bookings.")
        if booking.status == "cancelled":
            raise InvalidTransition("This booking is already cancelled.")
        if not booking.is_active:
            raise InvalidTransition(f"This booking is {booking.status} and cannot be cancelled.")

        now = self.clock()
        hours = self.policy.hours_before_booking(booking.start_time, now)
        if hours < 0:
            raise BookingValidationError(
                "Cannot cancel booking after start time. No-show policy applies."
            )

        decision = policy_check or self.policy.should_deduct_token(user_id, hours)
        fee = booking_setting("CANCELLATION_FEE_UNITS") if decision.should_deduct else 0

        cancelled, refund = self._cancel(booking, user_id, reason, fee, now, hours)
        logger.info(
            "User %s cancelled booking %s %.1fh before start (refund %s, fee %s)",
            user_id, booking_id, hours, refund, fee,
        )
        self._notify(
            "booking_cancelled", cancelled,
            cancelled_by="user", reason=reason or "", token_deducted=bool(fee),
            fee=fee, refunded=refund, hours_before_booking=round(hours, 2),
        )
        return CancellationResult(cancelled, bool(fee), refund, fee, hours, decision.reason)

    def admin_cancel_booking(self, booking_id, admin_id, reason="Cancelled by admin") -> CancellationResult:
        """Cancel without fee or ownership check; does not count toward the member's quota."""
        booking = self.bookings.get_booking(booking_id)
        if booking.status == "cancelled":
            raise InvalidTransition("This booking is already cancelled.")
        if not booking.is_active:
            raise InvalidTransition(f"This booking is {booking.status} and cannot be cancelled.")

        now = self.clock()
        hours = self.policy.hours_before_booking(booking.start_time, now)
        cancelled, refund = self._cancel(booking, admin_id, reason, 0, now, hours)
        logger.info("Admin %s cancelled booking %s (refund %s)", admin_id, booking_id, refund)
        self._notify(
            "booking_cancelled", cancelled,
            cancelled_by="admin", reason=reason or "", token_deducted=False,
            fee=0, refunded=refund, hours_before_booking=round(hours, 2),
        )
        return CancellationResult(cancelled, False, refund, 0, hours, "Cancelled by admin")

    # ------------------------------------------------------------------
    # rescheduling
    # ------------------------------------------------------------------
    def reschedule_booking(self, booking_id, user_id, new_start, new_end, is_admin=False) -> BookingRecord:
        """
        Move a booking to a new interval of the same room.

        The old booking becomes `rescheduled` and links to the new one; the
        original charge is refunded and the new interval charged in the same
        transaction.
        """
        old = self.bookings.get_booking(booking_id)
        if not is_admin and old.user_id != user_id:
            raise BookingValidationError("You can only reschedule your own bookings.")
        if not old.is_active:
            raise InvalidTransition(f"This booking is {old.status} and cannot be rescheduled.")

        now = self.clock()
        start = self._aware(new_start, "Start time")
        end = self._aware(new_end, "End time")
        self._validate_interval(start, end, now, old.rental_type)

        room = self.bookings.get_room(old.room_id)
        notes = old.notes or {}
        paid_from_balance = bool(old.balance_field) and old.payment_status == "completed"
        quote_ = pricing.quote(
            room, start, end, old.payment_method,
            package=PACKAGE_BY_FIELD.get(old.balance_field) if old.balance_field else None,
            rental_type=old.rental_type,
            guests=notes.get("guests", 1),
            with_equipment=notes.get("equipment", False),
        )
        self._ensure_free(old.room_id, start, end, exclude_booking_id=old.id)

        fields = {
            "room_id": old.room_id,
            "user_id": old.user_id,
            "start_time": start,
            "end_time": end,
            "status": old.status,
            "rental_type": old.rental_type,
            "payment_method": old.payment_method,
            "payment_status": old.payment_status,
            "balance_field": old.balance_field,
            "token_cost": quote_.token_cost,
            "total_cost": quote_.total_cost,
            "notes": dict(notes, rescheduled_from=old.id),
            "receipt_url": old.receipt_url,
        }

        with self.bookings.atomic():
            # Old row leaves the active set first so it cannot collide with the new interval
            self.bookings.update_booking_status(old.id, "rescheduled", ACTIVE_STATUSES)
            new = self.bookings.create_booking(fields)
            self.bookings.update_booking_status(
                old.id, "rescheduled", ("rescheduled",), rescheduled_to_id=new.id
            )
            if paid_from_balance:
                self.balances.adjust_balance(
                    old.user_id, old.balance_field, old.token_cost,
                    transaction_type="reschedule_refund", booking_id=old.id,
                    description=f"Booking #{old.id} rescheduled to #{new.id}", now=now,
                )
                self.balances.adjust_balance(
                    old.user_id, old.balance_field, -quote_.token_cost,
                    transaction_type="booking_payment", booking_id=new.id,
                    description=f"Booking #{new.id} (rescheduled from #{old.id})", now=now,
                )

        logger.info("Booking %s rescheduled to %s by %s", old.id, new.id, user_id)
        self._notify(
            "booking_rescheduled", new,
            previous_booking_id=old.id,
            previous_start_time=_local_iso(old.start_time),
            previous_end_time=_local_iso(old.end_time),
        )
        return new
