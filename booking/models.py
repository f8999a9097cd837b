# booking/models.py
#
# Purpose:
# - Core domain models for the cat-café coworking booking site.
#
# Design highlights:
# - Room: price table (tokens per hour, cash hourly/daily/monthly), which
#   payment options it accepts, hidden flag, ordered images.
# - Booking:
#   • half-open interval [start_time, end_time) per room
#   • status is one of pending / to_be_confirmed / confirmed / cancelled / rescheduled
#   • never deleted; cancellation and rescheduling are status transitions
#   • balance_field + token_cost record exactly what was charged, so a refund
#     returns the same units to the same balance
# - UserBalance: tokens and package balances (BR15, BR30, DP20) per auth user.
#   Check constraints keep every balance >= 0 at the database level.
# - BalanceTransaction: journal of every balance change.
# - BlockedDate: days the venue is closed for booking.
#
# Notes for developers:
# - No-overlap between active bookings of one room is enforced by the stores
#   (booking/services/django_stores.py). On PostgreSQL the exclusion constraint
#   booking_no_overlapping_active (migration 0002) backs them up.
#
from django.conf import settings
from django.db import models
from django.db.models import F, Q


# -------------------------
# Room catalogue
# -------------------------
class Room(models.Model):
    """
    A bookable room or seat.

    Rules:
    - token_hourly is the token price of one started hour
    - booking_options lists the accepted payment types ("token", "cash", "dp20")
    - hidden rooms are not offered to members (admins still see them)
    """
    OPTION_TOKEN = "token"
    OPTION_CASH = "cash"
    OPTION_DP20 = "dp20"

    name = models.CharField(max_length=200)
    name_zh = models.CharField(max_length=200, blank=True)
    description = models.TextField(blank=True)
    capacity = models.PositiveIntegerField(default=1)
    token_hourly = models.PositiveIntegerField(default=1)
    cash_hourly = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    cash_daily = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    cash_monthly = models.DecimalField(max_digits=9, decimal_places=2, default=0)
    booking_options = models.JSONField(default=list, blank=True)
    per_guest_pricing = models.BooleanField(
        default=False,
        help_text="Daily cash/DP20 price is charged per guest (lobby seats).",
    )
    supports_equipment = models.BooleanField(
        default=False,
        help_text="Projector/equipment surcharge can be added to bookings of this room.",
    )
    hidden = models.BooleanField(default=False)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.name

    def accepts(self, option: str) -> bool:
        return option in (self.booking_options or [])

    @property
    def visible_images(self):
        return self.images.filter(visible=True).order_by("position", "id")


class RoomImage(models.Model):
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="images")
    url = models.CharField(max_length=500)
    position = models.PositiveIntegerField(default=0)
    visible = models.BooleanField(default=True)

    class Meta:
        ordering = ["room_id", "position", "id"]

    def __str__(self):
        return f"{self.room.name} #{self.position}"


class BlockedDate(models.Model):
    """A day on which nothing can be booked (holidays, private events)."""
    blocked_date = models.DateField(unique=True)
    reason = models.CharField(max_length=200, blank=True)

    class Meta:
        ordering = ["blocked_date"]

    def __str__(self):
        return f"{self.blocked_date} ({self.reason or 'blocked'})"


# -------------------------
# Booking record
# -------------------------
class Booking(models.Model):
    """
    A reservation of one room for [start_time, end_time).

    Lifecycle:
    - created as PENDING
    - cash: receipt upload -> TO_BE_CONFIRMED, admin -> CONFIRMED
    - any active status -> CANCELLED (terminal)
    - any active status -> RESCHEDULED (terminal, linked to the replacement)
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        TO_BE_CONFIRMED = "to_be_confirmed", "To be confirmed"
        CONFIRMED = "confirmed", "Confirmed"
        CANCELLED = "cancelled", "Cancelled"
        RESCHEDULED = "rescheduled", "Rescheduled"

    class PaymentMethod(models.TextChoices):
        TOKEN = "token", "Token"
        CASH = "cash", "Cash"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        REFUNDED = "refunded", "Refunded"

    class RentalType(models.TextChoices):
        HOURLY = "hourly", "Hourly"
        DAILY = "daily", "Daily"
        MONTHLY = "monthly", "Monthly"

    class BalanceField(models.TextChoices):
        TOKENS = "tokens", "Tokens"
        BR15 = "br15_balance", "BR15 package"
        BR30 = "br30_balance", "BR30 package"
        DP20 = "dp20_balance", "DP20 day pass"

    ACTIVE_STATUSES = (Status.PENDING, Status.TO_BE_CONFIRMED, Status.CONFIRMED)

    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name="bookings")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="bookings"
    )
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    rental_type = models.CharField(
        max_length=10, choices=RentalType.choices, default=RentalType.HOURLY
    )
    payment_method = models.CharField(max_length=10, choices=PaymentMethod.choices)
    payment_status = models.CharField(
        max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    balance_field = models.CharField(
        max_length=20, choices=BalanceField.choices, blank=True, default=""
    )
    token_cost = models.PositiveIntegerField(default=0)
    total_cost = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    notes = models.JSONField(default=dict, blank=True)

    receipt_url = models.CharField(max_length=500, blank=True, null=True)
    receipt_uploaded_at = models.DateTimeField(null=True, blank=True)
    payment_confirmed_at = models.DateTimeField(null=True, blank=True)
    payment_confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    admin_notes = models.TextField(blank=True)

    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    cancellation_reason = models.TextField(blank=True)
    cancellation_hours_before = models.FloatField(null=True, blank=True)
    token_deducted_for_cancellation = models.BooleanField(default=False)
    rescheduled_to = models.OneToOneField(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="rescheduled_from",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-start_time"]
        indexes = [
            models.Index(fields=["room", "start_time"], name="booking_room_start_idx"),
            models.Index(fields=["user", "cancelled_at"], name="booking_user_cancelled_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_time__gt=F("start_time")),
                name="booking_end_after_start",
            ),
        ]

    def __str__(self):
        return f"#{self.pk} {self.room.name} {self.start_time:%Y-%m-%d %H:%M} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES


# -------------------------
# Balances
# -------------------------
class UserBalance(models.Model):
    """
    Tokens and package balances of one member.

    Mutated only through UserBalanceStore.adjust_balance (conditional atomic
    UPDATE) so concurrent sessions of the same user cannot lose updates.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="balance"
    )
    tokens = models.IntegerField(default=0)
    token_valid_until = models.DateTimeField(null=True, blank=True)
    br15_balance = models.IntegerField(default=0)
    br30_balance = models.IntegerField(default=0)
    dp20_balance = models.IntegerField(default=0)
    dp20_expiry = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(tokens__gte=0), name="balance_tokens_non_negative"),
            models.CheckConstraint(condition=Q(br15_balance__gte=0), name="balance_br15_non_negative"),
            models.CheckConstraint(condition=Q(br30_balance__gte=0), name="balance_br30_non_negative"),
            models.CheckConstraint(condition=Q(dp20_balance__gte=0), name="balance_dp20_non_negative"),
        ]

    def __str__(self):
        return f"{self.user} tokens={self.tokens}"


class BalanceTransaction(models.Model):
    """Journal row written for every balance change."""

    class Type(models.TextChoices):
        BOOKING_PAYMENT = "booking_payment", "Booking payment"
        CANCELLATION_REFUND = "cancellation_refund", "Cancellation refund"
        CANCELLATION_FEE = "cancellation_fee", "Cancellation fee"
        RESCHEDULE_REFUND = "reschedule_refund", "Reschedule refund"
        TOP_UP = "top_up", "Top-up"
        PACKAGE_ASSIGNED = "package_assigned", "Package assigned"
        EXPIRED = "expired", "Expired"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="balance_transactions"
    )
    field = models.CharField(max_length=20, choices=Booking.BalanceField.choices)
    change = models.IntegerField()
    new_balance = models.IntegerField()
    transaction_type = models.CharField(max_length=30, choices=Type.choices)
    booking = models.ForeignKey(
        Booking, on_delete=models.SET_NULL, null=True, blank=True, related_name="transactions"
    )
    description = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.user} {self.field} {self.change:+d} ({self.transaction_type})"
