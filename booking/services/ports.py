"""
ports.py
--------
Interfaces the booking engine is written against, plus the plain records that
travel through them.

- BookingStore:     rooms, bookings, blocked dates
- UserBalanceStore: member balances (atomic adjustments only)

booking/services/django_stores.py implements both on the Django ORM;
booking/tests/fakes.py implements them in memory for engine tests.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import ContextManager, Iterable, Optional, Protocol


@dataclass(frozen=True)
class RoomRecord:
    id: int
    name: str
    capacity: int = 1
    token_hourly: int = 1
    cash_hourly: Decimal = Decimal("0")
    cash_daily: Decimal = Decimal("0")
    cash_monthly: Decimal = Decimal("0")
    booking_options: tuple = ("token", "cash")
    per_guest_pricing: bool = False
    supports_equipment: bool = False
    hidden: bool = False

    def accepts(self, option: str) -> bool:
        return option in self.booking_options


@dataclass(frozen=True)
class BookingRecord:
    id: int
    room_id: int
    user_id: int
    start_time: datetime
    end_time: datetime
    status: str
    payment_method: str
    payment_status: str = "pending"
    rental_type: str = "hourly"
    balance_field: str = ""
    token_cost: int = 0
    total_cost: Decimal = Decimal("0")
    notes: dict = field(default_factory=dict)
    receipt_url: Optional[str] = None
    receipt_uploaded_at: Optional[datetime] = None
    payment_confirmed_at: Optional[datetime] = None
    payment_confirmed_by_id: Optional[int] = None
    admin_notes: str = ""
    cancelled_at: Optional[datetime] = None
    cancelled_by_id: Optional[int] = None
    cancellation_reason: str = ""
    cancellation_hours_before: Optional[float] = None
    token_deducted_for_cancellation: bool = False
    rescheduled_to_id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


@dataclass(frozen=True)
class UserBalanceRecord:
    user_id: int
    tokens: int = 0
    br15_balance: int = 0
    br30_balance: int = 0
    dp20_balance: int = 0
    dp20_expiry: Optional[datetime] = None
    token_valid_until: Optional[datetime] = None
    email: str = ""
    name: str = ""

    def get(self, balance_field: str) -> int:
        return getattr(self, balance_field)


ACTIVE_STATUSES = ("pending", "to_be_confirmed", "confirmed")
BALANCE_FIELDS = ("tokens", "br15_balance", "br30_balance", "dp20_balance")


class BookingStore(Protocol):
    def atomic(self) -> ContextManager: ...

    def get_room(self, room_id: int) -> RoomRecord: ...

    def get_booking(self, booking_id: int) -> BookingRecord: ...

    def get_bookings_by_date_range(
        self,
        start: datetime,
        end: datetime,
        room_id: Optional[int] = None,
        exclude_booking_id: Optional[int] = None,
        statuses: Iterable[str] = ACTIVE_STATUSES,
    ) -> list: ...

    def check_availability(
        self, room_id: int, start: datetime, end: datetime, exclude_booking_id: Optional[int] = None
    ) -> bool: ...

    def create_booking(self, fields: dict, exclude_booking_id: Optional[int] = None) -> BookingRecord: ...

    def update_booking_status(
        self, booking_id: int, status: str, from_statuses: Iterable[str], **fields
    ) -> BookingRecord: ...

    def get_user_cancellations(self, user_id: int, start: datetime, end: datetime) -> list: ...

    def is_date_blocked(self, day: date) -> bool: ...


class UserBalanceStore(Protocol):
    def atomic(self) -> ContextManager: ...

    def get_user(self, user_id: int) -> UserBalanceRecord: ...

    def adjust_balance(
        self,
        user_id: int,
        balance_field: str,
        delta: int,
        *,
        transaction_type: str,
        booking_id: Optional[int] = None,
        description: str = "",
        now: Optional[datetime] = None,
    ) -> UserBalanceRecord: ...

    def set_expiry(self, user_id: int, **expiry_fields) -> UserBalanceRecord: ...

    def expired_balances(self, now: datetime) -> list: ...
