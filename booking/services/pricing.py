"""
pricing.py
----------
Turns a requested interval into what the member pays.

- token:  ceil(hours) x room.token_hourly (+ equipment surcharge), paid from
          plain tokens or from a BR15/BR30 package balance
- dp20:   one day-pass visit; total_cost keeps the cash daily price for reference
- cash:   hourly (ceil(hours) x cash_hourly), daily or monthly room price,
          daily multiplied by guests for per-guest rooms (+ equipment surcharge)
"""

import math
from dataclasses import dataclass
from decimal import Decimal

from ..exceptions import BookingValidationError
from .slot_utils import booking_setting

PACKAGE_FIELDS = {
    None: "tokens",
    "": "tokens",
    "BR15": "br15_balance",
    "BR30": "br30_balance",
    "DP20": "dp20_balance",
}


@dataclass(frozen=True)
class Quote:
    payment_method: str
    balance_field: str
    token_cost: int
    total_cost: Decimal
    hours: int


def billable_hours(start, end) -> int:
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        raise BookingValidationError("End time must be after start time.")
    return math.ceil(seconds / 3600)


def quote(room, start, end, payment_method, package=None, rental_type="hourly",
          guests=1, with_equipment=False) -> Quote:
    hours = billable_hours(start, end)
    guests = max(1, int(guests or 1))

    surcharge = 0
    if with_equipment:
        if not room.supports_equipment:
            raise BookingValidationError(f"{room.name} does not offer equipment rental.")
        surcharge = booking_setting("EQUIPMENT_SURCHARGE")

    if payment_method == "token":
        if package not in PACKAGE_FIELDS:
            raise BookingValidationError(f"Unknown package {package!r}.")
        if package == "DP20":
            if not room.accepts("dp20"):
                raise BookingValidationError(f"{room.name} cannot be booked with a DP20 day pass.")
            reference = Decimal(room.cash_daily) * (guests if room.per_guest_pricing else 1)
            return Quote("token", "dp20_balance", 1, reference, hours)
        if not room.accepts("token"):
            raise BookingValidationError(f"{room.name} cannot be booked with tokens.")
        units = hours * room.token_hourly + surcharge
        return Quote("token", PACKAGE_FIELDS[package], units, Decimal(units), hours)

    if payment_method == "cash":
        if not room.accepts("cash"):
            raise BookingValidationError(f"{room.name} cannot be booked with cash.")
        if rental_type == "hourly":
            total = Decimal(room.cash_hourly) * hours
        elif rental_type == "daily":
            total = Decimal(room.cash_daily) * (guests if room.per_guest_pricing else 1)
        elif rental_type == "monthly":
            total = Decimal(room.cash_monthly)
        else:
            raise BookingValidationError(f"Unknown rental type {rental_type!r}.")
        return Quote("cash", "", 0, total + surcharge, hours)

    raise BookingValidationError(f"Unknown payment method {payment_method!r}.")
