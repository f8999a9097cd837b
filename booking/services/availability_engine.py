"""
availability_engine.py
----------------------
Computes the start/end time options offered for a room on a given day.

Rules:
- 30-minute grid inside business hours (default 10:00–22:00).
- A start is offered when a 30-minute block starting there overlaps no active
  booking of the same room and a minimum-length booking still ends by closing.
- Today (venue time): starts at or before now + SAME_DAY_BUFFER_MINUTES are dropped.
- Blocked dates offer nothing.
- End options start at start + MIN_BOOKING_MINUTES and stop at the earlier of
  closing time and the next booking that begins after the chosen start.

Overlap is always the half-open test:
    s1 < e2 AND e1 > s2

If bookings cannot be loaded, start/end options fall back to the full grid.
The submit-time ConflictValidator and the store write still protect the slot.
"""

import logging
from datetime import timedelta

from django.utils import timezone

from ..exceptions import TransientError
from .slot_utils import (
    booking_setting,
    combine,
    date_to_range,
    format_hhmm,
    generate_slots_for_day,
    get_business_hours,
    local_now,
    parse_day,
    parse_time,
)

logger = logging.getLogger(__name__)


def overlaps(start_a, end_a, start_b, end_b) -> bool:
    return start_a < end_b and end_a > start_b


class AvailabilityEngine:
    def __init__(self, store=None, clock=None):
        if store is None:
            from .django_stores import DjangoBookingStore
            store = DjangoBookingStore()
        self.store = store
        self.clock = clock or timezone.now

    def _day_bookings(self, day, room_id, exclude_booking_id=None):
        day_start, day_end = date_to_range(day)
        return self.store.get_bookings_by_date_range(
            day_start, day_end, room_id=room_id, exclude_booking_id=exclude_booking_id
        )

    def _earliest_allowed_start(self, day):
        now = local_now(self.clock())
        if now.date() != day:
            return None
        return now + timedelta(minutes=booking_setting("SAME_DAY_BUFFER_MINUTES"))

    def generate_start_options(self, date, room_id, exclude_booking_id=None) -> list:
        day = parse_day(date)
        open_time, close_time = get_business_hours()
        day_close = combine(day, close_time)
        slot = timedelta(minutes=booking_setting("SLOT_MINUTES"))
        min_length = timedelta(minutes=booking_setting("MIN_BOOKING_MINUTES"))
        earliest = self._earliest_allowed_start(day)

        grid = [
            s for s in generate_slots_for_day(day, open_time, close_time)
            if s + min_length <= day_close and (earliest is None or s > earliest)
        ]

        try:
            if self.store.is_date_blocked(day):
                return []
            bookings = self._day_bookings(day, room_id, exclude_booking_id)
        except TransientError as exc:
            logger.warning(
                "Start options for room %s on %s fall back to the full grid: %s", room_id, day, exc
            )
            return [format_hhmm(s) for s in grid]

        options = []
        for start in grid:
            if any(overlaps(start, start + slot, b.start_time, b.end_time) for b in bookings):
                continue
            options.append(format_hhmm(start))
        return options

    def generate_end_options(self, date, room_id, start_time, exclude_booking_id=None) -> list:
        day = parse_day(date)
        _open_time, close_time = get_business_hours()
        start = combine(day, parse_time(start_time))
        day_close = combine(day, close_time)
        step = timedelta(minutes=booking_setting("SLOT_MINUTES"))
        first_end = start + timedelta(minutes=booking_setting("MIN_BOOKING_MINUTES"))

        upper = day_close
        try:
            bookings = self._day_bookings(day, room_id, exclude_booking_id)
        except TransientError as exc:
            logger.warning(
                "End options for room %s on %s fall back to closing time: %s", room_id, day, exc
            )
            bookings = []

        for b in bookings:
            if b.start_time <= start < b.end_time:
                # Chosen start is inside an existing booking
                return []
            if b.start_time > start and b.start_time < upper:
                upper = b.start_time

        options = []
        current = first_end
        while current <= upper:
            options.append(format_hhmm(current))
            current += step
        return options
