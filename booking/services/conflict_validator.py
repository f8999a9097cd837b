"""
conflict_validator.py
---------------------
Submit-time re-check that [start, end) is free for the room.

This closes most of the window between showing options and submitting, but
it is advisory: the store's write (row lock + re-check, and the PostgreSQL
exclusion constraint) is the final authority.
"""

import logging

from ..exceptions import BookingValidationError

logger = logging.getLogger(__name__)


class ConflictValidator:
    def __init__(self, store=None):
        if store is None:
            from .django_stores import DjangoBookingStore
            store = DjangoBookingStore()
        self.store = store

    def check_availability(self, room_id, start, end, exclude_booking_id=None) -> bool:
        """
        True when no active booking of room_id overlaps [start, end).

        Raises:
            BookingValidationError: start is not before end.
            TransientError: the store could not answer; treat as "unknown".
        """
        if start >= end:
            raise BookingValidationError("End time must be after start time.")
        available = self.store.check_availability(
            room_id, start, end, exclude_booking_id=exclude_booking_id
        )
        if not available:
            logger.info("Room %s is already booked within %s - %s", room_id, start, end)
        return available
