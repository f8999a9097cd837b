# booking/tests/test_availability.py

from datetime import date

from django.test import TestCase

from booking.exceptions import BookingValidationError, TransientError
from booking.services.availability_engine import AvailabilityEngine
from booking.services.conflict_validator import ConflictValidator
from configmgr.models import SystemSetting

from .fakes import FixedClock, MemoryStore, local

DAY = date(2026, 3, 10)


class StartOptionsTests(TestCase):
    def setUp(self):
        self.store = MemoryStore()
        self.store.add_room(1)
        self.store.add_room(2)
        self.clock = FixedClock(local(2026, 3, 2, 8, 0))
        self.engine = AvailabilityEngine(self.store, self.clock)

    def test_empty_day_offers_every_start_that_fits_a_minimum_booking(self):
        options = self.engine.generate_start_options(DAY, 1)
        self.assertEqual(options[0], "10:00")
        self.assertEqual(options[-1], "21:00")
        self.assertEqual(len(options), 23)

    def test_existing_booking_hides_covered_starts(self):
        self.store.add_booking(1, 7, local(2026, 3, 10, 10), local(2026, 3, 10, 12))
        options = self.engine.generate_start_options(DAY, 1)
        for hidden in ("10:00", "10:30", "11:00", "11:30"):
            self.assertNotIn(hidden, options)
        self.assertEqual(options[0], "12:00")

    def test_other_rooms_and_inactive_bookings_do_not_block(self):
        self.store.add_booking(2, 7, local(2026, 3, 10, 10), local(2026, 3, 10, 12))
        self.store.add_booking(1, 7, local(2026, 3, 10, 14), local(2026, 3, 10, 15), status="cancelled")
        self.store.add_booking(1, 7, local(2026, 3, 10, 16), local(2026, 3, 10, 17), status="rescheduled")
        self.assertEqual(len(self.engine.generate_start_options(DAY, 1)), 23)

    def test_excluded_booking_is_ignored(self):
        booking = self.store.add_booking(1, 7, local(2026, 3, 10, 10), local(2026, 3, 10, 12))
        options = self.engine.generate_start_options(DAY, 1, exclude_booking_id=booking.id)
        self.assertIn("10:00", options)

    def test_today_requires_buffer_after_now(self):
        self.clock.now = local(2026, 3, 10, 11, 10)
        options = self.engine.generate_start_options(DAY, 1)
        # 11:10 + 30 min buffer -> first start strictly after 11:40
        self.assertEqual(options[0], "12:00")

    def test_blocked_date_has_no_options(self):
        self.store.blocked.add(DAY)
        self.assertEqual(self.engine.generate_start_options(DAY, 1), [])

    def test_store_failure_falls_back_to_grid(self):
        self.store.add_booking(1, 7, local(2026, 3, 10, 10), local(2026, 3, 10, 12))
        self.store.fail_reads = True
        with self.assertLogs("booking.services.availability_engine", level="WARNING"):
            options = self.engine.generate_start_options(DAY, 1)
        self.assertEqual(options[0], "10:00")
        self.assertEqual(len(options), 23)

    def test_business_hours_override(self):
        SystemSetting.objects.create(key="BUSINESS_OPEN", value="09:00")
        SystemSetting.objects.create(key="BUSINESS_CLOSE", value="18:00")
        options = self.engine.generate_start_options(DAY, 1)
        self.assertEqual(options[0], "09:00")
        self.assertEqual(options[-1], "17:00")

    def test_accepts_date_string(self):
        self.assertEqual(self.engine.generate_start_options("2026-03-10", 1)[0], "10:00")


class EndOptionsTests(TestCase):
    def setUp(self):
        self.store = MemoryStore()
        self.store.add_room(1)
        self.engine = AvailabilityEngine(self.store, FixedClock(local(2026, 3, 2, 8, 0)))

    def test_end_options_run_to_closing(self):
        self.assertEqual(
            self.engine.generate_end_options(DAY, 1, "20:00"),
            ["21:00", "21:30", "22:00"],
        )

    def test_end_options_stop_at_next_booking(self):
        self.store.add_booking(1, 7, local(2026, 3, 10, 15), local(2026, 3, 10, 16))
        self.assertEqual(
            self.engine.generate_end_options(DAY, 1, "12:00"),
            ["13:00", "13:30", "14:00", "14:30", "15:00"],
        )

    def test_start_inside_booking_has_no_end_options(self):
        self.store.add_booking(1, 7, local(2026, 3, 10, 10), local(2026, 3, 10, 12))
        self.assertEqual(self.engine.generate_end_options(DAY, 1, "11:00"), [])

    def test_start_right_after_booking_is_allowed(self):
        self.store.add_booking(1, 7, local(2026, 3, 10, 10), local(2026, 3, 10, 12))
        self.assertEqual(self.engine.generate_end_options(DAY, 1, "12:00")[0], "13:00")

    def test_gap_shorter_than_minimum_has_no_end_options(self):
        self.store.add_booking(1, 7, local(2026, 3, 10, 13), local(2026, 3, 10, 14))
        self.assertEqual(self.engine.generate_end_options(DAY, 1, "12:30"), [])

    def test_store_failure_uses_closing_time(self):
        self.store.add_booking(1, 7, local(2026, 3, 10, 15), local(2026, 3, 10, 16))
        self.store.fail_reads = True
        with self.assertLogs("booking.services.availability_engine", level="WARNING"):
            options = self.engine.generate_end_options(DAY, 1, "20:00")
        self.assertEqual(options[-1], "22:00")


class ConflictValidatorTests(TestCase):
    def setUp(self):
        self.store = MemoryStore()
        self.store.add_room(1)
        self.booking = self.store.add_booking(1, 7, local(2026, 3, 10, 10), local(2026, 3, 10, 12))
        self.validator = ConflictValidator(self.store)

    def test_overlap_is_unavailable(self):
        self.assertFalse(self.validator.check_availability(1, local(2026, 3, 10, 11), local(2026, 3, 10, 13)))
        self.assertFalse(self.validator.check_availability(1, local(2026, 3, 10, 9), local(2026, 3, 10, 13)))

    def test_touching_intervals_do_not_conflict(self):
        self.assertTrue(self.validator.check_availability(1, local(2026, 3, 10, 12), local(2026, 3, 10, 13)))
        self.assertTrue(self.validator.check_availability(1, local(2026, 3, 10, 9), local(2026, 3, 10, 10)))

    def test_excluding_own_booking(self):
        self.assertTrue(
            self.validator.check_availability(
                1, local(2026, 3, 10, 11), local(2026, 3, 10, 13), exclude_booking_id=self.booking.id
            )
        )

    def test_empty_interval_is_rejected(self):
        with self.assertRaises(BookingValidationError):
            self.validator.check_availability(1, local(2026, 3, 10, 12), local(2026, 3, 10, 12))

    def test_store_failure_propagates(self):
        self.store.fail_reads = True
        with self.assertRaises(TransientError):
            self.validator.check_availability(1, local(2026, 3, 10, 13), local(2026, 3, 10, 14))
