# booking/tests/test_cancellation_policy.py

from django.test import TestCase

from booking.services.cancellation_policy import CancellationPolicyEngine, is_late_cancellation

from .fakes import FixedClock, MemoryStore, local

USER = 7
ADMIN = 99


class CancellationPolicyTests(TestCase):
    """
    Monthly quota: 3 free cancellations, at most 1 of them < 48h before start.
    """

    def setUp(self):
        self.store = MemoryStore()
        self.store.add_room(1)
        self.clock = FixedClock(local(2026, 3, 15, 12, 0))
        self.policy = CancellationPolicyEngine(self.store, self.clock)
        self._day = 1

    def cancelled(self, hours_before, when=None, deducted=False, by=USER):
        """Add a past cancellation of USER's booking."""
        self._day += 1
        start = local(2026, 3, self._day, 10)
        return self.store.add_booking(
            1, USER, start, local(2026, 3, self._day, 11),
            status="cancelled",
            cancelled_at=when or local(2026, 3, 10, 9),
            cancelled_by_id=by,
            cancellation_hours_before=hours_before,
            token_deducted_for_cancellation=deducted,
        )

    def test_first_cancellations_are_free(self):
        self.assertFalse(self.policy.should_deduct_token(USER, 72).should_deduct)
        self.assertFalse(self.policy.should_deduct_token(USER, 10).should_deduct)

    def test_second_late_cancellation_is_charged(self):
        self.cancelled(5)
        decision = self.policy.should_deduct_token(USER, 10)
        self.assertTrue(decision.should_deduct)
        self.assertTrue(decision.is_late)
        self.assertIn("less than 48h", decision.reason)
        # Early cancellations still have quota left
        self.assertFalse(self.policy.should_deduct_token(USER, 72).should_deduct)

    def test_fourth_cancellation_is_charged(self):
        self.cancelled(100)
        self.cancelled(60)
        self.cancelled(5)
        decision = self.policy.should_deduct_token(USER, 200)
        self.assertTrue(decision.should_deduct)
        self.assertIn("Exceeded 3 free cancellations", decision.reason)

    def test_exactly_48_hours_counts_as_early(self):
        self.assertFalse(is_late_cancellation(48.0))
        self.assertTrue(is_late_cancellation(47.99))
        self.cancelled(5)
        self.assertFalse(self.policy.should_deduct_token(USER, 48.0).should_deduct)

    def test_paid_cancellations_do_not_use_free_quota(self):
        self.cancelled(5, deducted=True)
        self.cancelled(5, deducted=True)
        self.cancelled(5, deducted=True)
        stats = self.policy.get_user_monthly_cancellations(USER)
        self.assertEqual(stats.total, 3)
        self.assertEqual(stats.free_used, 0)
        self.assertFalse(self.policy.should_deduct_token(USER, 10).should_deduct)

    def test_previous_month_is_not_counted(self):
        self.cancelled(5, when=local(2026, 2, 27, 9))
        self.cancelled(5, when=local(2026, 2, 28, 9))
        self.assertFalse(self.policy.should_deduct_token(USER, 10).should_deduct)

    def test_admin_cancellations_are_not_counted(self):
        self.cancelled(5, by=ADMIN)
        stats = self.policy.get_user_monthly_cancellations(USER)
        self.assertEqual(stats.total, 0)
        self.assertFalse(self.policy.should_deduct_token(USER, 10).should_deduct)

    def test_after_start_is_no_show(self):
        decision = self.policy.should_deduct_token(USER, -1)
        self.assertTrue(decision.should_deduct)
        self.assertTrue(decision.is_no_show)

    def test_monthly_stats(self):
        self.cancelled(100)
        self.cancelled(5)
        self.cancelled(3, deducted=True)
        stats = self.policy.get_user_monthly_cancellations(USER)
        self.assertEqual(stats.month, "2026-03")
        self.assertEqual(stats.total, 3)
        self.assertEqual(stats.more_than_48h, 1)
        self.assertEqual(stats.less_than_48h, 2)
        self.assertEqual(stats.free_used, 2)
        self.assertEqual(stats.free_less_than_48h, 1)
        self.assertEqual(stats.free_cancellations_remaining, 1)

    def test_hours_before_booking(self):
        self.assertEqual(self.policy.hours_before_booking(local(2026, 3, 17, 12, 0)), 48.0)
        self.assertEqual(self.policy.hours_before_booking(local(2026, 3, 15, 11, 30)), -0.5)

    def test_policy_info_and_summary(self):
        self.assertEqual(CancellationPolicyEngine.policy_info(-2)["type"], "past")
        self.assertFalse(CancellationPolicyEngine.policy_info(-2)["can_cancel"])
        self.assertEqual(CancellationPolicyEngine.policy_info(48)["type"], "early")
        self.assertEqual(CancellationPolicyEngine.policy_info(12)["type"], "late")
        self.assertEqual(CancellationPolicyEngine.policy_summary("zh")["title"], "取消政策")
        self.assertEqual(CancellationPolicyEngine.policy_summary("fr")["title"], "Cancellation Policy")
