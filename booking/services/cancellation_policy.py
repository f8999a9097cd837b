"""
cancellation_policy.py
----------------------
Decides whether a member's cancellation is free or costs one unit.

Policy:
- Up to FREE_CANCELLATIONS_PER_MONTH (3) free cancellations per calendar month.
- Of those, at most FREE_LATE_CANCELLATIONS_PER_MONTH (1) may be made less
  than LATE_CANCELLATION_THRESHOLD_HOURS (48) before the booking starts.
- Exactly 48.0 hours before start counts as an early (lenient) cancellation.
- After the start time (no-show) nothing is refunded and the booking cannot
  be cancelled.

The month's history is recomputed from the member's own cancelled bookings
(cancelled_at inside the venue-local month). Admin cancellations and
reschedules do not count.
"""

import logging
from dataclasses import asdict, dataclass

from django.utils import timezone

from .slot_utils import booking_setting, local_now, month_to_range

logger = logging.getLogger(__name__)

LATE_CANCELLATION_THRESHOLD_HOURS = 48


@dataclass(frozen=True)
class MonthlyCancellationStats:
    month: str
    total: int
    more_than_48h: int
    less_than_48h: int
    free_used: int
    free_less_than_48h: int
    free_cancellations_remaining: int

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PolicyDecision:
    should_deduct: bool
    reason: str
    current_stats: MonthlyCancellationStats
    hours_before_booking: float
    is_late: bool
    is_no_show: bool = False

    def as_dict(self) -> dict:
        data = asdict(self)
        data["current_stats"] = self.current_stats.as_dict()
        return data


POLICY_SUMMARY = {
    "en": {
        "title": "Cancellation Policy",
        "rules": [
            "If cancellation is made 48 hours or more in advance: free for up to 3 cancellations per month",
            "If cancellation is made less than 48 hours in advance: free for 1 cancellation per month",
            "Combined limit: maximum 3 free cancellations per month",
            "Additional cancellations: 1 token will be deducted",
            "No-show: no refund, please cancel through the system",
        ],
    },
    "zh": {
        "title": "取消政策",
        "rules": [
            "提前48小時或以上取消：每月最多可免費取消3次",
            "提前48小時內取消：每月最多可免費取消1次",
            "合計限制：每月最多3次免費取消",
            "超出免費次數：每次取消扣除1個代幣",
            "未出席：不予退款，請透過系統取消",
        ],
    },
}


def is_late_cancellation(hours_before_booking: float) -> bool:
    return hours_before_booking < LATE_CANCELLATION_THRESHOLD_HOURS


class CancellationPolicyEngine:
    def __init__(self, store=None, clock=None):
        if store is None:
            from .django_stores import DjangoBookingStore
            store = DjangoBookingStore()
        self.store = store
        self.clock = clock or timezone.now

    def hours_before_booking(self, booking_start, now=None) -> float:
        now = now or self.clock()
        return (booking_start - now).total_seconds() / 3600

    def get_user_monthly_cancellations(self, user_id, year=None, month=None) -> MonthlyCancellationStats:
        """
        Recompute this month's cancellation stats for user_id.

        Raises:
            TransientError: history could not be loaded.
        """
        now = local_now(self.clock())
        year = year or now.year
        month = month or now.month
        start, end = month_to_range(year, month)

        cancellations = [
            b for b in self.store.get_user_cancellations(user_id, start, end)
            if b.cancelled_by_id in (None, user_id)
        ]

        def late(b):
            return b.cancellation_hours_before is not None and is_late_cancellation(b.cancellation_hours_before)

        free = [b for b in cancellations if not b.token_deducted_for_cancellation]
        free_used = len(free)
        quota = booking_setting("FREE_CANCELLATIONS_PER_MONTH")
        return MonthlyCancellationStats(
            month=f"{year:04d}-{month:02d}",
            total=len(cancellations),
            more_than_48h=sum(1 for b in cancellations if not late(b)),
            less_than_48h=sum(1 for b in cancellations if late(b)),
            free_used=free_used,
            free_less_than_48h=sum(1 for b in free if late(b)),
            free_cancellations_remaining=max(0, quota - free_used),
        )

    def should_deduct_token(self, user_id, hours_before_booking) -> PolicyDecision:
        stats = self.get_user_monthly_cancellations(user_id)
        quota = booking_setting("FREE_CANCELLATIONS_PER_MONTH")
        late_quota = booking_setting("FREE_LATE_CANCELLATIONS_PER_MONTH")
        late = is_late_cancellation(hours_before_booking)

        if hours_before_booking < 0:
            decision = PolicyDecision(
                True, "Cannot cancel past booking time (no-show)", stats,
                hours_before_booking, is_late=True, is_no_show=True,
            )
        elif stats.free_used >= quota:
            decision = PolicyDecision(
                True, f"Exceeded {quota} free cancellations per month", stats,
                hours_before_booking, is_late=late,
            )
        elif late and stats.free_less_than_48h >= late_quota:
            decision = PolicyDecision(
                True,
                f"Exceeded {late_quota} free cancellation less than "
                f"{LATE_CANCELLATION_THRESHOLD_HOURS}h before start per month",
                stats, hours_before_booking, is_late=True,
            )
        else:
            window = f"<{LATE_CANCELLATION_THRESHOLD_HOURS}h" if late else f">={LATE_CANCELLATION_THRESHOLD_HOURS}h"
            decision = PolicyDecision(
                False, f"Within free cancellation limits ({window})", stats,
                hours_before_booking, is_late=late,
            )

        logger.info(
            "Cancellation policy for user %s at %.1fh: deduct=%s (%s)",
            user_id, hours_before_booking, decision.should_deduct, decision.reason,
        )
        return decision

    @staticmethod
    def policy_info(hours_before_booking) -> dict:
        """Display-only classification; the fee itself comes from should_deduct_token."""
        if hours_before_booking < 0:
            return {
                "can_cancel": False,
                "type": "past",
                "message": "Cannot cancel booking after start time (no-show policy applies)",
            }
        if not is_late_cancellation(hours_before_booking):
            return {
                "can_cancel": True,
                "type": "early",
                "message": f"Cancellation {LATE_CANCELLATION_THRESHOLD_HOURS} hours or more in advance",
                "policy_limit": "3 free cancellations per month",
            }
        return {
            "can_cancel": True,
            "type": "late",
            "message": f"Cancellation less than {LATE_CANCELLATION_THRESHOLD_HOURS} hours in advance",
            "policy_limit": "1 free cancellation per month (within the 3 total)",
        }

    @staticmethod
    def policy_summary(language="en") -> dict:
        return POLICY_SUMMARY.get(language, POLICY_SUMMARY["en"])
