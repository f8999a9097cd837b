"""
package_service.py
------------------
Admin-side balance changes: package assignment, token top-ups and expiry.

Packages:
- BR15 -> +15 br15_balance
- BR30 -> +30 br30_balance
- DP20 -> +20 dp20_balance visits, valid for DP20_VALIDITY_DAYS from assignment
"""

import logging
from datetime import timedelta

from django.utils import timezone

from ..exceptions import BookingValidationError
from .slot_utils import booking_setting

logger = logging.getLogger(__name__)

PACKAGES = {
    "BR15": ("br15_balance", 15),
    "BR30": ("br30_balance", 30),
    "DP20": ("dp20_balance", 20),
}


class PackageService:
    def __init__(self, balances=None, notifier=None, clock=None):
        if balances is None:
            from .django_stores import DjangoUserBalanceStore
            balances = DjangoUserBalanceStore()
        if notifier is None:
            from .notification_service import NotificationService
            notifier = NotificationService()
        self.balances = balances
        self.notifier = notifier
        self.clock = clock or timezone.now

    def assign_package(self, user_id, package_type, admin_id=None):
        try:
            field, amount = PACKAGES[package_type]
        except KeyError:
            raise BookingValidationError(
                f"Unknown package {package_type!r}. Choose one of {', '.join(PACKAGES)}."
            )
        now = self.clock()
        with self.balances.atomic():
            record = self.balances.adjust_balance(
                user_id, field, amount,
                transaction_type="package_assigned",
                description=f"{package_type} assigned" + (f" by admin {admin_id}" if admin_id else ""),
                now=now,
            )
            if package_type == "DP20":
                days = booking_setting("DP20_VALIDITY_DAYS")
                record = self.balances.set_expiry(user_id, dp20_expiry=now + timedelta(days=days))

        logger.info("Package %s assigned to user %s by %s", package_type, user_id, admin_id)
        self.notifier.notify(
            "package_assigned",
            {
                "package_type": package_type,
                "amount": amount,
                "user_id": user_id,
                "user_email": record.email,
                "new_balance": record.get(field),
                "assigned_by": admin_id,
            },
            user_id=user_id,
        )
        return record

    def top_up_tokens(self, user_id, amount, admin_id=None):
        amount = int(amount)
        if amount <= 0:
            raise BookingValidationError("Top-up amount must be positive.")
        now = self.clock()
        days = booking_setting("TOKEN_VALIDITY_DAYS")
        with self.balances.atomic():
            self.balances.adjust_balance(
                user_id, "tokens", amount,
                transaction_type="top_up",
                description=f"Top-up of {amount} tokens",
                now=now,
            )
            record = self.balances.set_expiry(user_id, token_valid_until=now + timedelta(days=days))
        logger.info("User %s topped up %s tokens (by %s)", user_id, amount, admin_id or "self")
        return record

    def clear_expired_packages(self, now=None) -> int:
        """Zero expired DP20 visits and tokens. Returns the number of balances cleared."""
        now = now or self.clock()
        cleared = 0
        for record in self.balances.expired_balances(now):
            if record.dp20_balance > 0 and record.dp20_expiry and record.dp20_expiry <= now:
                self.balances.adjust_balance(
                    record.user_id, "dp20_balance", -record.dp20_balance,
                    transaction_type="expired", description="DP20 package expired", now=now,
                )
                cleared += 1
            if record.tokens > 0 and record.token_valid_until and record.token_valid_until <= now:
                self.balances.adjust_balance(
                    record.user_id, "tokens", -record.tokens,
                    transaction_type="expired", description="Tokens expired", now=now,
                )
                cleared += 1
        if cleared:
            logger.info("Cleared %s expired balances", cleared)
        return cleared
