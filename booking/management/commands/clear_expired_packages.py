"""
clear_expired_packages.py
-------------------------
Zero DP20 visits past their expiry and tokens past their validity date.
Every write-off is journaled as an 'expired' BalanceTransaction.

Usage:
    python manage.py clear_expired_packages
    (schedule daily, e.g. from cron)
"""

from django.core.management.base import BaseCommand

from booking.services.package_service import PackageService


class Command(BaseCommand):
    help = "Clear expired DP20 packages and tokens."

    def handle(self, *args, **options):
        cleared = PackageService().clear_expired_packages()
        self.stdout.write(self.style.SUCCESS(f"Cleared {cleared} expired balance(s)."))
