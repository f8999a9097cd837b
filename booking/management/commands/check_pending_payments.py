"""
check_pending_payments.py
-------------------------
Report cash bookings waiting on the payment flow.

Usage:
    python manage.py check_pending_payments
    python manage.py check_pending_payments --list

Behavior:
- Prints the number of bookings per status/payment status.
- With --list, prints each booking that awaits a receipt or a confirmation.
"""

from django.core.management.base import BaseCommand
from django.db.models import Count
from django.utils import timezone

from booking.models import Booking


class Command(BaseCommand):
    help = "Show bookings awaiting receipt upload or payment confirmation."

    def add_arguments(self, parser):
        parser.add_argument("--list", action="store_true", help="List every waiting booking.")

    def handle(self, *args, **options):
        breakdown = (
            Booking.objects.values("status", "payment_status")
            .annotate(total=Count("id"))
            .order_by("status", "payment_status")
        )
        self.stdout.write("Bookings by status / payment status:")
        for row in breakdown:
            self.stdout.write(f"  {row['status']:<16} {row['payment_status']:<10} {row['total']}")

        waiting = Booking.objects.select_related("room", "user").filter(
            payment_method=Booking.PaymentMethod.CASH,
            status__in=[Booking.Status.PENDING, Booking.Status.TO_BE_CONFIRMED],
        ).order_by("start_time")
        self.stdout.write(
            f"Awaiting receipt: {waiting.filter(status=Booking.Status.PENDING).count()}, "
            f"awaiting confirmation: {waiting.filter(status=Booking.Status.TO_BE_CONFIRMED).count()}"
        )

        if options["list"]:
            for b in waiting:
                start = timezone.localtime(b.start_time)
                self.stdout.write(
                    f"  #{b.id} {b.room.name} {start:%Y-%m-%d %H:%M} {b.user.email or b.user.get_username()} "
                    f"[{b.status}] {b.receipt_url or '-'}"
                )
