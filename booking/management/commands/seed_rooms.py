"""
seed_rooms.py
-------------
Seeds (creates or updates) the room catalogue with the venue's price list.
You can run this any time; it will upsert by unique name.

Usage:
    python manage.py seed_rooms
"""

from decimal import Decimal
from django.core.management.base import BaseCommand
from booking.models import Room


CATALOG = [
    # Private rooms (1 token = 1 hour)
    {"name": "Room A", "name_zh": "A室", "capacity": 4, "token_hourly": 1, "cash_hourly": Decimal("100.00"),
     "cash_daily": Decimal("600.00"), "cash_monthly": Decimal("8000.00"), "booking_options": ["token", "cash"]},
    {"name": "Room B", "name_zh": "B室", "capacity": 4, "token_hourly": 1, "cash_hourly": Decimal("100.00"),
     "cash_daily": Decimal("600.00"), "cash_monthly": Decimal("8000.00"), "booking_options": ["token", "cash"]},
    # Room C is cash only
    {"name": "Room C", "name_zh": "C室", "capacity": 6, "token_hourly": 1, "cash_hourly": Decimal("100.00"),
     "cash_daily": Decimal("600.00"), "cash_monthly": Decimal("8000.00"), "booking_options": ["cash"],
     "supports_equipment": True},
    {"name": "Room D", "name_zh": "D室", "capacity": 8, "token_hourly": 1, "cash_hourly": Decimal("120.00"),
     "cash_daily": Decimal("720.00"), "cash_monthly": Decimal("9600.00"), "booking_options": ["token", "cash"]},
    {"name": "Room E", "name_zh": "E室", "capacity": 4, "token_hourly": 1, "cash_hourly": Decimal("100.00"),
     "cash_daily": Decimal("600.00"), "cash_monthly": Decimal("8000.00"), "booking_options": ["token", "cash"],
     "supports_equipment": True},
    {"name": "Room H", "name_zh": "H室", "capacity": 4, "token_hourly": 1, "cash_hourly": Decimal("100.00"),
     "cash_daily": Decimal("600.00"), "cash_monthly": Decimal("8000.00"), "booking_options": ["token", "cash"]},

    # Main hall seats: one day pass per guest
    {"name": "Lobby Seat", "name_zh": "大堂座位", "capacity": 10, "token_hourly": 1, "cash_hourly": Decimal("0.00"),
     "cash_daily": Decimal("50.00"), "cash_monthly": Decimal("0.00"), "booking_options": ["cash", "dp20"],
     "per_guest_pricing": True},
]

FIELDS = (
    "name_zh",
    "capacity",
    "token_hourly",
    "cash_hourly",
    "cash_daily",
    "cash_monthly",
    "booking_options",
    "per_guest_pricing",
    "supports_equipment",
)


class Command(BaseCommand):
    help = "Seed or update the room catalogue with current prices."

    def handle(self, *args, **options):
        created = 0
        updated = 0

        for item in CATALOG:
            values = {f: item.get(f, False) for f in FIELDS}
            room, is_created = Room.objects.get_or_create(name=item["name"], defaults=values)
            if is_created:
                created += 1
                continue
            changed = [f for f in FIELDS if getattr(room, f) != values[f]]
            if changed:
                for f in changed:
                    setattr(room, f, values[f])
                room.save(update_fields=changed)
                updated += 1

        self.stdout.write(self.style.SUCCESS(f"Seed complete. Created={created}, Updated={updated}"))
