import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("pending", "Pending"),
    ("to_be_confirmed", "To be confirmed"),
    ("confirmed", "Confirmed"),
    ("cancelled", "Cancelled"),
    ("rescheduled", "Rescheduled"),
]
BALANCE_FIELD_CHOICES = [
    ("tokens", "Tokens"),
    ("br15_balance", "BR15 package"),
    ("br30_balance", "BR30 package"),
    ("dp20_balance", "DP20 day pass"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Room",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("name_zh", models.CharField(blank=True, max_length=200)),
                ("description", models.TextField(blank=True)),
                ("capacity", models.PositiveIntegerField(default=1)),
                ("token_hourly", models.PositiveIntegerField(default=1)),
                ("cash_hourly", models.DecimalField(decimal_places=2, default=0, max_digits=8)),
                ("cash_daily", models.DecimalField(decimal_places=2, default=0, max_digits=8)),
                ("cash_monthly", models.DecimalField(decimal_places=2, default=0, max_digits=9)),
                ("booking_options", models.JSONField(blank=True, default=list)),
                (
                    "per_guest_pricing",
                    models.BooleanField(
                        default=False,
                        help_text="Daily cash/DP20 price is charged per guest (lobby seats).",
                    ),
                ),
                (
                    "supports_equipment",
                    models.BooleanField(
                        default=False,
                        help_text="Projector/equipment surcharge can be added to bookings of this room.",
                    ),
                ),
                ("hidden", models.BooleanField(default=False)),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="BlockedDate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("blocked_date", models.DateField(unique=True)),
                ("reason", models.CharField(blank=True, max_length=200)),
            ],
            options={"ordering": ["blocked_date"]},
        ),
        migrations.CreateModel(
            name="RoomImage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("url", models.CharField(max_length=500)),
                ("position", models.PositiveIntegerField(default=0)),
                ("visible", models.BooleanField(default=True)),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="images",
                        to="booking.room",
                    ),
                ),
            ],
            options={"ordering": ["room_id", "position", "id"]},
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("start_time", models.DateTimeField()),
                ("end_time", models.DateTimeField()),
                ("status", models.CharField(choices=STATUS_CHOICES, default="pending", max_length=20)),
                (
                    "rental_type",
                    models.CharField(
                        choices=[("hourly", "Hourly"), ("daily", "Daily"), ("monthly", "Monthly")],
                        default="hourly",
                        max_length=10,
                    ),
                ),
                ("payment_method", models.CharField(choices=[("token", "Token"), ("cash", "Cash")], max_length=10)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("completed", "Completed"), ("refunded", "Refunded")],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("balance_field", models.CharField(blank=True, choices=BALANCE_FIELD_CHOICES, default="", max_length=20)),
                ("token_cost", models.PositiveIntegerField(default=0)),
                ("total_cost", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("notes", models.JSONField(blank=True, default=dict)),
                ("receipt_url", models.CharField(blank=True, max_length=500, null=True)),
                ("receipt_uploaded_at", models.DateTimeField(blank=True, null=True)),
                ("payment_confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("admin_notes", models.TextField(blank=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True)),
                ("cancellation_hours_before", models.FloatField(blank=True, null=True)),
                ("token_deducted_for_cancellation", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="booking.room",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment_confirmed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "cancelled_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "rescheduled_to",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="rescheduled_from",
                        to="booking.booking",
                    ),
                ),
            ],
            options={
                "ordering": ["-start_time"],
                "indexes": [
                    models.Index(fields=["room", "start_time"], name="booking_room_start_idx"),
                    models.Index(fields=["user", "cancelled_at"], name="booking_user_cancelled_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("end_time__gt", models.F("start_time"))),
                        name="booking_end_after_start",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="UserBalance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("tokens", models.IntegerField(default=0)),
                ("token_valid_until", models.DateTimeField(blank=True, null=True)),
                ("br15_balance", models.IntegerField(default=0)),
                ("br30_balance", models.IntegerField(default=0)),
                ("dp20_balance", models.IntegerField(default=0)),
                ("dp20_expiry", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="balance",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("tokens__gte", 0)), name="balance_tokens_non_negative"),
                    models.CheckConstraint(condition=models.Q(("br15_balance__gte", 0)), name="balance_br15_non_negative"),
                    models.CheckConstraint(condition=models.Q(("br30_balance__gte", 0)), name="balance_br30_non_negative"),
                    models.CheckConstraint(condition=models.Q(("dp20_balance__gte", 0)), name="balance_dp20_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BalanceTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("field", models.CharField(choices=BALANCE_FIELD_CHOICES, max_length=20)),
                ("change", models.IntegerField()),
                ("new_balance", models.IntegerField()),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("booking_payment", "Booking payment"),
                            ("cancellation_refund", "Cancellation refund"),
                            ("cancellation_fee", "Cancellation fee"),
                            ("reschedule_refund", "Reschedule refund"),
                            ("top_up", "Top-up"),
                            ("package_assigned", "Package assigned"),
                            ("expired", "Expired"),
                        ],
                        max_length=30,
                    ),
                ),
                ("description", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="transactions",
                        to="booking.booking",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="balance_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
    ]
