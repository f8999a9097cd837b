from rest_framework import serializers
from django.utils import timezone
from .models import Room, RoomImage, Booking, UserBalance, BalanceTransaction


class RoomImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = RoomImage
        fields = ["id", "url", "position"]


class RoomSerializer(serializers.ModelSerializer):
    # Only images marked visible, in display order
    images = RoomImageSerializer(source="visible_images", many=True, read_only=True)

    class Meta:
        model = Room
        fields = [
            "id",
            "name",
            "name_zh",
            "description",
            "capacity",
            "token_hourly",
            "cash_hourly",
            "cash_daily",
            "cash_monthly",
            "booking_options",
            "per_guest_pricing",
            "supports_equipment",
            "hidden",
            "images",
        ]


class BookingSerializer(serializers.ModelSerializer):
    room_name = serializers.CharField(source="room.name", read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "room",
            "room_name",
            "user",
            "start_time",
            "end_time",
            "status",
            "rental_type",
            "payment_method",
            "payment_status",
            "balance_field",
            "token_cost",
            "total_cost",
            "notes",
            "receipt_url",
            "receipt_uploaded_at",
            "payment_confirmed_at",
            "cancelled_at",
            "cancellation_reason",
            "cancellation_hours_before",
            "token_deducted_for_cancellation",
            "rescheduled_to",
            "created_at",
        ]
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    """Input for POST /api/bookings/."""
    room = serializers.IntegerField()
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    payment_method = serializers.ChoiceField(choices=Booking.PaymentMethod.choices)
    package = serializers.ChoiceField(
        choices=["BR15", "BR30", "DP20"], required=False, allow_null=True, allow_blank=True
    )
    rental_type = serializers.ChoiceField(
        choices=Booking.RentalType.choices, required=False, default=Booking.RentalType.HOURLY
    )
    guests = serializers.IntegerField(required=False, default=1, min_value=1)
    with_equipment = serializers.BooleanField(required=False, default=False)
    purpose = serializers.CharField(required=False, allow_blank=True, default="")
    special_requests = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        # prevent past dates
        start_time = attrs["start_time"]
        if start_time <= timezone.now():
            raise serializers.ValidationError("Start time must be in the future.")
        if attrs["end_time"] <= start_time:
            raise serializers.ValidationError("End time must be after start time.")
        return attrs


class RescheduleSerializer(serializers.Serializer):
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()

    def validate(self, attrs):
        if attrs["end_time"] <= attrs["start_time"]:
            raise serializers.ValidationError("End time must be after start time.")
        return attrs


class UserBalanceSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserBalance
        fields = [
            "tokens",
            "token_valid_until",
            "br15_balance",
            "br30_balance",
            "dp20_balance",
            "dp20_expiry",
            "updated_at",
        ]


class BalanceTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = BalanceTransaction
        fields = ["id", "field", "change", "new_balance", "transaction_type", "booking", "description", "created_at"]


class AssignPackageSerializer(serializers.Serializer):
    user = serializers.IntegerField()
    package = serializers.ChoiceField(choices=["BR15", "BR30", "DP20"], required=False)
    tokens = serializers.IntegerField(required=False, min_value=1)

    def validate(self, attrs):
        if bool(attrs.get("package")) == bool(attrs.get("tokens")):
            raise serializers.ValidationError("Provide either 'package' or 'tokens'.")
        return attrs
