from django.contrib import admin
from .models import BalanceTransaction, BlockedDate, Booking, Room, RoomImage, UserBalance


class RoomImageInline(admin.TabularInline):
    model = RoomImage
    extra = 0


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "capacity", "token_hourly", "cash_hourly", "cash_daily", "hidden")
    list_filter = ("hidden", "supports_equipment")
    search_fields = ("name", "name_zh")
    list_editable = ("token_hourly", "cash_hourly", "cash_daily", "hidden")
    inlines = [RoomImageInline]


@admin.register(BlockedDate)
class BlockedDateAdmin(admin.ModelAdmin):
    list_display = ("blocked_date", "reason")


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "room", "user", "start_time", "end_time", "status", "payment_method", "payment_status")
    list_filter = ("status", "payment_method", "payment_status", "room")
    search_fields = ("user__username", "user__email", "room__name")
    date_hierarchy = "start_time"
    # Status, payment and balances change only through BookingManager
    readonly_fields = (
        "status",
        "payment_status",
        "balance_field",
        "token_cost",
        "total_cost",
        "cancelled_at",
        "cancelled_by",
        "cancellation_hours_before",
        "token_deducted_for_cancellation",
        "rescheduled_to",
        "created_at",
        "updated_at",
    )


@admin.register(UserBalance)
class UserBalanceAdmin(admin.ModelAdmin):
    list_display = ("user", "tokens", "token_valid_until", "br15_balance", "br30_balance", "dp20_balance", "dp20_expiry")
    search_fields = ("user__username", "user__email")
    readonly_fields = ("tokens", "br15_balance", "br30_balance", "dp20_balance", "updated_at")


@admin.register(BalanceTransaction)
class BalanceTransactionAdmin(admin.ModelAdmin):
    list_display = ("user", "field", "change", "new_balance", "transaction_type", "booking", "created_at")
    list_filter = ("transaction_type", "field")
    search_fields = ("user__username", "description")
