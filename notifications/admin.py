from django.contrib import admin
from notifications.models import Notification

@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('event_type', 'user', 'recipient', 'sent', 'created_at')
    list_filter = ('event_type', 'sent', 'created_at')
    search_fields = ('user__username', 'user__email', 'message')
    readonly_fields = ('payload', 'message', 'created_at')
