# notifications/admin.py

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("created_at", "event", "title", "party", "is_read")
    list_filter = ("event", "is_read")
    search_fields = ("title", "message")
    readonly_fields = ("event", "title", "message", "payload", "party", "created_at")
