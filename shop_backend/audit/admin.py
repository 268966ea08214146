# audit/admin.py

from django.contrib import admin

from audit.models import AuditEntry


@admin.register(AuditEntry)
class AuditEntryAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "severity", "resource_type", "resource_id", "actor")
    list_filter = ("action", "severity", "created_at")
    search_fields = ("resource_id", "resource_type")
    readonly_fields = (
        "actor",
        "action",
        "resource_type",
        "resource_id",
        "severity",
        "details",
        "created_at",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
